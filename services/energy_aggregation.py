# services/energy_aggregation.py
"""
Hour -> day -> month -> summary reconciliation of actual and forecast usage.

Readings are bucketed on the wall-clock hour of the company timezone. The
bucket key is that local hour start converted back to an instant, so the
repeated hour of a DST fall-back stays two buckets and the skipped hour of a
spring-forward never appears. Costs are priced per hour and quantized there;
every higher level only sums, then recomputes its own ratios from its totals.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Tuple
from zoneinfo import ZoneInfo

from schemas import DailyResponse, HourlyResponse, MonthlyResponse, SummaryResponse
from services.decimal_math import ZERO, deviation_rate, forecast_accuracy, quantize4
from services.read_models import UTC, CompanyContext, ForecastPoint, MeterReading, TariffProfile
from services.tariff_rates import resolve_rate


def hour_key(ts: datetime, zone: ZoneInfo) -> datetime:
    local = ts.astimezone(zone)
    return local.replace(minute=0, second=0, microsecond=0).astimezone(UTC)


@dataclass
class _Totals:
    usage: Decimal = ZERO
    forecast_usage: Decimal = ZERO
    bill: Decimal = ZERO
    forecast_bill: Decimal = ZERO

    def add(self, other: "_Totals") -> None:
        self.usage += other.usage
        self.forecast_usage += other.forecast_usage
        self.bill += other.bill
        self.forecast_bill += other.forecast_bill

    def fields(self) -> dict:
        return {
            "usage": self.usage,
            "forecast_usage": self.forecast_usage,
            "usage_difference": self.usage - self.forecast_usage,
            "bill": self.bill,
            "forecast_bill": self.forecast_bill,
            "bill_difference": self.bill - self.forecast_bill,
            "deviation_rate": deviation_rate(self.usage, self.forecast_usage),
            "forecast_accuracy": forecast_accuracy(self.usage, self.forecast_usage),
        }


def _sum_by_hour(pairs: Iterable[Tuple[datetime, Decimal]], zone: ZoneInfo) -> Dict[datetime, Decimal]:
    out: Dict[datetime, Decimal] = defaultdict(lambda: ZERO)
    for ts, value in pairs:
        out[hour_key(ts, zone)] += Decimal(value)
    return out


def reconcile(
    readings: Iterable[MeterReading],
    forecasts: Iterable[ForecastPoint],
    company: CompanyContext,
    profile: TariffProfile,
) -> SummaryResponse:
    zone = company.zone
    actual = _sum_by_hour(((r.timestamp, r.usage) for r in readings), zone)
    forecast = _sum_by_hour(((f.timestamp, f.forecast_usage) for f in forecasts), zone)

    # month -> day -> [(local hour, totals)]
    tree: Dict[date, Dict[date, List[Tuple[datetime, _Totals]]]] = defaultdict(lambda: defaultdict(list))
    for key in sorted(actual):
        local = key.astimezone(zone)
        price = resolve_rate(company.company_type, profile, local.hour).price
        usage = actual[key]
        forecast_usage = forecast.get(key, ZERO)
        totals = _Totals(
            usage=usage,
            forecast_usage=forecast_usage,
            bill=quantize4(usage * price),
            forecast_bill=quantize4(forecast_usage * price),
        )
        day = local.date()
        tree[day.replace(day=1)][day].append((local, totals))

    summary_totals = _Totals()
    months: List[MonthlyResponse] = []
    for month in sorted(tree):
        month_totals = _Totals()
        days: List[DailyResponse] = []
        for day in sorted(tree[month]):
            day_totals = _Totals()
            hours: List[HourlyResponse] = []
            for local, totals in tree[month][day]:
                day_totals.add(totals)
                hours.append(HourlyResponse(reference_time=local, **totals.fields()))
            month_totals.add(day_totals)
            days.append(DailyResponse(reference_date=day, hours=hours, **day_totals.fields()))
        summary_totals.add(month_totals)
        months.append(MonthlyResponse(reference_month=month, days=days, **month_totals.fields()))

    return SummaryResponse(months=months, **summary_totals.fields())

# services/read_models.py: immutable inputs of the reconciliation engine
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional, Tuple
from zoneinfo import ZoneInfo

from models import AIForecastEnergy, Company, CompanyType, Country, Energy, EnergyRate

UTC = timezone.utc


def as_utc(ts: datetime) -> datetime:
    """Naive timestamps coming out of storage are UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


@dataclass(frozen=True)
class CompanyContext:
    company_id: int
    company_type: CompanyType
    country_id: int
    timezone: str

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def from_company(cls, company: Company, country: Country) -> "CompanyContext":
        return cls(
            company_id=company.id,
            company_type=CompanyType(company.type),
            country_id=country.id,
            timezone=country.time_zone,
        )


@dataclass(frozen=True)
class TariffProfile:
    country_id: int
    industrial_rate: Decimal
    commercial_rate: Decimal
    peak_multiplier: Decimal
    mid_peak_multiplier: Decimal
    off_peak_multiplier: Decimal
    peak_hours: frozenset[int]
    mid_peak_hours: frozenset[int]
    off_peak_hours: frozenset[int]

    @classmethod
    def from_energy_rate(cls, rate: EnergyRate) -> "TariffProfile":
        return cls(
            country_id=rate.country_id,
            industrial_rate=Decimal(rate.industrial_rate),
            commercial_rate=Decimal(rate.commercial_rate),
            peak_multiplier=Decimal(rate.peak_multiplier),
            mid_peak_multiplier=Decimal(rate.mid_peak_multiplier),
            off_peak_multiplier=Decimal(rate.off_peak_multiplier),
            peak_hours=_hours(rate.peak_hours),
            mid_peak_hours=_hours(rate.mid_peak_hours),
            off_peak_hours=_hours(rate.off_peak_hours),
        )


@dataclass(frozen=True)
class MeterReading:
    device_id: int
    company_id: int
    timestamp: datetime  # aware, UTC
    usage: Decimal

    @classmethod
    def from_energy(cls, energy: Energy, company_id: int) -> "MeterReading":
        return cls(
            device_id=energy.iot_id,
            company_id=company_id,
            timestamp=as_utc(energy.reference_time),
            usage=Decimal(energy.facility_usage),
        )


@dataclass(frozen=True)
class ForecastPoint:
    company_id: int
    timestamp: datetime  # aware, UTC
    forecast_usage: Decimal

    @classmethod
    def from_forecast(cls, forecast: AIForecastEnergy) -> "ForecastPoint":
        return cls(
            company_id=forecast.company_id,
            timestamp=as_utc(forecast.forecast_time),
            forecast_usage=Decimal(forecast.forecast_usage),
        )


@dataclass(frozen=True)
class EnergyQuery:
    """Closed local-date range of one company; end defaults to start."""
    company_id: int
    start_date: date
    end_date: Optional[date] = None

    @property
    def effective_end(self) -> date:
        return self.end_date or self.start_date

    def utc_window(self, zone: ZoneInfo) -> Tuple[datetime, datetime]:
        start_local = datetime.combine(self.start_date, datetime.min.time(), tzinfo=zone)
        end_local = datetime.combine(self.effective_end, datetime.max.time().replace(microsecond=0), tzinfo=zone)
        return start_local.astimezone(UTC), end_local.astimezone(UTC)


def _hours(values: Optional[Iterable[int]]) -> frozenset[int]:
    return frozenset(int(h) for h in (values or []))



# services/energy_service.py
from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Dict, Optional, Tuple

from schemas import SummaryResponse
from services.energy_aggregation import reconcile
from services.energy_store import (
    fetch_forecasts, fetch_readings, load_companies, load_company, load_tariff, load_tariffs,
)
from services.read_models import EnergyQuery
from services.tariff_rates import HourlyRate, hourly_rates

logger = logging.getLogger(__name__)


async def read_energy(company_id: int, start_date: date, end_date: Optional[date] = None) -> SummaryResponse:
    """Reconciled actual vs forecast usage of one company over [start_date, end_date] local days."""
    query = EnergyQuery(company_id=company_id, start_date=start_date, end_date=end_date)
    company = await load_company(query.company_id)
    start, end = query.utc_window(company.zone)
    profile, readings, forecasts = await asyncio.gather(
        load_tariff(company.country_id),
        fetch_readings(company.company_id, start, end),
        fetch_forecasts(company.company_id, start, end),
    )
    return reconcile(readings, forecasts, company, profile)


def _same_day_last_month(day: date) -> date:
    prev_month_end = day.replace(day=1) - timedelta(days=1)
    return prev_month_end.replace(day=min(day.day, prev_month_end.day))


def _month_bounds(day: date) -> Tuple[date, date]:
    first = day.replace(day=1)
    next_first = (first + timedelta(days=32)).replace(day=1)
    return first, next_first - timedelta(days=1)


async def _today(company_id: int, today: Optional[date]) -> date:
    if today is not None:
        return today
    company = await load_company(company_id)
    return datetime.now(tz=company.zone).date()


async def get_realtime_and_last_month(company_id: int, today: Optional[date] = None) -> Tuple[SummaryResponse, SummaryResponse]:
    """Today against the same day of the previous month (clamped to its last day)."""
    today = await _today(company_id, today)
    return await asyncio.gather(
        read_energy(company_id, today),
        read_energy(company_id, _same_day_last_month(today)),
    )


async def get_this_and_last_month(company_id: int, today: Optional[date] = None) -> Tuple[SummaryResponse, SummaryResponse]:
    today = await _today(company_id, today)
    this_start, this_end = _month_bounds(today)
    last_start, last_end = _month_bounds(this_start - timedelta(days=1))
    return await asyncio.gather(
        read_energy(company_id, this_start, this_end),
        read_energy(company_id, last_start, last_end),
    )


async def read_hourly_rates(company_id: Optional[int] = None) -> Dict[int, Dict[int, HourlyRate]]:
    """
    Hour 0..23 price table per company. A single company without a tariff is
    an error; when listing every company, those without one are left out.
    """
    if company_id is not None:
        company = await load_company(company_id)
        profile = await load_tariff(company.country_id)
        return {company.company_id: hourly_rates(company.company_type, profile)}

    companies, tariffs = await asyncio.gather(load_companies(), load_tariffs())
    out: Dict[int, Dict[int, HourlyRate]] = {}
    for company in companies:
        profile = tariffs.get(company.country_id)
        if profile is None:
            logger.warning(f"[rates] company {company.company_id} skipped: no energy rate for country {company.country_id}")
            continue
        out[company.company_id] = hourly_rates(company.company_type, profile)
    return out

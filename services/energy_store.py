# services/energy_store.py: Tortoise fetches resolved into read models
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from models import AIForecastEnergy, Company, Energy, EnergyRate, Iot
from services.errors import ConfigurationMissing, ReferenceNotFound
from services.read_models import CompanyContext, ForecastPoint, MeterReading, TariffProfile


async def load_company(company_id: int) -> CompanyContext:
    company = await Company.get_or_none(id=company_id).prefetch_related("country")
    if company is None:
        raise ReferenceNotFound(f"No such company: {company_id}")
    return CompanyContext.from_company(company, company.country)


async def load_companies(company_ids: Optional[List[int]] = None) -> List[CompanyContext]:
    qs = Company.all().prefetch_related("country").order_by("id")
    if company_ids is not None:
        qs = qs.filter(id__in=company_ids)
    return [CompanyContext.from_company(c, c.country) for c in await qs]


async def load_tariff(country_id: int) -> TariffProfile:
    rate = await EnergyRate.get_or_none(country_id=country_id)
    if rate is None:
        raise ConfigurationMissing(f"No energy rate configured for country {country_id}")
    return TariffProfile.from_energy_rate(rate)


async def load_tariffs() -> Dict[int, TariffProfile]:
    return {r.country_id: TariffProfile.from_energy_rate(r) for r in await EnergyRate.all()}


async def fetch_readings(company_id: int, start: datetime, end: datetime) -> List[MeterReading]:
    iot_ids = await Iot.filter(company_id=company_id).values_list("id", flat=True)
    if not iot_ids:
        return []
    rows = await Energy.filter(
        iot_id__in=list(iot_ids),
        reference_time__gte=start,
        reference_time__lte=end,
    ).order_by("reference_time")
    return [MeterReading.from_energy(e, company_id) for e in rows]


async def fetch_forecasts(company_id: int, start: datetime, end: datetime) -> List[ForecastPoint]:
    rows = await AIForecastEnergy.filter(
        company_id=company_id,
        forecast_time__gte=start,
        forecast_time__lte=end,
    ).order_by("forecast_time")
    return [ForecastPoint.from_forecast(f) for f in rows]

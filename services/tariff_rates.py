# services/tariff_rates.py: time-of-day price resolution
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict

from models import CompanyType, RatePeakType
from services.decimal_math import quantize4
from services.read_models import TariffProfile

HOURS_OF_DAY = range(24)


@dataclass(frozen=True)
class HourlyRate:
    price: Decimal
    band: RatePeakType


def base_rate(company_type: CompanyType, profile: TariffProfile) -> Decimal:
    """FEMS sites pay the industrial rate; every other company type pays the commercial one."""
    if company_type == CompanyType.FEMS:
        return profile.industrial_rate
    return profile.commercial_rate


def classify_hour(profile: TariffProfile, hour: int) -> RatePeakType:
    # first match wins when an hour appears in more than one list
    if hour in profile.peak_hours:
        return RatePeakType.PEAK
    if hour in profile.mid_peak_hours:
        return RatePeakType.MID_PEAK
    if hour in profile.off_peak_hours:
        return RatePeakType.OFF_PEAK
    return RatePeakType.UNKNOWN


def resolve_rate(company_type: CompanyType, profile: TariffProfile, hour: int) -> HourlyRate:
    if hour not in HOURS_OF_DAY:
        raise ValueError(f"hour out of range: {hour}")
    band = classify_hour(profile, hour)
    multiplier = {
        RatePeakType.PEAK: profile.peak_multiplier,
        RatePeakType.MID_PEAK: profile.mid_peak_multiplier,
        RatePeakType.OFF_PEAK: profile.off_peak_multiplier,
    }.get(band, Decimal(1))
    return HourlyRate(price=quantize4(base_rate(company_type, profile) * multiplier), band=band)


def hourly_rates(company_type: CompanyType, profile: TariffProfile) -> Dict[int, HourlyRate]:
    return {hour: resolve_rate(company_type, profile, hour) for hour in HOURS_OF_DAY}

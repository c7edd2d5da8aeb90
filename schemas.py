from datetime import datetime, date
from decimal import Decimal
from typing import Optional, Dict, List
from pydantic import BaseModel, ConfigDict, Field, field_validator

from models import RatePeakType, SubscriptionService, PaymentMethod, PaymentStatus


def _check_hours(v: Optional[List[int]]) -> Optional[List[int]]:
    if v is None:
        return v
    bad = [h for h in v if h < 0 or h > 23]
    if bad:
        raise ValueError(f"hours must be within 0..23, got {bad}")
    return sorted(set(v))


# =========================
# Tariffs
# =========================
class EnergyRateCreate(BaseModel):
    country_id: int
    industrial_rate: Decimal = Field(gt=0)
    commercial_rate: Decimal = Field(gt=0)
    peak_multiplier: Decimal = Field(gt=0)
    mid_peak_multiplier: Decimal = Field(gt=0)
    off_peak_multiplier: Decimal = Field(gt=0)
    peak_hours: List[int] = []
    mid_peak_hours: List[int] = []
    off_peak_hours: List[int] = []

    @field_validator("peak_hours", "mid_peak_hours", "off_peak_hours")
    @classmethod
    def check_hours(cls, v):
        return _check_hours(v)


class EnergyRateUpdate(BaseModel):
    industrial_rate: Optional[Decimal] = Field(default=None, gt=0)
    commercial_rate: Optional[Decimal] = Field(default=None, gt=0)
    peak_multiplier: Optional[Decimal] = Field(default=None, gt=0)
    mid_peak_multiplier: Optional[Decimal] = Field(default=None, gt=0)
    off_peak_multiplier: Optional[Decimal] = Field(default=None, gt=0)
    peak_hours: Optional[List[int]] = None
    mid_peak_hours: Optional[List[int]] = None
    off_peak_hours: Optional[List[int]] = None

    @field_validator("peak_hours", "mid_peak_hours", "off_peak_hours")
    @classmethod
    def check_hours(cls, v):
        return _check_hours(v)


class EnergyRateRead(EnergyRateCreate):
    id: int
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class HourlyRateDetail(BaseModel):
    price: Decimal
    band: RatePeakType


class CompanyHourlyRates(BaseModel):
    company_id: int
    hourly_rates: Dict[int, HourlyRateDetail]


# =========================
# Reconciliation report
# =========================
class _Reconciled(BaseModel):
    usage: Decimal = Decimal(0)
    forecast_usage: Decimal = Decimal(0)
    usage_difference: Decimal = Decimal(0)
    bill: Decimal = Decimal(0)
    forecast_bill: Decimal = Decimal(0)
    bill_difference: Decimal = Decimal(0)
    deviation_rate: Decimal = Decimal(0)
    forecast_accuracy: Decimal = Decimal(0)


class HourlyResponse(_Reconciled):
    reference_time: datetime  # wall-clock hour start in the company zone


class DailyResponse(_Reconciled):
    reference_date: date
    hours: List[HourlyResponse] = []


class MonthlyResponse(_Reconciled):
    reference_month: date  # first day of the month
    days: List[DailyResponse] = []


class SummaryResponse(_Reconciled):
    months: List[MonthlyResponse] = []


class RealtimeAndLastMonthResponse(BaseModel):
    realtime: SummaryResponse
    last_month: SummaryResponse


class ThisAndLastMonthResponse(BaseModel):
    this_month: SummaryResponse
    last_month: SummaryResponse


# =========================
# Metering & subscriptions
# =========================
class MeteredUsageUpdate(BaseModel):
    usage_date: Optional[date] = None
    api_call_count: Optional[int] = Field(default=None, ge=0)
    iot_installation_count: Optional[int] = Field(default=None, ge=0)


class MeteredUsageRead(BaseModel):
    id: int
    company_id: int
    usage_date: date
    api_call_count: int
    iot_installation_count: int
    model_config = ConfigDict(from_attributes=True)


class SubscriptionCreate(BaseModel):
    company_id: int
    service: SubscriptionService
    start_date: date
    end_date: Optional[date] = None


class SubscriptionUpdate(BaseModel):
    service: Optional[SubscriptionService] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class SubscriptionRead(SubscriptionCreate):
    id: int
    cancelled: bool = False
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class RecalculationRead(BaseModel):
    updated: List[int] = []
    failed: Dict[int, str] = {}


class SubscriptionMutationRead(BaseModel):
    subscription: SubscriptionRead
    recalculation: RecalculationRead


# =========================
# Payments
# =========================
class PaymentUpdate(BaseModel):
    company_id: Optional[int] = None
    metered_usage_id: Optional[int] = None
    subscription_services: Optional[List[SubscriptionService]] = None
    storage_usage: Optional[int] = Field(default=None, ge=0)
    method: Optional[PaymentMethod] = None
    amount: Optional[Decimal] = Field(default=None, ge=0)
    status: Optional[PaymentStatus] = None
    usage_date: Optional[date] = None
    scheduled_payment_date: Optional[date] = None


class PaymentRead(BaseModel):
    id: int
    company_id: int
    metered_usage_id: Optional[int] = None
    subscription_services: List[SubscriptionService] = []
    storage_usage: int
    method: PaymentMethod
    amount: Decimal
    status: PaymentStatus
    usage_date: date
    scheduled_payment_date: date
    model_config = ConfigDict(from_attributes=True)


class PaymentSummaryRead(BaseModel):
    summary_api_call_count: int
    summary_api_call_amount: Decimal
    recently_iot_installation_count: int
    summary_iot_installation_amount: Decimal
    recently_storage_usage: Dict[int, int]
    summary_storage_usage_amount: Decimal
    subscribed_count: Dict[int, Dict[str, int]]
    summary_subscription_amount: Decimal
    summary_amount: Decimal


class PaymentGenerateRequest(BaseModel):
    storage_usage: Dict[int, int] = Field(default_factory=dict, description="bytes per company id")
    company_ids: Optional[List[int]] = None
    today: Optional[date] = None


class PaymentGenerateRead(BaseModel):
    created: List[int] = []
    refreshed: List[int] = []
    skipped_companies: List[int] = []
    failed: Dict[int, str] = {}

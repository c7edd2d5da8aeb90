# services/billing.py: charge lines of a payment, and the billing summary
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Mapping, Optional, Protocol

from models import SubscriptionService
from services.decimal_math import GIB, ZERO

# Daily flat rate per subscribed service
DEFAULT_SUBSCRIPTION_RATES: Dict[SubscriptionService, Decimal] = {
    SubscriptionService.REPORT_DOWNLOAD: Decimal("0.17"),
    SubscriptionService.AI_ENERGY_USAGE_FORECAST: Decimal("0.24"),
    SubscriptionService.INTERACTIVE_AI: Decimal("0.06"),
}


@dataclass(frozen=True)
class BillingRates:
    api_call_rate: Decimal
    iot_installation_rate: Decimal
    storage_rate_per_gb: Decimal
    free_storage_limit_gb: int
    subscription_rates: Mapping[SubscriptionService, Decimal] = field(
        default_factory=lambda: dict(DEFAULT_SUBSCRIPTION_RATES)
    )

    @property
    def free_storage_bytes(self) -> int:
        return self.free_storage_limit_gb * GIB


class UsageCounts(Protocol):
    """Anything carrying the two metered counters (a MeteredUsage row, a schema)."""
    api_call_count: int
    iot_installation_count: int


def api_call_amount(usage: Optional[UsageCounts], rates: BillingRates) -> Decimal:
    if usage is None:
        return ZERO
    return Decimal(usage.api_call_count) * rates.api_call_rate


def iot_installation_amount(usage: Optional[UsageCounts], rates: BillingRates) -> Decimal:
    if usage is None:
        return ZERO
    return Decimal(usage.iot_installation_count) * rates.iot_installation_rate


def storage_amount(storage_bytes: Optional[int], rates: BillingRates) -> Decimal:
    """Excess over the free allowance, rounded half-up to whole GB, times the per-GB rate."""
    excess = int(storage_bytes or 0) - rates.free_storage_bytes
    if excess <= 0:
        return ZERO
    excess_gb = (Decimal(excess) / Decimal(GIB)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return excess_gb * rates.storage_rate_per_gb


def subscription_amount(services: Optional[Iterable[SubscriptionService | str]], rates: BillingRates) -> Decimal:
    total = ZERO
    for svc in services or ():
        total += rates.subscription_rates[SubscriptionService(svc)]
    return total


def recalculate_amount(
    usage: Optional[UsageCounts],
    services: Optional[Iterable[SubscriptionService | str]],
    storage_bytes: Optional[int],
    rates: BillingRates,
) -> Decimal:
    return (
        api_call_amount(usage, rates)
        + subscription_amount(services, rates)
        + storage_amount(storage_bytes, rates)
        + iot_installation_amount(usage, rates)
    )


# ---------- summary over a set of payments ----------
@dataclass(frozen=True)
class PaymentFacts:
    """What the summary needs from one payment row."""
    company_id: int
    usage_date: date
    storage_usage: int
    subscription_services: List[SubscriptionService]
    api_call_count: Optional[int] = None
    iot_installation_count: Optional[int] = None

    @property
    def has_usage(self) -> bool:
        return self.api_call_count is not None


@dataclass
class BillingSummary:
    summary_api_call_count: int = 0
    summary_api_call_amount: Decimal = ZERO
    recently_iot_installation_count: int = 0
    summary_iot_installation_amount: Decimal = ZERO
    recently_storage_usage: Dict[int, int] = field(default_factory=dict)
    summary_storage_usage_amount: Decimal = ZERO
    subscribed_count: Dict[int, Dict[str, int]] = field(default_factory=dict)
    summary_subscription_amount: Decimal = ZERO

    @property
    def summary_amount(self) -> Decimal:
        return (
            self.summary_subscription_amount
            + self.summary_api_call_amount
            + self.summary_iot_installation_amount
            + self.summary_storage_usage_amount
        )


def summarize_payments(payments: Iterable[PaymentFacts], usage_date_end: date, rates: BillingRates) -> BillingSummary:
    """
    API calls, storage and subscription amounts are summed over every payment.
    The IoT installation count is not: only the largest count seen on or before
    `usage_date_end` is billed. Storage bytes per company keep the largest value
    on or before the end date.
    """
    out = BillingSummary()
    for p in payments:
        in_range = p.usage_date <= usage_date_end
        if p.has_usage:
            out.summary_api_call_count += int(p.api_call_count or 0)
            out.summary_api_call_amount += Decimal(p.api_call_count or 0) * rates.api_call_rate
            count = int(p.iot_installation_count or 0)
            if in_range and count > out.recently_iot_installation_count:
                out.recently_iot_installation_count = count
                out.summary_iot_installation_amount = Decimal(count) * rates.iot_installation_rate

        prev = out.recently_storage_usage.get(p.company_id, 0)
        out.recently_storage_usage[p.company_id] = max(prev, int(p.storage_usage or 0) if in_range else 0)
        out.summary_storage_usage_amount += storage_amount(p.storage_usage, rates)

        if p.subscription_services:
            per_company = out.subscribed_count.setdefault(p.company_id, {})
            for svc in p.subscription_services:
                svc = SubscriptionService(svc)
                per_company[svc.value] = per_company.get(svc.value, 0) + 1
                out.summary_subscription_amount += rates.subscription_rates[svc]
    return out

# services/payment_sync.py: keeps Payment amounts derived from their inputs
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from tortoise.expressions import Q
from tortoise.transactions import in_transaction

from models import (
    Company, MeteredUsage, Payment, PaymentMethod, PaymentStatus, Subscription, SubscriptionService,
)
from services.billing import BillingRates, BillingSummary, PaymentFacts, recalculate_amount, summarize_payments
from services.energy_store import load_companies, load_company
from services.errors import AlreadyCancelled, EngineError, ReferenceNotFound, SubscriptionConflict, UsageDateConflict

logger = logging.getLogger(__name__)


@dataclass
class RecalculationResult:
    updated: List[int] = field(default_factory=list)
    failed: Dict[int, str] = field(default_factory=dict)


@dataclass
class GenerationResult:
    created: List[int] = field(default_factory=list)
    refreshed: List[int] = field(default_factory=list)
    skipped_companies: List[int] = field(default_factory=list)
    failed: Dict[int, str] = field(default_factory=dict)


# ------------------------------------------------------------------------------
# Loaders
# ------------------------------------------------------------------------------
async def _load_metered_usage(metered_usage_id: Optional[int]) -> Optional[MeteredUsage]:
    if metered_usage_id is None:
        return None
    usage = await MeteredUsage.get_or_none(id=metered_usage_id)
    if usage is None:
        raise ReferenceNotFound(f"No such metered usage: {metered_usage_id}")
    return usage


def active_on(on: date) -> Q:
    """
    Subscriptions active on a date. An explicit end_date is the last billed day;
    a cancelled subscription is no longer billed on its cancellation day.
    """
    return Q(start_date__lte=on) & (
        Q(end_date__isnull=True) | Q(end_date__gt=on) | Q(end_date=on, cancelled=False)
    )


def last_billed_day(sub: Subscription) -> Optional[date]:
    if sub.end_date is None:
        return None
    return sub.end_date - timedelta(days=1) if sub.cancelled else sub.end_date


async def active_services(company_id: int, on: date) -> List[SubscriptionService]:
    subs = await Subscription.filter(active_on(on), company_id=company_id).order_by("id")
    return [SubscriptionService(s.service) for s in subs]


def scheduled_payment_date(usage_date: date) -> date:
    """10th of the month after the usage date."""
    return (usage_date.replace(day=1) + timedelta(days=32)).replace(day=10)


# ------------------------------------------------------------------------------
# Per-payment recomputation
# ------------------------------------------------------------------------------
async def _recompute_one(payment_id: int, rates: BillingRates) -> None:
    async with in_transaction():
        payment = await Payment.get_or_none(id=payment_id)
        if payment is None:
            raise ReferenceNotFound(f"No such payment: {payment_id}")
        if not await Company.exists(id=payment.company_id):
            raise ReferenceNotFound(f"No such company: {payment.company_id}")
        usage = await _load_metered_usage(payment.metered_usage_id)
        services = await active_services(payment.company_id, payment.usage_date)
        payment.subscription_services = [s.value for s in services]
        payment.amount = recalculate_amount(usage, services, payment.storage_usage, rates)
        await payment.save()


async def recompute_payments(payment_ids: Iterable[int], rates: BillingRates) -> RecalculationResult:
    """Each payment is re-derived in its own transaction; a failed row does not stop the rest."""
    result = RecalculationResult()
    for pid in payment_ids:
        try:
            await _recompute_one(pid, rates)
            result.updated.append(pid)
        except EngineError as e:
            result.failed[pid] = str(e)
            logger.warning(f"[billing] payment {pid} not recalculated: {e}")
    return result


async def recompute_for_metered_usage(metered_usage_id: int, rates: BillingRates) -> RecalculationResult:
    ids = await Payment.filter(metered_usage_id=metered_usage_id).order_by("id").values_list("id", flat=True)
    return await recompute_payments(ids, rates)


async def recompute_for_window(
    company_id: int, start: date, last: Optional[date], rates: BillingRates
) -> RecalculationResult:
    """Payments of a company whose usage date lies in [start, last]; last None is open."""
    qs = Payment.filter(company_id=company_id, usage_date__gte=start)
    if last is not None:
        qs = qs.filter(usage_date__lte=last)
    ids = await qs.order_by("usage_date", "id").values_list("id", flat=True)
    return await recompute_payments(ids, rates)


# ------------------------------------------------------------------------------
# Subscription lifecycle
# ------------------------------------------------------------------------------
def _overlaps(a_start: date, a_last: Optional[date], b_start: date, b_last: Optional[date]) -> bool:
    # both windows inclusive; a window whose last day precedes its start is empty
    if (a_last is not None and a_last < a_start) or (b_last is not None and b_last < b_start):
        return False
    return (a_last is None or b_start <= a_last) and (b_last is None or a_start <= b_last)


async def _check_overlap(company_id: int, service: SubscriptionService, start: date, last: Optional[date],
                         exclude_id: Optional[int] = None) -> None:
    qs = Subscription.filter(company_id=company_id, service=service)
    if exclude_id is not None:
        qs = qs.exclude(id=exclude_id)
    for other in await qs:
        if _overlaps(other.start_date, last_billed_day(other), start, last):
            raise SubscriptionConflict(
                f"Company {company_id} already subscribes to {service.value} during the requested period "
                f"(subscription {other.id})"
            )


def _window_union(a_start: date, a_last: Optional[date], b_start: date, b_last: Optional[date]):
    start = min(a_start, b_start)
    last = None if a_last is None or b_last is None else max(a_last, b_last)
    return start, last


async def create_subscription(data: Dict[str, Any], rates: BillingRates):
    company_id = data["company_id"]
    await load_company(company_id)
    service = SubscriptionService(data["service"])
    if data.get("end_date") is not None and data["end_date"] < data["start_date"]:
        raise ValueError("end_date must not be before start_date")
    await _check_overlap(company_id, service, data["start_date"], data.get("end_date"))
    sub = await Subscription.create(
        company_id=company_id, service=service, start_date=data["start_date"], end_date=data.get("end_date"),
    )
    result = await recompute_for_window(company_id, sub.start_date, sub.end_date, rates)
    return sub, result


async def update_subscription(subscription_id: int, data: Dict[str, Any], rates: BillingRates):
    sub = await Subscription.get_or_none(id=subscription_id)
    if sub is None:
        raise ReferenceNotFound(f"No such subscription: {subscription_id}")
    old_start, old_last = sub.start_date, last_billed_day(sub)
    for k, v in data.items():
        setattr(sub, k, v)
    if "end_date" in data:
        # an end date set by hand is billed
        sub.cancelled = False
    if sub.end_date is not None and sub.end_date < sub.start_date:
        raise ValueError("end_date must not be before start_date")
    await _check_overlap(sub.company_id, SubscriptionService(sub.service), sub.start_date, last_billed_day(sub),
                         exclude_id=sub.id)
    await sub.save()
    start, last = _window_union(old_start, old_last, sub.start_date, last_billed_day(sub))
    result = await recompute_for_window(sub.company_id, start, last, rates)
    return sub, result


async def cancel_subscription(subscription_id: int, rates: BillingRates, today: Optional[date] = None):
    """
    Ends the subscription today in the company's own timezone. Payments from the
    cancellation day on no longer carry the service.
    """
    sub = await Subscription.get_or_none(id=subscription_id)
    if sub is None:
        raise ReferenceNotFound(f"No such subscription: {subscription_id}")
    if sub.end_date is not None:
        raise AlreadyCancelled(f"Subscription {subscription_id} is already cancelled")
    if today is None:
        company = await load_company(sub.company_id)
        today = datetime.now(tz=company.zone).date()
    sub.end_date = max(today, sub.start_date)
    sub.cancelled = True
    await sub.save()
    result = await recompute_for_window(sub.company_id, sub.start_date, None, rates)
    logger.info(f"[billing] subscription {sub.id} cancelled on {sub.end_date}: "
                f"{len(result.updated)} payments updated, {len(result.failed)} failed")
    return sub, result


async def delete_subscription(subscription_id: int, rates: BillingRates) -> RecalculationResult:
    sub = await Subscription.get_or_none(id=subscription_id)
    if sub is None:
        raise ReferenceNotFound(f"No such subscription: {subscription_id}")
    company_id, start, last = sub.company_id, sub.start_date, last_billed_day(sub)
    await sub.delete()
    return await recompute_for_window(company_id, start, last, rates)


# ------------------------------------------------------------------------------
# Metered usage & payment edits
# ------------------------------------------------------------------------------
async def update_metered_usage(metered_usage_id: int, data: Dict[str, Any], rates: BillingRates):
    usage = await MeteredUsage.get_or_none(id=metered_usage_id)
    if usage is None:
        raise ReferenceNotFound(f"No such metered usage: {metered_usage_id}")
    new_date = data.get("usage_date")
    if new_date is not None and new_date != usage.usage_date:
        taken = await MeteredUsage.filter(
            company_id=usage.company_id, usage_date=new_date
        ).exclude(id=usage.id).exists()
        if taken:
            raise UsageDateConflict(f"Company {usage.company_id} already has metered usage for {new_date}")
    for k, v in data.items():
        setattr(usage, k, v)
    await usage.save()
    result = await recompute_for_metered_usage(usage.id, rates)
    return usage, result


async def delete_metered_usage(metered_usage_id: int, rates: BillingRates) -> RecalculationResult:
    """Detaches the usage from its payments, deletes it and re-derives those payments without it."""
    usage = await MeteredUsage.get_or_none(id=metered_usage_id)
    if usage is None:
        raise ReferenceNotFound(f"No such metered usage: {metered_usage_id}")
    ids = await Payment.filter(metered_usage_id=usage.id).order_by("id").values_list("id", flat=True)
    async with in_transaction():
        await Payment.filter(id__in=ids).update(metered_usage_id=None)
        await usage.delete()
    return await recompute_payments(ids, rates)


_AMOUNT_INPUTS = ("metered_usage_id", "subscription_services", "storage_usage")


async def update_payment(payment_id: int, data: Dict[str, Any], rates: BillingRates) -> Payment:
    """
    Partial update. When any amount input changes the amount is re-derived from
    the stored inputs; an explicit amount is kept only when none of them change.
    """
    payment = await Payment.get_or_none(id=payment_id)
    if payment is None:
        raise ReferenceNotFound(f"No such payment: {payment_id}")
    if "company_id" in data and data["company_id"] is not None:
        await load_company(data["company_id"])

    inputs_changed = any(k in data for k in _AMOUNT_INPUTS)
    for k, v in data.items():
        if k == "subscription_services" and v is not None:
            v = [SubscriptionService(s).value for s in v]
        setattr(payment, k, v)

    if inputs_changed:
        usage = await _load_metered_usage(payment.metered_usage_id)
        payment.amount = recalculate_amount(usage, payment.subscription_services, payment.storage_usage, rates)
    await payment.save()
    return payment


# ------------------------------------------------------------------------------
# Generation & periodic refresh
# ------------------------------------------------------------------------------
async def _upsert_payment(company_id: int, usage: MeteredUsage, storage_bytes: int,
                          rates: BillingRates, result: GenerationResult) -> None:
    async with in_transaction():
        services = await active_services(company_id, usage.usage_date)
        amount = recalculate_amount(usage, services, storage_bytes, rates)
        payment = await Payment.get_or_none(company_id=company_id, usage_date=usage.usage_date)
        if payment is None:
            payment = await Payment.create(
                company_id=company_id,
                metered_usage_id=usage.id,
                subscription_services=[s.value for s in services],
                storage_usage=storage_bytes,
                method=PaymentMethod.CARD,
                amount=amount,
                status=PaymentStatus.OUTSTANDING,
                usage_date=usage.usage_date,
                scheduled_payment_date=scheduled_payment_date(usage.usage_date),
            )
            result.created.append(payment.id)
            return
        payment.subscription_services = [s.value for s in services]
        payment.storage_usage = storage_bytes
        if payment.metered_usage_id is None:
            payment.metered_usage_id = usage.id
        if payment.status != PaymentStatus.COMPLETE:
            payment.amount = amount
        await payment.save()
        result.refreshed.append(payment.id)


async def generate_payments(
    storage_usage: Dict[int, int],
    rates: BillingRates,
    company_ids: Optional[List[int]] = None,
    today: Optional[date] = None,
) -> GenerationResult:
    """
    One payment per company per metered-usage date up to today (company zone).
    Storage is measured elsewhere and handed in per company; companies without
    a figure are skipped.
    """
    result = GenerationResult()
    for company in await load_companies(company_ids):
        storage_bytes = storage_usage.get(company.company_id)
        if storage_bytes is None:
            logger.warning(f"[payments] company {company.company_id} skipped: no storage usage supplied")
            result.skipped_companies.append(company.company_id)
            continue
        local_today = today or datetime.now(tz=company.zone).date()
        usages = await MeteredUsage.filter(
            company_id=company.company_id, usage_date__lte=local_today
        ).order_by("usage_date")
        if not usages:
            logger.warning(f"[payments] company {company.company_id} has no metered usage, skipping")
            result.skipped_companies.append(company.company_id)
            continue
        for usage in usages:
            try:
                await _upsert_payment(company.company_id, usage, storage_bytes, rates, result)
            except EngineError as e:
                result.failed[usage.id] = str(e)
                logger.warning(f"[payments] metered usage {usage.id} not billed: {e}")
    logger.info(f"[payments] generated={len(result.created)} refreshed={len(result.refreshed)} "
                f"skipped={len(result.skipped_companies)} failed={len(result.failed)}")
    return result


async def refresh_outstanding_payments(rates: BillingRates) -> RecalculationResult:
    ids = await Payment.filter(status=PaymentStatus.OUTSTANDING).order_by("id").values_list("id", flat=True)
    result = await recompute_payments(ids, rates)
    logger.info(f"[payments] outstanding refresh: updated={len(result.updated)} failed={len(result.failed)}")
    return result


# ------------------------------------------------------------------------------
# Summary
# ------------------------------------------------------------------------------
async def payment_summary(
    rates: BillingRates,
    company_ids: Optional[List[int]] = None,
    usage_date_gte: Optional[date] = None,
    usage_date_lte: Optional[date] = None,
) -> BillingSummary:
    qs = Payment.all().prefetch_related("metered_usage")
    if company_ids:
        qs = qs.filter(company_id__in=company_ids)
    if usage_date_gte is not None:
        qs = qs.filter(usage_date__gte=usage_date_gte)
    if usage_date_lte is not None:
        qs = qs.filter(usage_date__lte=usage_date_lte)
    payments = await qs.order_by("usage_date", "id")

    facts = []
    for p in payments:
        usage = p.metered_usage
        facts.append(PaymentFacts(
            company_id=p.company_id,
            usage_date=p.usage_date,
            storage_usage=p.storage_usage,
            subscription_services=[SubscriptionService(s) for s in (p.subscription_services or [])],
            api_call_count=usage.api_call_count if usage is not None else None,
            iot_installation_count=usage.iot_installation_count if usage is not None else None,
        ))
    # spans companies in several zones, so an open range ends on the server's date
    end = usage_date_lte or date.today()
    return summarize_payments(facts, end, rates)

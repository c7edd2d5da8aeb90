# routers/subscriptions.py
from fastapi import APIRouter, Depends, HTTPException

from models import Subscription
from schemas import (
    RecalculationRead, SubscriptionCreate, SubscriptionMutationRead, SubscriptionRead, SubscriptionUpdate,
)
from api_utils import RAListParams, apply_filter_map, as_date, http_error, id_list, paginate_and_respond, parse_sort
from services.billing import BillingRates
from services.config import get_billing_rates
from services.errors import EngineError
from services import payment_sync

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


def _mutation(sub: Subscription, result: payment_sync.RecalculationResult) -> SubscriptionMutationRead:
    return SubscriptionMutationRead(
        subscription=SubscriptionRead.model_validate(sub),
        recalculation=RecalculationRead(updated=result.updated, failed=result.failed),
    )


@router.get("", response_model=list[SubscriptionRead])
async def list_subscriptions(params: RAListParams = Depends()):
    qs = Subscription.all()
    fmap = {
        "id": lambda q, v: q.filter(id__in=id_list(v)),
        "company_id": lambda q, v: q.filter(company_id__in=id_list(v)),
        "service": lambda q, v: q.filter(service__in=v if isinstance(v, list) else [v]),
        # active on a given local date
        "active_on": lambda q, v: q.filter(payment_sync.active_on(as_date(v))),
        "cancelled": lambda q, v: q.filter(cancelled=bool(v)),
    }
    qs = apply_filter_map(qs, params.filters, fmap)
    order = parse_sort(params.sort, ["company_id", "service", "start_date", "end_date", "created_at"])
    return await paginate_and_respond(qs, params.skip, params.limit, order, SubscriptionRead.model_validate)


@router.post("", response_model=SubscriptionMutationRead, status_code=201)
async def create_subscription(payload: SubscriptionCreate, rates: BillingRates = Depends(get_billing_rates)):
    try:
        sub, result = await payment_sync.create_subscription(payload.model_dump(), rates)
    except EngineError as e:
        raise http_error(e) from e
    except ValueError as e:
        raise HTTPException(400, str(e)) from e
    return _mutation(sub, result)


@router.put("/{subscription_id}", response_model=SubscriptionMutationRead)
async def update_subscription(subscription_id: int, payload: SubscriptionUpdate,
                              rates: BillingRates = Depends(get_billing_rates)):
    data = payload.model_dump(exclude_unset=True)
    if data.get("service") is None:
        data.pop("service", None)
    if data.get("start_date") is None:
        data.pop("start_date", None)
    try:
        sub, result = await payment_sync.update_subscription(subscription_id, data, rates)
    except EngineError as e:
        raise http_error(e) from e
    except ValueError as e:
        raise HTTPException(400, str(e)) from e
    return _mutation(sub, result)


@router.post("/{subscription_id}/cancel", response_model=SubscriptionMutationRead)
async def cancel_subscription(subscription_id: int, rates: BillingRates = Depends(get_billing_rates)):
    try:
        sub, result = await payment_sync.cancel_subscription(subscription_id, rates)
    except EngineError as e:
        raise http_error(e) from e
    return _mutation(sub, result)


@router.delete("/{subscription_id}", response_model=RecalculationRead)
async def delete_subscription(subscription_id: int, rates: BillingRates = Depends(get_billing_rates)):
    try:
        result = await payment_sync.delete_subscription(subscription_id, rates)
    except EngineError as e:
        raise http_error(e) from e
    return RecalculationRead(updated=result.updated, failed=result.failed)

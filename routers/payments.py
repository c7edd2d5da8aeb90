# routers/payments.py
from dataclasses import asdict
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from models import Payment
from schemas import PaymentRead, PaymentSummaryRead, PaymentUpdate
from api_utils import (
    RAListParams, apply_filter_map, as_date, http_error, id_list, paginate_and_respond, parse_sort, respond_item,
)
from services.billing import BillingRates
from services.config import get_billing_rates
from services.errors import EngineError
from services.payment_sync import payment_summary, update_payment

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("", response_model=list[PaymentRead])
async def list_payments(params: RAListParams = Depends()):
    qs = Payment.all()
    fmap = {
        "id": lambda q, v: q.filter(id__in=id_list(v)),
        "company_id": lambda q, v: q.filter(company_id__in=id_list(v)),
        "status": lambda q, v: q.filter(status=str(v)),
        "method": lambda q, v: q.filter(method=str(v)),
        "usage_date_gte": lambda q, v: q.filter(usage_date__gte=as_date(v)),
        "usage_date_lte": lambda q, v: q.filter(usage_date__lte=as_date(v)),
        "scheduled_payment_date_gte": lambda q, v: q.filter(scheduled_payment_date__gte=as_date(v)),
        "scheduled_payment_date_lte": lambda q, v: q.filter(scheduled_payment_date__lte=as_date(v)),
        "amount_gte": lambda q, v: q.filter(amount__gte=v),
        "amount_lte": lambda q, v: q.filter(amount__lte=v),
    }
    qs = apply_filter_map(qs, params.filters, fmap)
    order = parse_sort(params.sort, ["company_id", "usage_date", "scheduled_payment_date", "amount", "status", "method"])
    return await paginate_and_respond(qs, params.skip, params.limit, order, PaymentRead.model_validate)


@router.get("/summary", response_model=PaymentSummaryRead)
async def summary(
    company_id: Optional[List[int]] = Query(None),
    usage_date_gte: Optional[date] = Query(None),
    usage_date_lte: Optional[date] = Query(None),
    rates: BillingRates = Depends(get_billing_rates),
):
    result = await payment_summary(rates, company_id, usage_date_gte, usage_date_lte)
    return PaymentSummaryRead(**asdict(result), summary_amount=result.summary_amount)


@router.get("/{payment_id}", response_model=PaymentRead)
async def get_payment(payment_id: int):
    obj = await Payment.get_or_none(id=payment_id)
    if not obj:
        raise HTTPException(404, "Payment not found")
    return respond_item(obj, PaymentRead.model_validate)


@router.put("/{payment_id}", response_model=PaymentRead)
async def edit_payment(payment_id: int, payload: PaymentUpdate, rates: BillingRates = Depends(get_billing_rates)):
    data = payload.model_dump(exclude_unset=True)
    # only metered_usage_id may be cleared explicitly
    data = {k: v for k, v in data.items() if v is not None or k == "metered_usage_id"}
    try:
        obj = await update_payment(payment_id, data, rates)
    except EngineError as e:
        raise http_error(e) from e
    return respond_item(obj, PaymentRead.model_validate)


@router.delete("/{payment_id}", status_code=204)
async def delete_payment(payment_id: int):
    deleted = await Payment.filter(id=payment_id).delete()
    if not deleted:
        raise HTTPException(404, "Payment not found")

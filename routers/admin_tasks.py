from __future__ import annotations
from fastapi import APIRouter, Depends

from schemas import PaymentGenerateRead, PaymentGenerateRequest, RecalculationRead
from services.billing import BillingRates
from services.config import get_billing_rates
from services.payment_sync import generate_payments, refresh_outstanding_payments

router = APIRouter(prefix="/admin/tasks", tags=["admin-tasks"])


@router.post("/payments", response_model=PaymentGenerateRead)
async def generate(payload: PaymentGenerateRequest, rates: BillingRates = Depends(get_billing_rates)):
    res = await generate_payments(payload.storage_usage, rates, company_ids=payload.company_ids, today=payload.today)
    return PaymentGenerateRead(
        created=res.created, refreshed=res.refreshed, skipped_companies=res.skipped_companies, failed=res.failed,
    )


@router.post("/payments/refresh", response_model=RecalculationRead)
async def refresh(rates: BillingRates = Depends(get_billing_rates)):
    res = await refresh_outstanding_payments(rates)
    return RecalculationRead(updated=res.updated, failed=res.failed)

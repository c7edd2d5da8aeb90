# routers/metered_usage.py
from fastapi import APIRouter, Depends

from models import MeteredUsage
from schemas import MeteredUsageRead, MeteredUsageUpdate, RecalculationRead
from api_utils import RAListParams, apply_filter_map, as_date, http_error, id_list, paginate_and_respond, parse_sort
from services.billing import BillingRates
from services.config import get_billing_rates
from services.errors import EngineError
from services.payment_sync import delete_metered_usage, update_metered_usage

router = APIRouter(prefix="/metered-usage", tags=["metered-usage"])


@router.get("", response_model=list[MeteredUsageRead])
async def list_metered_usage(params: RAListParams = Depends()):
    qs = MeteredUsage.all()
    fmap = {
        "id": lambda q, v: q.filter(id__in=id_list(v)),
        "company_id": lambda q, v: q.filter(company_id__in=id_list(v)),
        "usage_date_gte": lambda q, v: q.filter(usage_date__gte=as_date(v)),
        "usage_date_lte": lambda q, v: q.filter(usage_date__lte=as_date(v)),
    }
    qs = apply_filter_map(qs, params.filters, fmap)
    order = parse_sort(params.sort, ["company_id", "usage_date", "api_call_count", "iot_installation_count"])
    return await paginate_and_respond(qs, params.skip, params.limit, order, MeteredUsageRead.model_validate)


@router.put("/{usage_id}")
async def update_usage(usage_id: int, payload: MeteredUsageUpdate, rates: BillingRates = Depends(get_billing_rates)):
    data = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    try:
        usage, result = await update_metered_usage(usage_id, data, rates)
    except EngineError as e:
        raise http_error(e) from e
    return {
        "metered_usage": MeteredUsageRead.model_validate(usage).model_dump(mode="json"),
        "recalculation": RecalculationRead(updated=result.updated, failed=result.failed).model_dump(mode="json"),
    }


@router.delete("/{usage_id}", response_model=RecalculationRead)
async def delete_usage(usage_id: int, rates: BillingRates = Depends(get_billing_rates)):
    try:
        result = await delete_metered_usage(usage_id, rates)
    except EngineError as e:
        raise http_error(e) from e
    return RecalculationRead(updated=result.updated, failed=result.failed)

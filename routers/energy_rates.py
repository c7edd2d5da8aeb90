# routers/energy_rates.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from tortoise.exceptions import IntegrityError

from models import Country, EnergyRate
from schemas import CompanyHourlyRates, EnergyRateCreate, EnergyRateRead, EnergyRateUpdate, HourlyRateDetail
from api_utils import RAListParams, apply_filter_map, http_error, id_list, paginate_and_respond, parse_sort, respond_item
from services.energy_service import read_hourly_rates
from services.errors import EngineError

router = APIRouter(prefix="/energy-rates", tags=["energy-rates"])

to_rate_read = EnergyRateRead.model_validate


@router.get("", response_model=list[EnergyRateRead])
async def list_energy_rates(params: RAListParams = Depends()):
    qs = EnergyRate.all()
    fmap = {
        "id": lambda q, v: q.filter(id__in=id_list(v)),
        "country_id": lambda q, v: q.filter(country_id__in=id_list(v)),
        "industrial_rate_gte": lambda q, v: q.filter(industrial_rate__gte=v),
        "industrial_rate_lte": lambda q, v: q.filter(industrial_rate__lte=v),
        "commercial_rate_gte": lambda q, v: q.filter(commercial_rate__gte=v),
        "commercial_rate_lte": lambda q, v: q.filter(commercial_rate__lte=v),
        "peak_multiplier_gte": lambda q, v: q.filter(peak_multiplier__gte=v),
        "peak_multiplier_lte": lambda q, v: q.filter(peak_multiplier__lte=v),
    }
    qs = apply_filter_map(qs, params.filters, fmap)
    order = parse_sort(params.sort, ["country_id", "industrial_rate", "commercial_rate", "peak_multiplier",
                                     "mid_peak_multiplier", "off_peak_multiplier", "created_at", "updated_at"])
    return await paginate_and_respond(qs, params.skip, params.limit, order, to_rate_read)


@router.get("/hourly", response_model=list[CompanyHourlyRates])
async def hourly_rates(company_id: Optional[int] = Query(None)):
    try:
        table = await read_hourly_rates(company_id)
    except EngineError as e:
        raise http_error(e) from e
    return [
        CompanyHourlyRates(
            company_id=cid,
            hourly_rates={h: HourlyRateDetail(price=r.price, band=r.band) for h, r in rates.items()},
        )
        for cid, rates in table.items()
    ]


@router.get("/{rate_id}", response_model=EnergyRateRead)
async def get_energy_rate(rate_id: int):
    obj = await EnergyRate.get_or_none(id=rate_id)
    if not obj:
        raise HTTPException(404, "Energy rate not found")
    return respond_item(obj, to_rate_read)


@router.post("", response_model=EnergyRateRead, status_code=201)
async def create_energy_rate(payload: EnergyRateCreate):
    if not await Country.exists(id=payload.country_id):
        raise HTTPException(404, "Country not found")
    if await EnergyRate.exists(country_id=payload.country_id):
        raise HTTPException(409, "Country already has an energy rate")
    try:
        obj = await EnergyRate.create(**payload.model_dump())
    except IntegrityError as e:
        raise HTTPException(409, str(e)) from e
    return respond_item(obj, to_rate_read, status_code=201)


@router.put("/{rate_id}", response_model=EnergyRateRead)
async def update_energy_rate(rate_id: int, payload: EnergyRateUpdate):
    obj = await EnergyRate.get_or_none(id=rate_id)
    if not obj:
        raise HTTPException(404, "Energy rate not found")
    data = payload.model_dump(exclude_unset=True)
    for k, v in data.items():
        if v is None:
            continue
        setattr(obj, k, v)
    await obj.save()
    return respond_item(obj, to_rate_read)


@router.delete("/{rate_id}", status_code=204)
async def delete_energy_rate(rate_id: int):
    deleted = await EnergyRate.filter(id=rate_id).delete()
    if not deleted:
        raise HTTPException(404, "Energy rate not found")

# routers/energy.py
from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from api_utils import http_error
from schemas import RealtimeAndLastMonthResponse, SummaryResponse, ThisAndLastMonthResponse
from services.energy_service import get_realtime_and_last_month, get_this_and_last_month, read_energy
from services.errors import EngineError

router = APIRouter(prefix="/energy", tags=["energy"])


@router.get("/{company_id}", response_model=SummaryResponse)
async def get_energy(
    company_id: int,
    start_date: date = Query(..., description="first local day"),
    end_date: Optional[date] = Query(None, description="last local day, defaults to start_date"),
):
    if end_date is not None and end_date < start_date:
        raise HTTPException(400, "end_date must not be before start_date")
    try:
        return await read_energy(company_id, start_date, end_date)
    except EngineError as e:
        raise http_error(e) from e


@router.get("/{company_id}/realtime", response_model=RealtimeAndLastMonthResponse)
async def get_realtime(company_id: int):
    try:
        realtime, last_month = await get_realtime_and_last_month(company_id)
    except EngineError as e:
        raise http_error(e) from e
    return RealtimeAndLastMonthResponse(realtime=realtime, last_month=last_month)


@router.get("/{company_id}/this-and-last-month", response_model=ThisAndLastMonthResponse)
async def get_this_and_last(company_id: int):
    try:
        this_month, last_month = await get_this_and_last_month(company_id)
    except EngineError as e:
        raise http_error(e) from e
    return ThisAndLastMonthResponse(this_month=this_month, last_month=last_month)

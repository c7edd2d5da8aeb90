# api_utils.py
import json
from datetime import date
from typing import Any, Callable, Iterable
from fastapi import HTTPException, Query
from fastapi.responses import JSONResponse
from tortoise.queryset import QuerySet

from services.errors import (
    AlreadyCancelled, ConfigurationMissing, EngineError, ReferenceNotFound, SubscriptionConflict,
    UsageDateConflict,
)

# ---------- React-Admin param parsing ----------
def parse_range(range_param: str) -> tuple[int, int, int]:
    try:
        start, end = json.loads(range_param)
    except (ValueError, TypeError):
        raise HTTPException(400, f"Invalid range: {range_param}")
    skip = max(int(start), 0)
    limit = max(int(end) - skip + 1, 0)
    return skip, limit, start

def parse_sort(sort_param: str, allowed_fields: Iterable[str]) -> str:
    allowed = set(allowed_fields) | {"id"}
    try:
        field, order = json.loads(sort_param)
    except (ValueError, TypeError):
        field, order = ("id", "ASC")
    field = field if field in allowed else "id"
    prefix = "-" if str(order).upper() == "DESC" else ""
    return f"{prefix}{field}"

def parse_filter(filter_param: str | None) -> dict:
    try:
        parsed = json.loads(filter_param or "{}")
    except ValueError:
        return {}
    return parsed if isinstance(parsed, dict) else {}

def id_list(value: Any) -> list[int]:
    """React-Admin sends a scalar for one id and a list for getMany."""
    if isinstance(value, (list, tuple)):
        return [int(v) for v in value]
    return [int(value)]

def as_date(value: Any) -> date:
    try:
        return value if isinstance(value, date) else date.fromisoformat(str(value)[:10])
    except ValueError:
        raise HTTPException(400, f"Invalid date: {value}")

# ---------- Query helpers ----------
def apply_filter_map(qs: QuerySet, filters: dict, fmap: dict[str, Callable[[QuerySet, Any], QuerySet]]) -> QuerySet:
    for key, fn in fmap.items():
        if key in filters and filters[key] is not None:
            qs = fn(qs, filters[key])
    return qs

async def paginate_and_respond(
    qs: QuerySet,
    skip: int,
    limit: int,
    order: str,
    to_pydantic: Callable[[Any], Any],
) -> JSONResponse:
    total = await qs.count()
    items = await qs.order_by(order).offset(skip).limit(limit)
    end_real = skip + max(len(items) - 1, 0)
    content_range = f"items {skip}-{end_real}/{total}"

    # Pydantic JSON mode keeps Decimal / date encoding consistent
    content = [to_pydantic(it).model_dump(mode="json") for it in items]

    return JSONResponse(
        status_code=206,
        content=content,
        headers={"Content-Range": content_range},
    )

def respond_item(model_obj: Any, to_pydantic: Callable[[Any], Any], status_code: int = 200) -> JSONResponse:
    payload = to_pydantic(model_obj).model_dump(mode="json")
    return JSONResponse(status_code=status_code, content=payload)

# ---------- Engine errors -> HTTP ----------
def http_error(exc: EngineError) -> HTTPException:
    if isinstance(exc, ConfigurationMissing):
        return HTTPException(404, f"Configuration missing: {exc}")
    if isinstance(exc, ReferenceNotFound):
        return HTTPException(404, str(exc))
    if isinstance(exc, (SubscriptionConflict, UsageDateConflict)):
        return HTTPException(409, str(exc))
    if isinstance(exc, AlreadyCancelled):
        return HTTPException(400, str(exc))
    return HTTPException(400, str(exc))

# ---------- Optional RA params container ----------
class RAListParams:
    def __init__(
        self,
        range: str = Query("[0,9]"),
        sort: str = Query('["id","ASC"]'),
        filter: str = Query("{}"),
    ):
        self.skip, self.limit, self.start = parse_range(range)
        self.filters = parse_filter(filter)
        self.sort = sort

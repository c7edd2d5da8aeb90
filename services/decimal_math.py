# services/decimal_math.py
from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP

FOUR_PLACES = Decimal("0.0001")
TEN_PLACES = Decimal("0.0000000001")
HUNDRED = Decimal(100)
ZERO = Decimal(0)
GIB = 1024 ** 3


def quantize4(value: Decimal) -> Decimal:
    return Decimal(value).quantize(FOUR_PLACES, rounding=ROUND_HALF_UP)


def _ratio(actual: Decimal, forecast: Decimal) -> Decimal | None:
    denominator = max(actual, forecast)
    if denominator == 0:
        return None
    return (abs(actual - forecast) / denominator).quantize(TEN_PLACES, rounding=ROUND_HALF_UP)


def deviation_rate(actual: Decimal, forecast: Decimal) -> Decimal:
    """|actual - forecast| / max(actual, forecast) as a percentage; 0 when both are 0."""
    ratio = _ratio(actual, forecast)
    if ratio is None:
        return quantize4(ZERO)
    return quantize4(ratio * HUNDRED)


def forecast_accuracy(actual: Decimal, forecast: Decimal) -> Decimal:
    ratio = _ratio(actual, forecast)
    if ratio is None:
        return quantize4(ZERO)
    return quantize4((1 - ratio) * HUNDRED)

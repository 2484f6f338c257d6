"""
Margin engine — sale price derivation from cost + MOL, and the single money
rounding function used at the persistence / presentation boundary.
"""
import math
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Optional

from doc_pricing.config import MONEY_DECIMALS

_QUANTUM = Decimal(1).scaleb(-MONEY_DECIMALS)   # 0.01
# Enough digits for any finite float at cent precision
_CONTEXT = Context(prec=400)


def sale_price(cost: float, margin_percentage: float) -> float:
    """
    Price at which (price - cost) / price == margin_percentage / 100.

        price = cost / (1 - margin_percentage / 100)

    A margin of 100 % or more is degenerate; the cost is returned unchanged.
    """
    if margin_percentage >= 100:
        return cost
    return cost / (1 - margin_percentage / 100)


def margin_percentage(price: float, cost: float) -> float:
    """Achieved margin as a percentage of price; 0 when price is not positive."""
    if price <= 0:
        return 0.0
    return (price - cost) / price * 100


def clamp_margin(value: Optional[float]) -> float:
    """Coerce a catalog MOL into [0, 100]; missing values count as 0."""
    if not value:
        return 0.0
    return min(max(float(value), 0.0), 100.0)


def round_money(value: Optional[float]) -> float:
    """Round half-up to MONEY_DECIMALS places. None, NaN and infinities become 0."""
    if value is None or not math.isfinite(value):
        return 0.0
    return float(Decimal(str(value)).quantize(_QUANTUM, rounding=ROUND_HALF_UP, context=_CONTEXT))


def round_optional(value: Optional[float]) -> Optional[float]:
    """round_money that keeps None (unset snapshot fields stay unset)."""
    if value is None:
        return None
    return round_money(value)

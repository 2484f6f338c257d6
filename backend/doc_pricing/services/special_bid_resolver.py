"""
Special bid resolver — finds the client+product cost override valid "now".

A bid's `unit_price` is the line COST; the sale price is derived from it with
the bid's own MOL when set, otherwise the product's.
"""
import logging
from datetime import date, datetime
from typing import Iterable, List, Optional, Tuple, Union

from doc_pricing import config
from doc_pricing.models.pricing_schema import Product, SpecialBid
from doc_pricing.services.margin_engine import clamp_margin, sale_price

logger = logging.getLogger("doc-pricing.special-bids")

Moment = Union[datetime, date]


def _as_day(now: Moment) -> date:
    return now.date() if isinstance(now, datetime) else now


def is_bid_valid(bid: SpecialBid, now: Moment) -> bool:
    """
    A bid with both bounds set is valid iff start_date <= now <= end_date.
    A bid missing either bound is always valid.
    """
    if bid.start_date is None or bid.end_date is None:
        return True
    # Calendar-date bounds, inclusive on both ends
    return bid.start_date <= _as_day(now) <= bid.end_date


def bid_matches(bid: SpecialBid, client_id: Optional[str], product_id: Optional[str]) -> bool:
    """
    True when `bid` belongs to `product_id` and, if a client is given, to `client_id`.

    Validity window and disabled flag are not checked here; a bid already
    selected on a line stays priced even after it expires.
    """
    if bid.product_id != product_id:
        return False
    return not client_id or bid.client_id == client_id


def _window_days(bid: SpecialBid) -> float:
    if bid.start_date is None or bid.end_date is None:
        return float("inf")
    return (bid.end_date - bid.start_date).days


def _order_candidates(candidates: List[SpecialBid], precedence: str) -> List[SpecialBid]:
    if precedence == "latest_start":
        # Open-ended bids sort last; stable sort keeps catalog order on ties
        return sorted(
            candidates,
            key=lambda b: (b.start_date is None, -(b.start_date.toordinal() if b.start_date else 0)),
        )
    if precedence == "narrowest":
        return sorted(candidates, key=_window_days)
    return candidates


def find_applicable_bid(
    bids: Iterable[SpecialBid],
    client_id: Optional[str],
    product_id: Optional[str],
    now: Moment,
    precedence: Optional[str] = None,
) -> Optional[SpecialBid]:
    """
    Return the bid that applies to (client_id, product_id) at `now`, or None.

    Disabled bids never apply. When several valid bids match, `precedence`
    (default: config.BID_PRECEDENCE) decides; "first" keeps catalog order.
    """
    if not client_id or not product_id:
        return None

    rule = (precedence or config.BID_PRECEDENCE).lower()
    if rule not in config.BID_PRECEDENCE_CHOICES:
        logger.warning("Unknown bid precedence '%s'; falling back to 'first'", rule)
        rule = "first"

    candidates = [
        b for b in bids
        if not b.is_disabled
        and b.client_id == client_id
        and b.product_id == product_id
        and is_bid_valid(b, now)
    ]
    if not candidates:
        return None
    if len(candidates) > 1:
        logger.debug(
            "%d overlapping bids for client=%s product=%s, precedence=%s",
            len(candidates), client_id, product_id, rule,
        )
    chosen = _order_candidates(candidates, rule)[0]
    logger.debug("Special bid %s applies to client=%s product=%s", chosen.id, client_id, product_id)
    return chosen


def bid_margin(bid: SpecialBid, product: Optional[Product]) -> float:
    """Bid's own MOL if set, else the product's, clamped to [0, 100]."""
    if bid.mol_percentage is not None:
        return clamp_margin(bid.mol_percentage)
    return clamp_margin(product.mol_percentage if product else 0.0)


def bid_sale_price(bid: SpecialBid, product: Optional[Product]) -> float:
    """Sale price derived from the bid cost."""
    return sale_price(bid.unit_price, bid_margin(bid, product))


def _windows_intersect(a: SpecialBid, b: SpecialBid) -> bool:
    # Open-ended windows overlap everything
    if a.start_date is None or a.end_date is None or b.start_date is None or b.end_date is None:
        return True
    return a.start_date <= b.end_date and b.start_date <= a.end_date


def find_overlapping_bids(bids: Iterable[SpecialBid]) -> List[Tuple[SpecialBid, SpecialBid]]:
    """
    Pairs of enabled bids for the same client+product whose validity windows
    intersect. Used to reject ambiguous bids when they are created.
    """
    enabled = [b for b in bids if not b.is_disabled]
    overlaps: List[Tuple[SpecialBid, SpecialBid]] = []
    for i, first in enumerate(enabled):
        for second in enabled[i + 1:]:
            if (first.client_id, first.product_id) != (second.client_id, second.product_id):
                continue
            if _windows_intersect(first, second):
                overlaps.append((first, second))
    return overlaps

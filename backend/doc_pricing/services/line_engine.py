"""
Line engine — net amount, cost and tax rate of a single document line.

Cost and tax rate prefer the line's frozen snapshot fields and fall back to a
live catalog lookup only when the snapshot is absent (draft lines not yet
committed, legacy rows). A selected special bid counts only while it belongs
to the line's product and the document's client; otherwise the line is costed
like a plain product line. Missing references contribute zero; nothing here
raises.
"""
import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional

from doc_pricing.models.pricing_schema import DocumentLine
from doc_pricing.services.catalog_lookup import CatalogLookup
from doc_pricing.services.special_bid_resolver import bid_matches

logger = logging.getLogger("doc-pricing.lines")


def to_number(value: Optional[float]) -> float:
    """None, NaN and infinities count as 0."""
    if value is None:
        return 0.0
    value = float(value)
    return value if math.isfinite(value) else 0.0


@dataclass
class LineEvaluation:
    line_id: str
    product_id: Optional[str]
    quantity: float = 0.0
    subtotal: float = 0.0
    discount_amount: float = 0.0
    net: float = 0.0
    unit_cost: float = 0.0
    cost: float = 0.0
    tax_rate: Optional[float] = None
    uses_special_bid: bool = False

    @property
    def margin(self) -> float:
        return self.net - self.cost


def bid_applies(line: DocumentLine, catalog: CatalogLookup, client_id: Optional[str] = None) -> bool:
    """
    Whether the line's selected special bid may price it.

    A bid that is gone from the catalog is trusted through the line's frozen
    snapshot; a live bid must match the line's product and `client_id`.
    """
    if not line.special_bid_id:
        return False
    bid = catalog.bid(line.special_bid_id)
    if bid is None:
        return True
    if not bid_matches(bid, client_id, line.product_id):
        logger.debug(
            "Line %s: special bid %s is for client=%s product=%s, ignoring",
            line.id, bid.id, bid.client_id, bid.product_id,
        )
        return False
    return True


def resolve_unit_cost(line: DocumentLine, catalog: CatalogLookup, client_id: Optional[str] = None) -> float:
    """
    Unit cost for margin purposes.

    With an applicable bid: frozen special_bid_unit_price, else the live bid price.
    Otherwise:              frozen product_cost, else the live product cost.
    """
    if bid_applies(line, catalog, client_id):
        if line.special_bid_unit_price is not None:
            return to_number(line.special_bid_unit_price)
        bid = catalog.bid(line.special_bid_id)
        if bid is None:
            logger.debug("Line %s: special bid %s not found, cost 0", line.id, line.special_bid_id)
            return 0.0
        return to_number(bid.unit_price)

    if line.product_cost is not None:
        return to_number(line.product_cost)
    product = catalog.product(line.product_id)
    if product is None:
        return 0.0
    return to_number(product.cost)


def resolve_tax_rate(line: DocumentLine, catalog: CatalogLookup) -> Optional[float]:
    """Frozen product_tax_rate, else the live product's; None when neither exists."""
    if line.product_tax_rate is not None:
        return to_number(line.product_tax_rate)
    product = catalog.product(line.product_id)
    if product is None:
        return None
    return to_number(product.tax_rate)


def evaluate_line(line: DocumentLine, catalog: CatalogLookup, client_id: Optional[str] = None) -> LineEvaluation:
    quantity = to_number(line.quantity)
    subtotal = quantity * to_number(line.unit_price)
    discount_amount = subtotal * (to_number(line.discount) / 100)
    unit_cost = resolve_unit_cost(line, catalog, client_id)

    tax_rate = resolve_tax_rate(line, catalog)
    if tax_rate is None:
        logger.debug("Line %s: product %s not resolvable, no tax", line.id, line.product_id)

    return LineEvaluation(
        line_id=line.id,
        product_id=line.product_id,
        quantity=quantity,
        subtotal=subtotal,
        discount_amount=discount_amount,
        net=subtotal - discount_amount,
        unit_cost=unit_cost,
        cost=quantity * unit_cost,
        tax_rate=tax_rate,
        uses_special_bid=bid_applies(line, catalog, client_id),
    )


def evaluate_lines(
    lines: Iterable[DocumentLine],
    catalog: CatalogLookup,
    client_id: Optional[str] = None,
) -> List[LineEvaluation]:
    return [evaluate_line(line, catalog, client_id) for line in lines]

"""Read-only product / special bid lookup handed to every pricing engine."""
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Union

from doc_pricing.models.pricing_schema import Product, SpecialBid
from doc_pricing.services.special_bid_resolver import is_bid_valid


class CatalogLookup:
    """
    In-memory index over a snapshot of the product and special bid catalogs.

    Disabled entries stay resolvable by id so historical lines can still be
    displayed, but are excluded from `active_*` listings and bid resolution.
    """

    def __init__(
        self,
        products: Optional[Iterable[Product]] = None,
        special_bids: Optional[Iterable[SpecialBid]] = None,
    ) -> None:
        self._products: Dict[str, Product] = {p.id: p for p in (products or [])}
        # dict keeps catalog order, which "first" precedence relies on
        self._bids: Dict[str, SpecialBid] = {b.id: b for b in (special_bids or [])}

    def product(self, product_id: Optional[str]) -> Optional[Product]:
        if not product_id:
            return None
        return self._products.get(product_id)

    def bid(self, bid_id: Optional[str]) -> Optional[SpecialBid]:
        if not bid_id:
            return None
        return self._bids.get(bid_id)

    def products(self) -> List[Product]:
        return list(self._products.values())

    def special_bids(self) -> List[SpecialBid]:
        return list(self._bids.values())

    def active_products(self) -> List[Product]:
        return [p for p in self._products.values() if not p.is_disabled]

    def active_bids(self, now: Union[datetime, date]) -> List[SpecialBid]:
        return [b for b in self._bids.values() if not b.is_disabled and is_bid_valid(b, now)]

    def bids_for_client(self, client_id: Optional[str], now: Union[datetime, date]) -> List[SpecialBid]:
        """Bids offered in the editor's bid picker; all active bids when no client is chosen."""
        active = self.active_bids(now)
        if not client_id:
            return active
        return [b for b in active if b.client_id == client_id]

"""
Draft editor — live pricing of a document while it is being edited.

Owns the document's lines as records keyed by stable ids. Choosing a product
or a client re-resolves the applicable special bid and derives the unit sale
price from cost + MOL; the snapshot fields are kept in step with the live
choice so totals during editing match what commit will freeze.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from doc_pricing.models.pricing_schema import Document, DocumentLine, DocumentTotals, Product, SpecialBid
from doc_pricing.services.catalog_lookup import CatalogLookup
from doc_pricing.services.document_workflow import ensure_editable
from doc_pricing.services.margin_engine import clamp_margin, sale_price
from doc_pricing.services.snapshot_engine import CommitResult, commit_document
from doc_pricing.services.special_bid_resolver import bid_sale_price, find_applicable_bid, is_bid_valid
from doc_pricing.services.totals_engine import compute_totals
from doc_pricing.services.validation_engine import validate_document

logger = logging.getLogger("doc-pricing.editor")

_BID_CLEARED = {
    "special_bid_id": None,
    "special_bid_unit_price": None,
    "special_bid_mol_percentage": None,
}


class DraftEditor:
    """
    Editing session over one document.

    All mutators raise ReadOnlyDocumentError unless the document is a draft;
    `now` pins the moment used for bid validity during the session.
    """

    def __init__(self, document: Document, catalog: CatalogLookup, now: Optional[datetime] = None) -> None:
        self.catalog = catalog
        self.now = now or datetime.now()
        self._document = document.model_copy(update={"lines": []})
        self._lines: Dict[str, DocumentLine] = {line.id: line for line in document.lines}

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def client_id(self) -> Optional[str]:
        return self._document.client_id

    @property
    def global_discount(self) -> float:
        return self._document.discount or 0.0

    def line(self, line_id: str) -> DocumentLine:
        return self._lines[line_id]

    def lines(self) -> List[DocumentLine]:
        return list(self._lines.values())

    def to_document(self) -> Document:
        return self._document.model_copy(update={"lines": self.lines()})

    def totals(self) -> DocumentTotals:
        """Unrounded live totals; round with round_totals() for display."""
        return compute_totals(self.lines(), self.catalog, self.global_discount, self.client_id)

    def available_bids(self) -> List[SpecialBid]:
        """Bids the bid picker should offer for the current client."""
        return self.catalog.bids_for_client(self.client_id, self.now)

    def validate(self) -> Dict[str, str]:
        return validate_document(self.to_document(), self.catalog)

    # ------------------------------------------------------------------
    # Pricing helpers
    # ------------------------------------------------------------------

    def _product_pricing(self, product: Product) -> dict:
        return {
            "product_id": product.id,
            "product_name": product.name,
            "unit_price": sale_price(product.cost, clamp_margin(product.mol_percentage)),
            "product_cost": product.cost,
            "product_mol_percentage": product.mol_percentage,
            "product_tax_rate": product.tax_rate,
            "snapshot_frozen": False,
            **_BID_CLEARED,
        }

    def _bid_pricing(self, bid: SpecialBid, product: Product) -> dict:
        # Bid price is the COST; sale price uses the bid MOL, else the product's
        pricing = self._product_pricing(product)
        pricing.update({
            "unit_price": bid_sale_price(bid, product),
            "special_bid_id": bid.id,
            "special_bid_unit_price": bid.unit_price,
            "special_bid_mol_percentage": bid.mol_percentage,
        })
        return pricing

    def _price_for(self, product: Product) -> dict:
        bid = find_applicable_bid(self.catalog.special_bids(), self.client_id, product.id, self.now)
        if bid is not None:
            logger.debug("Applying special bid %s to product %s", bid.id, product.id)
            return self._bid_pricing(bid, product)
        return self._product_pricing(product)

    def _update(self, line_id: str, **changes) -> DocumentLine:
        ensure_editable(self._document)
        updated = self._lines[line_id].model_copy(update=changes)
        self._lines[line_id] = updated
        return updated

    # ------------------------------------------------------------------
    # Line arena
    # ------------------------------------------------------------------

    def add_line(self, product_id: Optional[str] = None, quantity: float = 1.0) -> str:
        """Append a line and return its id; priced immediately when a product is given."""
        ensure_editable(self._document)
        line = DocumentLine(quantity=quantity)
        self._lines[line.id] = line
        if product_id:
            self.set_product(line.id, product_id)
        return line.id

    def remove_line(self, line_id: str) -> None:
        ensure_editable(self._document)
        del self._lines[line_id]

    def set_product(self, line_id: str, product_id: Optional[str]) -> DocumentLine:
        """
        Select a product. Active products are priced from the applicable bid
        (if any) or from their own cost + MOL; unknown or disabled products
        only set the reference.
        """
        product = self.catalog.product(product_id)
        if product is None or product.is_disabled:
            logger.debug("Product %s not selectable; leaving line %s unpriced", product_id, line_id)
            return self._update(
                line_id,
                product_id=product_id,
                product_name="",
                unit_price=0.0,
                product_cost=None,
                product_mol_percentage=None,
                product_tax_rate=None,
                snapshot_frozen=False,
                **_BID_CLEARED,
            )
        return self._update(line_id, **self._price_for(product))

    def set_special_bid(self, line_id: str, bid_id: Optional[str]) -> DocumentLine:
        """
        Select a bid for a line (its product follows the bid), or clear it with
        a falsy id, which reverts the line to standard product pricing.
        """
        current = self._lines[line_id]
        if not bid_id:
            product = self.catalog.product(current.product_id)
            if product is None:
                return self._update(line_id, snapshot_frozen=False, **_BID_CLEARED)
            return self._update(line_id, **self._product_pricing(product))

        bid = self.catalog.bid(bid_id)
        if bid is None:
            raise ValueError(f"Special bid '{bid_id}' does not exist")
        if bid.is_disabled or not is_bid_valid(bid, self.now):
            raise ValueError(f"Special bid '{bid_id}' is not active")
        if self.client_id and bid.client_id != self.client_id:
            raise ValueError(f"Special bid '{bid_id}' belongs to another client")
        product = self.catalog.product(bid.product_id)
        if product is None:
            raise ValueError(f"Special bid '{bid_id}' references unknown product '{bid.product_id}'")
        return self._update(line_id, **self._bid_pricing(bid, product))

    def set_quantity(self, line_id: str, quantity: Optional[float]) -> DocumentLine:
        return self._update(line_id, quantity=quantity)

    def set_discount(self, line_id: str, discount: Optional[float]) -> DocumentLine:
        return self._update(line_id, discount=discount)

    def set_unit_price(self, line_id: str, unit_price: Optional[float]) -> DocumentLine:
        """Manual sale price override; cost snapshot is untouched."""
        return self._update(line_id, unit_price=unit_price)

    def set_note(self, line_id: str, note: str) -> DocumentLine:
        return self._update(line_id, note=note)

    # ------------------------------------------------------------------
    # Header
    # ------------------------------------------------------------------

    def set_global_discount(self, discount: Optional[float]) -> None:
        ensure_editable(self._document)
        self._document = self._document.model_copy(update={"discount": discount})

    def set_client(self, client_id: Optional[str]) -> None:
        """Change client and re-resolve every line's bid and price."""
        ensure_editable(self._document)
        self._document = self._document.model_copy(update={"client_id": client_id or None})

        for line_id, line in list(self._lines.items()):
            product = self.catalog.product(line.product_id)
            if product is None:
                if line.special_bid_id:
                    self._update(line_id, snapshot_frozen=False, **_BID_CLEARED)
                continue
            self._update(line_id, **self._price_for(product))

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    def commit(self, status: Optional[str] = None) -> CommitResult:
        """Validate and freeze the edited document; see snapshot_engine.commit_document."""
        return commit_document(self.to_document(), self.catalog, status)

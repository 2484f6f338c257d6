"""
Submit-time business rules for commercial documents.

A document can be submitted only when it has a client, at least one line,
every line references a product with a quantity > 0, every selected special
bid belongs to that product and the document's client, and the resulting total
is finite and positive. Failures are reported per field and never mutate the
document.
"""
import math
from typing import Dict

from doc_pricing.models.pricing_schema import Document
from doc_pricing.services.catalog_lookup import CatalogLookup
from doc_pricing.services.line_engine import bid_applies
from doc_pricing.services.totals_engine import document_totals

MSG_CLIENT_REQUIRED = "Client is required"
MSG_ITEMS_REQUIRED = "At least one line item is required"
MSG_PRODUCT_REQUIRED = "Please select a product for all items"
MSG_QUANTITY_POSITIVE = "Quantity must be greater than zero"
MSG_BID_MISMATCH = "Special bid does not match the client and product"
MSG_DISCOUNT_RANGE = "Discount must be between 0 and 100"
MSG_TOTAL_POSITIVE = "Total must be greater than zero"


class DocumentValidationError(ValueError):
    """Raised when a document fails submit-time rules; `errors` maps field → message."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        detail = "; ".join(f"{field}: {msg}" for field, msg in self.errors.items())
        super().__init__(f"Document is not valid for submission ({detail})")


def _valid_quantity(quantity) -> bool:
    if quantity is None:
        return False
    try:
        value = float(quantity)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and value > 0


def validate_document(document: Document, catalog: CatalogLookup) -> Dict[str, str]:
    """Return field → message for every broken rule; empty dict when submittable."""
    errors: Dict[str, str] = {}

    if not document.client_id:
        errors["client_id"] = MSG_CLIENT_REQUIRED

    discount = document.discount or 0.0
    if not (math.isfinite(discount) and 0 <= discount <= 100):
        errors["discount"] = MSG_DISCOUNT_RANGE

    if not document.lines:
        errors["items"] = MSG_ITEMS_REQUIRED
    elif any(not line.product_id for line in document.lines):
        errors["items"] = MSG_PRODUCT_REQUIRED
    elif any(not _valid_quantity(line.quantity) for line in document.lines):
        errors["items"] = MSG_QUANTITY_POSITIVE
    elif any(
        line.special_bid_id and not bid_applies(line, catalog, document.client_id)
        for line in document.lines
    ):
        errors["items"] = MSG_BID_MISMATCH

    if "items" not in errors and "discount" not in errors:
        total = document_totals(document, catalog).total
        if not math.isfinite(total) or total <= 0:
            errors["total"] = MSG_TOTAL_POSITIVE

    return errors


def assert_submittable(document: Document, catalog: CatalogLookup) -> None:
    errors = validate_document(document, catalog)
    if errors:
        raise DocumentValidationError(errors)

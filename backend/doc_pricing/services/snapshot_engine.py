"""
Snapshot engine — freezes each line's cost / margin / tax inputs at commit.

On the first commit of a line, product cost, MOL and tax rate are copied from
the live product, and bid cost / MOL from the live bid when one is selected
(each falling back to the value already on the line when the catalog entry
is gone). Lines without a bid get both bid snapshot fields cleared. Once a
line is frozen its snapshot is copied forward unchanged: later catalog edits
never alter a committed document's totals.

Freezing always happens before persistence; the patches returned by
commit_document() are what the persistence layer writes.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from doc_pricing import config
from doc_pricing.models.pricing_schema import Document, DocumentLine, DocumentTotals, SnapshotPatch
from doc_pricing.services.catalog_lookup import CatalogLookup
from doc_pricing.services.document_workflow import (
    InvalidTransitionError,
    ensure_editable,
    transition,
)
from doc_pricing.services.line_engine import bid_applies
from doc_pricing.services.logging_config import document_logger
from doc_pricing.services.margin_engine import round_money, round_optional
from doc_pricing.services.perf_monitor import timed
from doc_pricing.services.totals_engine import display_totals
from doc_pricing.services.validation_engine import assert_submittable

logger = logging.getLogger("doc-pricing.snapshot")


@dataclass
class CommitResult:
    """Frozen document, the per-line patches to persist, and its rounded totals."""
    document: Document
    patches: List[SnapshotPatch] = field(default_factory=list)
    totals: Optional[DocumentTotals] = None


def _prefer(live, existing):
    return live if live is not None else existing


def freeze_line(line: DocumentLine, catalog: CatalogLookup, client_id: Optional[str] = None) -> SnapshotPatch:
    """
    Snapshot patch for one line (rounded; ready for persistence).

    A selected bid that belongs to another client or product is dropped from
    the patch, so the line freezes as a plain product line.
    """
    special_bid_id = line.special_bid_id
    if line.snapshot_frozen:
        product_cost = line.product_cost
        product_mol = line.product_mol_percentage
        product_tax_rate = line.product_tax_rate
        bid_unit_price = line.special_bid_unit_price if special_bid_id else None
        bid_mol = line.special_bid_mol_percentage if special_bid_id else None
    else:
        product = catalog.product(line.product_id)
        product_cost = _prefer(product.cost if product else None, line.product_cost)
        product_mol = _prefer(product.mol_percentage if product else None, line.product_mol_percentage)
        product_tax_rate = _prefer(product.tax_rate if product else None, line.product_tax_rate)
        if product is None:
            logger.debug("Line %s: product %s missing, keeping existing snapshot", line.id, line.product_id)

        if special_bid_id and not bid_applies(line, catalog, client_id):
            logger.warning(
                "Line %s: special bid %s does not match, not frozen", line.id, special_bid_id,
                extra={"line_id": line.id},
            )
            special_bid_id = None

        bid_unit_price = None
        bid_mol = None
        if special_bid_id:
            bid = catalog.bid(special_bid_id)
            if bid is not None:
                bid_unit_price = bid.unit_price
                bid_mol = bid.mol_percentage
            else:
                bid_unit_price = line.special_bid_unit_price
                bid_mol = line.special_bid_mol_percentage

    return SnapshotPatch(
        line_id=line.id,
        unit_price=round_money(line.unit_price),
        discount=round_money(line.discount),
        product_cost=round_optional(product_cost),
        product_mol_percentage=round_optional(product_mol),
        product_tax_rate=round_optional(product_tax_rate),
        special_bid_id=special_bid_id,
        special_bid_unit_price=round_optional(bid_unit_price),
        special_bid_mol_percentage=round_optional(bid_mol),
    )


def apply_snapshot(line: DocumentLine, patch: SnapshotPatch) -> DocumentLine:
    """Copy of `line` with the patch written onto it and marked frozen."""
    updates = patch.model_dump(exclude={"line_id"})
    updates["snapshot_frozen"] = True
    return line.model_copy(update=updates)


def freeze_document(document: Document, catalog: CatalogLookup) -> Tuple[Document, List[SnapshotPatch]]:
    """Freeze every line and round the global discount. Pure: `document` is not modified."""
    patches = [freeze_line(line, catalog, document.client_id) for line in document.lines]
    lines = [apply_snapshot(line, patch) for line, patch in zip(document.lines, patches)]
    frozen = document.model_copy(update={"lines": lines, "discount": round_money(document.discount)})
    return frozen, patches


@timed
def commit_document(
    document: Document,
    catalog: CatalogLookup,
    status: Optional[str] = None,
) -> CommitResult:
    """
    Validate, freeze and (optionally) move a draft document to `status`.

    Raises ReadOnlyDocumentError outside draft, DocumentValidationError when a
    business rule fails (before anything is frozen), InvalidTransitionError for
    a disallowed target status.
    """
    ensure_editable(document)
    assert_submittable(document, catalog)

    frozen, patches = freeze_document(document, catalog)
    if status is not None and status != frozen.status:
        frozen = transition(frozen, status)

    document_logger(logger, frozen.id).info(
        "Committed %s %s with %d lines (status=%s)", frozen.kind, frozen.id, len(patches), frozen.status,
    )
    return CommitResult(document=frozen, patches=patches, totals=display_totals(frozen, catalog))


def carry_forward(source: Document, kind: str) -> Document:
    """
    New draft document of `kind` built from a confirmed `source`.

    Lines get fresh ids but keep the source's frozen snapshot fields as-is,
    so the new document prices exactly like the one it came from.
    """
    if source.status != config.STATUS_CONFIRMED:
        raise InvalidTransitionError(
            f"Only confirmed documents can be carried forward; {source.id} is '{source.status}'"
        )
    kinds = config.DOCUMENT_KINDS
    if kind not in kinds or kinds.index(kind) <= kinds.index(source.kind):
        raise InvalidTransitionError(f"Cannot derive a '{kind}' from a '{source.kind}'")

    lines = [
        DocumentLine(**line.model_dump(exclude={"id"}))
        for line in source.lines
    ]
    return Document(
        kind=kind,
        client_id=source.client_id,
        lines=lines,
        discount=source.discount,
        status=config.STATUS_DRAFT,
        linked_document_id=source.id,
    )

"""
Totals engine — assembles a document's monetary summary from its lines.

    subtotal         = Σ line net
    discount_amount  = subtotal × global%
    taxable_amount   = subtotal − discount_amount
    total_tax        = Σ tax_groups
    total            = taxable_amount + total_tax
    total_cost       = Σ quantity × resolved unit cost
    margin           = taxable_amount − total_cost
    margin_pct       = margin / taxable_amount × 100   (0 when taxable ≤ 0)

All accumulation is unrounded; round_totals() is the only rounding step and is
applied at the display / persistence boundary.
"""
import logging
from typing import Any, Dict, Iterable, Optional

from doc_pricing.config import NON_REVENUE_STATUSES
from doc_pricing.models.pricing_schema import Document, DocumentLine, DocumentTotals, LineBreakdown
from doc_pricing.services.catalog_lookup import CatalogLookup
from doc_pricing.services.line_engine import evaluate_lines, to_number
from doc_pricing.services.margin_engine import margin_percentage, round_money, round_optional
from doc_pricing.services.perf_monitor import timed
from doc_pricing.services.tax_engine import aggregate_taxes, line_tax

logger = logging.getLogger("doc-pricing.totals")


@timed
def compute_totals(
    lines: Iterable[DocumentLine],
    catalog: CatalogLookup,
    global_discount_pct: Optional[float] = 0.0,
    client_id: Optional[str] = None,
) -> DocumentTotals:
    """
    Unrounded totals for a set of lines under a global discount percentage.

    `client_id` is the document's client; special bids of other clients are
    not used for cost.
    """
    evaluations = evaluate_lines(lines, catalog, client_id)
    discount_factor = 1 - to_number(global_discount_pct) / 100

    subtotal = sum(ev.net for ev in evaluations)
    discount_amount = subtotal * (to_number(global_discount_pct) / 100)
    taxable_amount = subtotal - discount_amount

    tax_groups = aggregate_taxes(evaluations, global_discount_pct)
    total_tax = sum(tax_groups.values())
    total_cost = sum(ev.cost for ev in evaluations)
    margin = taxable_amount - total_cost

    breakdown = []
    for ev in evaluations:
        net_after_global = ev.net * discount_factor
        breakdown.append(LineBreakdown(
            line_id=ev.line_id,
            product_id=ev.product_id,
            net=ev.net,
            cost=ev.cost,
            margin=net_after_global - ev.cost,
            margin_percentage=margin_percentage(net_after_global, ev.cost),
            tax_rate=ev.tax_rate,
            tax=line_tax(ev.net, ev.tax_rate, global_discount_pct) if ev.tax_rate is not None else 0.0,
            uses_special_bid=ev.uses_special_bid,
        ))

    return DocumentTotals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        taxable_amount=taxable_amount,
        total_tax=total_tax,
        total=taxable_amount + total_tax,
        total_cost=total_cost,
        margin=margin,
        margin_percentage=(margin / taxable_amount * 100) if taxable_amount > 0 else 0.0,
        tax_groups=tax_groups,
        lines=breakdown,
    )


def document_totals(document: Document, catalog: CatalogLookup) -> DocumentTotals:
    """Unrounded totals of a whole document (frozen snapshot fields preferred)."""
    return compute_totals(document.lines, catalog, document.discount, document.client_id)


def round_totals(totals: DocumentTotals) -> DocumentTotals:
    """Two-decimal copy of `totals` for display or snapshot storage."""
    return DocumentTotals(
        subtotal=round_money(totals.subtotal),
        discount_amount=round_money(totals.discount_amount),
        taxable_amount=round_money(totals.taxable_amount),
        total_tax=round_money(totals.total_tax),
        total=round_money(totals.total),
        total_cost=round_money(totals.total_cost),
        margin=round_money(totals.margin),
        margin_percentage=round_money(totals.margin_percentage),
        tax_groups={rate: round_money(tax) for rate, tax in totals.tax_groups.items()},
        lines=[
            line.model_copy(update={
                "net": round_money(line.net),
                "cost": round_money(line.cost),
                "margin": round_money(line.margin),
                "margin_percentage": round_money(line.margin_percentage),
                "tax_rate": round_optional(line.tax_rate),
                "tax": round_money(line.tax),
            })
            for line in totals.lines
        ],
    )


def display_totals(document: Document, catalog: CatalogLookup) -> DocumentTotals:
    """Rounded totals as shown in the editors and document lists."""
    return round_totals(document_totals(document, catalog))


def profitability_report(documents: Iterable[Document], catalog: CatalogLookup) -> Dict[str, Any]:
    """
    Margin / profitability summary across documents.

    Denied and deleted documents are excluded. Returns a plain dict with
    overall figures and a per-status breakdown, rounded to two decimals.
    """
    def _bucket() -> Dict[str, float]:
        return {"documents": 0, "taxable_amount": 0.0, "total_cost": 0.0, "margin": 0.0, "total": 0.0}

    overall = _bucket()
    by_status: Dict[str, Dict[str, float]] = {}
    skipped = 0

    for document in documents:
        if document.status in NON_REVENUE_STATUSES:
            skipped += 1
            continue
        totals = document_totals(document, catalog)
        for bucket in (overall, by_status.setdefault(document.status, _bucket())):
            bucket["documents"] += 1
            bucket["taxable_amount"] += totals.taxable_amount
            bucket["total_cost"] += totals.total_cost
            bucket["margin"] += totals.margin
            bucket["total"] += totals.total

    def _finish(bucket: Dict[str, float]) -> Dict[str, Any]:
        taxable = bucket["taxable_amount"]
        return {
            "documents": bucket["documents"],
            "taxable_amount": round_money(taxable),
            "total_cost": round_money(bucket["total_cost"]),
            "margin": round_money(bucket["margin"]),
            "margin_percentage": round_money(bucket["margin"] / taxable * 100) if taxable > 0 else 0.0,
            "total": round_money(bucket["total"]),
        }

    if skipped:
        logger.debug("Profitability report skipped %d denied/deleted documents", skipped)

    report = _finish(overall)
    report["by_status"] = {status: _finish(bucket) for status, bucket in sorted(by_status.items())}
    report["excluded_documents"] = skipped
    return report

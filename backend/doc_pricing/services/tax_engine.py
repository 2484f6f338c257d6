"""
Tax engine — multi-rate VAT breakdown.

Tax is accumulated per tax rate, never on the whole subtotal, because lines
may reference products with different rates. The global discount reduces
every line's tax base proportionally.
"""
from typing import Dict, Iterable, Optional

from doc_pricing.services.line_engine import LineEvaluation, to_number


def line_tax(net: float, tax_rate: float, global_discount_pct: Optional[float]) -> float:
    """Tax on one line net after the proportional share of the global discount."""
    net_after_global = net * (1 - to_number(global_discount_pct) / 100)
    return net_after_global * (tax_rate / 100)


def aggregate_taxes(
    evaluations: Iterable[LineEvaluation],
    global_discount_pct: Optional[float],
) -> Dict[float, float]:
    """
    Map tax rate -> accumulated tax.

    Lines without a resolvable tax rate (no product) are skipped.
    """
    tax_groups: Dict[float, float] = {}
    for ev in evaluations:
        if ev.tax_rate is None:
            continue
        tax = line_tax(ev.net, ev.tax_rate, global_discount_pct)
        tax_groups[ev.tax_rate] = tax_groups.get(ev.tax_rate, 0.0) + tax
    return tax_groups

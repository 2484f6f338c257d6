"""
test_totals_engine.py — Unit tests for document totals assembly.

Tests cover:
  - Worked single-line example (cost 100, MOL 20 %, VAT 22 %)
  - Global discount applied to subtotal and proportionally to tax
  - Multi-rate tax groups summing to total_tax
  - Margin / margin % including the taxable ≤ 0 edge case
  - Per-line breakdown consistency with document margin
  - round_totals as the only rounding step
  - Idempotence (no hidden state) and perf tracking of compute_totals
  - profitability_report across documents
  - Special bids of another client never lower the cost
"""

import math

from doc_pricing.models.pricing_schema import Document, DocumentLine, Product, SpecialBid
from doc_pricing.services.catalog_lookup import CatalogLookup
from doc_pricing.services.perf_monitor import tracker
from doc_pricing.services.totals_engine import (
    compute_totals,
    display_totals,
    document_totals,
    profitability_report,
    round_totals,
)


# ===========================================================================
# Class 1: Worked examples
# ===========================================================================

class TestWorkedExamples:
    """Reference figures for the pricing engine."""

    def test_single_line_no_discount(self, catalog, single_line_quote):
        """
        qty 1 × 125.00, VAT 22 %:
        net 125.00, tax 27.50, total 152.50, margin 25.00, margin % 20.00.
        """
        totals = round_totals(document_totals(single_line_quote, catalog))
        assert totals.subtotal == 125.0
        assert totals.discount_amount == 0.0
        assert totals.taxable_amount == 125.0
        assert totals.total_tax == 27.5
        assert totals.total == 152.5
        assert totals.total_cost == 100.0
        assert totals.margin == 25.0
        assert totals.margin_percentage == 20.0

    def test_single_line_global_discount_10(self, catalog, single_line_quote):
        """
        Global 10 %: discount 12.50, taxable 112.50, tax 112.50 × 0.22 = 24.75,
        total 137.25, margin 112.50 − 100 = 12.50.
        """
        quote = single_line_quote.model_copy(update={"discount": 10.0})
        totals = round_totals(document_totals(quote, catalog))
        assert totals.discount_amount == 12.5
        assert totals.taxable_amount == 112.5
        assert totals.total_tax == 24.75
        assert totals.total == 137.25
        assert totals.margin == 12.5
        assert abs(totals.margin_percentage - 11.11) < 0.005

    def test_two_rates(self, catalog, two_rate_quote):
        """125 @22 % + 80 @10 %: groups {22: 27.50, 10: 8.00}, total tax 35.50."""
        totals = document_totals(two_rate_quote, catalog)
        assert len(totals.tax_groups) == 2
        assert abs(sum(totals.tax_groups.values()) - totals.total_tax) < 1e-9
        assert abs(totals.total_tax - 35.5) < 1e-9
        assert abs(totals.total - (205.0 + 35.5)) < 1e-9

    def test_line_and_global_discount_combined(self, catalog):
        """
        2 × 125 = 250, line −20 % → 200; global 5 % → taxable 190;
        tax 190 × 0.22 = 41.80; cost 200; margin −10.
        """
        doc = Document(
            client_id="gamma",
            discount=5.0,
            lines=[DocumentLine(product_id="p-hw", quantity=2, unit_price=125.0, discount=20.0)],
        )
        totals = round_totals(document_totals(doc, catalog))
        assert totals.subtotal == 200.0
        assert totals.taxable_amount == 190.0
        assert totals.total_tax == 41.8
        assert totals.total == 231.8
        assert totals.margin == -10.0
        assert totals.margin_percentage < 0


# ===========================================================================
# Class 2: Edge cases
# ===========================================================================

class TestTotalsEdgeCases:

    def test_empty_document(self, catalog):
        totals = compute_totals([], catalog, 0.0)
        assert totals.total == 0.0
        assert totals.margin_percentage == 0.0
        assert totals.tax_groups == {}

    def test_full_global_discount_margin_percentage_zero(self, catalog, single_line_quote):
        """taxable = 0 → margin % is 0, not a division error."""
        quote = single_line_quote.model_copy(update={"discount": 100.0})
        totals = document_totals(quote, catalog)
        assert totals.taxable_amount == 0.0
        assert totals.margin_percentage == 0.0
        assert totals.margin == -100.0

    def test_line_without_product_adds_net_but_no_tax(self, catalog):
        lines = [DocumentLine(product_id=None, quantity=1, unit_price=50.0)]
        totals = compute_totals(lines, catalog, None)
        assert totals.subtotal == 50.0
        assert totals.total_tax == 0.0
        assert totals.total_cost == 0.0

    def test_no_rounding_mid_accumulation(self, catalog):
        """
        3 lines of 0.335 @ VAT 10 %: per-line tax 0.0335 would round to 0.03
        each (0.09); accumulated then rounded gives 0.10.
        """
        lines = [DocumentLine(product_id="p-book", quantity=1, unit_price=0.335) for _ in range(3)]
        totals = round_totals(compute_totals(lines, catalog, 0.0))
        assert totals.total_tax == 0.1


# ===========================================================================
# Class 3: Breakdown and rounding
# ===========================================================================

class TestBreakdown:

    def test_line_margins_sum_to_document_margin(self, catalog, two_rate_quote):
        quote = two_rate_quote.model_copy(update={"discount": 7.5})
        totals = document_totals(quote, catalog)
        assert abs(sum(line.margin for line in totals.lines) - totals.margin) < 1e-9
        assert abs(sum(line.tax for line in totals.lines) - totals.total_tax) < 1e-9

    def test_breakdown_flags_special_bid(self, catalog):
        lines = [
            DocumentLine(id="a", product_id="p-hw", special_bid_id="b-acme-hw", quantity=1, unit_price=100.0),
            DocumentLine(id="b", product_id="p-flat", quantity=1, unit_price=10.0),
        ]
        totals = compute_totals(lines, catalog)
        flags = {line.line_id: line.uses_special_bid for line in totals.lines}
        assert flags == {"a": True, "b": False}
        assert abs(totals.lines[0].margin_percentage - 20.0) < 1e-9

    def test_round_totals_rounds_groups_and_lines(self, catalog):
        lines = [DocumentLine(product_id="p-hw", quantity=3, unit_price=33.333)]
        totals = round_totals(compute_totals(lines, catalog))
        assert totals.subtotal == 100.0
        assert totals.tax_groups == {22.0: 22.0}
        assert totals.lines[0].net == 100.0

    def test_display_totals_matches_round_of_document_totals(self, catalog, two_rate_quote):
        assert display_totals(two_rate_quote, catalog) == round_totals(document_totals(two_rate_quote, catalog))


# ===========================================================================
# Class 4: Purity
# ===========================================================================

class TestPurity:

    def test_repeated_calls_identical(self, catalog, two_rate_quote):
        first = document_totals(two_rate_quote, catalog)
        second = document_totals(two_rate_quote, catalog)
        assert first == second

    def test_input_lines_not_mutated(self, catalog, two_rate_quote):
        before = two_rate_quote.model_dump()
        document_totals(two_rate_quote, catalog)
        assert two_rate_quote.model_dump() == before

    def test_compute_totals_is_timed(self, catalog, single_line_quote):
        document_totals(single_line_quote, catalog)
        document_totals(single_line_quote, catalog)
        stats = tracker.get_stats("compute_totals")
        assert stats["calls"] == 2
        assert stats["slowest_ms"] >= 0.0
        assert math.isfinite(stats["avg_ms"])


# ===========================================================================
# Class 5: Profitability report
# ===========================================================================

class TestProfitabilityReport:

    def test_aggregates_and_excludes_denied(self, catalog, single_line_quote, two_rate_quote):
        """
        single (sent): taxable 125, cost 100
        two-rate (confirmed): taxable 205, cost 140
        denied copy: excluded
        → taxable 330, cost 240, margin 90, margin % 27.27
        """
        sent = single_line_quote.model_copy(update={"status": "sent"})
        confirmed = two_rate_quote.model_copy(update={"status": "confirmed"})
        denied = two_rate_quote.model_copy(update={"id": "q-3", "status": "denied"})

        report = profitability_report([sent, confirmed, denied], catalog)
        assert report["documents"] == 2
        assert report["excluded_documents"] == 1
        assert report["taxable_amount"] == 330.0
        assert report["total_cost"] == 240.0
        assert report["margin"] == 90.0
        assert report["margin_percentage"] == 27.27
        assert set(report["by_status"]) == {"sent", "confirmed"}
        assert report["by_status"]["sent"]["margin"] == 25.0

    def test_empty_report(self, catalog):
        report = profitability_report([], catalog)
        assert report["documents"] == 0
        assert report["margin_percentage"] == 0.0
        assert report["by_status"] == {}


# ===========================================================================
# Class 6: Client-scoped bid costs
# ===========================================================================

class TestClientScopedBids:

    def test_foreign_bid_does_not_lower_cost(self):
        """
        Client c1, product p1 (cost 100) at 125, line pointing at c2's bid for p2
        (cost 1.00): cost stays 100, margin 25.00.
        """
        catalog = CatalogLookup(
            [Product(id="p1", cost=100.0, mol_percentage=20.0, tax_rate=22.0)],
            [SpecialBid(id="b-other", client_id="c2", product_id="p2", unit_price=1.0)],
        )
        doc = Document(
            client_id="c1",
            lines=[DocumentLine(product_id="p1", special_bid_id="b-other", quantity=1, unit_price=125.0)],
        )
        totals = round_totals(document_totals(doc, catalog))
        assert totals.total_cost == 100.0
        assert totals.margin == 25.0
        assert totals.lines[0].uses_special_bid is False

    def test_compute_totals_checks_client(self, catalog):
        lines = [DocumentLine(product_id="p-hw", special_bid_id="b-beta-hw", quantity=1, unit_price=100.0)]
        assert compute_totals(lines, catalog, 0.0, client_id="beta").total_cost == 90.0
        assert compute_totals(lines, catalog, 0.0, client_id="acme").total_cost == 100.0

    def test_infinite_amounts_round_to_zero(self, catalog):
        """Overflowing quantity × price degrades to 0 at display instead of raising."""
        lines = [DocumentLine(product_id="p-hw", quantity=1e308, unit_price=1e308)]
        totals = round_totals(compute_totals(lines, catalog))
        assert totals.subtotal == 0.0
        assert totals.total == 0.0

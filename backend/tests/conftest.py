"""
conftest.py — Shared pytest fixtures for the pricing engine test suite.

No database or external service fixtures are defined here. All tests are
pure unit tests over in-memory catalog snapshots.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``doc_pricing.*`` imports resolve correctly regardless of where pytest is
    invoked.
"""

import os
import sys
from datetime import date, datetime

import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any package imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# Fixed "now" used for every bid validity check in the suite
NOW = datetime(2026, 6, 15, 12, 0, 0)


@pytest.fixture
def now():
    return NOW


# ---------------------------------------------------------------------------
# Catalog fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def products():
    """
    Product catalog.

      p-hw      cost 100, MOL 20 %, VAT 22 %  → sale price 125.00
      p-book    cost  40, MOL 50 %, VAT 10 %  → sale price  80.00
      p-flat    cost  10, MOL  0 %, VAT 22 %  → sale price  10.00
      p-old     disabled product
    """
    from doc_pricing.models.pricing_schema import Product
    return [
        Product(id="p-hw", name="Workstation", cost=100.0, mol_percentage=20.0, tax_rate=22.0),
        Product(id="p-book", name="Manual", cost=40.0, mol_percentage=50.0, tax_rate=10.0),
        Product(id="p-flat", name="Cable", cost=10.0, mol_percentage=0.0, tax_rate=22.0),
        Product(id="p-old", name="Legacy kit", cost=55.0, mol_percentage=30.0, tax_rate=22.0,
                is_disabled=True),
    ]


@pytest.fixture
def special_bids():
    """
    Special bids (unit_price is the override COST).

      b-acme-hw     acme / p-hw, cost 80, MOL 20 %, valid all of 2026 → sale 100.00
      b-acme-book   acme / p-book, cost 30, no MOL (product's 50 %), open-ended → sale 60.00
      b-acme-old    acme / p-hw, expired 2025
      b-beta-hw     beta / p-hw, cost 90, MOL 10 %, valid all of 2026 → sale 100.00
      b-beta-off    beta / p-book, disabled
    """
    from doc_pricing.models.pricing_schema import SpecialBid
    return [
        SpecialBid(id="b-acme-hw", client_id="acme", product_id="p-hw", unit_price=80.0,
                   mol_percentage=20.0, start_date=date(2026, 1, 1), end_date=date(2026, 12, 31)),
        SpecialBid(id="b-acme-book", client_id="acme", product_id="p-book", unit_price=30.0),
        SpecialBid(id="b-acme-old", client_id="acme", product_id="p-hw", unit_price=70.0,
                   start_date=date(2025, 1, 1), end_date=date(2025, 12, 31)),
        SpecialBid(id="b-beta-hw", client_id="beta", product_id="p-hw", unit_price=90.0,
                   mol_percentage=10.0, start_date=date(2026, 1, 1), end_date=date(2026, 12, 31)),
        SpecialBid(id="b-beta-off", client_id="beta", product_id="p-book", unit_price=20.0,
                   is_disabled=True),
    ]


@pytest.fixture
def catalog(products, special_bids):
    from doc_pricing.services.catalog_lookup import CatalogLookup
    return CatalogLookup(products, special_bids)


# ---------------------------------------------------------------------------
# Document fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def single_line_quote():
    """
    Quote with one p-hw line: qty 1, unit price 125, no discounts.
    Expected: net 125.00, tax 27.50, total 152.50, margin 25.00 (20 %).
    """
    from doc_pricing.models.pricing_schema import Document, DocumentLine
    return Document(
        id="q-1",
        kind="quote",
        client_id="gamma",
        lines=[DocumentLine(id="l-1", product_id="p-hw", quantity=1, unit_price=125.0)],
    )


@pytest.fixture
def two_rate_quote():
    """
    Quote mixing VAT rates: p-hw (22 %) at 125.00 and p-book (10 %) at 80.00.
    Expected tax groups: {22: 27.50, 10: 8.00}.
    """
    from doc_pricing.models.pricing_schema import Document, DocumentLine
    return Document(
        id="q-2",
        kind="quote",
        client_id="gamma",
        lines=[
            DocumentLine(id="l-1", product_id="p-hw", quantity=1, unit_price=125.0),
            DocumentLine(id="l-2", product_id="p-book", quantity=1, unit_price=80.0),
        ],
    )


@pytest.fixture(autouse=True)
def _reset_perf_tracker():
    """Each test starts with an empty duration tracker."""
    from doc_pricing.services.perf_monitor import tracker
    tracker.reset()
    yield
    tracker.reset()

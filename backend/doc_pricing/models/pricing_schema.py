"""
Pricing schemas shared by the quote, client order, sale and invoice editors.

Catalog entities (Product, SpecialBid) are read-only inputs. DocumentLine
carries both the live pricing fields edited in draft and the frozen snapshot
fields written at commit time. DocumentTotals / SnapshotPatch are the engine's
outputs for display and persistence.
"""
import uuid
from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from doc_pricing.config import DOCUMENT_KINDS, STATUS_ALIASES, STATUS_DRAFT, STATUS_TRANSITIONS


def _new_id() -> str:
    return uuid.uuid4().hex


def _blank_to_none(value):
    # Editors send "" for "no selection"
    if isinstance(value, str) and not value.strip():
        return None
    return value


def normalize_status(value: str) -> str:
    """Lower-case a status and map editor-specific names onto the shared vocabulary."""
    status = str(value or STATUS_DRAFT).strip().lower()
    status = STATUS_ALIASES.get(status, status)
    if status not in STATUS_TRANSITIONS:
        raise ValueError(f"Unknown document status '{value}'. Choose from {sorted(STATUS_TRANSITIONS)}")
    return status


# ── Catalog ───────────────────────────────────────────────────────────────────

class Product(BaseModel):
    """Catalog product. `mol_percentage` is the desired margin on sale price."""
    id: str
    name: str = ""
    cost: float = Field(0.0, description="Purchase cost per unit")
    mol_percentage: float = Field(0.0, description="Desired margin as % of sale price")
    tax_rate: float = Field(0.0, description="VAT rate in percent, e.g. 22")
    is_disabled: bool = False


class SpecialBid(BaseModel):
    """
    Client+product negotiated cost override.

    `unit_price` is the override COST; sale price is derived from it with
    `mol_percentage` (or the product's when absent).
    """
    id: str
    client_id: str
    product_id: str
    unit_price: float = Field(..., description="Override unit COST, not sale price")
    mol_percentage: Optional[float] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_disabled: bool = False
    created_at: Optional[datetime] = None


# ── Documents ─────────────────────────────────────────────────────────────────

class DocumentLine(BaseModel):
    id: str = Field(default_factory=_new_id)
    product_id: Optional[str] = None
    product_name: str = ""
    special_bid_id: Optional[str] = None
    quantity: Optional[float] = 1.0
    unit_price: Optional[float] = 0.0           # sale price per unit
    discount: Optional[float] = 0.0             # line discount %
    note: str = ""

    # Frozen at commit time; None means "not frozen yet" (or legacy row)
    product_cost: Optional[float] = None
    product_mol_percentage: Optional[float] = None
    product_tax_rate: Optional[float] = None
    special_bid_unit_price: Optional[float] = None
    special_bid_mol_percentage: Optional[float] = None
    snapshot_frozen: bool = False               # True once committed; snapshot is read-only

    blank_ids_to_none = field_validator("product_id", "special_bid_id", mode="before")(_blank_to_none)


class Document(BaseModel):
    """Quote / client order / sale / invoice header with its lines."""
    id: str = Field(default_factory=_new_id)
    kind: str = "quote"
    client_id: Optional[str] = None
    lines: List[DocumentLine] = []
    discount: Optional[float] = 0.0             # global discount %
    status: str = STATUS_DRAFT
    linked_document_id: Optional[str] = None

    blank_client_to_none = field_validator("client_id", mode="before")(_blank_to_none)

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, value):
        return normalize_status(value)

    @field_validator("kind")
    @classmethod
    def check_kind(cls, value: str) -> str:
        if value not in DOCUMENT_KINDS:
            raise ValueError(f"Unknown document kind '{value}'. Choose from {list(DOCUMENT_KINDS)}")
        return value


# ── Engine outputs ────────────────────────────────────────────────────────────

class LineBreakdown(BaseModel):
    """Per-line figures behind the document totals (profitability drill-down)."""
    line_id: str
    product_id: Optional[str] = None
    net: float = 0.0
    cost: float = 0.0
    margin: float = 0.0
    margin_percentage: float = 0.0
    tax_rate: Optional[float] = None
    tax: float = 0.0
    uses_special_bid: bool = False


class DocumentTotals(BaseModel):
    subtotal: float = 0.0
    discount_amount: float = 0.0
    taxable_amount: float = 0.0
    total_tax: float = 0.0
    total: float = 0.0
    total_cost: float = 0.0
    margin: float = 0.0
    margin_percentage: float = 0.0
    tax_groups: Dict[float, float] = {}
    lines: List[LineBreakdown] = []


class SnapshotPatch(BaseModel):
    """Fields the persistence call writes onto one line at commit time."""
    line_id: str
    unit_price: float
    discount: float
    product_cost: Optional[float] = None
    product_mol_percentage: Optional[float] = None
    product_tax_rate: Optional[float] = None
    special_bid_id: Optional[str] = None
    special_bid_unit_price: Optional[float] = None
    special_bid_mol_percentage: Optional[float] = None

"""
Pricing engine configuration — single source of truth for rounding, bid
precedence, document status vocabulary and logging defaults.

Import from here in all engines rather than hardcoding values.
"""
from __future__ import annotations

import os

# ── Rounding ──────────────────────────────────────────────────────────────────
# Applied only at the presentation / persistence boundary (round_money).
MONEY_DECIMALS: int = 2


# ── Special bid precedence ────────────────────────────────────────────────────
# Ordering applied when more than one valid bid matches a client+product pair.
#   first        : catalog order, first match wins
#   latest_start : bid with the most recent start date wins
#   narrowest    : bid with the shortest validity window wins
BID_PRECEDENCE_CHOICES: tuple[str, ...] = ("first", "latest_start", "narrowest")
BID_PRECEDENCE: str = os.getenv("PRICING_BID_PRECEDENCE", "first").strip().lower()


# ── Document status vocabulary ────────────────────────────────────────────────
STATUS_DRAFT = "draft"
STATUS_SENT = "sent"
STATUS_CONFIRMED = "confirmed"
STATUS_DENIED = "denied"
STATUS_DELETED = "deleted"

# Only draft documents are priced live; everything else shows frozen totals.
EDITABLE_STATUSES: frozenset[str] = frozenset({STATUS_DRAFT})

TERMINAL_STATUSES: frozenset[str] = frozenset({STATUS_CONFIRMED, STATUS_DENIED, STATUS_DELETED})

STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    STATUS_DRAFT:     frozenset({STATUS_SENT, STATUS_DELETED}),
    STATUS_SENT:      frozenset({STATUS_CONFIRMED, STATUS_DENIED}),
    STATUS_CONFIRMED: frozenset(),
    STATUS_DENIED:    frozenset(),
    STATUS_DELETED:   frozenset(),
}

# Statuses a document may be restored to draft from (subject to external rules)
RESTORABLE_STATUSES: frozenset[str] = frozenset({STATUS_SENT, STATUS_CONFIRMED, STATUS_DENIED})

# Per-editor names that map onto the common vocabulary
STATUS_ALIASES: dict[str, str] = {
    "accepted": STATUS_CONFIRMED,   # quotes
    "quoted": STATUS_DRAFT,         # legacy quote rows
}

# Statuses excluded from profitability reporting
NON_REVENUE_STATUSES: frozenset[str] = frozenset({STATUS_DENIED, STATUS_DELETED})


# ── Document kinds (carry-forward chain) ──────────────────────────────────────
DOCUMENT_KINDS: tuple[str, ...] = ("quote", "client_order", "sale", "invoice")


# ── Logging ───────────────────────────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
JSON_LOGS: bool = os.getenv("LOG_FORMAT", "json").lower() != "text"

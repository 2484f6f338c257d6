"""
Document status workflow — gates when pricing runs in write mode.

    draft → sent → {confirmed | denied}
    draft → deleted

Only draft documents are edited and re-priced live; every other status shows
its frozen totals. Restoring to draft depends on rules owned by the caller
(e.g. no confirmed sale linked to the quote), passed in as a predicate.
"""
import logging
from typing import Callable, Optional

from doc_pricing import config
from doc_pricing.models.pricing_schema import Document, normalize_status
from doc_pricing.services.logging_config import document_logger

logger = logging.getLogger("doc-pricing.workflow")


class InvalidTransitionError(ValueError):
    """Status change not allowed from the document's current status."""


class ReadOnlyDocumentError(ValueError):
    """Edit or commit attempted on a document that is no longer a draft."""


def is_editable(document: Document) -> bool:
    return document.status in config.EDITABLE_STATUSES


def ensure_editable(document: Document) -> None:
    if not is_editable(document):
        raise ReadOnlyDocumentError(
            f"Document {document.id} is '{document.status}'; only draft documents can be edited"
        )


def can_transition(current: str, target: str) -> bool:
    return normalize_status(target) in config.STATUS_TRANSITIONS[normalize_status(current)]


def transition(document: Document, target: str) -> Document:
    """Return a copy of `document` in status `target`, or raise InvalidTransitionError."""
    target_status = normalize_status(target)
    if not can_transition(document.status, target_status):
        allowed = sorted(config.STATUS_TRANSITIONS[document.status]) or "none"
        raise InvalidTransitionError(
            f"Cannot move document {document.id} from '{document.status}' to '{target_status}' "
            f"(allowed: {allowed})"
        )
    document_logger(logger, document.id).info(
        "Document %s: %s -> %s", document.id, document.status, target_status,
    )
    return document.model_copy(update={"status": target_status})


def restore_to_draft(
    document: Document,
    can_restore: Optional[Callable[[Document], bool]] = None,
) -> Document:
    """
    Move a sent / confirmed / denied document back to draft.

    `can_restore` carries the external workflow rule; returning False blocks
    the restore. Frozen line snapshots are kept as they are.
    """
    if document.status not in config.RESTORABLE_STATUSES:
        raise InvalidTransitionError(
            f"Document {document.id} in status '{document.status}' cannot be restored to draft"
        )
    if can_restore is not None and not can_restore(document):
        raise InvalidTransitionError(
            f"Document {document.id} cannot be restored: blocked by linked documents"
        )
    document_logger(logger, document.id).info(
        "Document %s restored to draft from %s", document.id, document.status,
    )
    return document.model_copy(update={"status": config.STATUS_DRAFT})

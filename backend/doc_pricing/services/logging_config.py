"""
Structured logging for the pricing engine.

Engines log through named loggers under the ``doc-pricing`` namespace and
never configure handlers themselves; the host application calls
setup_logging() once. Records about one document carry its id through
document_logger(), and @timed records carry the timing extras, so both show up
as top-level keys in JSON output.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from doc_pricing import config

LOGGER_NAMESPACE = "doc-pricing"

# record attribute -> JSON key
_EXTRA_FIELDS = (
    ("document_id", "document_id"),
    ("line_id", "line_id"),
    ("function_name", "timed_function"),
    ("duration_ms", "duration_ms"),
)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, engine extras promoted to top-level keys."""
    def format(self, record):
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        for attr, key in _EXTRA_FIELDS:
            if hasattr(record, attr):
                log_entry[key] = getattr(record, attr)
        return json.dumps(log_entry, default=str)


class DocumentLogAdapter(logging.LoggerAdapter):
    """Adds the bound document id to every record; per-call extras are merged in."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def document_logger(logger: logging.Logger, document_id: str) -> DocumentLogAdapter:
    return DocumentLogAdapter(logger, {"document_id": document_id})


def setup_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> logging.Handler:
    """
    Install a single stdout handler on the root logger and set the engine's level.

    Defaults come from LOG_LEVEL / LOG_FORMAT. Returns the installed handler.
    """
    level = level or config.LOG_LEVEL
    json_output = config.JSON_LOGS if json_output is None else json_output
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
        ))

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers = [handler]
    logging.getLogger(LOGGER_NAMESPACE).setLevel(numeric_level)
    return handler

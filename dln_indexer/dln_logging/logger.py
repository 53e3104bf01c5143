"""
Indexer logging on structlog.

Each record is one line named by a snake_case event (such as
"signatures_page_processed" or "transaction_failed_skipped"; stored as
`event_type` in JSON output) with the indexer context passed as keywords:
`program_id` for paging, `signature` and `order_id` for per-transaction
work. LOG_LEVEL picks the threshold; LOG_FORMAT=json (default) prints JSON,
anything else the console renderer.

This module must not import other dln_indexer modules, every one of them
imports it.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import structlog

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()


def _add_timestamp(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _event_type(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Store the event name under `event_type`."""
    event = event_dict.pop("event", None)
    if event is not None:
        event_dict.setdefault("event_type", event)
    return event_dict


def _stringify_amounts(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    # token amounts are exact decimals; JSON floats would round them
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = str(value)
    return event_dict


def configure_structlog(level: str = LOG_LEVEL, fmt: str = LOG_FORMAT) -> None:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        _add_timestamp,
        _stringify_amounts,
    ]
    if fmt == "json":
        processors += [_event_type, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level, logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Logger for a module, with `logger` set to its name.

        logger = get_logger(__name__)
        logger.info("orders_saved", program_id=pid, inserted=100)
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_signature(signature: str, **context: Any) -> structlog.BoundLogger:
    """Logger carrying a transaction signature (and any extra context) on every record."""
    return get_logger("dln_indexer.transactions").bind(signature=signature, **context)

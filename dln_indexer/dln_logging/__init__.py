"""
Structured logging for the DLN indexer.

JSON logs with timestamp, event_type and transaction context.
"""

from dln_indexer.dln_logging.logger import bind_signature, get_logger

__all__ = ["bind_signature", "get_logger"]

"""
Program event decoding (Anchor "Program data:" log lines, Borsh payloads).
"""

from dln_indexer.events.parser import EventParser, ProgramEvent, encode_event_log
from dln_indexer.events.schemas import (
    CREATED_ORDER_EVENT,
    CREATED_ORDER_ID_EVENT,
    DLN_DST_SCHEMA,
    DLN_SRC_SCHEMA,
    FULFILLED_EVENT,
    ProgramSchema,
)

__all__ = [
    "CREATED_ORDER_EVENT",
    "CREATED_ORDER_ID_EVENT",
    "DLN_DST_SCHEMA",
    "DLN_SRC_SCHEMA",
    "EventParser",
    "FULFILLED_EVENT",
    "ProgramEvent",
    "ProgramSchema",
    "encode_event_log",
]

"""
Anchor event parser: transaction log lines -> ProgramEvent list.

Anchor programs emit events as "Program data: <base64>" log lines. The
parser tracks the program invocation stack from "Program <id> invoke [n]" /
"Program <id> success|failed" lines and decodes a data line only while its
own program is executing, so events of other programs in the same
transaction are never attributed to it.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from typing import Any, Iterable

from dln_indexer.core.exceptions import EventDecodeError
from dln_indexer.dln_logging import get_logger
from dln_indexer.events.schemas import DISCRIMINATOR_LEN, ProgramSchema

logger = get_logger(__name__)

PROGRAM_PREFIX = "Program "
PROGRAM_DATA_PREFIX = "Program data: "
INVOKE_MARKER = " invoke ["


@dataclass(frozen=True)
class ProgramEvent:
    """Decoded event: Anchor event name plus field dict."""

    name: str
    data: dict[str, Any] = field(default_factory=dict)


def _invoked_program(line: str) -> str | None:
    """'Program <id> invoke [n]' -> <id>."""
    if line.startswith(PROGRAM_PREFIX) and INVOKE_MARKER in line:
        parts = line.split()
        if len(parts) >= 3 and parts[2] == "invoke" and not parts[1].endswith(":"):
            return parts[1]
    return None


def _is_program_exit(line: str) -> bool:
    """'Program <id> success' or 'Program <id> failed: ...'."""
    if not line.startswith(PROGRAM_PREFIX):
        return False
    parts = line.split()
    # "Program log: ..." / "Program data: ..." are program output, not status lines
    if len(parts) < 3 or parts[1].endswith(":"):
        return False
    return parts[2] == "success" or parts[2].startswith("failed")


class EventParser:
    """
    Decodes events of one program.

    Build once per program address and pass explicitly to the transaction
    parser.
    """

    def __init__(self, program_id: str, schema: ProgramSchema) -> None:
        if not program_id:
            raise ValueError("program_id must be non-empty")
        self.program_id = program_id
        self.schema = schema

    def parse_logs(self, log_messages: Iterable[str]) -> list[ProgramEvent]:
        events: list[ProgramEvent] = []
        stack: list[str] = []
        for line in log_messages:
            invoked = _invoked_program(line)
            if invoked is not None:
                stack.append(invoked)
                continue
            if _is_program_exit(line):
                if stack:
                    stack.pop()
                continue
            if not line.startswith(PROGRAM_DATA_PREFIX):
                continue
            if not stack or stack[-1] != self.program_id:
                continue
            event = self._decode_line(line[len(PROGRAM_DATA_PREFIX):])
            if event is not None:
                events.append(event)
        return events

    def _decode_line(self, payload_b64: str) -> ProgramEvent | None:
        try:
            raw = base64.b64decode(payload_b64.strip(), validate=True)
        except (binascii.Error, ValueError):
            logger.debug("event_payload_not_base64", program_id=self.program_id)
            return None
        if len(raw) < DISCRIMINATOR_LEN:
            return None
        schema = self.schema.lookup(raw[:DISCRIMINATOR_LEN])
        if schema is None:
            return None
        try:
            data = schema.layout.decode(raw[DISCRIMINATOR_LEN:])
        except EventDecodeError as e:
            logger.warning(
                "event_decode_failed",
                program_id=self.program_id,
                event_name=schema.name,
                error=str(e),
            )
            return None
        return ProgramEvent(name=schema.name, data=data)


def encode_event_log(schema: ProgramSchema, name: str, data: dict[str, Any]) -> str:
    """Render an event as the 'Program data: ...' log line a program would emit."""
    event_schema = schema.get(name)
    payload = event_schema.discriminator + event_schema.layout.encode(data)
    return PROGRAM_DATA_PREFIX + base64.b64encode(payload).decode("ascii")

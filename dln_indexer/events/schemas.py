"""
Event layouts of the DLN source and destination programs.

Anchor: event discriminator = first 8 bytes of sha256("event:<EventName>").
Only the events the reconstructors read are declared; unknown discriminators
are skipped by the parser.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from dln_indexer.events.borsh import (
    U64,
    Bytes,
    FixedBytes,
    Option,
    PublicKey,
    Struct,
)

DISCRIMINATOR_LEN = 8

CREATED_ORDER_ID_EVENT = "CreatedOrderId"
CREATED_ORDER_EVENT = "CreatedOrder"
FULFILLED_EVENT = "Fulfilled"


def event_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"event:{name}".encode("utf-8")).digest()[:DISCRIMINATOR_LEN]


@dataclass(frozen=True)
class EventSchema:
    name: str
    layout: Struct

    @property
    def discriminator(self) -> bytes:
        return event_discriminator(self.name)


class ProgramSchema:
    """Set of event schemas of one program, indexed by discriminator."""

    def __init__(self, events: list[EventSchema]) -> None:
        self._by_discriminator = {e.discriminator: e for e in events}

    def lookup(self, discriminator: bytes) -> EventSchema | None:
        return self._by_discriminator.get(bytes(discriminator))

    def __contains__(self, name: str) -> bool:
        return any(e.name == name for e in self._by_discriminator.values())

    def get(self, name: str) -> EventSchema:
        for e in self._by_discriminator.values():
            if e.name == name:
                return e
        raise KeyError(name)


# Cross-chain offer: chain id and amount are 32-byte big-endian values,
# token address is chain-native bytes (32-byte pubkey on Solana).
OFFER = Struct(
    ("chain_id", FixedBytes(32)),
    ("token_address", Bytes()),
    ("amount", FixedBytes(32)),
)

ORDER = Struct(
    ("maker_order_nonce", U64),
    ("maker_src", Bytes()),
    ("give", OFFER),
    ("take", OFFER),
    ("receiver_dst", Bytes()),
    ("give_patch_authority_src", Bytes()),
    ("order_authority_address_dst", Bytes()),
    ("allowed_taker_dst", Option(Bytes())),
    ("allowed_cancel_beneficiary_src", Option(Bytes())),
    ("external_call", Option(Struct(("external_call_shortcut", FixedBytes(32))))),
)

DLN_SRC_SCHEMA = ProgramSchema([
    EventSchema(CREATED_ORDER_ID_EVENT, Struct(("order_id", FixedBytes(32)))),
    EventSchema(
        CREATED_ORDER_EVENT,
        Struct(
            ("order", ORDER),
            ("fixed_fee", U64),
            ("percent_fee", U64),
        ),
    ),
])

DLN_DST_SCHEMA = ProgramSchema([
    EventSchema(
        FULFILLED_EVENT,
        Struct(
            ("order_id", FixedBytes(32)),
            ("taker", PublicKey()),
        ),
    ),
])

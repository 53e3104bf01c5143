"""
Minimal Borsh codec for Anchor event payloads.

Layouts are declared with the field types below (U8, U64, FixedBytes(32),
Bytes, PublicKey, Option, Vec, Struct) and decoded with struct, little-endian
as Borsh requires. Byte arrays stay bytes; interpretation (big-endian amounts,
hex order ids) is up to the consumer.
"""

from __future__ import annotations

import struct
from typing import Any

from solders.pubkey import Pubkey

from dln_indexer.core.exceptions import EventDecodeError


class BorshType:
    """Base field type: read(data, offset) -> (value, new_offset); encode(value) -> bytes."""

    def read(self, data: bytes, offset: int) -> tuple[Any, int]:
        raise NotImplementedError

    def encode(self, value: Any) -> bytes:
        raise NotImplementedError


def _take(data: bytes, offset: int, size: int) -> bytes:
    end = offset + size
    if end > len(data):
        raise EventDecodeError(
            f"payload too short: need {size} bytes at offset {offset}, have {len(data) - offset}"
        )
    return data[offset:end]


class Int(BorshType):
    def __init__(self, fmt: str) -> None:
        self._fmt = fmt
        self._size = struct.calcsize(fmt)

    def read(self, data: bytes, offset: int) -> tuple[int, int]:
        (value,) = struct.unpack(self._fmt, _take(data, offset, self._size))
        return value, offset + self._size

    def encode(self, value: int) -> bytes:
        return struct.pack(self._fmt, value)


U8 = Int("<B")
U16 = Int("<H")
U32 = Int("<I")
U64 = Int("<Q")
I64 = Int("<q")


class Bool(BorshType):
    def read(self, data: bytes, offset: int) -> tuple[bool, int]:
        flag, offset = U8.read(data, offset)
        return bool(flag), offset

    def encode(self, value: bool) -> bytes:
        return U8.encode(1 if value else 0)


class FixedBytes(BorshType):
    """[u8; N]"""

    def __init__(self, size: int) -> None:
        self._size = size

    def read(self, data: bytes, offset: int) -> tuple[bytes, int]:
        return bytes(_take(data, offset, self._size)), offset + self._size

    def encode(self, value: bytes) -> bytes:
        if len(value) != self._size:
            raise EventDecodeError(f"expected {self._size} bytes, got {len(value)}")
        return bytes(value)


class Bytes(BorshType):
    """Vec<u8>: u32 length prefix + data."""

    def read(self, data: bytes, offset: int) -> tuple[bytes, int]:
        length, offset = U32.read(data, offset)
        return bytes(_take(data, offset, length)), offset + length

    def encode(self, value: bytes) -> bytes:
        return U32.encode(len(value)) + bytes(value)


class String(BorshType):
    def read(self, data: bytes, offset: int) -> tuple[str, int]:
        raw, offset = Bytes().read(data, offset)
        try:
            return raw.decode("utf-8"), offset
        except UnicodeDecodeError as e:
            raise EventDecodeError(f"invalid utf-8 string: {e}") from e

    def encode(self, value: str) -> bytes:
        return Bytes().encode(value.encode("utf-8"))


class PublicKey(BorshType):
    """32-byte public key, returned as base58 string."""

    def read(self, data: bytes, offset: int) -> tuple[str, int]:
        raw = _take(data, offset, 32)
        return str(Pubkey(bytes(raw))), offset + 32

    def encode(self, value: str) -> bytes:
        return bytes(Pubkey.from_string(value))


class Option(BorshType):
    def __init__(self, inner: BorshType) -> None:
        self._inner = inner

    def read(self, data: bytes, offset: int) -> tuple[Any, int]:
        tag, offset = U8.read(data, offset)
        if tag == 0:
            return None, offset
        if tag != 1:
            raise EventDecodeError(f"invalid option tag {tag} at offset {offset - 1}")
        return self._inner.read(data, offset)

    def encode(self, value: Any) -> bytes:
        if value is None:
            return U8.encode(0)
        return U8.encode(1) + self._inner.encode(value)


class Vec(BorshType):
    def __init__(self, inner: BorshType) -> None:
        self._inner = inner

    def read(self, data: bytes, offset: int) -> tuple[list[Any], int]:
        count, offset = U32.read(data, offset)
        items = []
        for _ in range(count):
            item, offset = self._inner.read(data, offset)
            items.append(item)
        return items, offset

    def encode(self, value: list[Any]) -> bytes:
        return U32.encode(len(value)) + b"".join(self._inner.encode(v) for v in value)


class Struct(BorshType):
    """Ordered named fields; decodes to a dict."""

    def __init__(self, *fields: tuple[str, BorshType]) -> None:
        self.fields = fields

    def read(self, data: bytes, offset: int) -> tuple[dict[str, Any], int]:
        out: dict[str, Any] = {}
        for name, ftype in self.fields:
            out[name], offset = ftype.read(data, offset)
        return out, offset

    def encode(self, value: dict[str, Any]) -> bytes:
        return b"".join(ftype.encode(value[name]) for name, ftype in self.fields)

    def decode(self, data: bytes) -> dict[str, Any]:
        """Decode a whole payload. Trailing bytes are tolerated (newer program versions append fields)."""
        value, _ = self.read(data, 0)
        return value

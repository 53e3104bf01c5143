"""
Fixed-point token amounts: raw integer in lowest units plus decimal precision.

Amounts stay integers until rendered, so scaling never goes through float.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class TokenAmount:
    """Raw on-chain quantity with its token precision (number of decimal places)."""

    raw: int
    precision: int

    def __post_init__(self) -> None:
        if self.raw < 0:
            raise ValueError(f"amount must be non-negative, got {self.raw}")
        if self.precision < 0:
            raise ValueError(f"precision must be non-negative, got {self.precision}")

    @classmethod
    def zero(cls, precision: int = 0) -> "TokenAmount":
        return cls(0, precision)

    @property
    def value(self) -> Decimal:
        """Human-facing quantity: raw * 10^-precision, exact."""
        return Decimal(self.raw).scaleb(-self.precision)

    def __float__(self) -> float:
        return float(self.value)

    def __str__(self) -> str:
        return format(self.value, "f")


def big_endian_uint(raw: Any) -> int:
    """
    Read an unsigned integer from event data.

    Accepts bytes-like values (big-endian, e.g. 32-byte u256 amounts), lists of
    byte ints, plain ints and decimal strings. None -> 0.
    """
    if raw is None:
        return 0
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, int):
        return raw
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return int.from_bytes(bytes(raw), "big")
    if isinstance(raw, (list, tuple)):
        return int.from_bytes(bytes(raw), "big")
    if isinstance(raw, str):
        return int(raw, 10)
    raise TypeError(f"Unsupported integer encoding: {type(raw).__name__}")

"""
Order records produced by the reconstructors.

ParsedOrderCreated / ParsedOrderFilled are what one reconstructor extracts
from one transaction; OrderInfoResult adds the transaction context and is
the only unit handed to storage.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Union

from dln_indexer.core.amounts import TokenAmount

OrderStatus = Literal["created", "filled"]
STATUS_CREATED: OrderStatus = "created"
STATUS_FILLED: OrderStatus = "filled"


@dataclass(frozen=True)
class ParsedOrderCreated:
    order_id: str
    token_key: str
    token_symbol: str
    amount: TokenAmount
    percent_fee: TokenAmount
    fixed_fee: TokenAmount

    @property
    def status(self) -> OrderStatus:
        return STATUS_CREATED


@dataclass(frozen=True)
class ParsedOrderFilled:
    order_id: str
    token_key: str
    token_symbol: str
    amount: TokenAmount

    @property
    def status(self) -> OrderStatus:
        return STATUS_FILLED


ParsedOrder = Union[ParsedOrderCreated, ParsedOrderFilled]


@dataclass(frozen=True)
class OrderInfoResult:
    """
    One order with its transaction context.

    Identity is (signature, order_index): a transaction may fulfill several
    orders. Fees are zero for filled orders.
    """

    signature: str
    order_index: int
    order_id: str
    status: OrderStatus
    timestamp: int
    token_key: str
    token_symbol: str
    amount: TokenAmount
    percent_fee: TokenAmount
    fixed_fee: TokenAmount

    @classmethod
    def from_parsed(
        cls,
        order: ParsedOrder,
        *,
        signature: str,
        timestamp: int,
        order_index: int = 0,
    ) -> "OrderInfoResult":
        if isinstance(order, ParsedOrderCreated):
            percent_fee, fixed_fee = order.percent_fee, order.fixed_fee
        else:
            percent_fee = fixed_fee = TokenAmount.zero(order.amount.precision)
        return cls(
            signature=signature,
            order_index=order_index,
            order_id=order.order_id,
            status=order.status,
            timestamp=timestamp,
            token_key=order.token_key,
            token_symbol=order.token_symbol,
            amount=order.amount,
            percent_fee=percent_fee,
            fixed_fee=fixed_fee,
        )

    def to_dict(self) -> dict[str, Any]:
        """Row for the storage layer; amounts rendered as exact Decimals."""
        return {
            "signature": self.signature,
            "order_index": self.order_index,
            "order_id": self.order_id,
            "status": self.status,
            "timestamp": self.timestamp,
            "token_key": self.token_key,
            "token_symbol": self.token_symbol,
            "amount": self.amount.value,
            "percent_fee": self.percent_fee.value,
            "fixed_fee": self.fixed_fee.value,
        }

"""
"Order created" reconstruction from DLN source program events.

A creation is a CreatedOrderId event (order id) plus a CreatedOrder event
(give offer and fees) in the same transaction. Only the first pair is used:
the protocol emits one creation per transaction, and multi-order
transactions are not supported.
"""

from __future__ import annotations

from typing import Any, Sequence

from solders.pubkey import Pubkey

from dln_indexer.core.amounts import TokenAmount, big_endian_uint
from dln_indexer.dln_logging import get_logger
from dln_indexer.events.parser import ProgramEvent
from dln_indexer.events.schemas import CREATED_ORDER_EVENT, CREATED_ORDER_ID_EVENT
from dln_indexer.scrapper.models import ParsedOrderCreated
from dln_indexer.tokens.token_info_cache import TokenInfo, TokenInfoCache

logger = get_logger(__name__)

DEFAULT_CREATED_TOKEN = TokenInfo(key="USDC", symbol="USDC", precision=6)


def _first_event(events: Sequence[ProgramEvent], name: str) -> ProgramEvent | None:
    return next((e for e in events if e.name == name), None)


def _order_id_hex(raw: Any) -> str:
    if isinstance(raw, str):
        return raw.lower()
    return bytes(raw).hex()


def _token_address(raw: Any) -> str | None:
    """Give-token address bytes -> base58 pubkey; non-pubkey byte strings fall back to hex."""
    if raw is None:
        return None
    if isinstance(raw, str):
        return raw or None
    raw = bytes(raw)
    if not raw:
        return None
    if len(raw) == 32:
        return str(Pubkey(raw))
    return raw.hex()


class OrderCreatedParser:
    def __init__(self, default_token: TokenInfo = DEFAULT_CREATED_TOKEN) -> None:
        self.default_token = default_token

    async def parse_order_created_event(
        self,
        events: Sequence[ProgramEvent],
        tokens_info: TokenInfoCache,
    ) -> list[ParsedOrderCreated] | None:
        """
        Return the created order of this transaction, or None when the
        transaction carries no CreatedOrderId + CreatedOrder pair.
        """
        id_event = _first_event(events, CREATED_ORDER_ID_EVENT)
        if id_event is None:
            return None
        order_event = _first_event(events, CREATED_ORDER_EVENT)
        if order_event is None:
            return None

        order_id = _order_id_hex(id_event.data["order_id"])
        token = await self._resolve_token(order_event, tokens_info)

        give = (order_event.data.get("order") or {}).get("give") or {}
        amount = TokenAmount(big_endian_uint(give.get("amount")), token.precision)
        percent_fee = TokenAmount(big_endian_uint(order_event.data.get("percent_fee")), token.precision)
        fixed_fee = TokenAmount(big_endian_uint(order_event.data.get("fixed_fee")), token.precision)

        return [
            ParsedOrderCreated(
                order_id=order_id,
                token_key=token.key,
                token_symbol=token.symbol,
                amount=amount,
                percent_fee=percent_fee,
                fixed_fee=fixed_fee,
            )
        ]

    async def _resolve_token(
        self,
        order_event: ProgramEvent,
        tokens_info: TokenInfoCache,
    ) -> TokenInfo:
        give = (order_event.data.get("order") or {}).get("give") or {}
        address = _token_address(give.get("token_address"))
        if address is None:
            logger.warning("created_order_token_missing", default_symbol=self.default_token.symbol)
            return self.default_token
        return await tokens_info.get_token_info(address)

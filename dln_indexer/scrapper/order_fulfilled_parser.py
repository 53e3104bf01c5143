"""
"Order fulfilled" reconstruction from DLN destination program events.

A Fulfilled event only carries the order id. The paid-out amount lives in a
transfer inner instruction of the top-level instruction that ran
FulfillOrder, and nothing links the event to that instruction. The link is
recovered from log text:

1. Walk the log lines counting top-level invocations ("invoke [1]"). A
   top-level invoke of the destination program opens its instruction index;
   the next "Instruction: FulfillOrder" line records that index and closes it.
2. The recovered indexes pair positionally with the Fulfilled events. If the
   counts differ the pairing cannot be trusted and the whole transaction is
   rejected.
3. Each index selects an inner-instruction group; its first transfer /
   transferChecked gives token and amount. An order without a transfer is
   skipped on its own.
"""

from __future__ import annotations

from typing import Any, Sequence

from dln_indexer.core.amounts import TokenAmount, big_endian_uint
from dln_indexer.core.exceptions import UnparseableTransactionError
from dln_indexer.dln_logging import get_logger
from dln_indexer.events.parser import ProgramEvent
from dln_indexer.events.schemas import FULFILLED_EVENT
from dln_indexer.scrapper.models import ParsedOrderFilled
from dln_indexer.solana_rpc.models import ParsedInstruction, ParsedTransaction
from dln_indexer.tokens.token_info_cache import TokenInfo, TokenInfoCache

logger = get_logger(__name__)

SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"
TOKEN_PROGRAMS = frozenset({TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID})
TOKEN_PROGRAM_NAMES = frozenset({"spl-token", "spl-token-2022"})

NATIVE_SOL = TokenInfo(
    key="So11111111111111111111111111111111111111112",
    symbol="SOL",
    precision=9,
)

TRANSFER_TYPES = frozenset({"transfer", "transferChecked"})
TOP_LEVEL_INVOKE = "invoke [1]"


def get_fulfilled_instruction_indexes(
    log_messages: Sequence[str],
    program_id: str,
    instruction_name: str = "FulfillOrder",
) -> list[int]:
    """Top-level instruction indexes (0-based) at which `program_id` ran `instruction_name`."""
    indexes: list[int] = []
    open_index: int | None = None
    invoke_counter = 0
    instruction_marker = f"Instruction: {instruction_name}"
    for message in log_messages:
        if TOP_LEVEL_INVOKE in message:
            if program_id in message:
                open_index = invoke_counter
            invoke_counter += 1
        if instruction_marker in message and open_index is not None:
            indexes.append(open_index)
            open_index = None
    return indexes


def find_transfer_instruction(
    transaction: ParsedTransaction,
    instruction_index: int,
) -> ParsedInstruction | None:
    """First transfer / transferChecked among the inner instructions of `instruction_index`."""
    group = transaction.inner_instructions_for(instruction_index)
    if group is None:
        return None
    for ix in group.instructions:
        if ix.type in TRANSFER_TYPES:
            return ix
    return None


def _is_token_program(ix: ParsedInstruction) -> bool:
    return ix.program in TOKEN_PROGRAM_NAMES or ix.program_id in TOKEN_PROGRAMS


def _token_transfer_mint(ix: ParsedInstruction, transaction: ParsedTransaction) -> str | None:
    """transferChecked names the mint; plain transfer only names token accounts."""
    mint = ix.info.get("mint")
    if mint:
        return str(mint)
    for account_field in ("source", "destination"):
        account = ix.info.get(account_field)
        if account and account in transaction.token_account_mints:
            return transaction.token_account_mints[account]
    return None


def _token_transfer_raw_amount(info: dict[str, Any]) -> int:
    if info.get("amount") is not None:
        return big_endian_uint(info["amount"])
    token_amount = info.get("tokenAmount") or {}
    return big_endian_uint(token_amount.get("amount"))


class OrderFulfilledParser:
    def __init__(
        self,
        dst_program_id: str,
        instruction_name: str = "FulfillOrder",
        event_name: str = FULFILLED_EVENT,
    ) -> None:
        if not dst_program_id:
            raise ValueError("DLN_DST_PROGRAM_ID is not set")
        self.dst_program_id = dst_program_id
        self.instruction_name = instruction_name
        self.event_name = event_name

    async def parse_order_filled_event(
        self,
        events: Sequence[ProgramEvent],
        tokens_info: TokenInfoCache,
        transaction: ParsedTransaction,
    ) -> list[ParsedOrderFilled] | None:
        """
        Filled orders of this transaction.

        None when there are no Fulfilled events, or when events and
        FulfillOrder instructions cannot be paired. Otherwise one entry per
        event, minus orders whose transfer could not be found.
        """
        fulfilled = [e for e in events if e.name == self.event_name]
        if not fulfilled:
            return None
        order_ids = [bytes(e.data["order_id"]).hex() for e in fulfilled]

        try:
            pairs = self._pair_with_instructions(transaction, order_ids)
        except UnparseableTransactionError as e:
            logger.error(
                "fulfilled_index_mismatch",
                signature=transaction.signature,
                index_count=e.index_count,
                event_count=e.event_count,
            )
            return None

        orders: list[ParsedOrderFilled] = []
        for order_id, instruction_index in pairs:
            transfer = find_transfer_instruction(transaction, instruction_index)
            if transfer is None:
                logger.warning(
                    "fulfilled_transfer_not_found",
                    signature=transaction.signature,
                    order_id=order_id,
                    instruction_index=instruction_index,
                )
                continue
            resolved = await self._token_and_amount(transfer, transaction, tokens_info)
            if resolved is None:
                logger.warning(
                    "fulfilled_token_not_resolved",
                    signature=transaction.signature,
                    order_id=order_id,
                    program_id=transfer.program_id,
                )
                continue
            token, raw_amount = resolved
            orders.append(
                ParsedOrderFilled(
                    order_id=order_id,
                    token_key=token.key,
                    token_symbol=token.symbol,
                    amount=TokenAmount(raw_amount, token.precision),
                )
            )
        return orders

    def _pair_with_instructions(
        self,
        transaction: ParsedTransaction,
        order_ids: list[str],
    ) -> list[tuple[str, int]]:
        indexes = get_fulfilled_instruction_indexes(
            transaction.log_messages, self.dst_program_id, self.instruction_name
        )
        if len(indexes) != len(order_ids):
            raise UnparseableTransactionError(transaction.signature, len(indexes), len(order_ids))
        return list(zip(order_ids, indexes))

    async def _token_and_amount(
        self,
        ix: ParsedInstruction,
        transaction: ParsedTransaction,
        tokens_info: TokenInfoCache,
    ) -> tuple[TokenInfo, int] | None:
        if ix.program_id == SYSTEM_PROGRAM_ID:
            return NATIVE_SOL, big_endian_uint(ix.info.get("lamports"))

        if not _is_token_program(ix):
            return None
        mint = _token_transfer_mint(ix, transaction)
        if mint is None:
            return None
        token = await tokens_info.get_token_info(mint)
        return token, _token_transfer_raw_amount(ix.info)

"""
Per-transaction order extraction.

Decodes source and destination program events from the transaction logs,
tries the created-order reconstructor first and the fulfilled-order
reconstructor second, and stamps every order with signature, block time and
its position in the transaction.
"""

from __future__ import annotations

from dln_indexer.dln_logging import bind_signature
from dln_indexer.events.parser import EventParser
from dln_indexer.scrapper.models import OrderInfoResult, ParsedOrder
from dln_indexer.scrapper.order_created_parser import OrderCreatedParser
from dln_indexer.scrapper.order_fulfilled_parser import OrderFulfilledParser
from dln_indexer.solana_rpc.models import ParsedTransaction
from dln_indexer.tokens.token_info_cache import TokenInfoCache


class TransactionParser:
    """
    Holds the per-program event parsers and reconstructors.

    Build once per run; event parsers are passed in so tests can use
    synthetic schemas.
    """

    def __init__(
        self,
        src_event_parser: EventParser,
        dst_event_parser: EventParser,
        tokens_info: TokenInfoCache,
        *,
        created_parser: OrderCreatedParser | None = None,
        fulfilled_parser: OrderFulfilledParser | None = None,
    ) -> None:
        self.src_event_parser = src_event_parser
        self.dst_event_parser = dst_event_parser
        self.tokens_info = tokens_info
        self.created_parser = created_parser or OrderCreatedParser()
        self.fulfilled_parser = fulfilled_parser or OrderFulfilledParser(dst_event_parser.program_id)

    async def parse(self, transaction: ParsedTransaction | None) -> list[OrderInfoResult]:
        """Orders found in `transaction`; empty for unrelated or unusable transactions."""
        if transaction is None:
            return []
        log = bind_signature(transaction.signature)
        if transaction.failed:
            log.debug("transaction_failed_skipped", err=str(transaction.err))
            return []
        if transaction.block_time is None:
            log.warning("transaction_without_block_time")
            return []

        orders = await self._parse_orders(transaction)
        if orders:
            log.debug("transaction_orders_parsed", orders=len(orders), status=orders[0].status)
        return [
            OrderInfoResult.from_parsed(
                order,
                signature=transaction.signature,
                timestamp=transaction.block_time,
                order_index=i,
            )
            for i, order in enumerate(orders)
        ]

    async def _parse_orders(self, transaction: ParsedTransaction) -> list[ParsedOrder]:
        src_events = self.src_event_parser.parse_logs(transaction.log_messages)
        created = await self.created_parser.parse_order_created_event(src_events, self.tokens_info)
        if created is not None:
            return list(created)

        dst_events = self.dst_event_parser.parse_logs(transaction.log_messages)
        filled = await self.fulfilled_parser.parse_order_filled_event(
            dst_events, self.tokens_info, transaction
        )
        if filled is not None:
            return list(filled)
        return []

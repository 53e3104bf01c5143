"""
Order reconstruction and the batch fetcher.
"""

from dln_indexer.scrapper.models import (
    OrderInfoResult,
    ParsedOrderCreated,
    ParsedOrderFilled,
)
from dln_indexer.scrapper.order_created_parser import OrderCreatedParser
from dln_indexer.scrapper.order_fulfilled_parser import OrderFulfilledParser
from dln_indexer.scrapper.transaction_getter import fetch_orders_in_batches
from dln_indexer.scrapper.transaction_parser import TransactionParser

__all__ = [
    "OrderCreatedParser",
    "OrderFulfilledParser",
    "OrderInfoResult",
    "ParsedOrderCreated",
    "ParsedOrderFilled",
    "TransactionParser",
    "fetch_orders_in_batches",
]

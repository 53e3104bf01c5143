from dln_indexer.database.models import (
    Base,
    SilverOrder,
    SilverOrderStatus,
    SilverToken,
    StagingOrder,
)
from dln_indexer.database.repositories import OrderRepository

__all__ = [
    "Base",
    "OrderRepository",
    "SilverOrder",
    "SilverOrderStatus",
    "SilverToken",
    "StagingOrder",
]

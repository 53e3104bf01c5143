"""
Core utilities: exception taxonomy and fixed-point amounts shared by the
RPC layer, reconstructors and storage.
"""

from dln_indexer.core.amounts import TokenAmount, big_endian_uint
from dln_indexer.core.exceptions import (
    ConfigError,
    EventDecodeError,
    IndexerError,
    RateLimitedError,
    RpcError,
    TokenLookupError,
    UnparseableTransactionError,
)

__all__ = [
    "ConfigError",
    "EventDecodeError",
    "IndexerError",
    "RateLimitedError",
    "RpcError",
    "TokenAmount",
    "TokenLookupError",
    "UnparseableTransactionError",
    "big_endian_uint",
]

from dln_indexer.tokens.token_info_cache import (
    DEFAULT_PRECISION,
    JupiterTokenSource,
    TokenInfo,
    TokenInfoCache,
    TokenInfoSource,
    TokenMetadata,
)

__all__ = [
    "DEFAULT_PRECISION",
    "JupiterTokenSource",
    "TokenInfo",
    "TokenInfoCache",
    "TokenInfoSource",
    "TokenMetadata",
]

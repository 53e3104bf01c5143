"""
Token metadata resolver: token address -> symbol + decimal precision.

TokenInfoCache memoizes results for the process lifetime in an injectable
MutableMapping (a plain dict by default). The metadata source is behind the
TokenInfoSource protocol; JupiterTokenSource is the production one.

Unknown tokens resolve to {key: address, symbol: address, precision: 6} and
that fallback is cached. Transport/HTTP failures raise TokenLookupError and
leave the cache untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, MutableMapping, Protocol

import httpx

from dln_indexer.core.exceptions import TokenLookupError
from dln_indexer.dln_logging import get_logger

logger = get_logger(__name__)

DEFAULT_PRECISION = 6
JUPITER_SEARCH_PATH = "/tokens/v2/search"


@dataclass(frozen=True)
class TokenInfo:
    """Resolved token identity."""

    key: str
    symbol: str
    precision: int


@dataclass(frozen=True)
class TokenMetadata:
    """Raw answer of a metadata source."""

    symbol: str
    decimals: int


class TokenInfoSource(Protocol):
    async def lookup(self, address: str) -> TokenMetadata | None:
        """Metadata for `address`, None if unknown. Raise TokenLookupError on failure."""
        ...


class JupiterTokenSource:
    """Jupiter token search API (GET /tokens/v2/search?query=<mint>)."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = "https://lite-api.jup.ag",
    ) -> None:
        self._client = client
        self._url = base_url.rstrip("/") + JUPITER_SEARCH_PATH

    async def lookup(self, address: str) -> TokenMetadata | None:
        try:
            resp = await self._client.get(self._url, params={"query": address})
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise TokenLookupError(address, str(e)) from e
        except ValueError as e:
            raise TokenLookupError(address, f"invalid JSON: {e}") from e

        if not isinstance(data, list) or not data:
            return None
        # Search is fuzzy; prefer the exact mint match, else the top hit
        match = _pick_match(data, address)
        if match is None:
            return None
        symbol = match.get("symbol")
        decimals = match.get("decimals")
        if not symbol or decimals is None:
            return None
        try:
            return TokenMetadata(symbol=str(symbol), decimals=int(decimals))
        except (TypeError, ValueError):
            return None


def _pick_match(items: list[Any], address: str) -> dict[str, Any] | None:
    dicts = [i for i in items if isinstance(i, dict)]
    for item in dicts:
        if item.get("id") == address or item.get("address") == address:
            return item
    return dicts[0] if dicts else None


class TokenInfoCache:
    """
    Memoized resolver.

    Concurrent first lookups of the same address are not deduplicated; both
    hit the source and the last write wins.
    """

    def __init__(
        self,
        source: TokenInfoSource,
        cache: MutableMapping[str, TokenInfo] | None = None,
    ) -> None:
        if source is None:
            raise ValueError("token metadata source is required")
        self._source = source
        self._tokens: MutableMapping[str, TokenInfo] = cache if cache is not None else {}

    async def get_token_info(self, address: str) -> TokenInfo:
        """Return token info from cache or source; unknown tokens get the fallback."""
        address = str(address)
        cached = self._tokens.get(address)
        if cached is not None:
            return cached

        metadata = await self._source.lookup(address)
        if metadata is None:
            logger.info("token_info_not_found", token_key=address)
            info = TokenInfo(key=address, symbol=address, precision=DEFAULT_PRECISION)
        else:
            info = TokenInfo(key=address, symbol=metadata.symbol, precision=metadata.decimals)
        self._tokens[address] = info
        return info

    def __len__(self) -> int:
        return len(self._tokens)

"""
Async Solana JSON-RPC client (httpx) for signature paging and transaction bodies.

Only the two calls the indexer needs: getSignaturesForAddress and
getTransaction (jsonParsed). Rate limiting (HTTP 429 or RPC error code 429)
surfaces as RateLimitedError so callers can back off; every other failure is
RpcError. No retries here; retry policy belongs to the fetcher.
"""

from __future__ import annotations

import itertools
from typing import Any

import httpx

from dln_indexer.core.exceptions import RateLimitedError, RpcError
from dln_indexer.dln_logging import get_logger
from dln_indexer.solana_rpc.models import ParsedTransaction, SignatureInfo

logger = get_logger(__name__)

RATE_LIMIT_CODE = 429
MAX_SIGNATURES_LIMIT = 1000


class SolanaRpcClient:
    """
    Thin JSON-RPC wrapper over httpx.AsyncClient.

    Use as an async context manager, or pass an existing AsyncClient (tests
    pass one built on httpx.MockTransport).
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout_sec: float = 30.0,
        commitment: str = "confirmed",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not rpc_url.strip():
            raise ValueError("rpc_url must be non-empty")
        self._rpc_url = rpc_url.strip()
        self._commitment = commitment
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_sec))
        self._ids = itertools.count(1)

    async def __aenter__(self) -> "SolanaRpcClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _call(self, method: str, params: list[Any]) -> Any:
        """Perform one JSON-RPC call; raise RateLimitedError / RpcError on failure."""
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            resp = await self._client.post(self._rpc_url, json=body)
        except httpx.HTTPError as e:
            raise RpcError(f"{method} transport error: {e}") from e

        if resp.status_code == RATE_LIMIT_CODE:
            raise RateLimitedError(f"{method}: HTTP 429 Too Many Requests")
        if resp.status_code >= 400:
            raise RpcError(f"{method}: HTTP {resp.status_code}", code=resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise RpcError(f"{method}: response is not JSON") from e
        if not isinstance(data, dict):
            raise RpcError(f"{method}: malformed response")

        if "error" in data:
            err = data["error"] or {}
            code = err.get("code") if isinstance(err, dict) else None
            message = err.get("message", err) if isinstance(err, dict) else err
            if code == RATE_LIMIT_CODE:
                raise RateLimitedError(f"{method}: {message}")
            raise RpcError(f"Solana RPC error: {message} (code={code})", code=code)
        if "result" not in data:
            raise RpcError(f"{method}: Solana RPC returned no result")
        return data["result"]

    async def get_signatures_for_address(
        self,
        address: str,
        before: str | None = None,
        limit: int = MAX_SIGNATURES_LIMIT,
    ) -> list[SignatureInfo]:
        """Signatures for `address` older than `before`, newest first."""
        if not (1 <= limit <= MAX_SIGNATURES_LIMIT):
            raise ValueError("limit must be between 1 and 1000")
        opts: dict[str, Any] = {"limit": limit, "commitment": self._commitment}
        if before is not None:
            opts["before"] = before
        result = await self._call("getSignaturesForAddress", [address, opts])
        if not isinstance(result, list):
            raise RpcError("getSignaturesForAddress: result is not a list")
        infos: list[SignatureInfo] = []
        for item in result:
            if not isinstance(item, dict) or "signature" not in item:
                raise RpcError("getSignaturesForAddress: malformed signature item")
            infos.append(SignatureInfo.from_rpc_item(item))
        return infos

    async def get_transaction(self, signature: str) -> ParsedTransaction | None:
        """jsonParsed transaction body, or None when the node does not have it."""
        opts = {
            "encoding": "jsonParsed",
            "maxSupportedTransactionVersion": 0,
            "commitment": self._commitment,
        }
        result = await self._call("getTransaction", [signature, opts])
        if result is None:
            return None
        if not isinstance(result, dict):
            raise RpcError("getTransaction: result is not an object")
        try:
            return ParsedTransaction.from_rpc(result)
        except (KeyError, TypeError, ValueError) as e:
            raise RpcError(f"getTransaction: malformed transaction {signature}: {e}") from e

"""
Application-level exceptions.

Taxonomy used across the pipeline:
- RateLimitedError: transient; retried with linear backoff by the fetcher.
- RpcError: non-retryable RPC failure; drops one transaction, or is fatal
  when raised while paging signatures.
- UnparseableTransactionError: fulfillment events cannot be paired with
  instructions; the whole transaction is rejected.
- TokenLookupError: token metadata source unreachable; propagates.
- EventDecodeError: malformed event payload in a log line.
- ConfigError: required settings missing or invalid.
"""

from __future__ import annotations


class IndexerError(Exception):
    """Base class for all indexer errors."""


class RpcError(IndexerError):
    """JSON-RPC call failed (transport, HTTP status, or RPC error object)."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class RateLimitedError(RpcError):
    """RPC endpoint answered 429 / rate limit exceeded."""

    def __init__(self, message: str = "Rate limit exceeded", code: int | None = 429) -> None:
        super().__init__(message, code)


class UnparseableTransactionError(IndexerError):
    """Instruction indexes recovered from logs do not match the event count."""

    def __init__(self, signature: str | None, index_count: int, event_count: int) -> None:
        super().__init__(
            f"{signature}: fulfilled instruction indexes ({index_count}) "
            f"and order ids ({event_count}) mismatch"
        )
        self.signature = signature
        self.index_count = index_count
        self.event_count = event_count


class TokenLookupError(IndexerError):
    """Token metadata request failed; never cached as 'not found'."""

    def __init__(self, address: str, reason: str) -> None:
        super().__init__(f"Token metadata lookup failed for {address}: {reason}")
        self.address = address


class EventDecodeError(IndexerError):
    """Event payload does not match its schema."""


class ConfigError(IndexerError):
    """Missing or invalid configuration."""

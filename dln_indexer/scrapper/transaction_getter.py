"""
Transaction batch fetcher: signature paging -> transaction bodies -> order batches.

Pages getSignaturesForAddress backward from a cursor (one page in flight),
fetches the page's transactions under a semaphore, parses them in page order
and yields order batches of at most `batch_size`, stopping at
`total_required` orders or when history is exhausted.

Per-transaction failures never stop the run: rate limits are retried with
linear backoff (retry_delay_sec * attempt) and dropped after `max_retries`
attempts; other fetch errors drop the transaction at once. Paging failures
are fatal and propagate.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Awaitable, Callable, TypeVar

import httpx

from dln_indexer.core.exceptions import RateLimitedError, RpcError
from dln_indexer.dln_logging import get_logger
from dln_indexer.scrapper.models import OrderInfoResult
from dln_indexer.scrapper.transaction_parser import TransactionParser
from dln_indexer.solana_rpc.client import SolanaRpcClient
from dln_indexer.solana_rpc.models import ParsedTransaction, SignatureInfo

logger = get_logger(__name__)

SIGNATURES_PAGE_SIZE = 200
MAX_CONCURRENT_REQUESTS = 5  # free RPC tiers allow ~10 req/s
MAX_RETRIES = 5
RETRY_DELAY_SEC = 1.0

T = TypeVar("T")


async def _retry_rate_limited(
    call: Callable[[], Awaitable[T]],
    *,
    max_retries: int,
    retry_delay_sec: float,
    what: str,
) -> T:
    """Run `call`, retrying RateLimitedError with linear backoff; re-raise after the last attempt."""
    attempt = 1
    while True:
        try:
            return await call()
        except RateLimitedError:
            if attempt >= max_retries:
                raise
            delay = retry_delay_sec * attempt
            logger.debug("rpc_rate_limited_retry", call=what, attempt=attempt, delay_sec=delay)
            await asyncio.sleep(delay)
            attempt += 1


async def _get_transaction(
    client: SolanaRpcClient,
    signature: str,
    semaphore: asyncio.Semaphore,
    *,
    max_retries: int,
    retry_delay_sec: float,
) -> ParsedTransaction | None:
    """One transaction body, or None if it had to be dropped."""

    async def _call() -> ParsedTransaction | None:
        # Slot is held only for the request itself, not during backoff
        async with semaphore:
            return await client.get_transaction(signature)

    try:
        transaction = await _retry_rate_limited(
            _call,
            max_retries=max_retries,
            retry_delay_sec=retry_delay_sec,
            what="getTransaction",
        )
    except RateLimitedError:
        logger.warning("transaction_skipped_no_more_retries", signature=signature, max_retries=max_retries)
        return None
    except (RpcError, httpx.HTTPError) as e:
        logger.warning("transaction_fetch_failed", signature=signature, error=str(e))
        return None

    if transaction is None:
        logger.debug("transaction_not_found", signature=signature)
    return transaction


async def get_transactions(
    client: SolanaRpcClient,
    signatures: list[SignatureInfo],
    *,
    max_concurrent_requests: int = MAX_CONCURRENT_REQUESTS,
    max_retries: int = MAX_RETRIES,
    retry_delay_sec: float = RETRY_DELAY_SEC,
) -> list[ParsedTransaction]:
    """Fetch a page of transactions concurrently; result keeps page order, dropped ones removed."""
    semaphore = asyncio.Semaphore(max_concurrent_requests)
    results = await asyncio.gather(*(
        _get_transaction(
            client,
            info.signature,
            semaphore,
            max_retries=max_retries,
            retry_delay_sec=retry_delay_sec,
        )
        for info in signatures
    ))
    return [tx for tx in results if tx is not None]


async def fetch_orders_in_batches(
    client: SolanaRpcClient,
    program_id: str,
    parser: TransactionParser,
    total_required: int,
    batch_size: int = 5000,
    before_signature: str | None = None,
    *,
    page_size: int = SIGNATURES_PAGE_SIZE,
    max_concurrent_requests: int = MAX_CONCURRENT_REQUESTS,
    max_retries: int = MAX_RETRIES,
    retry_delay_sec: float = RETRY_DELAY_SEC,
) -> AsyncIterator[list[OrderInfoResult]]:
    """
    Yield order batches for `program_id`, walking history older than `before_signature`.

    Every batch has at most `batch_size` orders and the total never exceeds
    `total_required`. The target is cut on a transaction boundary: a
    transaction whose orders do not all fit is left for the next run, which
    resumes below the earliest stored signature. Signatures that failed
    on-chain are not fetched.
    """
    if total_required < 0:
        raise ValueError("total_required must be >= 0")
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    if not (1 <= page_size <= 1000):
        raise ValueError("page_size must be between 1 and 1000")
    if max_concurrent_requests < 1:
        raise ValueError("max_concurrent_requests must be >= 1")
    if max_retries < 1:
        raise ValueError("max_retries must be >= 1")

    pending: list[OrderInfoResult] = []
    emitted = 0
    cursor = before_signature
    target_reached = False

    while not target_reached and emitted + len(pending) < total_required:
        page_cursor = cursor
        signatures = await _retry_rate_limited(
            lambda: client.get_signatures_for_address(program_id, before=page_cursor, limit=page_size),
            max_retries=max_retries,
            retry_delay_sec=retry_delay_sec,
            what="getSignaturesForAddress",
        )
        if not signatures:
            logger.info("signature_history_exhausted", program_id=program_id, cursor=cursor)
            break
        cursor = signatures[-1].signature

        succeeded = [info for info in signatures if info.err is None]
        transactions = await get_transactions(
            client,
            succeeded,
            max_concurrent_requests=max_concurrent_requests,
            max_retries=max_retries,
            retry_delay_sec=retry_delay_sec,
        )
        for transaction in transactions:
            pending.extend(await parser.parse(transaction))

        room = total_required - emitted
        if len(pending) >= room:
            target_reached = True
            cut = room
            # keep every order of a transaction together
            while 0 < cut < len(pending) and pending[cut - 1].signature == pending[cut].signature:
                cut -= 1
            del pending[cut:]

        logger.info(
            "signatures_page_processed",
            program_id=program_id,
            signatures=len(signatures),
            failed=len(signatures) - len(succeeded),
            transactions=len(transactions),
            collected=emitted + len(pending),
            total_required=total_required,
            cursor=cursor,
        )

        while len(pending) >= batch_size:
            batch, pending = pending[:batch_size], pending[batch_size:]
            emitted += len(batch)
            yield batch

    if pending:
        yield pending

"""
Pytest tests for the batch fetcher: paging, batching, target cap, retries and drops.

RPC client and transaction parser are faked; asyncio.sleep is patched where
backoff delays are checked.
"""

from __future__ import annotations

import asyncio

import pytest

from dln_indexer.core.amounts import TokenAmount
from dln_indexer.core.exceptions import RateLimitedError, RpcError
from dln_indexer.scrapper.models import OrderInfoResult
from dln_indexer.scrapper.transaction_getter import fetch_orders_in_batches
from dln_indexer.solana_rpc.models import ParsedTransaction, SignatureInfo

PROGRAM_ID = "src5qyZHqTqecJV4aY6Cb6zDZLMDzrDKKezs22MPHr4"
FAILED_ERR = {"InstructionError": [2, {"Custom": 6000}]}


class FakeRpcClient:
    """Serves signature pages in order and a transaction per signature.

    failures: signature -> list of exceptions (or None for "not found") returned
    before the transaction succeeds; a trailing "always" entry repeats forever.
    failed: signatures listed with an on-chain error.
    """

    def __init__(self, pages, failures=None, delay=0.0, failed=()):
        self.pages = list(pages)
        self.failed = set(failed)
        self.failures = {k: list(v) for k, v in (failures or {}).items()}
        self.delay = delay
        self.page_calls = []
        self.tx_calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def get_signatures_for_address(self, address, before=None, limit=1000):
        self.page_calls.append((address, before, limit))
        page = self.pages.pop(0) if self.pages else []
        if isinstance(page, Exception):
            raise page
        return [
            SignatureInfo.from_rpc_item({"signature": s, "slot": 1, "err": FAILED_ERR if s in self.failed else None})
            for s in page
        ]

    async def get_transaction(self, signature):
        self.tx_calls.append(signature)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            queue = self.failures.get(signature)
            if queue:
                outcome = queue[0] if queue[-1] == "always" and len(queue) == 2 else queue.pop(0)
                if isinstance(outcome, Exception):
                    raise outcome
                if outcome is None:
                    return None
            return ParsedTransaction(signature=signature, block_time=1_700_000_000, log_messages=())
        finally:
            self.in_flight -= 1


class FakeParser:
    """One order per transaction unless orders_per_tx says otherwise."""

    def __init__(self, orders_per_tx=None):
        self.orders_per_tx = orders_per_tx or {}

    async def parse(self, transaction):
        count = self.orders_per_tx.get(transaction.signature, 1)
        return [
            OrderInfoResult(
                signature=transaction.signature,
                order_index=i,
                order_id=f"{transaction.signature}-{i}",
                status="created",
                timestamp=transaction.block_time,
                token_key="USDC",
                token_symbol="USDC",
                amount=TokenAmount(1_000_000, 6),
                percent_fee=TokenAmount.zero(6),
                fixed_fee=TokenAmount.zero(6),
            )
            for i in range(count)
        ]


@pytest.fixture
def sleeps(monkeypatch):
    """Record backoff delays instead of sleeping."""
    delays = []

    async def fake_sleep(delay, *args, **kwargs):
        delays.append(delay)

    monkeypatch.setattr("dln_indexer.scrapper.transaction_getter.asyncio.sleep", fake_sleep)
    return delays


async def _collect(gen):
    return [batch async for batch in gen]


def _sigs(prefix, n):
    return [f"{prefix}{i}" for i in range(n)]


@pytest.mark.asyncio
async def test_batches_capped_at_total_and_batch_size():
    """Batches never exceed batch_size; the sum never exceeds total_required."""
    client = FakeRpcClient([_sigs("a", 5), _sigs("b", 5), _sigs("c", 5)])
    batches = await _collect(fetch_orders_in_batches(
        client, PROGRAM_ID, FakeParser(), total_required=7, batch_size=3, page_size=5
    ))

    assert [len(b) for b in batches] == [3, 3, 1]
    flat = [o.signature for b in batches for o in b]
    assert flat == ["a0", "a1", "a2", "a3", "a4", "b0", "b1"]
    assert len(client.page_calls) == 2


@pytest.mark.asyncio
async def test_cursor_is_last_signature_of_previous_page():
    client = FakeRpcClient([_sigs("a", 3), _sigs("b", 3), []])
    await _collect(fetch_orders_in_batches(
        client, PROGRAM_ID, FakeParser(), total_required=100, batch_size=50, before_signature="start", page_size=3
    ))
    assert [before for _, before, _ in client.page_calls] == ["start", "a2", "b2"]
    assert all(limit == 3 for _, _, limit in client.page_calls)


@pytest.mark.asyncio
async def test_history_exhausted_flushes_remainder():
    client = FakeRpcClient([_sigs("a", 4), []])
    batches = await _collect(fetch_orders_in_batches(
        client, PROGRAM_ID, FakeParser(), total_required=1000, batch_size=10
    ))
    assert [len(b) for b in batches] == [4]


@pytest.mark.asyncio
async def test_order_preserved_across_concurrent_fetches():
    """Slow and fast transactions still come out in page order."""
    client = FakeRpcClient([_sigs("a", 6), []], delay=0.001)
    batches = await _collect(fetch_orders_in_batches(
        client, PROGRAM_ID, FakeParser(), total_required=100, batch_size=100, max_concurrent_requests=3
    ))
    assert [o.signature for o in batches[0]] == _sigs("a", 6)


@pytest.mark.asyncio
async def test_concurrency_is_bounded():
    client = FakeRpcClient([_sigs("a", 12), []], delay=0.005)
    await _collect(fetch_orders_in_batches(
        client, PROGRAM_ID, FakeParser(), total_required=100, batch_size=100, max_concurrent_requests=2
    ))
    assert client.max_in_flight <= 2


@pytest.mark.asyncio
async def test_target_never_splits_a_multi_order_transaction():
    """A transaction whose orders do not all fit is left whole for the next run."""
    client = FakeRpcClient([["a0", "a1", "a2"], ["b0"], []])
    batches = await _collect(fetch_orders_in_batches(
        client, PROGRAM_ID, FakeParser({"a1": 3}), total_required=3, batch_size=10
    ))
    assert [(o.signature, o.order_index) for o in batches[0]] == [("a0", 0)]
    assert len(batches) == 1
    # paging stops once the target is cut; older pages stay for the next run
    assert len(client.page_calls) == 1


@pytest.mark.asyncio
async def test_multi_order_transaction_kept_when_it_fits_exactly():
    client = FakeRpcClient([["a0", "a1", "a2"], []])
    batches = await _collect(fetch_orders_in_batches(
        client, PROGRAM_ID, FakeParser({"a1": 2}), total_required=3, batch_size=10
    ))
    assert [(o.signature, o.order_index) for o in batches[0]] == [("a0", 0), ("a1", 0), ("a1", 1)]


@pytest.mark.asyncio
async def test_failed_signatures_are_not_fetched():
    client = FakeRpcClient([_sigs("a", 3), []], failed={"a1"})
    batches = await _collect(fetch_orders_in_batches(
        client, PROGRAM_ID, FakeParser(), total_required=10, batch_size=10
    ))
    assert [o.signature for o in batches[0]] == ["a0", "a2"]
    assert "a1" not in client.tx_calls


@pytest.mark.asyncio
async def test_rate_limited_transaction_retried_with_linear_backoff(sleeps):
    client = FakeRpcClient(
        [_sigs("a", 3), []],
        failures={"a1": [RateLimitedError(), RateLimitedError()]},
    )
    batches = await _collect(fetch_orders_in_batches(
        client, PROGRAM_ID, FakeParser(), total_required=10, batch_size=10, retry_delay_sec=1.0
    ))
    assert [o.signature for o in batches[0]] == ["a0", "a1", "a2"]
    assert sleeps == [1.0, 2.0]
    assert client.tx_calls.count("a1") == 3


@pytest.mark.asyncio
async def test_rate_limit_exhaustion_drops_only_that_transaction(sleeps):
    client = FakeRpcClient(
        [_sigs("a", 3), []],
        failures={"a1": [RateLimitedError(), "always"]},
    )
    batches = await _collect(fetch_orders_in_batches(
        client, PROGRAM_ID, FakeParser(), total_required=10, batch_size=10, max_retries=3, retry_delay_sec=0.5
    ))
    assert [o.signature for o in batches[0]] == ["a0", "a2"]
    assert client.tx_calls.count("a1") == 3
    assert sleeps == [0.5, 1.0]


@pytest.mark.asyncio
async def test_other_errors_and_missing_transactions_dropped_without_retry(sleeps):
    client = FakeRpcClient(
        [_sigs("a", 4), []],
        failures={"a1": [RpcError("slot skipped", code=-32009)], "a2": [None]},
    )
    batches = await _collect(fetch_orders_in_batches(
        client, PROGRAM_ID, FakeParser(), total_required=10, batch_size=10
    ))
    assert [o.signature for o in batches[0]] == ["a0", "a3"]
    assert sleeps == []
    assert client.tx_calls.count("a1") == 1


@pytest.mark.asyncio
async def test_paging_failure_propagates():
    client = FakeRpcClient([_sigs("a", 2), RpcError("node unhealthy")])
    gen = fetch_orders_in_batches(client, PROGRAM_ID, FakeParser(), total_required=10, batch_size=1)
    received = []
    with pytest.raises(RpcError):
        async for batch in gen:
            received.append(batch)
    assert len(received) == 2


@pytest.mark.asyncio
async def test_paging_rate_limit_is_retried(sleeps):
    client = FakeRpcClient([RateLimitedError(), _sigs("a", 2), []])
    batches = await _collect(fetch_orders_in_batches(
        client, PROGRAM_ID, FakeParser(), total_required=10, batch_size=10, retry_delay_sec=2.0
    ))
    assert [len(b) for b in batches] == [2]
    assert sleeps == [2.0]


@pytest.mark.asyncio
async def test_zero_target_makes_no_calls():
    client = FakeRpcClient([_sigs("a", 2)])
    assert await _collect(fetch_orders_in_batches(client, PROGRAM_ID, FakeParser(), total_required=0)) == []
    assert client.page_calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [
        {"total_required": -1},
        {"total_required": 5, "batch_size": 0},
        {"total_required": 5, "page_size": 1001},
        {"total_required": 5, "max_concurrent_requests": 0},
        {"total_required": 5, "max_retries": 0},
    ],
)
async def test_invalid_arguments_rejected(kwargs):
    with pytest.raises(ValueError):
        await _collect(fetch_orders_in_batches(FakeRpcClient([]), PROGRAM_ID, FakeParser(), **kwargs))

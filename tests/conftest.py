"""
Pytest fixtures for DLN indexer tests.

Transactions are built as jsonParsed getTransaction payloads with event log
lines rendered by encode_event_log, so tests run without Solana RPC. Storage
uses a temporary SQLite DB.
"""

from __future__ import annotations

from typing import Any

import pytest
from solders.pubkey import Pubkey

from dln_indexer.config.env import DEFAULT_DLN_DST_PROGRAM_ID, DEFAULT_DLN_SRC_PROGRAM_ID
from dln_indexer.events import DLN_DST_SCHEMA, DLN_SRC_SCHEMA, EventParser, encode_event_log
from dln_indexer.scrapper.order_fulfilled_parser import SYSTEM_PROGRAM_ID, TOKEN_PROGRAM_ID
from dln_indexer.solana_rpc.models import ParsedTransaction
from dln_indexer.tokens import TokenInfoCache, TokenMetadata

SRC_PROGRAM_ID = DEFAULT_DLN_SRC_PROGRAM_ID
DST_PROGRAM_ID = DEFAULT_DLN_DST_PROGRAM_ID
COMPUTE_BUDGET_PROGRAM_ID = "ComputeBudget111111111111111111111111111111"

USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
TAKER = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
TAKER_2 = "7F1WzVNQ1Qpurqxxdyv3UrFQR3uoNepULVW9A4bAJ5nZ"

CREATED_SIGNATURE = "2zhQdZCFiVUxk2wrGE9ukNPtDca9Vy9z1HG6cnYauh4S54mNdBQ7TMSLXasmV5Bv2VbR1QqEY1ewLRf3nCgdLqLc"
FILLED_SIGNATURE = "3qQSDktLZrvPd2QMEkBtxJmpE1jJeHE88Nzws3rgZAmmzTpa46RaWh4bkfXStXDKCprZd8NAYct8qMnBDQn3MC77"
OTHER_SIGNATURE = "5BgLVsmFWafQpNk3TXYUaMNUEQ1JT5JD1Qdv54dnzuV9YhryCMfRob2dG22yUZg7UY4fLZgRNVZsa7rsMEETz8Tz"

CREATED_ORDER_ID = "291438b251464b56304ffab86e7690385fbcdcc8d046ead858853446bad5e3b0"
FILLED_ORDER_ID = "76ef49d302f1c30f8b3b0e3f1b294b604c5245a7566c0b05c1279a525dfb703c"

BLOCK_TIME = 1_718_000_000


class TxBuilder:
    """Builds log lines, inner instructions and getTransaction payloads."""

    src_program_id = SRC_PROGRAM_ID
    dst_program_id = DST_PROGRAM_ID

    @staticmethod
    def compute_budget_logs() -> list[str]:
        return [
            f"Program {COMPUTE_BUDGET_PROGRAM_ID} invoke [1]",
            f"Program {COMPUTE_BUDGET_PROGRAM_ID} success",
        ]

    @staticmethod
    def order_data(
        token_address: bytes,
        amount: int,
        percent_fee: int = 0,
        fixed_fee: int = 0,
    ) -> dict[str, Any]:
        """CreatedOrder event fields; give chain is Solana (7565164)."""
        order = {
            "maker_order_nonce": 1718000000123,
            "maker_src": bytes(Pubkey.from_string(TAKER)),
            "give": {
                "chain_id": (7565164).to_bytes(32, "big"),
                "token_address": token_address,
                "amount": amount.to_bytes(32, "big"),
            },
            "take": {
                "chain_id": (1).to_bytes(32, "big"),
                "token_address": bytes.fromhex("a0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"),
                "amount": (amount - 1000).to_bytes(32, "big"),
            },
            "receiver_dst": bytes.fromhex("11" * 20),
            "give_patch_authority_src": bytes(Pubkey.from_string(TAKER)),
            "order_authority_address_dst": bytes.fromhex("22" * 20),
            "allowed_taker_dst": None,
            "allowed_cancel_beneficiary_src": None,
            "external_call": None,
        }
        return {"order": order, "fixed_fee": fixed_fee, "percent_fee": percent_fee}

    @classmethod
    def created_logs(
        cls,
        order_id: str = CREATED_ORDER_ID,
        token_address: bytes | None = None,
        amount: int = 101_314_781,
        percent_fee: int = 40_525,
        fixed_fee: int = 0,
    ) -> list[str]:
        if token_address is None:
            token_address = bytes(Pubkey.from_string(USDC_MINT))
        data = cls.order_data(token_address, amount, percent_fee, fixed_fee)
        return cls.compute_budget_logs() + [
            f"Program {SRC_PROGRAM_ID} invoke [1]",
            "Program log: Instruction: CreateOrderWithNonce",
            f"Program {TOKEN_PROGRAM_ID} invoke [2]",
            "Program log: Instruction: Transfer",
            f"Program {TOKEN_PROGRAM_ID} success",
            encode_event_log(DLN_SRC_SCHEMA, "CreatedOrder", data),
            encode_event_log(DLN_SRC_SCHEMA, "CreatedOrderId", {"order_id": bytes.fromhex(order_id)}),
            f"Program {SRC_PROGRAM_ID} consumed 91234 of 200000 compute units",
            f"Program {SRC_PROGRAM_ID} success",
        ]

    @staticmethod
    def fulfill_logs(order_id: str = FILLED_ORDER_ID, taker: str = TAKER) -> list[str]:
        """Logs of one top-level FulfillOrder instruction."""
        return [
            f"Program {DST_PROGRAM_ID} invoke [1]",
            "Program log: Instruction: FulfillOrder",
            f"Program {SYSTEM_PROGRAM_ID} invoke [2]",
            f"Program {SYSTEM_PROGRAM_ID} success",
            encode_event_log(DLN_DST_SCHEMA, "Fulfilled", {"order_id": bytes.fromhex(order_id), "taker": taker}),
            f"Program {DST_PROGRAM_ID} consumed 45000 of 200000 compute units",
            f"Program {DST_PROGRAM_ID} success",
        ]

    @staticmethod
    def system_transfer(lamports: int) -> dict[str, Any]:
        return {
            "program": "system",
            "programId": SYSTEM_PROGRAM_ID,
            "parsed": {
                "type": "transfer",
                "info": {"source": TAKER, "destination": TAKER_2, "lamports": lamports},
            },
            "stackHeight": 2,
        }

    @staticmethod
    def token_transfer_checked(mint: str, amount: int, decimals: int = 6) -> dict[str, Any]:
        return {
            "program": "spl-token",
            "programId": TOKEN_PROGRAM_ID,
            "parsed": {
                "type": "transferChecked",
                "info": {
                    "source": TAKER,
                    "destination": TAKER_2,
                    "mint": mint,
                    "authority": TAKER,
                    "tokenAmount": {"amount": str(amount), "decimals": decimals},
                },
            },
            "stackHeight": 2,
        }

    @staticmethod
    def token_transfer(source: str, destination: str, amount: int) -> dict[str, Any]:
        return {
            "program": "spl-token",
            "programId": TOKEN_PROGRAM_ID,
            "parsed": {
                "type": "transfer",
                "info": {"source": source, "destination": destination, "authority": TAKER, "amount": str(amount)},
            },
            "stackHeight": 2,
        }

    @staticmethod
    def raw(
        signature: str,
        logs: list[str],
        inner: dict[int, list[dict[str, Any]]] | None = None,
        *,
        block_time: int | None = BLOCK_TIME,
        account_keys: list[str] | None = None,
        token_balances: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """jsonParsed getTransaction result."""
        return {
            "slot": 271_000_000,
            "blockTime": block_time,
            "transaction": {
                "signatures": [signature],
                "message": {
                    "accountKeys": [
                        {"pubkey": k, "signer": False, "writable": True, "source": "transaction"}
                        for k in account_keys or []
                    ],
                    "instructions": [],
                },
            },
            "meta": {
                "err": None,
                "logMessages": logs,
                "innerInstructions": [
                    {"index": index, "instructions": ixs} for index, ixs in sorted((inner or {}).items())
                ],
                "preTokenBalances": token_balances or [],
                "postTokenBalances": [],
            },
        }

    @classmethod
    def parsed(cls, *args: Any, **kwargs: Any) -> ParsedTransaction:
        return ParsedTransaction.from_rpc(cls.raw(*args, **kwargs))

    @classmethod
    def created_tx(cls, signature: str = CREATED_SIGNATURE, **kwargs: Any) -> dict[str, Any]:
        return cls.raw(signature, cls.created_logs(**kwargs))

    @classmethod
    def filled_sol_tx(
        cls,
        signature: str = FILLED_SIGNATURE,
        order_id: str = FILLED_ORDER_ID,
        lamports: int = 3_919_776_213,
    ) -> dict[str, Any]:
        """One FulfillOrder at top-level index 1 paying native SOL."""
        logs = cls.compute_budget_logs() + cls.fulfill_logs(order_id)
        return cls.raw(signature, logs, {1: [cls.system_transfer(lamports)]})


class StaticTokenSource:
    """Metadata source answering from a dict; records every lookup."""

    def __init__(self, tokens: dict[str, TokenMetadata] | None = None, default: TokenMetadata | None = None) -> None:
        self.tokens = tokens or {}
        self.default = default
        self.calls: list[str] = []

    async def lookup(self, address: str) -> TokenMetadata | None:
        self.calls.append(address)
        return self.tokens.get(address, self.default)


@pytest.fixture
def tx_builder() -> type[TxBuilder]:
    return TxBuilder


@pytest.fixture
def token_source() -> StaticTokenSource:
    """Every address resolves to USDC with 6 decimals."""
    return StaticTokenSource(default=TokenMetadata(symbol="USDC", decimals=6))


@pytest.fixture
def tokens_info(token_source) -> TokenInfoCache:
    return TokenInfoCache(token_source)


@pytest.fixture
def src_event_parser() -> EventParser:
    return EventParser(SRC_PROGRAM_ID, DLN_SRC_SCHEMA)


@pytest.fixture
def dst_event_parser() -> EventParser:
    return EventParser(DST_PROGRAM_ID, DLN_DST_SCHEMA)


@pytest.fixture
def repository(tmp_path):
    """OrderRepository on a fresh temporary SQLite DB with tables created."""
    from dln_indexer.database import OrderRepository

    repo = OrderRepository(f"sqlite:///{tmp_path / 'orders.db'}")
    repo.create_tables()
    yield repo
    repo.engine.dispose()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep developer .env / shell settings out of config tests."""
    for name in (
        "SOLANA_RPC_URL",
        "HELIUS_API_KEY",
        "DLN_SRC_PROGRAM_ID",
        "DLN_DST_PROGRAM_ID",
        "DATABASE_URL",
        "TOKEN_API_URL",
        "TOTAL_REQUIRED",
        "BATCH_SIZE",
        "MAX_CONCURRENT_REQUESTS",
        "SIGNATURES_PAGE_SIZE",
        "MAX_RETRIES",
    ):
        monkeypatch.delenv(name, raising=False)

"""
Main entrypoint: index DLN orders from Solana into the order database.

For each selected program (source -> created orders, destination -> filled
orders) the run resumes below the earliest stored order of that status,
fetches order batches, saves each batch to staging and promotes it to silver.

Env: SOLANA_RPC_URL or HELIUS_API_KEY, DLN_SRC_PROGRAM_ID, DLN_DST_PROGRAM_ID,
DATABASE_URL, TOKEN_API_URL, TOTAL_REQUIRED, BATCH_SIZE, MAX_CONCURRENT_REQUESTS,
SIGNATURES_PAGE_SIZE, MAX_RETRIES, LOG_LEVEL, LOG_FORMAT.

Usage: python main.py [--total N] [--batch-size N] [--program src|dst|all] [--from-start]
"""

from __future__ import annotations

import argparse
import asyncio
import sys

import httpx

from dln_indexer.config import IndexerSettings, get_settings
from dln_indexer.config.env import mask_rpc_url
from dln_indexer.core.exceptions import IndexerError
from dln_indexer.database import OrderRepository
from dln_indexer.dln_logging import get_logger
from dln_indexer.events import DLN_DST_SCHEMA, DLN_SRC_SCHEMA, EventParser
from dln_indexer.scrapper import TransactionParser, fetch_orders_in_batches
from dln_indexer.scrapper.models import STATUS_CREATED, STATUS_FILLED
from dln_indexer.solana_rpc import SolanaRpcClient
from dln_indexer.tokens import JupiterTokenSource, TokenInfoCache

logger = get_logger("main")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Index DLN created/filled orders from Solana.")
    parser.add_argument("--total", type=int, default=None, help="Orders to fetch per program (default TOTAL_REQUIRED)")
    parser.add_argument("--batch-size", type=int, default=None, help="Orders per saved batch (default BATCH_SIZE)")
    parser.add_argument(
        "--program",
        choices=("src", "dst", "all"),
        default="all",
        help="Which DLN program to index (default all)",
    )
    parser.add_argument(
        "--from-start",
        action="store_true",
        help="Ignore stored orders and start from the newest signature",
    )
    return parser.parse_args(argv)


async def index_program(
    settings: IndexerSettings,
    repository: OrderRepository,
    client: SolanaRpcClient,
    parser: TransactionParser,
    program_id: str,
    status: str,
    *,
    total_required: int,
    batch_size: int,
    from_start: bool = False,
) -> int:
    """Fetch and store orders for one program. Returns the number of staging rows inserted."""
    before = None
    if not from_start:
        earliest = repository.get_earliest_record(status)
        if earliest is not None:
            before = earliest["signature"]
    logger.info(
        "program_indexing_started",
        program_id=program_id,
        status=status,
        before_signature=before,
        total_required=total_required,
    )

    saved = 0
    async for batch in fetch_orders_in_batches(
        client,
        program_id,
        parser,
        total_required,
        batch_size,
        before,
        page_size=settings.signatures_page_size,
        max_concurrent_requests=settings.max_concurrent_requests,
        max_retries=settings.max_retries,
    ):
        saved += repository.save_batch(batch)
        repository.promote_staging_to_silver()

    logger.info("program_indexing_done", program_id=program_id, status=status, saved=saved)
    return saved


async def run(settings: IndexerSettings, args: argparse.Namespace) -> None:
    total_required = args.total if args.total is not None else settings.total_required
    batch_size = args.batch_size if args.batch_size is not None else settings.batch_size

    repository = OrderRepository(settings.database_url)
    repository.create_tables()
    repository.clear_staging()

    programs = []
    if args.program in ("src", "all"):
        programs.append((settings.src_program_id, STATUS_CREATED))
    if args.program in ("dst", "all"):
        programs.append((settings.dst_program_id, STATUS_FILLED))

    logger.info("indexer_started", rpc_url=mask_rpc_url(settings.rpc_url), programs=[p for p, _ in programs])

    async with SolanaRpcClient(settings.rpc_url) as client, httpx.AsyncClient(timeout=30.0) as http:
        tokens_info = TokenInfoCache(JupiterTokenSource(http, settings.token_api_url))
        parser = TransactionParser(
            EventParser(settings.src_program_id, DLN_SRC_SCHEMA),
            EventParser(settings.dst_program_id, DLN_DST_SCHEMA),
            tokens_info,
        )
        for program_id, status in programs:
            await index_program(
                settings,
                repository,
                client,
                parser,
                program_id,
                status,
                total_required=total_required,
                batch_size=batch_size,
                from_start=args.from_start,
            )

    logger.info(
        "indexer_finished",
        created=repository.count_orders(STATUS_CREATED),
        filled=repository.count_orders(STATUS_FILLED),
        tokens_cached=len(tokens_info),
    )


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    if args.total is not None and args.total < 0:
        logger.error("main_config_error", message="--total must be >= 0")
        return 1
    if args.batch_size is not None and args.batch_size < 1:
        logger.error("main_config_error", message="--batch-size must be >= 1")
        return 1

    try:
        settings = get_settings()
    except IndexerError as e:
        logger.error("main_config_error", message=str(e))
        return 1

    try:
        asyncio.run(run(settings, args))
    except KeyboardInterrupt:
        logger.info("indexer_interrupted")
        return 130
    except Exception as e:
        logger.exception("indexer_failed", error=str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

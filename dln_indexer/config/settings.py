"""
Application settings.

Reads environment (via config.env), validates required values and exposes a
typed IndexerSettings object for the entry point.
"""

from __future__ import annotations

from dataclasses import dataclass

from dln_indexer.config import env
from dln_indexer.core.exceptions import ConfigError


@dataclass(frozen=True)
class IndexerSettings:
    """Settings for one indexer run."""

    rpc_url: str
    src_program_id: str
    dst_program_id: str
    database_url: str
    token_api_url: str
    total_required: int = 25_000
    batch_size: int = 100
    max_concurrent_requests: int = 5
    signatures_page_size: int = 200
    max_retries: int = 5


def get_settings() -> IndexerSettings:
    """
    Return the current settings, validated.

    Raises:
        ConfigError: program ids blank, or numeric settings out of range.
    """
    src_program_id, dst_program_id = env.get_program_ids()
    errors: list[str] = []
    if not src_program_id:
        errors.append("DLN_SRC_PROGRAM_ID is not set")
    if not dst_program_id:
        errors.append("DLN_DST_PROGRAM_ID is not set")

    try:
        total_required = env.get_int("TOTAL_REQUIRED", 25_000)
        batch_size = env.get_int("BATCH_SIZE", 100)
        max_concurrent = env.get_int("MAX_CONCURRENT_REQUESTS", 5)
        page_size = env.get_int("SIGNATURES_PAGE_SIZE", 200)
        max_retries = env.get_int("MAX_RETRIES", 5)
    except ValueError as e:
        raise ConfigError(str(e)) from e

    if total_required < 0:
        errors.append("TOTAL_REQUIRED must be >= 0")
    if batch_size < 1:
        errors.append("BATCH_SIZE must be >= 1")
    if max_concurrent < 1:
        errors.append("MAX_CONCURRENT_REQUESTS must be >= 1")
    if not (1 <= page_size <= 1000):
        errors.append("SIGNATURES_PAGE_SIZE must be between 1 and 1000")
    if max_retries < 1:
        errors.append("MAX_RETRIES must be >= 1")

    if errors:
        raise ConfigError("Config validation failed:\n" + "\n".join(errors))

    return IndexerSettings(
        rpc_url=env.get_solana_rpc_url(),
        src_program_id=src_program_id,
        dst_program_id=dst_program_id,
        database_url=env.get_database_url(),
        token_api_url=env.get_token_api_url(),
        total_required=total_required,
        batch_size=batch_size,
        max_concurrent_requests=max_concurrent,
        signatures_page_size=page_size,
        max_retries=max_retries,
    )

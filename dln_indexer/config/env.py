"""
Environment variable loading for the DLN indexer.

- SOLANA_RPC_URL: RPC endpoint (read from .env)
- HELIUS_API_KEY: Helius API key (used for the RPC URL when SOLANA_RPC_URL is unset)
- DLN_SRC_PROGRAM_ID / DLN_DST_PROGRAM_ID: DLN source and destination programs
- DATABASE_URL: SQLAlchemy URL for order storage (SQLite file by default)
- TOKEN_API_URL: token metadata search API
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is dln_indexer/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

# Public DLN programs on Solana mainnet
DEFAULT_DLN_SRC_PROGRAM_ID = "src5qyZHqTqecJV4aY6Cb6zDZLMDzrDKKezs22MPHr4"
DEFAULT_DLN_DST_PROGRAM_ID = "dst5MGcFPoBeREFAA5E3tU5ij8m5uVYwkzkSAbsLbNo"

MAINNET_RPC_URL = "https://api.mainnet-beta.solana.com"
HELIUS_MAINNET_URL_TEMPLATE = "https://mainnet.helius-rpc.com/?api-key={key}"
DEFAULT_DATABASE_URL = "sqlite:///dln_orders.db"
DEFAULT_TOKEN_API_URL = "https://lite-api.jup.ag"


def load_indexer_env() -> None:
    """Load .env from project root. Existing environment variables win; safe to call multiple times."""
    load_dotenv(_ENV_PATH)


def get_solana_rpc_url() -> str:
    """
    Resolve Solana RPC URL from env.
    Order: SOLANA_RPC_URL > HELIUS_API_KEY > public mainnet endpoint.
    """
    load_indexer_env()
    url = (os.getenv("SOLANA_RPC_URL") or "").strip()
    if url:
        return url
    key = (os.getenv("HELIUS_API_KEY") or "").strip()
    if key:
        return HELIUS_MAINNET_URL_TEMPLATE.format(key=key)
    return MAINNET_RPC_URL


def get_program_ids() -> tuple[str, str]:
    """Return (source program id, destination program id)."""
    load_indexer_env()
    src = os.getenv("DLN_SRC_PROGRAM_ID")
    dst = os.getenv("DLN_DST_PROGRAM_ID")
    return (
        (src if src is not None else DEFAULT_DLN_SRC_PROGRAM_ID).strip(),
        (dst if dst is not None else DEFAULT_DLN_DST_PROGRAM_ID).strip(),
    )


def get_database_url() -> str:
    """Return DATABASE_URL, or the local SQLite default."""
    load_indexer_env()
    return (os.getenv("DATABASE_URL") or "").strip() or DEFAULT_DATABASE_URL


def get_token_api_url() -> str:
    load_indexer_env()
    return (os.getenv("TOKEN_API_URL") or "").strip() or DEFAULT_TOKEN_API_URL


def get_int(name: str, default: int) -> int:
    """Read an integer env var; blank -> default. Raises ValueError on garbage."""
    load_indexer_env()
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def mask_rpc_url(url: str) -> str:
    """Hide API keys embedded in RPC URLs before logging."""
    if "api-key=" in url:
        return url.split("api-key=")[0] + "api-key=***"
    return url

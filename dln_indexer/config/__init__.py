"""
Configuration management for the DLN indexer.

Loads settings from environment variables and an optional .env file.
"""

from dln_indexer.config.settings import IndexerSettings, get_settings  # noqa: F401

__all__ = ["IndexerSettings", "get_settings"]

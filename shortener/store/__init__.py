"""Storage layer for URL shortener."""

import logging
from typing import Optional

from .base import DurableBackendBase
from .hybrid import HybridStore
from .memory import FastTier, MemoryBackend
from .models import UrlRecord

__all__ = [
    "DurableBackendBase",
    "FastTier",
    "HybridStore",
    "MemoryBackend",
    "UrlRecord",
    "get_durable_backend",
]


def get_durable_backend(config, logger: Optional[logging.Logger] = None) -> Optional[DurableBackendBase]:
    """Build the durable backend named by `config.storage_backend`.

    Returns None for "none" (memory-only operation).
    """
    backend = (config.storage_backend or "none").lower()

    if backend == "none":
        return None
    if backend == "memory":
        return MemoryBackend(logger=logger)
    if backend == "redis":
        from .redis_backend import RedisBackend
        return RedisBackend(
            redis_url=config.redis_url,
            key_prefix=config.storage_key_prefix,
            timeout_seconds=config.storage_timeout_seconds,
            logger=logger,
        )
    if backend == "postgres":
        from .postgres import PostgresBackend
        return PostgresBackend(
            db_config=config.postgres_url,
            connection_timeout_seconds=config.storage_timeout_seconds,
            create_tables=config.postgres_create_tables,
            logger=logger,
        )
    raise ValueError(f"Unsupported storage backend: {config.storage_backend}")

#!/usr/bin/env python3
"""
Core Module for the Pledge Ledger

Shared infrastructure used by the ledger services.

COMPONENTS:
    - config/: Environment-driven settings (infra, ledger, logging)
    - errors.py: Error taxonomy mapped to HTTP statuses
    - postgres_client.py: QueryExecutor, TransactionRunner and the asyncpg pool
    - cache.py: Process-local TTL cache with tag invalidation
    - migrations.py: Schema bootstrap and forward migrations
    - logger.py: Service logger setup

USAGE:
    from core.postgres_client import get_postgres_client
    from core.cache import CacheRegistry

    client = await get_postgres_client()
    caches = CacheRegistry()
"""

__version__ = "1.0.0"

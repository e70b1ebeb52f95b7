#!/usr/bin/env python3
"""Ledger core settings

Retry/backoff policy for the query executor, cache lifetimes and
slug allocation behaviour.
"""
import os
from dataclasses import dataclass

def _bool(val: str) -> bool:
    return val.lower() == "true"

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default


@dataclass
class LedgerConfig:
    """Data consistency core settings"""

    # ===========================================
    # Query executor retry policy
    # ===========================================
    query_max_attempts: int = 3
    query_backoff_base: float = 0.1   # seconds
    query_backoff_cap: float = 2.0    # seconds
    retry_all_errors: bool = False

    # ===========================================
    # Cache
    # ===========================================
    cache_default_ttl: float = 300.0  # 5 minutes

    # ===========================================
    # Slug allocation
    # ===========================================
    slug_race_retries: int = 1

    # ===========================================
    # Schema
    # ===========================================
    auto_migrate: bool = True

    # ===========================================
    # HTTP adapter
    # ===========================================
    service_port: int = 8250

    @classmethod
    def from_env(cls) -> 'LedgerConfig':
        """Load ledger settings from environment variables"""
        return cls(
            query_max_attempts=_int(os.getenv("QUERY_MAX_ATTEMPTS", "3"), 3),
            query_backoff_base=_float(os.getenv("QUERY_BACKOFF_BASE", "0.1"), 0.1),
            query_backoff_cap=_float(os.getenv("QUERY_BACKOFF_CAP", "2.0"), 2.0),
            retry_all_errors=_bool(os.getenv("QUERY_RETRY_ALL_ERRORS", "false")),
            cache_default_ttl=_float(os.getenv("CACHE_DEFAULT_TTL", "300"), 300.0),
            slug_race_retries=_int(os.getenv("SLUG_RACE_RETRIES", "1"), 1),
            auto_migrate=_bool(os.getenv("LEDGER_AUTO_MIGRATE", "true")),
            service_port=_int(os.getenv("LEDGER_SERVICE_PORT", "8250"), 8250),
        )

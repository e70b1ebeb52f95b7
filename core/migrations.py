"""
Schema bootstrap and migrations

Creates the campaigns/donations/users tables when missing, then brings
older schemas forward: columns added after the first release and the
unique index on donations.transaction_signature. Every step checks
information_schema first, so running it repeatedly is harmless.
"""

import logging
from typing import List, Set, Tuple

from core.postgres_client import QueryExecutor

logger = logging.getLogger(__name__)


CREATE_TABLES: List[str] = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        wallet_address TEXT NOT NULL UNIQUE,
        name TEXT,
        verified BOOLEAN NOT NULL DEFAULT FALSE,
        profile_completed BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS campaigns (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        summary TEXT,
        description TEXT NOT NULL,
        goal_amount NUMERIC NOT NULL,
        slug TEXT NOT NULL UNIQUE,
        end_date TEXT NOT NULL,
        category TEXT NOT NULL,
        image_url TEXT,
        wallet_address TEXT NOT NULL,
        creator_id TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL,
        has_matching BOOLEAN NOT NULL DEFAULT FALSE,
        matching_amount NUMERIC NOT NULL DEFAULT 0,
        matching_sponsor TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS donations (
        id TEXT PRIMARY KEY,
        campaign_id TEXT NOT NULL REFERENCES campaigns(id),
        donor_id TEXT,
        amount NUMERIC NOT NULL CHECK (amount > 0),
        transaction_signature TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL
    )
    """,
]

CREATE_INDEXES: List[str] = [
    "CREATE INDEX IF NOT EXISTS idx_campaigns_wallet_address ON campaigns (wallet_address)",
    "CREATE INDEX IF NOT EXISTS idx_campaigns_category ON campaigns (category)",
    "CREATE INDEX IF NOT EXISTS idx_donations_campaign_id ON donations (campaign_id)",
    "CREATE INDEX IF NOT EXISTS idx_donations_donor_id ON donations (donor_id)",
]

# (table, column, definition) added after the first schema revision
ADDED_COLUMNS: List[Tuple[str, str, str]] = [
    ("users", "name", "TEXT"),
    ("users", "profile_completed", "BOOLEAN NOT NULL DEFAULT FALSE"),
    ("users", "verified", "BOOLEAN NOT NULL DEFAULT FALSE"),
    ("campaigns", "summary", "TEXT"),
    ("campaigns", "has_matching", "BOOLEAN NOT NULL DEFAULT FALSE"),
    ("campaigns", "matching_amount", "NUMERIC NOT NULL DEFAULT 0"),
    ("campaigns", "matching_sponsor", "TEXT"),
]

SIGNATURE_INDEX = "donations_transaction_signature_key"


async def _existing_columns(executor: QueryExecutor, table: str) -> Set[str]:
    rows = await executor.fetch(
        """
        SELECT column_name FROM information_schema.columns
        WHERE table_schema = current_schema() AND table_name = $1
        """,
        [table],
    )
    return {row["column_name"] for row in rows}


async def _index_exists(executor: QueryExecutor, index_name: str) -> bool:
    found = await executor.fetch_value(
        "SELECT 1 FROM pg_indexes WHERE schemaname = current_schema() AND indexname = $1",
        [index_name],
    )
    return found is not None


async def initialize_database(executor: QueryExecutor) -> None:
    """Create tables and indexes if they do not exist, then migrate"""
    logger.info("Initializing database schema...")
    for statement in CREATE_TABLES:
        await executor.execute(statement)
    for statement in CREATE_INDEXES:
        await executor.execute(statement)
    await run_migrations(executor)
    logger.info("Database schema ready")


async def run_migrations(executor: QueryExecutor) -> List[str]:
    """Apply pending migrations; returns a description of each change made"""
    applied: List[str] = []

    columns_by_table = {}
    for table, column, definition in ADDED_COLUMNS:
        if table not in columns_by_table:
            columns_by_table[table] = await _existing_columns(executor, table)
        if column in columns_by_table[table]:
            continue
        logger.info(f"Adding {column} column to {table} table")
        await executor.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")
        columns_by_table[table].add(column)
        applied.append(f"{table}.{column}")

    # Historical schemas had no uniqueness on the idempotency key
    if not await _index_exists(executor, SIGNATURE_INDEX):
        logger.info("Adding unique index on donations.transaction_signature")
        await executor.execute(
            f"CREATE UNIQUE INDEX IF NOT EXISTS {SIGNATURE_INDEX} "
            "ON donations (transaction_signature)"
        )
        applied.append(SIGNATURE_INDEX)

    if applied:
        logger.info(f"Applied {len(applied)} migration(s): {', '.join(applied)}")
    return applied


__all__ = ["initialize_database", "run_migrations", "SIGNATURE_INDEX"]

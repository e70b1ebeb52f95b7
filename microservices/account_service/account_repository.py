"""
Account Repository - Async Version

Data access layer for wallet owners.
Uses the ledger QueryExecutor for non-blocking database access.

find_or_create leans on the unique constraint on users.wallet_address:
a concurrent insert of the same wallet turns into a no-op update inside
the same statement, so both callers receive the same id.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from core.postgres_client import QueryExecutor

from .models import User

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


class AccountRepository:
    """
    Account-specific repository layer

    Database operations for the users table.
    """

    def __init__(
        self,
        executor: QueryExecutor,
        id_generator: Optional[Callable[[], str]] = None,
    ):
        self.db = executor
        self.id_generator = id_generator or _new_id
        self.users_table = "users"

    def with_executor(self, executor: QueryExecutor) -> "AccountRepository":
        """Repository bound to a transaction-scoped executor"""
        return AccountRepository(executor, self.id_generator)

    def _row_to_user(self, row: Dict[str, Any]) -> User:
        """Convert database row to User model"""
        return User(
            id=row["id"],
            wallet_address=row["wallet_address"],
            name=row.get("name"),
            verified=bool(row.get("verified", False)),
            profile_completed=bool(row.get("profile_completed", False)),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    async def find_or_create(self, wallet_address: str) -> str:
        """Return the user id for ``wallet_address``, inserting the user if new"""
        now = datetime.now(tz=timezone.utc)
        user_id = await self.db.fetch_value(
            f"""INSERT INTO {self.users_table} (id, wallet_address, created_at, updated_at)
                VALUES ($1, $2, $3, $3)
                ON CONFLICT (wallet_address)
                DO UPDATE SET wallet_address = EXCLUDED.wallet_address
                RETURNING id""",
            [self.id_generator(), wallet_address, now],
        )
        logger.debug(f"Resolved user {user_id} for wallet {wallet_address}")
        return user_id

    async def get_by_wallet(self, wallet_address: str) -> Optional[User]:
        """Get user by wallet address"""
        row = await self.db.fetch_row(
            f"SELECT * FROM {self.users_table} WHERE wallet_address = $1",
            [wallet_address],
        )
        return self._row_to_user(row) if row else None

    async def update_profile(self, wallet_address: str, name: str) -> Optional[User]:
        """Set the display name and mark the profile complete"""
        row = await self.db.fetch_row(
            f"""UPDATE {self.users_table}
                SET name = $1, profile_completed = TRUE, updated_at = $2
                WHERE wallet_address = $3
                RETURNING *""",
            [name, datetime.now(tz=timezone.utc), wallet_address],
        )
        return self._row_to_user(row) if row else None


__all__ = ["AccountRepository"]

"""
Campaign Repository

Data access layer for campaigns. Aggregates (total raised, donation
count) are computed from donation rows at read time, never stored.
"""

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Set

from core.postgres_client import QueryExecutor

from .models import Campaign, CampaignCreator, CampaignQuery, CampaignSort

logger = logging.getLogger(__name__)

CAMPAIGN_FIELDS = [
    "id", "title", "summary", "description", "goal_amount",
    "slug", "end_date", "category", "image_url", "wallet_address",
    "creator_id", "created_at", "updated_at", "has_matching",
    "matching_amount", "matching_sponsor",
]

# Columns a partial update may touch
UPDATABLE_FIELDS = frozenset({
    "title", "summary", "description", "goal_amount", "slug", "end_date",
    "category", "image_url", "has_matching", "matching_amount", "matching_sponsor",
})

SORT_CLAUSES = {
    CampaignSort.NEWEST: "c.created_at DESC",
    CampaignSort.ENDING_SOON: "c.end_date ASC",
    CampaignSort.MOST_FUNDED: "total_raised DESC, c.created_at DESC",
    CampaignSort.MOST_BACKERS: "donation_count DESC, c.created_at DESC",
}


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches literally"""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def funding_percentage(total_raised: Any, goal_amount: Any) -> int:
    """min(round(total / goal * 100), 100); 0 without a positive goal"""
    total = Decimal(str(total_raised or 0))
    goal = Decimal(str(goal_amount or 0))
    if goal <= 0 or total <= 0:
        return 0
    return min(int((total / goal * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)), 100)


class CampaignRepository:
    """Campaign repository - data access layer"""

    def __init__(self, executor: QueryExecutor):
        self.db = executor
        self.table = "campaigns"

    def with_executor(self, executor: QueryExecutor) -> "CampaignRepository":
        """Repository bound to a transaction-scoped executor"""
        return CampaignRepository(executor)

    def _select(self) -> str:
        columns = ", ".join(f"c.{name}" for name in CAMPAIGN_FIELDS)
        return f"""
            SELECT {columns},
                   u.name AS creator_name,
                   u.wallet_address AS creator_wallet_address,
                   u.verified AS creator_verified,
                   COALESCE(agg.donation_count, 0) AS donation_count,
                   COALESCE(agg.total_raised, 0) AS total_raised
            FROM {self.table} c
            LEFT JOIN users u ON c.creator_id = u.id
            LEFT JOIN (
                SELECT campaign_id, COUNT(*) AS donation_count, SUM(amount) AS total_raised
                FROM donations
                GROUP BY campaign_id
            ) agg ON agg.campaign_id = c.id
        """

    def _row_to_campaign(self, row: Dict[str, Any]) -> Campaign:
        creator = None
        if row.get("creator_wallet_address"):
            creator = CampaignCreator(
                id=row["creator_id"],
                name=row.get("creator_name"),
                wallet_address=row.get("creator_wallet_address"),
                verified=bool(row.get("creator_verified")),
            )
        total_raised = Decimal(str(row.get("total_raised") or 0))
        return Campaign(
            **{name: row.get(name) for name in CAMPAIGN_FIELDS if row.get(name) is not None},
            total_raised=total_raised,
            donation_count=int(row.get("donation_count") or 0),
            funding_percentage=funding_percentage(total_raised, row.get("goal_amount")),
            creator=creator,
        )

    # ====================
    # Writes
    # ====================

    async def insert_campaign(self, values: Dict[str, Any]) -> None:
        """Insert a campaign row; the unique slug constraint is the authority"""
        columns = [name for name in CAMPAIGN_FIELDS if name in values]
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        await self.db.execute(
            f"INSERT INTO {self.table} ({', '.join(columns)}) VALUES ({placeholders})",
            [values[name] for name in columns],
        )

    async def update_campaign(
        self, campaign_id: str, changes: Dict[str, Any], updated_at: datetime
    ) -> Optional[Campaign]:
        """Apply only the supplied columns; updated_at always moves"""
        set_parts = []
        params: List[Any] = []
        for name, value in changes.items():
            if name not in UPDATABLE_FIELDS:
                continue
            params.append(value)
            set_parts.append(f"{name} = ${len(params)}")

        params.append(updated_at)
        set_parts.append(f"updated_at = ${len(params)}")
        params.append(campaign_id)

        status = await self.db.execute(
            f"UPDATE {self.table} SET {', '.join(set_parts)} WHERE id = ${len(params)}",
            params,
        )
        if status == "UPDATE 0":
            return None
        return await self.get_campaign(campaign_id)

    async def delete_donations(self, campaign_id: str) -> int:
        status = await self.db.execute("DELETE FROM donations WHERE campaign_id = $1", [campaign_id])
        return _affected(status)

    async def delete_campaign(self, campaign_id: str) -> bool:
        status = await self.db.execute(f"DELETE FROM {self.table} WHERE id = $1", [campaign_id])
        return _affected(status) > 0

    # ====================
    # Reads
    # ====================

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        row = await self.db.fetch_row(f"{self._select()} WHERE c.id = $1", [campaign_id])
        return self._row_to_campaign(row) if row else None

    async def get_campaign_by_slug(self, slug: str) -> Optional[Campaign]:
        row = await self.db.fetch_row(f"{self._select()} WHERE c.slug = $1", [slug])
        return self._row_to_campaign(row) if row else None

    async def is_owned_by(self, campaign_id: str, wallet_address: str) -> bool:
        found = await self.db.fetch_value(
            f"SELECT 1 FROM {self.table} WHERE id = $1 AND wallet_address = $2 FOR UPDATE",
            [campaign_id, wallet_address],
        )
        return found is not None

    async def slugs_with_base(self, base: str, exclude_id: Optional[str] = None) -> Set[str]:
        params: List[Any] = [base, f"{escape_like(base)}-%"]
        sql = f"SELECT slug FROM {self.table} WHERE (slug = $1 OR slug LIKE $2)"
        if exclude_id:
            params.append(exclude_id)
            sql += " AND id <> $3"
        rows = await self.db.fetch(sql, params)
        return {row["slug"] for row in rows}

    async def slug_exists(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        if exclude_id:
            found = await self.db.fetch_value(
                f"SELECT 1 FROM {self.table} WHERE slug = $1 AND id <> $2", [slug, exclude_id]
            )
        else:
            found = await self.db.fetch_value(f"SELECT 1 FROM {self.table} WHERE slug = $1", [slug])
        return found is not None

    async def list_campaigns(self, query: CampaignQuery) -> List[Campaign]:
        conditions = []
        params: List[Any] = []

        if query.category:
            params.append(query.category)
            conditions.append(f"c.category = ${len(params)}")

        if query.wallet_address:
            params.append(query.wallet_address)
            conditions.append(f"c.wallet_address = ${len(params)}")

        if query.search:
            params.append(f"%{escape_like(query.search)}%")
            n = len(params)
            conditions.append(f"(c.title ILIKE ${n} OR c.description ILIKE ${n} OR c.summary ILIKE ${n})")

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        params.extend([query.limit, query.effective_offset])

        sql = f"""
            {self._select()}
            {where_clause}
            ORDER BY {SORT_CLAUSES[query.sort]}
            LIMIT ${len(params) - 1} OFFSET ${len(params)}
        """
        rows = await self.db.fetch(sql, params)
        return [self._row_to_campaign(row) for row in rows]


def _affected(status: Optional[str]) -> int:
    """Row count from an asyncpg command status such as 'DELETE 3'"""
    try:
        return int((status or "").rsplit(" ", 1)[-1])
    except ValueError:
        return 0


__all__ = ["CampaignRepository", "escape_like", "funding_percentage", "UPDATABLE_FIELDS"]

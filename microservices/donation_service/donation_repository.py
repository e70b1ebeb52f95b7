"""
Donation Repository

Data access layer for donations. The unique index on
donations.transaction_signature makes inserts idempotent.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from core.postgres_client import QueryExecutor

from .models import CampaignDonation, DonatedCampaign, Donation, WalletDonation

logger = logging.getLogger(__name__)

DONATION_FIELDS = ["id", "campaign_id", "donor_id", "amount", "transaction_signature", "created_at"]


class DonationRepository:
    """Donation repository - data access layer"""

    def __init__(self, executor: QueryExecutor):
        self.db = executor
        self.table = "donations"

    def with_executor(self, executor: QueryExecutor) -> "DonationRepository":
        """Repository bound to a transaction-scoped executor"""
        return DonationRepository(executor)

    @staticmethod
    def _row_to_donation(row: Dict[str, Any]) -> Donation:
        return Donation(**{name: row.get(name) for name in DONATION_FIELDS})

    async def campaign_exists(self, campaign_id: str) -> bool:
        found = await self.db.fetch_value("SELECT 1 FROM campaigns WHERE id = $1 LIMIT 1", [campaign_id])
        return found is not None

    async def get_by_signature(self, transaction_signature: str) -> Optional[Donation]:
        row = await self.db.fetch_row(
            f"SELECT {', '.join(DONATION_FIELDS)} FROM {self.table} WHERE transaction_signature = $1",
            [transaction_signature],
        )
        return self._row_to_donation(row) if row else None

    async def insert_donation(self, donation: Donation) -> bool:
        """Insert the donation; False when the signature is already recorded"""
        inserted_id = await self.db.fetch_value(
            f"""INSERT INTO {self.table} ({', '.join(DONATION_FIELDS)})
                VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (transaction_signature) DO NOTHING
                RETURNING id""",
            [
                donation.id,
                donation.campaign_id,
                donation.donor_id,
                donation.amount,
                donation.transaction_signature,
                donation.created_at,
            ],
        )
        return inserted_id is not None

    async def list_by_wallet(self, wallet_address: str) -> List[WalletDonation]:
        rows = await self.db.fetch(
            f"""
            SELECT d.id, d.amount, d.transaction_signature, d.created_at,
                   c.id AS campaign_id, c.title, c.slug, c.image_url, c.end_date, c.goal_amount,
                   (SELECT COALESCE(SUM(amount), 0) FROM {self.table} WHERE campaign_id = c.id) AS total_raised
            FROM {self.table} d
            JOIN campaigns c ON d.campaign_id = c.id
            JOIN users u ON d.donor_id = u.id
            WHERE u.wallet_address = $1
            ORDER BY d.created_at DESC
            """,
            [wallet_address],
        )
        return [
            WalletDonation(
                id=row["id"],
                amount=row["amount"],
                transaction_signature=row["transaction_signature"],
                created_at=row.get("created_at"),
                campaign=DonatedCampaign(
                    id=row["campaign_id"],
                    title=row["title"],
                    slug=row["slug"],
                    image_url=row.get("image_url"),
                    end_date=row.get("end_date"),
                    goal_amount=row["goal_amount"],
                    total_raised=Decimal(str(row.get("total_raised") or 0)),
                ),
            )
            for row in rows
        ]

    async def list_for_campaign(
        self, campaign_id: str, limit: int, offset: int
    ) -> Tuple[List[CampaignDonation], int]:
        columns = ", ".join(f"d.{name}" for name in DONATION_FIELDS)
        rows = await self.db.fetch(
            f"""
            SELECT {columns}, u.name AS donor_name, u.wallet_address AS donor_wallet_address
            FROM {self.table} d
            LEFT JOIN users u ON d.donor_id = u.id
            WHERE d.campaign_id = $1
            ORDER BY d.created_at DESC
            LIMIT $2 OFFSET $3
            """,
            [campaign_id, limit, offset],
        )
        total = await self.db.fetch_value(
            f"SELECT COUNT(*) FROM {self.table} WHERE campaign_id = $1", [campaign_id]
        )
        return [CampaignDonation(**row) for row in rows], int(total or 0)

    async def aggregate(self, campaign_id: str) -> Dict[str, Any]:
        row = await self.db.fetch_row(
            f"""
            SELECT COUNT(d.id) AS donation_count,
                   COALESCE(SUM(d.amount), 0) AS total_raised,
                   MAX(d.amount) AS largest_donation,
                   MIN(d.amount) AS smallest_donation,
                   AVG(d.amount) AS average_donation,
                   COUNT(DISTINCT d.donor_id) AS unique_donors,
                   MIN(d.created_at) AS first_donation_at,
                   MAX(d.created_at) AS last_donation_at,
                   (SELECT goal_amount FROM campaigns WHERE id = $1) AS goal_amount,
                   EXISTS (SELECT 1 FROM campaigns WHERE id = $1) AS campaign_exists
            FROM {self.table} d
            WHERE d.campaign_id = $1
            """,
            [campaign_id],
        )
        return row or {}


__all__ = ["DonationRepository"]

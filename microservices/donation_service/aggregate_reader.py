"""
Aggregate Reader

Per-campaign donation statistics, read through the ``donations`` cache.
The writer's own caller always gets a cache-bypassing read right after
a donation commits.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict

from core.cache import CacheKeys, CacheRegistry, CacheTags

from microservices.campaign_service.campaign_repository import funding_percentage
from microservices.campaign_service.protocols import CampaignNotFoundError

from .models import DonationSummary
from .protocols import DonationRepositoryProtocol

logger = logging.getLogger(__name__)

_AVERAGE_PRECISION = Decimal("0.000001")


def _decimal(value: Any) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


def build_summary(campaign_id: str, row: Dict[str, Any]) -> DonationSummary:
    """DonationSummary from the aggregate row"""
    total_raised = _decimal(row.get("total_raised"))
    goal_amount = _decimal(row.get("goal_amount"))
    return DonationSummary(
        campaign_id=campaign_id,
        donation_count=int(row.get("donation_count") or 0),
        total_raised=total_raised,
        largest_donation=_decimal(row.get("largest_donation")),
        smallest_donation=_decimal(row.get("smallest_donation")),
        average_donation=_decimal(row.get("average_donation")).quantize(_AVERAGE_PRECISION, rounding=ROUND_HALF_UP),
        unique_donors=int(row.get("unique_donors") or 0),
        goal_amount=goal_amount,
        funding_percentage=funding_percentage(total_raised, goal_amount),
        first_donation_at=row.get("first_donation_at"),
        last_donation_at=row.get("last_donation_at"),
    )


class AggregateReader:
    """Cached donation summaries"""

    def __init__(self, repository: DonationRepositoryProtocol, caches: CacheRegistry):
        self.repository = repository
        self.caches = caches

    async def summary(self, campaign_id: str, bypass_cache: bool = False) -> DonationSummary:
        """
        Donation statistics for a campaign.

        With ``bypass_cache`` the database is always read and the fresh
        value overwrites whatever was cached.

        Raises:
            CampaignNotFoundError: campaign does not exist
        """
        key = CacheKeys.donation_summary(campaign_id)

        if not bypass_cache:
            try:
                cached = self.caches.donations.get(key)
            except Exception as e:
                logger.warning(f"Summary cache read failed for {campaign_id}, recomputing: {e}")
                self.caches.donations.delete(key)
                cached = None
            if isinstance(cached, DonationSummary):
                return cached

        row = await self.repository.aggregate(campaign_id)
        if not row.get("campaign_exists"):
            raise CampaignNotFoundError(campaign_id=campaign_id)

        summary = build_summary(campaign_id, row)
        self.caches.donations.set(key, summary, tags=[CacheTags.campaign(campaign_id)])
        return summary


__all__ = ["AggregateReader", "build_summary"]

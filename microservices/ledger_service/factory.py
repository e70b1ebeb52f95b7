"""
Ledger Service Factory

Wires the production object graph: one asyncpg pool, one cache registry,
the repositories and the campaign/donation/account services on top.
This is the ONLY place that imports I/O-dependent modules.
"""

import logging
from typing import Optional

from core.cache import CacheRegistry
from core.config import Settings, get_settings
from core.migrations import initialize_database
from core.postgres_client import PostgresClient

from microservices.account_service.account_repository import AccountRepository
from microservices.account_service.account_service import AccountService
from microservices.campaign_service.campaign_repository import CampaignRepository
from microservices.campaign_service.campaign_service import CampaignService
from microservices.campaign_service.sanitizer import AllowListSanitizer
from microservices.campaign_service.slug_allocator import SlugAllocator
from microservices.donation_service.aggregate_reader import AggregateReader
from microservices.donation_service.donation_repository import DonationRepository
from microservices.donation_service.donation_service import DonationService

logger = logging.getLogger(__name__)


class LedgerServiceFactory:
    """Factory for creating ledger service components"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._postgres: Optional[PostgresClient] = None
        self._caches: Optional[CacheRegistry] = None
        self._campaign_service: Optional[CampaignService] = None
        self._donation_service: Optional[DonationService] = None
        self._account_service: Optional[AccountService] = None
        self._aggregate_reader: Optional[AggregateReader] = None

    async def initialize(self) -> None:
        """Initialize all components"""
        logger.info("Initializing Ledger Service components...")

        self._postgres = PostgresClient(self.settings.infra, self.settings.ledger)
        await self._postgres.connect()
        executor = self._postgres.executor
        transactions = self._postgres.transactions

        if self.settings.ledger.auto_migrate:
            await initialize_database(executor)

        self._caches = CacheRegistry(default_ttl=self.settings.ledger.cache_default_ttl)

        account_repository = AccountRepository(executor)
        campaign_repository = CampaignRepository(executor)
        donation_repository = DonationRepository(executor)

        self._account_service = AccountService(
            repository=account_repository,
            transactions=transactions,
            caches=self._caches,
        )
        self._campaign_service = CampaignService(
            repository=campaign_repository,
            account_repository=account_repository,
            transactions=transactions,
            caches=self._caches,
            slug_allocator=SlugAllocator(campaign_repository),
            sanitizer=AllowListSanitizer(),
            slug_race_retries=self.settings.ledger.slug_race_retries,
        )
        self._aggregate_reader = AggregateReader(donation_repository, self._caches)
        self._donation_service = DonationService(
            repository=donation_repository,
            account_repository=account_repository,
            transactions=transactions,
            caches=self._caches,
            aggregate_reader=self._aggregate_reader,
        )

        logger.info("Ledger Service components initialized")

    async def close(self) -> None:
        """Close all components"""
        logger.info("Closing Ledger Service components...")
        if self._caches:
            self._caches.clear()
        if self._postgres:
            await self._postgres.close()
        logger.info("Ledger Service components closed")

    async def health_check(self) -> bool:
        if not self._postgres:
            return False
        return await self._postgres.health_check()

    @property
    def caches(self) -> CacheRegistry:
        if not self._caches:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._caches

    @property
    def campaign_service(self) -> CampaignService:
        if not self._campaign_service:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._campaign_service

    @property
    def donation_service(self) -> DonationService:
        if not self._donation_service:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._donation_service

    @property
    def account_service(self) -> AccountService:
        if not self._account_service:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._account_service

    @property
    def aggregate_reader(self) -> AggregateReader:
        if not self._aggregate_reader:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._aggregate_reader


# Global factory instance
_factory: Optional[LedgerServiceFactory] = None


async def get_factory() -> LedgerServiceFactory:
    """Get or create factory instance"""
    global _factory
    if _factory is None:
        _factory = LedgerServiceFactory()
        await _factory.initialize()
    return _factory


async def close_factory() -> None:
    """Close factory instance"""
    global _factory
    if _factory:
        await _factory.close()
        _factory = None


__all__ = [
    "LedgerServiceFactory",
    "get_factory",
    "close_factory",
]

"""
Donation Service Business Logic

Records donations exactly once per transaction signature and serves
cached donation histories.

Idempotency: a signature that is already recorded is a replay. A replay
returns the original receipt (``replayed=True``) whether it is detected
before the transaction or by the unique index during the insert.
"""

import logging
import math
import re
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, List, Optional

from core.cache import CacheKeys, CacheRegistry, CacheTags
from core.errors import ConflictError, DuplicateSignatureError, ForeignKeyViolation, UniqueViolation
from core.postgres_client import QueryExecutor, TransactionRunner

from microservices.account_service.account_service import normalize_wallet_address
from microservices.account_service.protocols import AccountRepositoryProtocol
from microservices.campaign_service.protocols import CampaignNotFoundError, IdGeneratorProtocol

from .aggregate_reader import AggregateReader
from .models import (
    SIGNATURE_PATTERN,
    CampaignDonationsPage,
    Donation,
    DonationReceipt,
    Pagination,
    WalletDonation,
)
from .protocols import DonationRepositoryProtocol, DonationValidationError

logger = logging.getLogger(__name__)

_SIGNATURE = re.compile(SIGNATURE_PATTERN)


def _uuid() -> str:
    return str(uuid.uuid4())


class DonationService:
    """Donation service business logic layer"""

    def __init__(
        self,
        repository: DonationRepositoryProtocol,
        account_repository: AccountRepositoryProtocol,
        transactions: TransactionRunner,
        caches: CacheRegistry,
        aggregate_reader: Optional[AggregateReader] = None,
        id_generator: Optional[IdGeneratorProtocol] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.repository = repository
        self.account_repository = account_repository
        self.transactions = transactions
        self.caches = caches
        self.aggregate_reader = aggregate_reader or AggregateReader(repository, caches)
        self.id_generator = id_generator or _uuid
        self._clock = clock

    # ====================
    # Record
    # ====================

    async def record(
        self,
        campaign_id: str,
        wallet_address: str,
        amount: Any,
        transaction_signature: str,
        donation_id: Optional[str] = None,
    ) -> DonationReceipt:
        """
        Record a confirmed on-chain donation.

        The donor is found or created and the donation inserted in one
        transaction, so a donor row never outlives a failed insert. A
        signature that is already recorded returns the stored receipt with
        ``replayed=True``, whatever campaign or amount the retry carries.

        Raises:
            DonationValidationError: non-positive amount or malformed signature
            CampaignNotFoundError: campaign does not exist
        """
        amount = self._validate_amount(amount)
        signature = (transaction_signature or "").strip()
        if not _SIGNATURE.match(signature):
            raise DonationValidationError("Invalid transaction signature", field="transaction_signature")
        wallet = normalize_wallet_address(wallet_address)

        existing = await self.repository.get_by_signature(signature)
        if existing is not None:
            return await self._replay(existing, campaign_id, amount)

        if not await self.repository.campaign_exists(campaign_id):
            raise CampaignNotFoundError(campaign_id=campaign_id)

        async def work(tx: QueryExecutor) -> Donation:
            donations = self.repository.with_executor(tx)
            accounts = self.account_repository.with_executor(tx)

            donor_id = await accounts.find_or_create(wallet)
            donation = Donation(
                id=donation_id or self.id_generator(),
                campaign_id=campaign_id,
                donor_id=donor_id,
                amount=amount,
                transaction_signature=signature,
                created_at=self._clock(),
            )
            if not await donations.insert_donation(donation):
                # Roll back the donor resolution along with the insert
                raise DuplicateSignatureError(signature)
            return donation

        try:
            donation = await self.transactions.run_in_transaction(work)
        except DuplicateSignatureError:
            return await self._replay_after_conflict(signature, campaign_id, amount)
        except UniqueViolation as e:
            if e.involves("transaction_signature"):
                return await self._replay_after_conflict(signature, campaign_id, amount)
            raise ConflictError("A donation with this id already exists") from e
        except ForeignKeyViolation as e:
            raise CampaignNotFoundError(campaign_id=campaign_id) from e

        self.caches.donations.delete(CacheKeys.donation_summary(campaign_id))
        self.caches.invalidate(
            CacheTags.wallet(wallet),
            CacheTags.campaign(campaign_id),
            CacheTags.CAMPAIGN_LIST,
        )
        logger.info(f"Donation recorded: {donation.id} {amount} to campaign {campaign_id}")

        summary = await self.aggregate_reader.summary(campaign_id, bypass_cache=True)
        return DonationReceipt(
            donation_id=donation.id,
            campaign_id=campaign_id,
            donor_id=donation.donor_id,
            amount=donation.amount,
            transaction_signature=signature,
            created_at=donation.created_at,
            replayed=False,
            campaign_stats=summary,
        )

    @staticmethod
    def _validate_amount(amount: Any) -> Decimal:
        try:
            value = Decimal(str(amount))
        except (InvalidOperation, ValueError):
            raise DonationValidationError("Amount must be a number", field="amount")
        if not value.is_finite() or value <= 0:
            raise DonationValidationError("Amount must be positive", field="amount")
        return value

    async def _replay_after_conflict(self, signature: str, campaign_id: str, amount: Decimal) -> DonationReceipt:
        existing = await self.repository.get_by_signature(signature)
        if existing is None:
            raise DuplicateSignatureError(signature)
        return await self._replay(existing, campaign_id, amount)

    async def _replay(self, existing: Donation, campaign_id: str, amount: Decimal) -> DonationReceipt:
        """Receipt for an already recorded signature"""
        if existing.campaign_id != campaign_id or Decimal(existing.amount) != amount:
            logger.warning(
                f"Signature {existing.transaction_signature} already recorded for "
                f"campaign {existing.campaign_id} amount {existing.amount}; replaying the stored receipt"
            )

        logger.info(f"Donation replay for signature {existing.transaction_signature}, returning {existing.id}")
        summary = await self.aggregate_reader.summary(existing.campaign_id, bypass_cache=True)
        return DonationReceipt(
            donation_id=existing.id,
            campaign_id=existing.campaign_id,
            donor_id=existing.donor_id,
            amount=existing.amount,
            transaction_signature=existing.transaction_signature,
            created_at=existing.created_at,
            replayed=True,
            campaign_stats=summary,
        )

    # ====================
    # Reads
    # ====================

    async def list_by_wallet(self, wallet_address: str) -> List[WalletDonation]:
        """A wallet's donation history, newest first; unknown wallet gives []"""
        wallet = normalize_wallet_address(wallet_address)
        key = CacheKeys.wallet_donations(wallet)

        cached = self.caches.donations.get(key)
        if cached is not None:
            return cached

        donations = await self.repository.list_by_wallet(wallet)
        tags = [CacheTags.wallet(wallet)]
        tags.extend(CacheTags.campaign(d.campaign.id) for d in donations)
        self.caches.donations.set(key, donations, tags=tags)
        return donations

    async def list_for_campaign(self, campaign_id: str, page: int = 1, limit: int = 20) -> CampaignDonationsPage:
        """One page of a campaign's donations, newest first"""
        if page < 1 or limit < 1:
            raise DonationValidationError("page and limit must be positive")
        key = CacheKeys.campaign_donations(campaign_id, page, limit)

        cached = self.caches.donations.get(key)
        if cached is not None:
            return cached

        if not await self.repository.campaign_exists(campaign_id):
            raise CampaignNotFoundError(campaign_id=campaign_id)

        donations, total = await self.repository.list_for_campaign(campaign_id, limit, (page - 1) * limit)
        result = CampaignDonationsPage(
            donations=donations,
            pagination=Pagination(total=total, page=page, limit=limit, pages=math.ceil(total / limit)),
        )
        self.caches.donations.set(key, result, tags=[CacheTags.campaign(campaign_id)])
        return result


__all__ = ["DonationService"]

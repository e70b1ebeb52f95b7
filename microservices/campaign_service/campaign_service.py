"""
Campaign Service Business Logic

Create, update and delete campaigns transactionally, and serve cached
campaign reads. Every write invalidates the cache tags of the rows it
touched once the transaction has committed; an update that cannot move
the campaign between listings patches the cached listings in place.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from core.cache import CacheKeys, CacheRegistry, CacheTags, get_or_fetch
from core.errors import DuplicateSlugError, UniqueViolation
from core.postgres_client import QueryExecutor, TransactionRunner

from microservices.account_service.account_service import normalize_wallet_address
from microservices.account_service.protocols import AccountRepositoryProtocol

from .campaign_repository import funding_percentage
from .models import (
    Campaign,
    CampaignCreated,
    CampaignCreateRequest,
    CampaignListResponse,
    CampaignQuery,
    CampaignUpdateRequest,
)
from .protocols import (
    CampaignForbiddenError,
    CampaignNotFoundError,
    CampaignRepositoryProtocol,
    CampaignValidationError,
    HtmlSanitizerProtocol,
    IdGeneratorProtocol,
)
from .sanitizer import AllowListSanitizer
from .slug_allocator import SlugAllocator

logger = logging.getLogger(__name__)

SANITIZED_FIELDS = ("description", "summary")

# Changes that can move a campaign between listings or reorder them
LIST_SHAPE_FIELDS = frozenset({"title", "summary", "description", "category", "end_date"})

LISTING_PATCH_FIELDS = (
    "slug", "goal_amount", "image_url", "has_matching",
    "matching_amount", "matching_sponsor", "updated_at",
)


def _uuid() -> str:
    return str(uuid.uuid4())


class CampaignService:
    """Campaign service business logic layer"""

    def __init__(
        self,
        repository: CampaignRepositoryProtocol,
        account_repository: AccountRepositoryProtocol,
        transactions: TransactionRunner,
        caches: CacheRegistry,
        slug_allocator: Optional[SlugAllocator] = None,
        sanitizer: Optional[HtmlSanitizerProtocol] = None,
        id_generator: Optional[IdGeneratorProtocol] = None,
        slug_race_retries: int = 1,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.repository = repository
        self.account_repository = account_repository
        self.transactions = transactions
        self.caches = caches
        self.slug_allocator = slug_allocator or SlugAllocator(repository)
        self.sanitizer = sanitizer or AllowListSanitizer()
        self.id_generator = id_generator or _uuid
        self.slug_race_retries = slug_race_retries
        self._clock = clock

    # ====================
    # Writes
    # ====================

    async def create(self, request: CampaignCreateRequest, owner_wallet_address: str) -> CampaignCreated:
        """
        Create a campaign owned by ``owner_wallet_address``.

        Inside one transaction: find-or-create the owner, pick the slug
        (explicit or allocated from the title), insert the row.

        Raises:
            DuplicateSlugError: explicit slug taken, or the allocated slug
                lost a race more than ``slug_race_retries`` times
        """
        wallet = normalize_wallet_address(owner_wallet_address)
        description = self.sanitizer.sanitize(request.description)
        summary = self.sanitizer.sanitize(request.summary) if request.summary else None
        if not description.strip():
            raise CampaignValidationError("Description is empty after sanitizing", field="description")

        def make_work(random_suffix: bool, attempted: Dict[str, str]):
            async def work(tx: QueryExecutor) -> CampaignCreated:
                campaigns = self.repository.with_executor(tx)
                accounts = self.account_repository.with_executor(tx)

                creator_id = await accounts.find_or_create(wallet)

                if request.slug:
                    if await campaigns.slug_exists(request.slug):
                        raise DuplicateSlugError(request.slug)
                    slug = request.slug
                else:
                    slug = await self.slug_allocator.allocate(
                        request.title, executor=tx, random_suffix=random_suffix
                    )
                attempted["slug"] = slug

                now = self._clock()
                campaign_id = self.id_generator()
                await campaigns.insert_campaign({
                    "id": campaign_id,
                    "title": request.title,
                    "summary": summary,
                    "description": description,
                    "goal_amount": request.goal_amount,
                    "slug": slug,
                    "end_date": request.end_date,
                    "category": request.category.value,
                    "image_url": request.image_url,
                    "wallet_address": wallet,
                    "creator_id": creator_id,
                    "created_at": now,
                    "updated_at": now,
                    "has_matching": request.has_matching,
                    "matching_amount": request.matching_amount,
                    "matching_sponsor": request.matching_sponsor,
                })
                return CampaignCreated(campaign_id=campaign_id, slug=slug)

            return work

        created = await self._run_with_slug_retry(make_work, explicit_slug=bool(request.slug))

        self.caches.invalidate(CacheTags.wallet(wallet), CacheTags.CAMPAIGN_LIST)
        logger.info(f"Campaign created: {created.campaign_id} ({created.slug}) by {wallet}")
        return created

    async def update(
        self,
        campaign_id: str,
        patch: CampaignUpdateRequest,
        keep_existing_slug: bool = False,
    ) -> Campaign:
        """
        Apply the fields present in ``patch``; ``updated_at`` always moves.

        A changed title reallocates the slug unless ``keep_existing_slug``
        is set or the patch names a slug explicitly.
        Cached listings are patched when the change cannot affect filtering
        or ordering, and dropped otherwise.

        Raises:
            CampaignNotFoundError: campaign does not exist
            DuplicateSlugError: the new slug lost a concurrent race more than
                ``slug_race_retries`` times
        """
        changes = patch.changes()
        for name in SANITIZED_FIELDS:
            if changes.get(name):
                changes[name] = self.sanitizer.sanitize(changes[name])
        if "description" in changes and not (changes["description"] or "").strip():
            raise CampaignValidationError("Description is empty after sanitizing", field="description")
        explicit_slug = changes.get("slug")
        owner: Dict[str, str] = {}

        def make_work(random_suffix: bool, attempted: Dict[str, str]):
            async def work(tx: QueryExecutor) -> Campaign:
                campaigns = self.repository.with_executor(tx)
                existing = await campaigns.get_campaign(campaign_id)
                if existing is None:
                    raise CampaignNotFoundError(campaign_id=campaign_id)
                owner["wallet"] = existing.wallet_address

                row_changes = dict(changes)
                if explicit_slug:
                    if await campaigns.slug_exists(explicit_slug, exclude_id=campaign_id):
                        # Taken by another campaign: fall back to one derived from the title
                        row_changes["slug"] = await self.slug_allocator.allocate(
                            row_changes.get("title", existing.title),
                            exclude_id=campaign_id,
                            executor=tx,
                            random_suffix=random_suffix,
                        )
                elif (
                    "title" in row_changes
                    and row_changes["title"] != existing.title
                    and not keep_existing_slug
                ):
                    row_changes["slug"] = await self.slug_allocator.allocate(
                        row_changes["title"],
                        exclude_id=campaign_id,
                        executor=tx,
                        random_suffix=random_suffix,
                    )
                if "slug" in row_changes:
                    attempted["slug"] = row_changes["slug"]

                updated = await campaigns.update_campaign(campaign_id, row_changes, self._clock())
                if updated is None:
                    raise CampaignNotFoundError(campaign_id=campaign_id)
                return updated

            return work

        updated = await self._run_with_slug_retry(make_work, explicit_slug=False)

        if LIST_SHAPE_FIELDS.intersection(changes):
            self.caches.invalidate(
                CacheTags.campaign(campaign_id),
                CacheTags.wallet(owner["wallet"]),
                CacheTags.CAMPAIGN_LIST,
            )
        else:
            self.caches.invalidate(CacheTags.campaign(campaign_id))
            self._patch_cached_listings(updated)
        logger.info(f"Campaign updated: {campaign_id} fields={sorted(changes)}")
        return updated

    def _patch_cached_listings(self, updated: Campaign) -> None:
        """Rewrite one campaign inside every cached listing; list aggregates are kept"""
        fields = {name: getattr(updated, name) for name in LISTING_PATCH_FIELDS}

        def patch(item: Campaign) -> Campaign:
            return item.model_copy(update={
                **fields,
                "funding_percentage": funding_percentage(item.total_raised, updated.goal_amount),
            })

        cache = self.caches.campaigns
        for key in cache.keys_for_tag(CacheTags.CAMPAIGN_LIST):
            cache.update_collection_item(key, updated.id, patch)

    async def delete(self, campaign_id: str, owner_wallet_address: str) -> None:
        """
        Delete a campaign and its donations, children first.

        Raises:
            CampaignForbiddenError: campaign absent or owned by another
                wallet; nothing is deleted
        """
        wallet = normalize_wallet_address(owner_wallet_address)

        async def work(tx: QueryExecutor) -> int:
            campaigns = self.repository.with_executor(tx)
            if not await campaigns.is_owned_by(campaign_id, wallet):
                raise CampaignForbiddenError()
            removed = await campaigns.delete_donations(campaign_id)
            await campaigns.delete_campaign(campaign_id)
            return removed

        removed = await self.transactions.run_in_transaction(work)

        self.caches.invalidate(
            CacheTags.campaign(campaign_id),
            CacheTags.wallet(wallet),
            CacheTags.CAMPAIGN_LIST,
        )
        logger.info(f"Campaign deleted: {campaign_id} with {removed} donation(s)")

    async def _run_with_slug_retry(
        self,
        make_work: Callable[[bool, Dict[str, str]], Callable[[QueryExecutor], Awaitable[Any]]],
        explicit_slug: bool,
    ) -> Any:
        """Run the write; an allocated slug that loses a race is retried with a random suffix"""
        attempt = 0
        while True:
            attempted: Dict[str, str] = {}
            try:
                return await self.transactions.run_in_transaction(make_work(attempt > 0, attempted))
            except UniqueViolation as e:
                if not e.involves("slug"):
                    raise
                slug = attempted.get("slug")
                if explicit_slug or attempt >= self.slug_race_retries:
                    raise DuplicateSlugError(slug) from e
                attempt += 1
                logger.warning(f"Slug {slug} taken concurrently, retrying with a random suffix")

    # ====================
    # Reads
    # ====================

    async def get_campaign(self, campaign_id: str) -> Campaign:
        key = CacheKeys.campaign(campaign_id)
        cached = self.caches.campaigns.get(key)
        if cached is not None:
            return cached

        campaign = await self.repository.get_campaign(campaign_id)
        if campaign is None:
            raise CampaignNotFoundError(campaign_id=campaign_id)
        self.caches.campaigns.set(key, campaign, tags=self._campaign_tags(campaign))
        return campaign

    async def get_campaign_by_slug(self, slug: str) -> Campaign:
        key = CacheKeys.campaign_by_slug(slug)
        cached = self.caches.campaigns.get(key)
        if cached is not None:
            return cached

        campaign = await self.repository.get_campaign_by_slug(slug)
        if campaign is None:
            raise CampaignNotFoundError()
        self.caches.campaigns.set(key, campaign, tags=self._campaign_tags(campaign))
        return campaign

    async def list_campaigns(self, query: Optional[CampaignQuery] = None) -> CampaignListResponse:
        query = query or CampaignQuery()
        key = CacheKeys.campaign_list(query.cache_filters())
        tags = [CacheTags.CAMPAIGN_LIST]
        if query.wallet_address:
            tags.append(CacheTags.wallet(query.wallet_address))

        campaigns = await get_or_fetch(
            self.caches.campaigns,
            key,
            lambda: self.repository.list_campaigns(query),
            tags=tags,
        )
        return CampaignListResponse(campaigns=campaigns, page=query.page, limit=query.limit)

    @staticmethod
    def _campaign_tags(campaign: Campaign):
        return [CacheTags.campaign(campaign.id), CacheTags.wallet(campaign.wallet_address)]


__all__ = ["CampaignService"]

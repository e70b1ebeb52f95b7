"""
Component Tests for DonationService

Idempotent recording keyed by transaction signature, donor resolution
inside the transaction, aggregate freshness and cached histories.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from core.cache import CacheKeys
from core.errors import ConflictError, StorageError, UniqueViolation
from microservices.campaign_service.protocols import CampaignNotFoundError
from microservices.donation_service.protocols import DonationValidationError

from tests.fixtures import make_signature, make_wallet_address

pytestmark = pytest.mark.component


@pytest.fixture
def campaign_id(ledger_store):
    return ledger_store.add_campaign(make_wallet_address(), "help-my-dog", goal_amount=Decimal("100"))


class TestRecordDonation:

    @pytest.mark.asyncio
    async def test_records_and_returns_fresh_stats(self, donation_service, ledger_store, campaign_id, wallet, signature):
        receipt = await donation_service.record(campaign_id, wallet, Decimal("25"), signature)

        assert receipt.replayed is False
        assert receipt.amount == Decimal("25")
        assert receipt.donor_id == ledger_store.users[wallet]["id"]
        assert receipt.campaign_stats.donation_count == 1
        assert receipt.campaign_stats.total_raised == Decimal("25")
        assert receipt.campaign_stats.funding_percentage == 25
        assert receipt.donation_id in ledger_store.donations

    @pytest.mark.asyncio
    async def test_same_signature_twice_is_replayed(self, donation_service, ledger_store, campaign_id, wallet, signature):
        first = await donation_service.record(campaign_id, wallet, Decimal("25"), signature)
        second = await donation_service.record(campaign_id, wallet, Decimal("25"), signature)

        assert second.replayed is True
        assert second.donation_id == first.donation_id
        assert second.campaign_stats.donation_count == 1
        assert len(ledger_store.donations) == 1

    @pytest.mark.asyncio
    async def test_concurrent_duplicates_record_once(self, donation_service, ledger_store, campaign_id, wallet, signature):
        receipts = await asyncio.gather(*[
            donation_service.record(campaign_id, wallet, Decimal("25"), signature) for _ in range(3)
        ])

        assert len(ledger_store.donations) == 1
        assert len({r.donation_id for r in receipts}) == 1
        assert sorted(r.replayed for r in receipts) == [False, True, True]
        assert len(ledger_store.users) == 2

    @pytest.mark.asyncio
    async def test_conflict_at_insert_replays(
        self, donation_service, donation_repository, ledger_store, campaign_id, wallet, signature
    ):
        # Given: the signature commits between our pre-check and our insert
        original = ledger_store.add_donation(campaign_id, make_wallet_address(), "25", signature)
        donation_repository.stale_signature_reads = 1

        receipt = await donation_service.record(campaign_id, wallet, Decimal("25"), signature)

        assert receipt.replayed is True
        assert receipt.donation_id == original
        assert len(ledger_store.donations) == 1
        # The donor resolved inside the rolled-back transaction is gone
        assert wallet not in ledger_store.users

    @pytest.mark.asyncio
    async def test_unique_violation_on_signature_replays(
        self, donation_service, donation_repository, ledger_store, campaign_id, wallet, signature
    ):
        original = ledger_store.add_donation(campaign_id, make_wallet_address(), "25", signature)
        donation_repository.stale_signature_reads = 1
        donation_repository.raise_on_conflict = True

        receipt = await donation_service.record(campaign_id, wallet, Decimal("25"), signature)

        assert receipt.replayed is True
        assert receipt.donation_id == original

    @pytest.mark.asyncio
    async def test_signature_reused_for_other_campaign_replays_original(
        self, donation_service, ledger_store, campaign_id, wallet, signature
    ):
        other = ledger_store.add_campaign(make_wallet_address(), "another-one")
        first = await donation_service.record(campaign_id, wallet, Decimal("25"), signature)

        receipt = await donation_service.record(other, wallet, Decimal("25"), signature)

        assert receipt.replayed is True
        assert receipt.donation_id == first.donation_id
        assert receipt.campaign_id == campaign_id
        assert ledger_store.donations_for(other) == []

    @pytest.mark.asyncio
    async def test_signature_reused_with_other_amount_replays_original(
        self, donation_service, ledger_store, campaign_id, wallet, signature
    ):
        await donation_service.record(campaign_id, wallet, Decimal("25"), signature)

        receipt = await donation_service.record(campaign_id, wallet, Decimal("30"), signature)

        assert receipt.replayed is True
        assert receipt.amount == Decimal("25")
        assert receipt.campaign_stats.total_raised == Decimal("25")
        assert len(ledger_store.donations) == 1

    @pytest.mark.asyncio
    async def test_equal_amount_in_other_notation_replays(self, donation_service, campaign_id, wallet, signature):
        await donation_service.record(campaign_id, wallet, Decimal("25"), signature)
        receipt = await donation_service.record(campaign_id, wallet, "25.00", signature)
        assert receipt.replayed is True

    @pytest.mark.asyncio
    async def test_duplicate_donation_id(self, donation_service, donation_repository, campaign_id, wallet):
        donation_repository.fail_on["insert_donation"] = UniqueViolation("donations_pkey")

        with pytest.raises(ConflictError, match="id already exists"):
            await donation_service.record(campaign_id, wallet, Decimal("1"), make_signature(), donation_id="d-1")

    @pytest.mark.asyncio
    async def test_caller_supplied_id_is_kept(self, donation_service, campaign_id, wallet, signature):
        receipt = await donation_service.record(campaign_id, wallet, Decimal("1"), signature, donation_id="d-42")
        assert receipt.donation_id == "d-42"

    @pytest.mark.asyncio
    async def test_unknown_campaign(self, donation_service, ledger_store, wallet, signature):
        with pytest.raises(CampaignNotFoundError):
            await donation_service.record("missing", wallet, Decimal("1"), signature)

        assert ledger_store.donations == {}
        assert ledger_store.users == {}

    @pytest.mark.asyncio
    async def test_campaign_deleted_before_insert(
        self, donation_service, donation_repository, ledger_store, campaign_id, wallet, signature
    ):
        # campaign_exists passes, then the campaign is gone at insert time
        async def vanish(_):
            return True

        donation_repository.campaign_exists = vanish
        del ledger_store.campaigns[campaign_id]

        with pytest.raises(CampaignNotFoundError):
            await donation_service.record(campaign_id, wallet, Decimal("1"), signature)
        assert wallet not in ledger_store.users

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), "abc", "NaN", "Infinity"])
    @pytest.mark.asyncio
    async def test_rejects_bad_amount(self, donation_service, campaign_id, wallet, signature, amount):
        with pytest.raises(DonationValidationError) as exc_info:
            await donation_service.record(campaign_id, wallet, amount, signature)
        assert exc_info.value.field == "amount"

    @pytest.mark.parametrize("bad_signature", ["", "short", "0" * 88, "has space " + "a" * 40])
    @pytest.mark.asyncio
    async def test_rejects_bad_signature(self, donation_service, campaign_id, wallet, bad_signature):
        with pytest.raises(DonationValidationError) as exc_info:
            await donation_service.record(campaign_id, wallet, Decimal("1"), bad_signature)
        assert exc_info.value.field == "transaction_signature"

    @pytest.mark.asyncio
    async def test_storage_failure_leaves_nothing_behind(
        self, donation_service, donation_repository, ledger_store, campaign_id, wallet, signature
    ):
        donation_repository.fail_on["insert_donation"] = StorageError(attempts=3)

        with pytest.raises(StorageError) as exc_info:
            await donation_service.record(campaign_id, wallet, Decimal("1"), signature)

        assert exc_info.value.attempts == 3
        assert ledger_store.donations == {}
        assert wallet not in ledger_store.users


class TestAggregateFreshness:

    @pytest.mark.asyncio
    async def test_summary_cache_invalidated_by_record(
        self, donation_service, aggregate_reader, campaign_id, wallet
    ):
        before = await aggregate_reader.summary(campaign_id)
        assert before.donation_count == 0

        await donation_service.record(campaign_id, wallet, Decimal("10"), make_signature())

        after = await aggregate_reader.summary(campaign_id)
        assert after.donation_count == 1
        assert after.total_raised == Decimal("10")

    @pytest.mark.asyncio
    async def test_campaign_read_reflects_new_donation(
        self, donation_service, campaign_service, campaign_id, wallet
    ):
        assert (await campaign_service.get_campaign(campaign_id)).total_raised == Decimal("0")

        await donation_service.record(campaign_id, wallet, Decimal("10"), make_signature())

        campaign = await campaign_service.get_campaign(campaign_id)
        assert campaign.total_raised == Decimal("10")
        assert campaign.donation_count == 1

    @pytest.mark.asyncio
    async def test_listing_reflects_new_donation(self, donation_service, campaign_service, campaign_id, wallet):
        await campaign_service.list_campaigns()

        await donation_service.record(campaign_id, wallet, Decimal("10"), make_signature())

        listing = await campaign_service.list_campaigns()
        assert listing.campaigns[0].total_raised == Decimal("10")


class TestDonationHistories:

    @pytest.mark.asyncio
    async def test_wallet_history_newest_first(self, donation_service, ledger_store, campaign_id, wallet):
        now = datetime.now(timezone.utc)
        older = ledger_store.add_donation(campaign_id, wallet, "1", make_signature(), created_at=now - timedelta(days=1))
        newer = ledger_store.add_donation(campaign_id, wallet, "2", make_signature(), created_at=now)

        history = await donation_service.list_by_wallet(wallet)

        assert [d.id for d in history] == [newer, older]
        assert history[0].campaign.slug == "help-my-dog"
        assert history[0].campaign.total_raised == Decimal("3")

    @pytest.mark.asyncio
    async def test_unknown_wallet_has_empty_history(self, donation_service):
        assert await donation_service.list_by_wallet(make_wallet_address()) == []

    @pytest.mark.asyncio
    async def test_wallet_history_refreshed_after_record(self, donation_service, campaign_id, wallet):
        assert await donation_service.list_by_wallet(wallet) == []

        await donation_service.record(campaign_id, wallet, Decimal("5"), make_signature())

        assert len(await donation_service.list_by_wallet(wallet)) == 1

    @pytest.mark.asyncio
    async def test_wallet_history_dropped_when_campaign_deleted(
        self, donation_service, campaign_service, ledger_store, caches, wallet
    ):
        owner = make_wallet_address()
        campaign_id = ledger_store.add_campaign(owner, "short-lived")
        await donation_service.record(campaign_id, wallet, Decimal("5"), make_signature())
        assert len(await donation_service.list_by_wallet(wallet)) == 1

        await campaign_service.delete(campaign_id, owner)

        assert caches.donations.get(CacheKeys.wallet_donations(wallet)) is None
        assert await donation_service.list_by_wallet(wallet) == []

    @pytest.mark.asyncio
    async def test_campaign_donations_paginated(self, donation_service, ledger_store, campaign_id):
        now = datetime.now(timezone.utc)
        ids = [
            ledger_store.add_donation(
                campaign_id, make_wallet_address(), str(i + 1), make_signature(), created_at=now + timedelta(seconds=i)
            )
            for i in range(5)
        ]

        page = await donation_service.list_for_campaign(campaign_id, page=2, limit=2)

        assert [d.id for d in page.donations] == [ids[2], ids[1]]
        assert page.pagination.total == 5
        assert page.pagination.pages == 3
        assert page.donations[0].donor_wallet_address is not None

    @pytest.mark.asyncio
    async def test_campaign_donations_unknown_campaign(self, donation_service):
        with pytest.raises(CampaignNotFoundError):
            await donation_service.list_for_campaign("missing")

    @pytest.mark.asyncio
    async def test_campaign_donations_bad_page(self, donation_service, campaign_id):
        with pytest.raises(DonationValidationError):
            await donation_service.list_for_campaign(campaign_id, page=0)

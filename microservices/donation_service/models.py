"""
Donation Service Models

Donation rows, receipts, aggregate summaries and the record request.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Base58 transaction signature (no 0, O, I, l)
SIGNATURE_PATTERN = r"^[1-9A-HJ-NP-Za-km-z]{32,128}$"


class Donation(BaseModel):
    """One pledge against a campaign"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    campaign_id: str
    donor_id: Optional[str] = None
    amount: Decimal
    transaction_signature: str
    created_at: Optional[datetime] = None


class CampaignDonation(Donation):
    """Donation listed under its campaign, with donor details"""
    donor_name: Optional[str] = None
    donor_wallet_address: Optional[str] = None


class DonatedCampaign(BaseModel):
    """Campaign summary attached to a wallet's donation history"""
    id: str
    title: str
    slug: str
    image_url: Optional[str] = None
    end_date: Optional[str] = None
    goal_amount: Decimal
    total_raised: Decimal = Decimal("0")


class WalletDonation(BaseModel):
    """Entry in a wallet's donation history"""
    id: str
    amount: Decimal
    transaction_signature: str
    created_at: Optional[datetime] = None
    campaign: DonatedCampaign


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class CampaignDonationsPage(BaseModel):
    """One page of a campaign's donations, newest first"""
    donations: List[CampaignDonation]
    pagination: Pagination


class DonationSummary(BaseModel):
    """Aggregates over a campaign's donations"""
    campaign_id: str
    donation_count: int = 0
    total_raised: Decimal = Decimal("0")
    largest_donation: Decimal = Decimal("0")
    smallest_donation: Decimal = Decimal("0")
    average_donation: Decimal = Decimal("0")
    unique_donors: int = 0
    goal_amount: Decimal = Decimal("0")
    funding_percentage: int = 0
    first_donation_at: Optional[datetime] = None
    last_donation_at: Optional[datetime] = None


class DonationReceipt(BaseModel):
    """Result of recording a donation

    ``replayed`` is true when the signature had already been recorded and
    the original donation is being returned.
    """
    donation_id: str
    campaign_id: str
    donor_id: Optional[str] = None
    amount: Decimal
    transaction_signature: str
    created_at: Optional[datetime] = None
    replayed: bool = False
    campaign_stats: DonationSummary


class DonationCreateRequest(BaseModel):
    """Record donation request"""
    id: Optional[str] = Field(None, min_length=1, max_length=64)
    campaign_id: str = Field(..., min_length=1)
    wallet_address: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    transaction_signature: str = Field(..., pattern=SIGNATURE_PATTERN)


__all__ = [
    "SIGNATURE_PATTERN",
    "Donation",
    "CampaignDonation",
    "DonatedCampaign",
    "WalletDonation",
    "Pagination",
    "CampaignDonationsPage",
    "DonationSummary",
    "DonationReceipt",
    "DonationCreateRequest",
]

"""
Ledger Service HTTP Models

Request payloads and response envelopes of the HTTP adapter. Domain
models live with their services.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from microservices.campaign_service.models import (
    Campaign,
    CampaignCreateRequest,
    CampaignUpdateRequest,
)
from microservices.donation_service.models import (
    CampaignDonation,
    DonationReceipt,
    DonationSummary,
    Pagination,
    WalletDonation,
)
from microservices.account_service.models import User


class CampaignCreatePayload(CampaignCreateRequest):
    """Create request plus the owner wallet"""
    wallet_address: str = Field(..., min_length=1)


class CampaignUpdatePayload(CampaignUpdateRequest):
    """Partial update plus slug handling"""
    keep_existing_slug: bool = False

    def patch(self) -> CampaignUpdateRequest:
        data = self.model_dump(exclude_unset=True, exclude={"keep_existing_slug"})
        return CampaignUpdateRequest(**data)


class SuccessResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None


class CampaignCreatedResponse(SuccessResponse):
    id: str
    slug: str


class CampaignResponse(SuccessResponse):
    campaign: Campaign


class CampaignListEnvelope(SuccessResponse):
    campaigns: List[Campaign]
    page: int
    limit: int


class DonationRecordedResponse(SuccessResponse):
    donation_id: str
    replayed: bool
    receipt: DonationReceipt
    campaign_stats: DonationSummary


class WalletDonationsResponse(SuccessResponse):
    donations: List[WalletDonation]


class CampaignDonationsResponse(SuccessResponse):
    donations: List[CampaignDonation]
    pagination: Pagination


class DonationSummaryResponse(SuccessResponse):
    summary: DonationSummary
    recent_donations: List[CampaignDonation] = Field(default_factory=list)


class UserResponse(SuccessResponse):
    user: Optional[User] = None


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    errors: Dict[str, List[str]] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    dependencies: Dict[str, str] = Field(default_factory=dict)

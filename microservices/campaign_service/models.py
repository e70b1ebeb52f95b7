"""
Campaign Service Data Models

Campaign rows, derived aggregates and the request models that carry
shape/range validation before the service runs.
"""

import re
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"
MAX_END_DATE_DAYS = 60

_IMAGE_URL = re.compile(r"\.(jpg|jpeg|png|gif|webp)($|\?)")
_YOUTUBE_URL = re.compile(r"^https?://(www\.)?(youtube\.com/(watch\?v=|embed/|shorts/)|youtu\.be/)[\w-]+")


# ====================
# Enums
# ====================


class CampaignCategory(str, Enum):
    """Campaign category tags"""
    MEDICAL = "medical"
    EMERGENCY = "emergency"
    EDUCATION = "education"
    COMMUNITY = "community"
    BUSINESS = "business"
    CREATIVE = "creative"
    OTHER = "other"


class CampaignSort(str, Enum):
    """Listing sort orders"""
    NEWEST = "newest"
    ENDING_SOON = "ending_soon"
    MOST_FUNDED = "most_funded"
    MOST_BACKERS = "most_backers"


# Accepted spellings from older clients
_SORT_ALIASES = {
    "endingSoon": CampaignSort.ENDING_SOON,
    "mostFunded": CampaignSort.MOST_FUNDED,
    "mostBackers": CampaignSort.MOST_BACKERS,
}


# ====================
# Core Models
# ====================


class CampaignCreator(BaseModel):
    """Owner summary attached to campaign reads"""
    id: str
    name: Optional[str] = None
    wallet_address: Optional[str] = None
    verified: bool = False
    short_address: Optional[str] = None

    @model_validator(mode="after")
    def fill_short_address(self):
        if self.short_address is None and self.wallet_address:
            self.short_address = f"{self.wallet_address[:4]}...{self.wallet_address[-4:]}"
        return self


class Campaign(BaseModel):
    """A fundraising effort, with aggregates derived at read time"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    summary: Optional[str] = None
    description: str
    goal_amount: Decimal
    slug: str
    end_date: str
    category: str
    image_url: Optional[str] = None
    wallet_address: str
    creator_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    has_matching: bool = False
    matching_amount: Decimal = Decimal("0")
    matching_sponsor: Optional[str] = None

    # Derived, never stored
    total_raised: Decimal = Decimal("0")
    donation_count: int = 0
    funding_percentage: int = 0
    creator: Optional[CampaignCreator] = None


class CampaignCreated(BaseModel):
    """Result of a successful create"""
    campaign_id: str
    slug: str


# ====================
# Request Models
# ====================


def _check_end_date(value: str) -> str:
    try:
        parsed = date.fromisoformat(value[:10])
    except ValueError:
        raise ValueError("End date must be an ISO date (YYYY-MM-DD)")
    if parsed > date.today() + timedelta(days=MAX_END_DATE_DAYS):
        raise ValueError(f"End date cannot be more than {MAX_END_DATE_DAYS} days from today")
    return value


def _check_media_url(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    if not re.match(r"^https?://", value):
        raise ValueError("Please enter a valid image URL or YouTube video URL.")
    if not (_IMAGE_URL.search(value.lower()) or _YOUTUBE_URL.match(value)):
        raise ValueError("Please enter a valid image URL or YouTube video URL.")
    return value


class CampaignCreateRequest(BaseModel):
    """Create campaign request"""
    title: str = Field(..., min_length=5, max_length=100)
    summary: Optional[str] = Field(None, min_length=10, max_length=200)
    description: str = Field(..., min_length=20, max_length=5000)
    goal_amount: Decimal = Field(..., gt=0)
    slug: Optional[str] = Field(None, min_length=3, max_length=50, pattern=SLUG_PATTERN)
    end_date: str
    category: CampaignCategory
    image_url: Optional[str] = None
    has_matching: bool = False
    matching_amount: Decimal = Field(Decimal("0"), ge=0)
    matching_sponsor: Optional[str] = Field(None, max_length=100)

    @field_validator("end_date")
    @classmethod
    def validate_end_date(cls, v):
        return _check_end_date(v)

    @field_validator("image_url")
    @classmethod
    def validate_image_url(cls, v):
        return _check_media_url(v)


class CampaignUpdateRequest(BaseModel):
    """Partial campaign update; only fields that are set are applied"""
    title: Optional[str] = Field(None, min_length=5, max_length=100)
    summary: Optional[str] = Field(None, min_length=10, max_length=200)
    description: Optional[str] = Field(None, min_length=20, max_length=5000)
    goal_amount: Optional[Decimal] = Field(None, gt=0)
    slug: Optional[str] = Field(None, min_length=3, max_length=50, pattern=SLUG_PATTERN)
    end_date: Optional[str] = None
    category: Optional[CampaignCategory] = None
    image_url: Optional[str] = None
    has_matching: Optional[bool] = None
    matching_amount: Optional[Decimal] = Field(None, ge=0)
    matching_sponsor: Optional[str] = Field(None, max_length=100)

    # NOT NULL columns: may be omitted but never cleared
    @field_validator(
        "title", "description", "goal_amount", "slug", "end_date",
        "category", "has_matching", "matching_amount",
    )
    @classmethod
    def reject_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("end_date")
    @classmethod
    def validate_end_date(cls, v):
        return _check_end_date(v) if v is not None else v

    @field_validator("image_url")
    @classmethod
    def validate_image_url(cls, v):
        return _check_media_url(v) if v is not None else v

    def changes(self) -> Dict[str, Any]:
        """Fields the caller actually supplied"""
        data = self.model_dump(exclude_unset=True)
        if isinstance(data.get("category"), CampaignCategory):
            data["category"] = data["category"].value
        return data


class CampaignQuery(BaseModel):
    """Listing filters, sort and pagination"""
    category: Optional[str] = None
    wallet_address: Optional[str] = None
    search: Optional[str] = Field(None, max_length=200)
    sort: CampaignSort = CampaignSort.NEWEST
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    offset: Optional[int] = Field(None, ge=0)

    @field_validator("sort", mode="before")
    @classmethod
    def accept_sort_aliases(cls, v):
        return _SORT_ALIASES.get(v, v) if isinstance(v, str) else v

    @model_validator(mode="after")
    def drop_all_category(self):
        if self.category == "all":
            self.category = None
        return self

    @property
    def effective_offset(self) -> int:
        return self.offset if self.offset is not None else (self.page - 1) * self.limit

    def cache_filters(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "wallet_address": self.wallet_address,
            "search": self.search,
            "sort": self.sort.value,
            "offset": self.effective_offset,
            "limit": self.limit,
        }


class CampaignListResponse(BaseModel):
    """Campaign listing"""
    campaigns: List[Campaign]
    page: int
    limit: int


__all__ = [
    "SLUG_PATTERN",
    "CampaignCategory",
    "CampaignSort",
    "CampaignCreator",
    "Campaign",
    "CampaignCreated",
    "CampaignCreateRequest",
    "CampaignUpdateRequest",
    "CampaignQuery",
    "CampaignListResponse",
]

"""
Campaign Service Protocols

Defines interfaces for dependency injection and testing.
Following the protocol-based architecture pattern.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Set, runtime_checkable

from core.errors import ForbiddenError, NotFoundError, ValidationError

from .models import Campaign, CampaignQuery


# ====================
# Repository Protocol
# ====================


@runtime_checkable
class CampaignRepositoryProtocol(Protocol):
    """Protocol for campaign data repository"""

    def with_executor(self, executor: Any) -> "CampaignRepositoryProtocol":
        """Same repository bound to another executor (a transaction)"""
        ...

    async def insert_campaign(self, values: Dict[str, Any]) -> None:
        """Insert a campaign row"""
        ...

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        """Get campaign by ID, with aggregates"""
        ...

    async def get_campaign_by_slug(self, slug: str) -> Optional[Campaign]:
        """Get campaign by slug, with aggregates"""
        ...

    async def is_owned_by(self, campaign_id: str, wallet_address: str) -> bool:
        """True when the campaign exists and belongs to the wallet"""
        ...

    async def slugs_with_base(self, base: str, exclude_id: Optional[str] = None) -> Set[str]:
        """Slugs equal to ``base`` or of the form ``base-<suffix>``"""
        ...

    async def slug_exists(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        """Whether any other campaign uses the slug"""
        ...

    async def update_campaign(
        self, campaign_id: str, changes: Dict[str, Any], updated_at: datetime
    ) -> Optional[Campaign]:
        """Apply column changes and bump updated_at"""
        ...

    async def delete_donations(self, campaign_id: str) -> int:
        """Delete every donation of a campaign; returns the count"""
        ...

    async def delete_campaign(self, campaign_id: str) -> bool:
        """Delete the campaign row"""
        ...

    async def list_campaigns(self, query: CampaignQuery) -> List[Campaign]:
        """List campaigns with filters, sort and pagination"""
        ...


# ====================
# Collaborator Protocols
# ====================


@runtime_checkable
class HtmlSanitizerProtocol(Protocol):
    """Strips disallowed markup from free text"""

    def sanitize(self, html: str) -> str:
        ...


@runtime_checkable
class IdGeneratorProtocol(Protocol):
    """Supplies globally unique opaque identifiers"""

    def __call__(self) -> str:
        ...


# ====================
# Exceptions
# ====================


class CampaignNotFoundError(NotFoundError):
    """Raised when campaign is not found"""

    default_message = "Campaign not found"

    def __init__(self, message: Optional[str] = None, campaign_id: Optional[str] = None):
        super().__init__(message)
        self.campaign_id = campaign_id


class CampaignForbiddenError(ForbiddenError):
    """Raised when the caller does not own the campaign

    The message is the same whether or not the campaign exists.
    """

    default_message = "Campaign not found or you do not have permission to delete it"


class CampaignValidationError(ValidationError):
    """Raised when campaign validation fails"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, field_errors={field: [message]} if field else None)
        self.field = field


__all__ = [
    "CampaignRepositoryProtocol",
    "HtmlSanitizerProtocol",
    "IdGeneratorProtocol",
    "CampaignNotFoundError",
    "CampaignForbiddenError",
    "CampaignValidationError",
]

"""
Donation Service Protocols

Defines interfaces for dependency injection and testing.
"""

from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from core.errors import ValidationError

from .models import CampaignDonation, Donation, WalletDonation


@runtime_checkable
class DonationRepositoryProtocol(Protocol):
    """Protocol for donation data repository"""

    def with_executor(self, executor: Any) -> "DonationRepositoryProtocol":
        """Same repository bound to another executor (a transaction)"""
        ...

    async def campaign_exists(self, campaign_id: str) -> bool:
        ...

    async def get_by_signature(self, transaction_signature: str) -> Optional[Donation]:
        """Donation recorded under the signature, if any"""
        ...

    async def insert_donation(self, donation: Donation) -> bool:
        """Insert unless the signature is already recorded; False on conflict"""
        ...

    async def list_by_wallet(self, wallet_address: str) -> List[WalletDonation]:
        """Donations made by a wallet, newest first"""
        ...

    async def list_for_campaign(
        self, campaign_id: str, limit: int, offset: int
    ) -> Tuple[List[CampaignDonation], int]:
        """One page of a campaign's donations and the total count"""
        ...

    async def aggregate(self, campaign_id: str) -> Dict[str, Any]:
        """COUNT/SUM/MAX/MIN/AVG/distinct donors plus the campaign goal"""
        ...


class DonationValidationError(ValidationError):
    """Raised when a donation fails structural checks"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, field_errors={field: [message]} if field else None)
        self.field = field


__all__ = ["DonationRepositoryProtocol", "DonationValidationError"]

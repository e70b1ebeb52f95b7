"""
Account Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from typing import Any, Optional, Protocol, runtime_checkable

from core.errors import NotFoundError, ValidationError

from .models import User


class AccountNotFoundError(NotFoundError):
    """No user exists for the wallet address"""

    default_message = "User not found"


class AccountValidationError(ValidationError):
    """Wallet address or profile data is malformed"""
    pass


@runtime_checkable
class AccountRepositoryProtocol(Protocol):
    """
    Interface for Account Repository.

    Implementations must provide these methods.
    Used for dependency injection to enable testing.
    """

    def with_executor(self, executor: Any) -> "AccountRepositoryProtocol":
        """Same repository bound to another executor (a transaction)"""
        ...

    async def find_or_create(self, wallet_address: str) -> str:
        """Return the user id for the wallet, inserting the user if new"""
        ...

    async def get_by_wallet(self, wallet_address: str) -> Optional[User]:
        """Get user by wallet address"""
        ...

    async def update_profile(self, wallet_address: str, name: str) -> Optional[User]:
        """Set the display name and mark the profile complete"""
        ...


__all__ = [
    "AccountRepositoryProtocol",
    "AccountNotFoundError",
    "AccountValidationError",
]

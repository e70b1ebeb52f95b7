"""
Account Service Business Logic

Wallet owner lookups and profile updates.
Users are created lazily the first time a wallet is seen.
"""

import logging
from typing import Optional

from core.cache import CacheKeys, CacheRegistry, CacheTags
from core.postgres_client import QueryExecutor, TransactionRunner

from .models import User
from .protocols import AccountNotFoundError, AccountRepositoryProtocol, AccountValidationError

logger = logging.getLogger(__name__)

MAX_WALLET_ADDRESS_LENGTH = 128


def normalize_wallet_address(wallet_address: Optional[str]) -> str:
    """Strip and check a wallet address; raises AccountValidationError"""
    wallet = (wallet_address or "").strip()
    if not wallet:
        raise AccountValidationError(
            "Wallet address is required",
            field_errors={"wallet_address": ["Wallet address is required"]},
        )
    if len(wallet) > MAX_WALLET_ADDRESS_LENGTH or any(ch.isspace() for ch in wallet):
        raise AccountValidationError(
            "Invalid wallet address",
            field_errors={"wallet_address": ["Invalid wallet address"]},
        )
    return wallet


class AccountService:
    """
    Account business logic service

    Delegates data access to the AccountRepository layer and keeps the
    ``users`` cache namespace coherent with writes.
    """

    def __init__(
        self,
        repository: AccountRepositoryProtocol,
        transactions: TransactionRunner,
        caches: CacheRegistry,
    ):
        self.repository = repository
        self.transactions = transactions
        self.caches = caches

    async def get_or_create(self, wallet_address: str) -> User:
        """Return the user for the wallet, creating it on first sight"""
        wallet = normalize_wallet_address(wallet_address)

        async def work(tx: QueryExecutor) -> Optional[User]:
            repo = self.repository.with_executor(tx)
            await repo.find_or_create(wallet)
            return await repo.get_by_wallet(wallet)

        user = await self.transactions.run_in_transaction(work)
        if user is None:
            raise AccountNotFoundError()
        self.caches.users.set(CacheKeys.user(wallet), user, tags=[CacheTags.wallet(wallet)])
        return user

    async def get_by_wallet(self, wallet_address: str) -> Optional[User]:
        """Cached lookup; None for a wallet never seen"""
        wallet = normalize_wallet_address(wallet_address)
        key = CacheKeys.user(wallet)

        cached = self.caches.users.get(key)
        if cached is not None:
            return cached

        user = await self.repository.get_by_wallet(wallet)
        if user is not None:
            self.caches.users.set(key, user, tags=[CacheTags.wallet(wallet)])
        return user

    async def update_profile(self, wallet_address: str, name: str) -> User:
        """
        Set the display name for a wallet and mark the profile complete.

        An unknown wallet is created first, in the same transaction.
        """
        wallet = normalize_wallet_address(wallet_address)
        display_name = (name or "").strip()
        if not display_name:
            raise AccountValidationError(
                "Name is required", field_errors={"name": ["Name is required"]}
            )

        async def work(tx: QueryExecutor) -> Optional[User]:
            repo = self.repository.with_executor(tx)
            await repo.find_or_create(wallet)
            return await repo.update_profile(wallet, display_name)

        user = await self.transactions.run_in_transaction(work)
        self.caches.invalidate(CacheTags.wallet(wallet))
        if user is None:
            raise AccountNotFoundError()

        logger.info(f"Profile updated for wallet {wallet}")
        return user


__all__ = ["AccountService", "normalize_wallet_address"]

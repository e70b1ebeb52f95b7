"""
Component Test Mocks

Shared mock implementations for component testing.
These mocks replace real I/O dependencies (the asyncpg driver and the
ledger repositories).
"""

from .db_mock import MockConnection, MockPool, MockTransaction
from .ledger_mocks import (
    LedgerStore,
    MockAccountRepository,
    MockCampaignRepository,
    MockDonationRepository,
    MockTransactionRunner,
)

__all__ = [
    'MockConnection',
    'MockPool',
    'MockTransaction',
    'LedgerStore',
    'MockAccountRepository',
    'MockCampaignRepository',
    'MockDonationRepository',
    'MockTransactionRunner',
]

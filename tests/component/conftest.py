"""
Component Test Layer Configuration

Structure:
    tests/component/
    ├── infra/      QueryExecutor, TransactionRunner, migrations (fake driver)
    ├── ledger/     Services over in-memory repositories, HTTP routes
    └── mocks/      Mock implementations

Usage:
    pytest tests/component -v
    pytest tests/component/ledger -v
"""
import os
import sys

import pytest

# Set testing environment BEFORE any imports
os.environ["ENV"] = "testing"
os.environ["LEDGER_AUTO_MIGRATE"] = "false"

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from core.cache import CacheRegistry

from microservices.account_service.account_service import AccountService
from microservices.campaign_service.campaign_service import CampaignService
from microservices.donation_service.aggregate_reader import AggregateReader
from microservices.donation_service.donation_service import DonationService

from tests.component.mocks import (
    LedgerStore,
    MockAccountRepository,
    MockCampaignRepository,
    MockConnection,
    MockDonationRepository,
    MockPool,
    MockTransactionRunner,
)


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line(
        "markers", "component: marks tests as component tests"
    )


# =============================================================================
# Driver Mocks
# =============================================================================

@pytest.fixture
def mock_connection() -> MockConnection:
    """Scripted asyncpg connection"""
    return MockConnection()


@pytest.fixture
def mock_pool(mock_connection) -> MockPool:
    """Scripted asyncpg pool handing out ``mock_connection``"""
    return MockPool(mock_connection)


class SleepRecorder:
    """Injected in place of asyncio.sleep; records requested delays"""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


# =============================================================================
# Repository Mocks
# =============================================================================

@pytest.fixture
def ledger_store() -> LedgerStore:
    return LedgerStore()


@pytest.fixture
def account_repository(ledger_store) -> MockAccountRepository:
    return MockAccountRepository(ledger_store)


@pytest.fixture
def campaign_repository(ledger_store) -> MockCampaignRepository:
    return MockCampaignRepository(ledger_store)


@pytest.fixture
def donation_repository(ledger_store) -> MockDonationRepository:
    return MockDonationRepository(ledger_store)


@pytest.fixture
def transactions(ledger_store) -> MockTransactionRunner:
    return MockTransactionRunner(ledger_store)


@pytest.fixture
def caches() -> CacheRegistry:
    return CacheRegistry()


# =============================================================================
# Services
# =============================================================================

@pytest.fixture
def account_service(account_repository, transactions, caches) -> AccountService:
    return AccountService(account_repository, transactions, caches)


@pytest.fixture
def campaign_service(campaign_repository, account_repository, transactions, caches) -> CampaignService:
    return CampaignService(
        repository=campaign_repository,
        account_repository=account_repository,
        transactions=transactions,
        caches=caches,
    )


@pytest.fixture
def aggregate_reader(donation_repository, caches) -> AggregateReader:
    return AggregateReader(donation_repository, caches)


@pytest.fixture
def donation_service(
    donation_repository, account_repository, transactions, caches, aggregate_reader
) -> DonationService:
    return DonationService(
        repository=donation_repository,
        account_repository=account_repository,
        transactions=transactions,
        caches=caches,
        aggregate_reader=aggregate_reader,
    )

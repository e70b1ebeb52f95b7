"""
Root conftest.py - Global fixtures and configuration for all test layers.

Test Layers:
    - component/  : Component tests (in-memory repositories, fake driver)
    - unit/       : Unit tests (pure functions, no I/O)
"""
import os
import sys

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

# Import shared fixtures from tests/fixtures
from tests.fixtures import (
    make_wallet_address,
    make_signature,
    make_campaign_request,
)


# =============================================================================
# Test Configuration
# =============================================================================


def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "component: marks tests as component tests")


# =============================================================================
# Shared Fixtures
# =============================================================================


@pytest.fixture
def wallet() -> str:
    """A fresh wallet address"""
    return make_wallet_address()


@pytest.fixture
def other_wallet() -> str:
    """A second, distinct wallet address"""
    return make_wallet_address()


@pytest.fixture
def signature() -> str:
    """A fresh base58 transaction signature"""
    return make_signature()


@pytest.fixture
def campaign_request():
    """A valid campaign create request titled 'Help My Dog'"""
    return make_campaign_request()

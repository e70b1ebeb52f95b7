"""
Shared Test Fixtures

Centralized factories and generators used across all test layers.

Structure:
    - common.py: Identifier and value generators
    - ledger_fixtures.py: Campaign/donation request factories
"""

from .common import (
    BASE58_ALPHABET,
    make_wallet_address,
    make_signature,
    make_campaign_id,
    make_end_date,
    make_timestamp,
)

from .ledger_fixtures import (
    make_campaign_request,
    make_campaign_payload,
    make_update_request,
)

__all__ = [
    "BASE58_ALPHABET",
    "make_wallet_address",
    "make_signature",
    "make_campaign_id",
    "make_end_date",
    "make_timestamp",
    "make_campaign_request",
    "make_campaign_payload",
    "make_update_request",
]

"""
Common/Shared Fixtures

Base identifier and value generators used across the test layers.
"""
import random
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Optional

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def make_wallet_address() -> str:
    """Generate a unique Solana-style wallet address"""
    return "".join(random.choices(BASE58_ALPHABET, k=44))


def make_signature(prefix: str = "") -> str:
    """Generate a unique base58 transaction signature (88 chars)"""
    body = "".join(random.choices(BASE58_ALPHABET, k=88 - len(prefix)))
    return f"{prefix}{body}"


def make_campaign_id() -> str:
    """Generate a unique campaign ID"""
    return str(uuid.uuid4())


def make_end_date(days_ahead: int = 30) -> str:
    """ISO end date within the allowed window"""
    return (date.today() + timedelta(days=days_ahead)).isoformat()


def make_timestamp(offset_seconds: Optional[int] = None) -> datetime:
    """Current UTC timestamp, optionally shifted"""
    now = datetime.now(timezone.utc)
    return now + timedelta(seconds=offset_seconds) if offset_seconds else now

"""
Account Service Models

Wallet owner model and the profile update request.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class User(BaseModel):
    """A wallet owner"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    wallet_address: str
    name: Optional[str] = None
    verified: bool = False
    profile_completed: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProfileUpdateRequest(BaseModel):
    """Set the display name for a wallet"""

    wallet_address: str = Field(..., min_length=1, description="Wallet address")
    name: str = Field(..., min_length=2, max_length=50, description="Display name")

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


__all__ = ["User", "ProfileUpdateRequest"]

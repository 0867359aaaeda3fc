"""User data model for slotplan."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from slotplan.models.constants import DEFAULT_FIRST_DAY_OF_WEEK, DEFAULT_TIMEZONE


class User(BaseModel):
    """User model for slotplan."""

    id: str = Field(..., description="Unique user identifier")
    email: str = Field(..., description="User email address")
    name: Optional[str] = Field(None, description="User display name")
    timezone: str = Field(DEFAULT_TIMEZONE, description="IANA timezone name")
    first_day_of_week: int = Field(
        DEFAULT_FIRST_DAY_OF_WEEK, ge=0, le=6, description="First day of the week (0 = Sunday)"
    )
    created_at: datetime = Field(..., description="User creation timestamp")
    updated_at: datetime = Field(..., description="User last update timestamp")

    class Config:
        """Pydantic configuration."""
        use_enum_values = True


class UserProfile(BaseModel):
    """The slice of user settings the scheduler depends on."""

    timezone: str = DEFAULT_TIMEZONE
    first_day_of_week: int = DEFAULT_FIRST_DAY_OF_WEEK

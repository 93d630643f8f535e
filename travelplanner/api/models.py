"""API models for the travel planner.

Pydantic models for API requests and responses.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from travelplanner.auth.identity import IdentityClaim
from travelplanner.db.models import MembershipRole


# =============================================================================
# Common
# =============================================================================


class ErrorResponse(BaseModel):
    """Error response."""

    detail: str
    code: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    ok: bool
    service: str = "travelplanner"
    database: bool = True


# =============================================================================
# Telegram launch payload
# =============================================================================


class ValidateInitDataRequest(BaseModel):
    """Request to validate a launch payload."""

    model_config = ConfigDict(populate_by_name=True)

    init_data: str = Field("", alias="initData", description="Raw launch payload")


class ValidateInitDataResponse(BaseModel):
    """Launch payload validation result."""

    valid: bool
    scheme: str
    user: Optional[IdentityClaim] = None


# =============================================================================
# Users
# =============================================================================


class UserResponse(BaseModel):
    """Local user information."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Local user id")
    telegram_id: int = Field(..., description="Telegram user id")
    name: str = Field(..., description="Display name")
    avatar: Optional[str] = Field(None, description="Avatar URL")
    created_at: datetime
    updated_at: datetime


# =============================================================================
# Trips
# =============================================================================


class CreateTripRequest(BaseModel):
    """Request to create a trip."""

    title: str = Field(..., min_length=1, max_length=255, description="Trip title")
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class MemberResponse(BaseModel):
    """A trip member."""

    user_id: int
    name: str
    avatar: Optional[str] = None
    role: MembershipRole


class TripResponse(BaseModel):
    """Trip as seen by one member."""

    id: int
    title: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    hero_image_url: Optional[str] = None
    owner_id: int
    owner_name: str
    role: MembershipRole = Field(..., description="Caller's role in this trip")
    created_at: datetime
    updated_at: datetime
    members: list[MemberResponse] = Field(default_factory=list)


class UpdateMemberRoleRequest(BaseModel):
    """Request to change a member's role."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(..., alias="userId", description="Member's local user id")
    role: MembershipRole

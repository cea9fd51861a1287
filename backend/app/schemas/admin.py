"""Pydantic schemas for staff administration."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.auth import UserRole


class StaffProfileResponse(BaseModel):
    """Schema for a user profile in staff administration responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    role: UserRole
    created_at: datetime
    updated_at: datetime


class StaffGrantRequest(BaseModel):
    """Schema for granting the ADMIN role to an existing profile."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=3, max_length=320)

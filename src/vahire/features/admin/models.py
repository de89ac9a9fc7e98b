"""Pydantic models for admin endpoints."""

from pydantic import BaseModel, Field

from src.vahire.services.database.models import UserStatus, UserSummary


class UserListResponse(BaseModel):
    users: list[UserSummary]
    limit: int
    offset: int


class BanRequest(BaseModel):
    reason: str | None = Field(default=None, min_length=1, max_length=500)


class StatusUpdateRequest(BaseModel):
    status: UserStatus
    reason: str | None = Field(default=None, max_length=500)


class AdminActionResponse(BaseModel):
    message: str
    user: UserSummary | None = None

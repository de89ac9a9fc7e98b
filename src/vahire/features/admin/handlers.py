"""API handlers for administrator oversight of user accounts."""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.vahire.features.admin.models import (
    AdminActionResponse,
    BanRequest,
    StatusUpdateRequest,
    UserListResponse,
)
from src.vahire.services.auth.dependencies import get_auth_gate, require_admin
from src.vahire.services.auth.gate import AuthGate
from src.vahire.services.auth.models import Identity
from src.vahire.services.database.exceptions import DataStoreError
from src.vahire.services.database.models import UserStatus, UserSummary
from src.vahire.services.rate_limiter import default_rate_limit, write_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

DEFAULT_BAN_REASON = "Violation of terms of service"


async def _update_user(gate: AuthGate, user_id: str, patch: dict[str, Any]) -> UserSummary:
    try:
        updated = await gate.user_store.update_user(user_id, patch)
    except DataStoreError as e:
        logger.error(f"Admin update of user {user_id} failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update user. Please try again.",
        ) from e

    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserSummary.from_record(updated)


def _reject_self_action(admin: Identity, user_id: str) -> None:
    if admin.record is not None and admin.record.id == user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Administrators cannot change their own account status",
        )


@router.get("/users", response_model=UserListResponse)
@default_rate_limit
async def list_users(
    request: Request,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: Identity = Depends(require_admin),
    gate: AuthGate = Depends(get_auth_gate),
) -> UserListResponse:
    """List user accounts, newest first."""
    try:
        records = await gate.user_store.list_users(limit=limit, offset=offset)
    except DataStoreError as e:
        logger.error(f"Error listing users: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch users. Please try again.",
        ) from e

    return UserListResponse(
        users=[UserSummary.from_record(r) for r in records], limit=limit, offset=offset
    )


@router.put("/users/{user_id}/status", response_model=AdminActionResponse)
@write_rate_limit
async def update_user_status(
    request: Request,
    user_id: str,
    body: StatusUpdateRequest,
    admin: Identity = Depends(require_admin),
    gate: AuthGate = Depends(get_auth_gate),
) -> AdminActionResponse:
    """Set a user's account status (active, suspended, banned)."""
    _reject_self_action(admin, user_id)
    patch: dict[str, Any] = {"status": body.status}
    if body.status == UserStatus.ACTIVE:
        patch["ban_reason"] = None
    elif body.reason:
        patch["ban_reason"] = body.reason

    user = await _update_user(gate, user_id, patch)
    logger.info(
        f"Admin {admin.id} set status of {user_id} to {body.status.value}",
        extra={"admin_id": admin.id, "user_id": user_id},
    )
    return AdminActionResponse(message=f"User status updated to {body.status.value}", user=user)


@router.put("/ban-user/{user_id}", response_model=AdminActionResponse)
@write_rate_limit
async def ban_user(
    request: Request,
    user_id: str,
    body: BanRequest | None = None,
    admin: Identity = Depends(require_admin),
    gate: AuthGate = Depends(get_auth_gate),
) -> AdminActionResponse:
    """Ban a user."""
    _reject_self_action(admin, user_id)
    reason = (body.reason if body else None) or DEFAULT_BAN_REASON
    await _update_user(
        gate,
        user_id,
        {"status": UserStatus.BANNED, "ban_reason": reason, "banned_at": datetime.now(timezone.utc)},
    )
    logger.info(f"Admin {admin.id} banned {user_id}", extra={"admin_id": admin.id, "user_id": user_id})
    return AdminActionResponse(message="User banned successfully")


@router.put("/unban-user/{user_id}", response_model=AdminActionResponse)
@write_rate_limit
async def unban_user(
    request: Request,
    user_id: str,
    admin: Identity = Depends(require_admin),
    gate: AuthGate = Depends(get_auth_gate),
) -> AdminActionResponse:
    """Lift a ban."""
    _reject_self_action(admin, user_id)
    await _update_user(gate, user_id, {"status": UserStatus.ACTIVE, "ban_reason": None})
    logger.info(f"Admin {admin.id} unbanned {user_id}", extra={"admin_id": admin.id, "user_id": user_id})
    return AdminActionResponse(message="User unbanned successfully")

# speech_audit/api/v1/routers/admin.py
from __future__ import annotations

import datetime as dt
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from tortoise.expressions import Q

from speech_audit.api.v1.deps import get_current_user, require_admin
from speech_audit.api.v1.routers.auth import user_to_dict
from speech_audit.models import AuditSession, SessionStatus
from speech_audit.models.user import User
from speech_audit.services import session_flow

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


class AdminUserUpdateIn(BaseModel):
    name: Optional[str] = None
    role: Optional[Literal["user", "admin"]] = None


class CleanupIn(BaseModel):
    now: Optional[dt.datetime] = None  # Reference time for the idle cutoff; defaults to the current time


async def _count_admins() -> int:
    return await User.filter(role="admin").count()


# ==============================================================================
# I. User Management
#     Prefix: /api/v1/admin/users
# ==============================================================================
@router.get("/users")
async def list_users(
    q: str | None = Query(default=None, description="Fuzzy search by name/email"),
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
):
    qs = User.all().order_by("-created_at")
    if q:
        qs = qs.filter(Q(name__icontains=q) | Q(email__icontains=q))

    total = await qs.count()
    rows = await qs.offset(offset).limit(limit)
    items = [await user_to_dict(u) for u in rows]
    return {"success": True, "data": {"items": items, "offset": offset, "limit": limit, "total": total}}


@router.get("/users/{user_id}")
async def get_user_detail(user_id: str):
    u = await User.get_or_none(id=user_id)
    if not u:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="USER_NOT_FOUND")
    data = await user_to_dict(u)
    data["averageAuditMinutes"] = await u.average_audit_duration()
    data["recentSessions"] = [
        await session_flow.session_state(s) for s in await u.recent_audit_sessions(limit=10)
    ]
    return {"success": True, "data": data}


@router.patch("/users/{user_id}")
async def update_user(
    user_id: str,
    body: AdminUserUpdateIn,
    current_admin: User = Depends(get_current_user),
):
    """
    Rename a user or change their role.

    An admin cannot demote themselves, and the last admin cannot be demoted.
    """
    u = await User.get_or_none(id=user_id)
    if not u:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="USER_NOT_FOUND")

    if body.name is not None:
        u.name = body.name

    if body.role and body.role != u.role:
        if str(current_admin.id) == str(u.id):
            raise HTTPException(
                status_code=400,
                detail={"code": "CANNOT_DEMOTE_SELF", "message": "Cannot demote yourself"},
            )
        if u.role == "admin" and await _count_admins() <= 1:
            raise HTTPException(
                status_code=400,
                detail={"code": "LAST_ADMIN_FORBIDDEN", "message": "Cannot demote the last admin"},
            )
        u.role = body.role

    await u.save()
    return {"success": True, "data": await user_to_dict(u)}


@router.delete("/users/{user_id}")
async def delete_user(user_id: str, current_admin: User = Depends(get_current_user)):
    """Delete a user together with their sessions."""
    u = await User.get_or_none(id=user_id)
    if not u:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="USER_NOT_FOUND")
    if str(current_admin.id) == str(u.id):
        raise HTTPException(
            status_code=400,
            detail={"code": "CANNOT_DELETE_SELF", "message": "Cannot delete yourself"},
        )
    if u.role == "admin" and await _count_admins() <= 1:
        raise HTTPException(
            status_code=400,
            detail={"code": "LAST_ADMIN_FORBIDDEN", "message": "Cannot delete the last admin"},
        )
    await u.delete()
    return {"success": True, "data": {"ok": True}}


# ==============================================================================
# II. Session maintenance
#     Prefix: /api/v1/admin/sessions
# ==============================================================================
@router.get("/sessions")
async def list_sessions(
    status_filter: SessionStatus | None = Query(default=None, alias="status"),
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
):
    qs = AuditSession.all()
    if status_filter is not None:
        qs = qs.filter(status=status_filter)
    total = await qs.count()
    rows = await qs.order_by("-created_at").offset(offset).limit(limit)
    items = [await session_flow.session_state(s) for s in rows]
    return {"success": True, "data": {"items": items, "offset": offset, "limit": limit, "total": total}}


@router.post("/sessions/cleanup")
async def cleanup_sessions(body: CleanupIn | None = None):
    """Abandon started/in-progress sessions idle past SESSION_CLEANUP_HOURS."""
    abandoned = await session_flow.cleanup_abandoned_sessions(now=body.now if body else None)
    return {"success": True, "data": {"abandoned": abandoned}}

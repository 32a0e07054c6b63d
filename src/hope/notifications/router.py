"""Notification API endpoints."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from hope.auth.dependencies import get_current_user
from hope.database import get_session
from hope.db.models import User
from hope.notifications.service import list_notifications, mark_all_read
from hope.schemas import Envelope

router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications"])


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    title: str
    message: str
    related_id: str | None = None
    is_read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    unread_count: int


class MarkReadResponse(BaseModel):
    updated: int


@router.get("", response_model=Envelope[NotificationListResponse])
async def get_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    rows, unread = await list_notifications(db, user.id, unread_only, limit)
    return Envelope(
        data=NotificationListResponse(
            notifications=[NotificationResponse.model_validate(n) for n in rows],
            unread_count=unread,
        ),
    )


@router.post("/read-all", response_model=Envelope[MarkReadResponse])
async def read_all(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    updated = await mark_all_read(db, user.id)
    return Envelope(message="Notifications marked as read", data=MarkReadResponse(updated=updated))

"""Schemas for in-app notifications."""

from __future__ import annotations

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    purchase_request_id: str | None = None
    title: str
    message: str
    read: bool
    created_at: str | None = None


class UnreadCountResponse(BaseModel):
    unread: int

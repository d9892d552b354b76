"""Schemas for the team chat."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ChatMessageCreate(BaseModel):
    content: str = Field(..., max_length=4000)


class ChatMessageResponse(BaseModel):
    id: str
    content: str
    sender_id: str
    created_at: str | None = None
    sender: dict[str, Any] | None = None

"""Auth value objects returned by both BaaS clients."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field


class AuthUser(BaseModel):
    """User record as returned by the auth service (``GET /auth/v1/user``)."""

    id: str
    email: str | None = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)
    email_confirmed_at: datetime | None = None
    last_sign_in_at: datetime | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(extra="ignore")


class AuthSession(BaseModel):
    """Token pair issued at sign-in or refresh."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: AuthUser

    model_config = ConfigDict(extra="ignore")


AuthStateCallback = Callable[[str, "AuthSession | None"], None]


class Subscription:
    """Handle returned by ``on_auth_state_change`` and realtime channels."""

    def __init__(self, listeners: list, callback: Callable) -> None:
        self._listeners = listeners
        self._callback = callback
        listeners.append(callback)

    def unsubscribe(self) -> None:
        if self._callback in self._listeners:
            self._listeners.remove(self._callback)

"""
Application context: the explicit store for per-user UI state.

Holds what the browser kept in ``localStorage`` (the selected area) and
what auth subscriptions used to write into component state (the last
known admin/blocked flags).  Reads and writes go through the methods
below; nothing else mutates the store.

Contract
--------
- ``set_selected_area(user_id, key)`` accepts only keys of
  ``constants.AREAS`` and returns the stored ``Area``.
- ``get_selected_area(user_id)`` returns ``None`` until an area is set.
- ``handle_auth_event`` is the only writer of ``flags``; ``SIGNED_IN`` and
  ``TOKEN_REFRESHED`` re-read the profile, ``SIGNED_OUT`` is handled by
  ``clear`` from the logout path, which knows the user.
- ``clear(user_id)`` drops everything held for the user.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

from conecta2.baas.types import AuthSession
from conecta2.services.session_gate import fetch_profile
from conecta2.utils.constants import AREAS, EVENT_SIGNED_IN, EVENT_TOKEN_REFRESHED

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Area:
    key: str
    title: str

    @property
    def href(self) -> str:
        return f"/{self.key}"


@dataclass(frozen=True)
class ProfileFlags:
    is_admin: bool
    is_blocked: bool
    refreshed_at: datetime


class AppContext:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._areas: dict[str, Area] = {}
        self._flags: dict[str, ProfileFlags] = {}

    # -----------------------------------------------------------------------
    # Selected area
    # -----------------------------------------------------------------------

    def set_selected_area(self, user_id: str, key: str) -> Area:
        if key not in AREAS:
            raise ValueError(f"Área desconocida: {key!r}")
        area = Area(key=key, title=AREAS[key])
        with self._lock:
            self._areas[user_id] = area
        return area

    def get_selected_area(self, user_id: str) -> Area | None:
        with self._lock:
            return self._areas.get(user_id)

    # -----------------------------------------------------------------------
    # Profile flags
    # -----------------------------------------------------------------------

    def get_flags(self, user_id: str) -> ProfileFlags | None:
        with self._lock:
            return self._flags.get(user_id)

    def record_profile(self, user_id: str, profile: dict[str, Any]) -> ProfileFlags:
        flags = ProfileFlags(
            is_admin=bool(profile.get("is_admin")),
            is_blocked=bool(profile.get("is_blocked")),
            refreshed_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._flags[user_id] = flags
        return flags

    def handle_auth_event(self, client: Any, event: str, session: AuthSession | None) -> None:
        if event not in (EVENT_SIGNED_IN, EVENT_TOKEN_REFRESHED) or session is None:
            return
        profile = fetch_profile(client.with_token(session.access_token), session.user.id)
        if profile is None:
            logger.warning("auth event %s for user %s without profile", event, session.user.id)
            return
        self.record_profile(session.user.id, profile)

    def clear(self, user_id: str) -> None:
        with self._lock:
            self._areas.pop(user_id, None)
            self._flags.pop(user_id, None)


@lru_cache
def get_app_context() -> AppContext:
    return AppContext()


def subscribe_to_auth(client: Any, context: AppContext):
    """Wire *context* to the client's auth events; returns the subscription."""
    return client.auth.on_auth_state_change(
        lambda event, session: context.handle_auth_event(client, event, session)
    )

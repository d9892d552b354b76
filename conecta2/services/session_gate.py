"""
Session gate: decides whether a caller may see a protected screen.

The gate starts in ``LOADING`` and settles in one of three states once the
session is resolved::

    LOADING -> AUTHORIZED        session + profile (+ admin flag if required)
            -> UNAUTHORIZED      admin required but the profile lacks it
            -> UNAUTHENTICATED   no session, no profile or blocked profile

Further transitions only come from auth events: ``SIGNED_IN`` and
``TOKEN_REFRESHED`` re-read the profile flags, ``SIGNED_OUT`` clears the
session.  There are no timers and no retries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from conecta2.baas.errors import BaasError
from conecta2.baas.types import AuthSession, AuthUser
from conecta2.utils.constants import EVENT_SIGNED_IN, EVENT_SIGNED_OUT, EVENT_TOKEN_REFRESHED

logger = logging.getLogger(__name__)

MSG_NO_SESSION = "Debes iniciar sesión para acceder a esta página"
MSG_NO_PROFILE = "No se encontró el perfil del usuario"
MSG_BLOCKED = "Tu cuenta ha sido bloqueada"
MSG_NOT_ADMIN = "No tienes permisos de administrador"


class GateState(str, Enum):
    LOADING = "loading"
    AUTHORIZED = "authorized"
    UNAUTHORIZED = "unauthorized"
    UNAUTHENTICATED = "unauthenticated"


@dataclass
class CurrentSession:
    """Authenticated caller: token, auth user, profile row and a scoped client."""

    access_token: str
    user: AuthUser
    profile: dict[str, Any]
    client: Any = field(repr=False)

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def email(self) -> str | None:
        return self.profile.get("email") or self.user.email

    @property
    def is_admin(self) -> bool:
        return bool(self.profile.get("is_admin"))

    @property
    def role(self) -> str | None:
        role = self.profile.get("role")
        return role.get("name") if role else None

    @property
    def full_name(self) -> str:
        parts = [self.profile.get("first_name"), self.profile.get("last_name")]
        return " ".join(p for p in parts if p) or (self.email or "")

    def has_role(self, *roles: str) -> bool:
        return self.is_admin or self.role in roles


@dataclass
class GateResult:
    state: GateState
    message: str | None = None
    session: CurrentSession | None = None

    @property
    def redirect(self) -> str | None:
        if self.state == GateState.UNAUTHENTICATED:
            return "/login"
        if self.state == GateState.UNAUTHORIZED:
            return "/"
        return None


def fetch_profile(client: Any, user_id: str) -> dict[str, Any] | None:
    return (
        client.table("profiles")
        .select("*, role:roles(id, name)")
        .eq("id", user_id)
        .maybe_single()
        .execute()
        .data
    )


class SessionGate:
    """Route guard for one screen.

    Args:
        client: Remote data client (unscoped).
        require_admin: Whether the screen needs ``profiles.is_admin``.
    """

    def __init__(self, client: Any, require_admin: bool = False) -> None:
        self._client = client
        self.require_admin = require_admin
        self.result = GateResult(GateState.LOADING)

    @property
    def state(self) -> GateState:
        return self.result.state

    def _settle(self, state: GateState, message: str | None = None, session: CurrentSession | None = None) -> GateResult:
        self.result = GateResult(state, message, session)
        return self.result

    def _force_sign_out(self, access_token: str) -> None:
        try:
            self._client.auth.sign_out(access_token)
        except BaasError as exc:
            logger.warning("sign_out after gate refusal failed: %s", exc.message)

    def resolve(self, access_token: str | None) -> GateResult:
        """Resolve the gate for *access_token* (``None`` means no session)."""
        if not access_token:
            return self._settle(GateState.UNAUTHENTICATED, MSG_NO_SESSION)

        try:
            user = self._client.auth.get_user(access_token)
        except BaasError as exc:
            logger.debug("gate: invalid session (%s)", exc.message)
            return self._settle(GateState.UNAUTHENTICATED, MSG_NO_SESSION)

        scoped = self._client.with_token(access_token)
        profile = fetch_profile(scoped, user.id)
        if profile is None:
            logger.warning("gate: no profile for user %s", user.id)
            self._force_sign_out(access_token)
            return self._settle(GateState.UNAUTHENTICATED, MSG_NO_PROFILE)

        if profile.get("is_blocked"):
            logger.warning("gate: blocked user %s", user.id)
            self._force_sign_out(access_token)
            return self._settle(GateState.UNAUTHENTICATED, MSG_BLOCKED)

        session = CurrentSession(access_token=access_token, user=user, profile=profile, client=scoped)
        if self.require_admin and not session.is_admin:
            return self._settle(GateState.UNAUTHORIZED, MSG_NOT_ADMIN, session)
        return self._settle(GateState.AUTHORIZED, session=session)

    def handle_auth_event(self, event: str, auth_session: AuthSession | None) -> GateResult:
        if event == EVENT_SIGNED_OUT:
            return self._settle(GateState.UNAUTHENTICATED, MSG_NO_SESSION)
        if event in (EVENT_SIGNED_IN, EVENT_TOKEN_REFRESHED):
            return self.resolve(auth_session.access_token if auth_session else None)
        return self.result

"""
Auth service emulation for ``BAAS_MODE=local``.

Implements the GoTrue operations the application uses on top of the
``auth_users`` table: password sign-up and sign-in, refresh, sign-out,
password recovery and the admin user listing.  Sign-up also creates the
matching ``profiles`` row, like the hosted ``handle_new_user`` trigger.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.engine import Engine

from conecta2.baas.errors import BaasError
from conecta2.baas.types import AuthSession, AuthStateCallback, AuthUser, Subscription
from conecta2.config import get_settings
from conecta2.database import utcnow
from conecta2.models import AuthUser as AuthUserRow
from conecta2.models import Profile, Role
from conecta2.utils.constants import EVENT_SIGNED_IN, EVENT_SIGNED_OUT, EVENT_TOKEN_REFRESHED
from conecta2.utils.security import create_token, hash_password, verify_password, verify_token

logger = logging.getLogger(__name__)

_users = AuthUserRow.__table__
_profiles = Profile.__table__
_roles = Role.__table__


def _invalid_jwt() -> BaasError:
    return BaasError("invalid JWT: unable to parse or verify signature", code="bad_jwt", status=401)


class LocalAuth:
    """``client.auth`` for the local emulation."""

    def __init__(self, engine: Engine, auto_confirm: bool = True) -> None:
        self._engine = engine
        self._auto_confirm = auto_confirm
        self._listeners: list[AuthStateCallback] = []
        self._revoked_sessions: set[str] = set()

    # -----------------------------------------------------------------------
    # Events
    # -----------------------------------------------------------------------

    def on_auth_state_change(self, callback: AuthStateCallback) -> Subscription:
        return Subscription(self._listeners, callback)

    def _emit(self, event: str, session: AuthSession | None) -> None:
        for callback in list(self._listeners):
            callback(event, session)

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    @staticmethod
    def _to_user(row: Any) -> AuthUser:
        return AuthUser(
            id=row.id,
            email=row.email,
            user_metadata=row.user_metadata or {},
            email_confirmed_at=row.email_confirmed_at,
            last_sign_in_at=row.last_sign_in_at,
            created_at=row.created_at,
        )

    def _issue_session(self, user: AuthUser, session_id: str | None = None) -> AuthSession:
        settings = get_settings()
        session_id = session_id or str(uuid.uuid4())
        claims = {"sub": user.id, "email": user.email, "role": "authenticated", "session_id": session_id}
        access_token = create_token(claims, settings.JWT_EXPIRATION_MINUTES)
        refresh_token = create_token(
            {"sub": user.id, "session_id": session_id, "typ": "refresh"},
            settings.REFRESH_EXPIRATION_MINUTES,
        )
        return AuthSession(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=settings.JWT_EXPIRATION_MINUTES * 60,
            user=user,
        )

    def _decode(self, token: str, refresh: bool = False) -> dict[str, Any]:
        try:
            claims = verify_token(token)
        except ValueError as exc:
            raise _invalid_jwt() from exc
        if (claims.get("typ") == "refresh") != refresh:
            raise _invalid_jwt()
        if claims.get("session_id") in self._revoked_sessions:
            raise BaasError("Session not found", code="session_not_found", status=403)
        return claims

    def _get_row(self, conn, user_id: str):
        return conn.execute(select(_users).where(_users.c.id == user_id)).first()

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    def sign_up(self, email: str, password: str, data: dict[str, Any] | None = None) -> AuthSession | AuthUser:
        """Create an account and its profile.

        Returns a session when the address is auto-confirmed, otherwise the
        bare user (the hosted service then waits for email confirmation).
        """
        data = dict(data or {})
        email = email.strip().lower()
        with self._engine.begin() as conn:
            existing = conn.execute(select(_users.c.id).where(func.lower(_users.c.email) == email)).first()
            if existing is not None:
                raise BaasError("User already registered", code="user_already_exists", status=422)

            user_id = str(uuid.uuid4())
            now = utcnow()
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    email=email,
                    password_hash=hash_password(password),
                    email_confirmed_at=now if self._auto_confirm else None,
                    user_metadata=data,
                )
            )

            role_id = data.get("role_id")
            if not role_id:
                role_id = conn.execute(
                    select(_roles.c.id).where(_roles.c.name == get_settings().DEFAULT_ROLE_NAME)
                ).scalar()
            conn.execute(
                _profiles.insert().values(
                    id=user_id,
                    email=email,
                    first_name=data.get("first_name"),
                    last_name=data.get("last_name"),
                    role_id=role_id,
                )
            )
            user = self._to_user(self._get_row(conn, user_id))

        logger.info("local auth sign_up: %s", email)
        if not self._auto_confirm:
            return user
        session = self._issue_session(user)
        self._emit(EVENT_SIGNED_IN, session)
        return session

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        email = email.strip().lower()
        with self._engine.begin() as conn:
            row = conn.execute(select(_users).where(func.lower(_users.c.email) == email)).first()
            if row is None or not verify_password(password, row.password_hash):
                raise BaasError("Invalid login credentials", code="invalid_credentials", status=400)
            if row.email_confirmed_at is None:
                raise BaasError("Email not confirmed", code="email_not_confirmed", status=400)
            conn.execute(_users.update().where(_users.c.id == row.id).values(last_sign_in_at=utcnow()))
            user = self._to_user(self._get_row(conn, row.id))

        session = self._issue_session(user)
        self._emit(EVENT_SIGNED_IN, session)
        return session

    def get_user(self, access_token: str) -> AuthUser:
        claims = self._decode(access_token)
        with self._engine.connect() as conn:
            row = self._get_row(conn, claims.get("sub"))
        if row is None:
            raise BaasError("User from sub claim in JWT does not exist", code="user_not_found", status=403)
        return self._to_user(row)

    def refresh_session(self, refresh_token: str) -> AuthSession:
        claims = self._decode(refresh_token, refresh=True)
        with self._engine.connect() as conn:
            row = self._get_row(conn, claims.get("sub"))
        if row is None:
            raise BaasError("User from sub claim in JWT does not exist", code="user_not_found", status=403)
        session = self._issue_session(self._to_user(row), session_id=claims["session_id"])
        self._emit(EVENT_TOKEN_REFRESHED, session)
        return session

    def sign_out(self, access_token: str) -> None:
        claims = self._decode(access_token)
        self._revoked_sessions.add(claims["session_id"])
        self._emit(EVENT_SIGNED_OUT, None)

    def reset_password_for_email(self, email: str, redirect_to: str | None = None) -> None:
        # Unknown addresses succeed silently, as the hosted service does
        logger.info("local auth recovery requested for %s (redirect_to=%s)", email, redirect_to)

    def admin_list_users(self) -> list[AuthUser]:
        with self._engine.connect() as conn:
            rows = conn.execute(select(_users).order_by(_users.c.created_at)).all()
        return [self._to_user(row) for row in rows]


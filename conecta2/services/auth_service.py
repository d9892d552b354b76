"""
Authentication business logic for the Conecta2 back office.

Provides:
- ``login`` / ``register`` / ``logout`` / ``refresh`` / ``forgot_password``
  on top of the BaaS auth service, with the Spanish messages the front end
  shows.
- ``get_current_session`` — FastAPI dependency that resolves the caller
  through the session gate (Bearer header or ``access_token`` cookie).
- ``require_admin`` and ``require_role`` — dependencies that add the admin
  flag or role checks on top of ``get_current_session``.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from conecta2.baas.client import BaasClient, get_client
from conecta2.baas.errors import BaasError
from conecta2.schemas.auth import LoginResponse, ProfileResponse, RegisterRequest, TokenResponse
from conecta2.schemas.common import MessageResponse
from conecta2.services.app_context import AppContext
from conecta2.services.session_gate import (
    MSG_BLOCKED,
    MSG_NO_PROFILE,
    MSG_NOT_ADMIN,
    CurrentSession,
    GateState,
    SessionGate,
    fetch_profile,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Bearer token location for FastAPI and Swagger
# auto_error is off so the cookie can be used as a fallback.
# ---------------------------------------------------------------------------

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)

MSG_BAD_CREDENTIALS = "Email o contraseña incorrectos"
MSG_EMAIL_NOT_CONFIRMED = "Por favor, verifica tu correo electrónico"
MSG_LOGIN_FAILED = "Error al iniciar sesión. Por favor, intenta de nuevo."
MSG_EMPTY_FIELDS = "Por favor, completa todos los campos"
MSG_BAD_EMAIL = "Por favor, ingresa un email válido"
MSG_SHORT_PASSWORD = "La contraseña debe tener al menos 6 caracteres"
MSG_ALREADY_REGISTERED = "Este email ya está registrado. Por favor, inicia sesión."

_MIN_PASSWORD_LENGTH = 6


def _unprocessable(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_credentials(email: str, password: str, *extra_fields: str) -> None:
    """Apply the login/registration form checks.

    Raises:
        HTTPException 422: Missing field, email without ``@`` or password
                           shorter than 6 characters.
    """
    if not email.strip() or not password or any(not f.strip() for f in extra_fields):
        raise _unprocessable(MSG_EMPTY_FIELDS)
    if "@" not in email:
        raise _unprocessable(MSG_BAD_EMAIL)
    if len(password) < _MIN_PASSWORD_LENGTH:
        raise _unprocessable(MSG_SHORT_PASSWORD)


def auth_error_message(exc: BaasError) -> str:
    """Map an auth-service error to the message shown on the login form."""
    if "Invalid login credentials" in exc.message:
        return MSG_BAD_CREDENTIALS
    if "Email not confirmed" in exc.message:
        return MSG_EMAIL_NOT_CONFIRMED
    return MSG_LOGIN_FAILED


def _profile_response(profile: dict[str, Any], selected_area: str | None = None) -> ProfileResponse:
    role = profile.get("role") or {}
    return ProfileResponse(
        id=profile["id"],
        email=profile.get("email"),
        first_name=profile.get("first_name"),
        last_name=profile.get("last_name"),
        role_id=profile.get("role_id"),
        role=role.get("name"),
        is_admin=bool(profile.get("is_admin")),
        laboratory_id=profile.get("laboratory_id"),
        selected_area=selected_area,
    )


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def login(client: BaasClient, email: str, password: str, context: AppContext) -> LoginResponse:
    """Sign in and decide the landing page.

    The user counts as an administrator when ``profiles.is_admin`` is set or
    an ``admin_users`` row exists for them.

    Raises:
        HTTPException 401: Wrong credentials or unconfirmed email.
        HTTPException 403: The profile is missing or blocked.
    """
    validate_credentials(email, password)
    try:
        session = client.auth.sign_in_with_password(email, password)
    except BaasError as exc:
        logger.warning("Failed login for email='%s': %s", email, exc.message)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=auth_error_message(exc),
        ) from exc

    scoped = client.with_token(session.access_token)
    profile = fetch_profile(scoped, session.user.id)
    if profile is None or profile.get("is_blocked"):
        client.auth.sign_out(session.access_token)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=MSG_NO_PROFILE if profile is None else MSG_BLOCKED,
        )

    admin_row = (
        scoped.table("admin_users")
        .select("user_id")
        .eq("user_id", session.user.id)
        .maybe_single()
        .execute()
        .data
    )
    is_admin = bool(profile.get("is_admin")) or admin_row is not None
    context.record_profile(session.user.id, profile)

    logger.info("Successful login for email='%s' admin=%s", email, is_admin)
    user = _profile_response(profile)
    user.is_admin = is_admin
    return LoginResponse(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_in=session.expires_in,
        redirect_to="/admin" if is_admin else "/select-area",
        message="Inicio de sesión exitoso como administrador" if is_admin else "Inicio de sesión exitoso",
        user=user,
    )


def register(client: BaasClient, data: RegisterRequest) -> MessageResponse:
    """Create an account through auth sign-up with name and role metadata.

    Raises:
        HTTPException 422: Form checks failed.
        HTTPException 409: The email is already registered.
        HTTPException 502: Any other sign-up failure.
    """
    validate_credentials(data.email, data.password, data.first_name, data.last_name, data.role_id)
    try:
        client.auth.sign_up(
            data.email.strip(),
            data.password,
            {
                "first_name": data.first_name.strip(),
                "last_name": data.last_name.strip(),
                "role_id": data.role_id,
            },
        )
    except BaasError as exc:
        if exc.code == "user_already_exists" or "already registered" in exc.message:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=MSG_ALREADY_REGISTERED) from exc
        logger.error("register failed for %s: %r", data.email, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Error al registrar usuario. Por favor, intenta de nuevo.",
        ) from exc

    logger.info("register: %s", data.email)
    return MessageResponse(message="Registro exitoso. Por favor verifica tu correo electrónico.")


def logout(client: BaasClient, session: CurrentSession, context: AppContext) -> MessageResponse:
    client.auth.sign_out(session.access_token)
    context.clear(session.user_id)
    logger.info("logout: user=%s", session.user_id)
    return MessageResponse(message="Sesión cerrada")


def refresh(client: BaasClient, refresh_token: str) -> TokenResponse:
    try:
        session = client.auth.refresh_session(refresh_token)
    except BaasError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token inválido o expirado",
        ) from exc
    return TokenResponse(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_in=session.expires_in,
    )


def forgot_password(client: BaasClient, email: str, redirect_to: str | None = None) -> MessageResponse:
    if "@" not in email:
        raise _unprocessable(MSG_BAD_EMAIL)
    client.auth.reset_password_for_email(email.strip(), redirect_to)
    return MessageResponse(message="Si el email existe, recibirás instrucciones para restablecer tu contraseña")


def me(session: CurrentSession, context: AppContext) -> ProfileResponse:
    area = context.get_selected_area(session.user_id)
    return _profile_response(session.profile, area.key if area else None)


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


def get_access_token(
    request: Request,
    bearer: Annotated[str | None, Depends(oauth2_scheme)],
) -> str | None:
    """Bearer header first, then the ``access_token`` cookie."""
    return bearer or request.cookies.get("access_token")


def get_current_session(
    token: Annotated[str | None, Depends(get_access_token)],
    client: Annotated[BaasClient, Depends(get_client)],
) -> CurrentSession:
    """Resolve the caller through the session gate.

    Raises:
        HTTPException 401: No session, invalid token, missing or blocked
                           profile.  The detail is the gate's message.
    """
    result = SessionGate(client).resolve(token)
    if result.state != GateState.AUTHORIZED:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=result.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return result.session


def require_admin(
    session: Annotated[CurrentSession, Depends(get_current_session)],
) -> CurrentSession:
    if not session.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=MSG_NOT_ADMIN)
    return session


def require_role(*roles: str):
    """Return a dependency allowing admins plus the given role names.

    Args:
        *roles: Role names from ``roles.name`` permitted on the endpoint.

    Returns:
        A callable FastAPI dependency that resolves to the
        ``CurrentSession`` or raises HTTP 403.
    """
    allowed = frozenset(roles)

    def _check_role(
        session: Annotated[CurrentSession, Depends(get_current_session)],
    ) -> CurrentSession:
        if not session.has_role(*allowed):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=(
                    f"Acceso denegado. Se requiere uno de los roles: "
                    f"{sorted(allowed)}"
                ),
            )
        return session

    return _check_role

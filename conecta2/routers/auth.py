"""
Authentication router for the Conecta2 API.

Mounts under ``/api/auth`` (prefix set in ``main.py``).

Endpoints:
    POST /login           — Sign in with email + password (JSON).
    POST /token           — Same, as an OAuth2 form (Swagger "Authorize").
    POST /register        — Create an account with name and role.
    POST /logout          — End the session and clear the per-user state.
    POST /refresh         — Exchange a refresh token for a new session.
    POST /forgot-password — Send the password reset email.
    GET  /me              — Profile of the signed-in user.
    GET  /roles           — Roles offered on the registration form.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from fastapi.security import OAuth2PasswordRequestForm

from conecta2.baas.client import BaasClient, get_client
from conecta2.schemas.admin import RoleResponse
from conecta2.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    ProfileResponse,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
)
from conecta2.schemas.common import MessageResponse
from conecta2.services import admin_service, auth_service
from conecta2.services.app_context import AppContext, get_app_context
from conecta2.services.session_gate import CurrentSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Auth"])

Client = Annotated[BaasClient, Depends(get_client)]
Context = Annotated[AppContext, Depends(get_app_context)]
Session = Annotated[CurrentSession, Depends(auth_service.get_current_session)]

_COOKIE = "access_token"


def _set_session_cookie(response: Response, result: LoginResponse) -> None:
    response.set_cookie(
        _COOKIE,
        result.access_token,
        max_age=result.expires_in,
        httponly=True,
        samesite="lax",
    )


# ---------------------------------------------------------------------------
# POST /login
# ---------------------------------------------------------------------------


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Iniciar sesión",
    description=(
        "Autentica con email y contraseña. Los administradores (``profiles.is_admin`` "
        "o fila en ``admin_users``) reciben ``redirect_to='/admin'``; el resto "
        "``'/select-area'``. El token también se entrega en la cookie ``access_token``."
    ),
    responses={
        401: {"description": "Email o contraseña incorrectos, o correo sin verificar."},
        403: {"description": "Perfil inexistente o cuenta bloqueada."},
        422: {"description": "Campos vacíos, email sin '@' o contraseña corta."},
    },
)
def login(body: LoginRequest, response: Response, client: Client, context: Context) -> LoginResponse:
    result = auth_service.login(client, body.email, body.password, context)
    _set_session_cookie(response, result)
    return result


@router.post(
    "/token",
    response_model=LoginResponse,
    summary="Iniciar sesión (formulario OAuth2)",
    description="Variante ``application/x-www-form-urlencoded`` usada por el botón Authorize de Swagger.",
)
def login_form(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    response: Response,
    client: Client,
    context: Context,
) -> LoginResponse:
    result = auth_service.login(client, form_data.username, form_data.password, context)
    _set_session_cookie(response, result)
    return result


# ---------------------------------------------------------------------------
# POST /register
# ---------------------------------------------------------------------------


@router.post(
    "/register",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Registrarse",
    responses={
        409: {"description": "El email ya está registrado."},
        422: {"description": "Campos vacíos, email sin '@' o contraseña corta."},
    },
)
def register(body: RegisterRequest, client: Client) -> MessageResponse:
    return auth_service.register(client, body)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@router.post("/logout", response_model=MessageResponse, summary="Cerrar sesión")
def logout(session: Session, response: Response, client: Client, context: Context) -> MessageResponse:
    response.delete_cookie(_COOKIE)
    return auth_service.logout(client, session, context)


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Renovar sesión",
    responses={401: {"description": "Token inválido o expirado."}},
)
def refresh(body: RefreshRequest, client: Client) -> TokenResponse:
    return auth_service.refresh(client, body.refresh_token)


@router.post("/forgot-password", response_model=MessageResponse, summary="Recuperar contraseña")
def forgot_password(body: ForgotPasswordRequest, client: Client) -> MessageResponse:
    return auth_service.forgot_password(client, body.email, body.redirect_to)


@router.get(
    "/me",
    response_model=ProfileResponse,
    summary="Perfil del usuario autenticado",
    responses={401: {"description": "Sesión ausente, inválida, sin perfil o bloqueada."}},
)
def get_me(session: Session, context: Context) -> ProfileResponse:
    return auth_service.me(session, context)


@router.get("/roles", response_model=list[RoleResponse], summary="Roles disponibles para el registro")
def list_roles(client: Client) -> list[dict]:
    return admin_service.list_roles(client)

"""
Pydantic v2 schemas for the authentication endpoints.

Covers the login and registration payloads, the session returned after a
successful sign-in, and the public profile returned by ``GET /api/auth/me``.
Field-level checks (non-empty, email shape, password length) run in
``auth_service`` so that each failure carries its own Spanish message.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """Payload accepted by ``POST /api/auth/login``.

    Attributes:
        email: Login email.
        password: Plain-text password (transmitted over HTTPS only).
    """

    email: str = Field(default="", max_length=255, description="Email del usuario")
    password: str = Field(default="", max_length=128, description="Contraseña en texto plano")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "jperez@conecta2.pe",
                "password": "secret1234",
            }
        }
    )


class RegisterRequest(BaseModel):
    """Payload accepted by ``POST /api/auth/register``."""

    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=128)
    first_name: str = Field(default="", max_length=200)
    last_name: str = Field(default="", max_length=200)
    role_id: str = Field(default="", max_length=36, description="ID del rol elegido")


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: str = Field(default="", max_length=255)
    redirect_to: str | None = Field(default=None, max_length=500)


class ProfileResponse(BaseModel):
    """Public representation of the authenticated user's profile.

    Attributes:
        id: Profile / auth user id.
        email: Email address on record.
        first_name: Given name.
        last_name: Family name.
        role_id: Role assigned to the profile.
        role: Role name, e.g. ``"Purchases"``.
        is_admin: Whether the user may open ``/admin``.
        laboratory_id: Assigned laboratory, if any.
        selected_area: Area chosen on ``/select-area`` during this session.
    """

    id: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    role_id: str | None = None
    role: str | None = None
    is_admin: bool = False
    laboratory_id: str | None = None
    selected_area: str | None = None


class LoginResponse(BaseModel):
    """Session issued at sign-in plus where the front end should go next.

    Attributes:
        access_token: JWT to send as ``Authorization: Bearer <token>``.
        refresh_token: Token accepted by ``POST /api/auth/refresh``.
        expires_in: Access-token lifetime in seconds.
        redirect_to: ``"/admin"`` for administrators, ``"/select-area"``
                     for everyone else.
        message: Toast text for the front end.
    """

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    redirect_to: str
    message: str
    user: ProfileResponse

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "access_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
                "refresh_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
                "token_type": "bearer",
                "expires_in": 3600,
                "redirect_to": "/select-area",
                "message": "Inicio de sesión exitoso",
                "user": {"id": "6f1c...", "email": "jperez@conecta2.pe", "is_admin": False},
            }
        }
    )


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int

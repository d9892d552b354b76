"""
Tests for the authentication endpoints under ``/api/auth``.

Covers the login form checks and landing page choice, registration,
logout, token refresh, password recovery and the profile endpoint.
"""

from __future__ import annotations

from conecta2.baas.errors import BaasError
from conecta2.services.auth_service import auth_error_message

PASSWORD = "secret123"


def _login(api, email: str, password: str = PASSWORD):
    return api.post("/api/auth/login", json={"email": email, "password": password})


# =============================================================================
# Login
# =============================================================================


class TestLogin:
    """POST /api/auth/login."""

    def test_regular_user_lands_on_area_picker(self, api, seed):
        response = _login(api, seed.users.requester.email)

        assert response.status_code == 200
        body = response.json()
        assert body["redirect_to"] == "/select-area"
        assert body["message"] == "Inicio de sesión exitoso"
        assert body["user"]["role"] == "User"
        assert body["user"]["is_admin"] is False
        assert response.cookies.get("access_token") == body["access_token"]

    def test_admin_flag_lands_on_admin(self, api, seed):
        response = _login(api, seed.users.admin.email)

        assert response.status_code == 200
        assert response.json()["redirect_to"] == "/admin"
        assert response.json()["message"] == "Inicio de sesión exitoso como administrador"

    def test_admin_users_row_counts_as_admin(self, api, baas, seed):
        baas.table("admin_users").insert({"user_id": seed.users.purchases.id}).execute()

        response = _login(api, seed.users.purchases.email)

        assert response.json()["redirect_to"] == "/admin"
        assert response.json()["user"]["is_admin"] is True

    def test_wrong_password(self, api, seed):
        response = _login(api, seed.users.requester.email, "wrong-password")

        assert response.status_code == 401
        assert response.json()["detail"] == "Email o contraseña incorrectos"

    def test_empty_fields_never_reach_auth(self, api, baas, seed):
        response = _login(api, "", "")

        assert response.status_code == 422
        assert response.json()["detail"] == "Por favor, completa todos los campos"
        assert baas.faults.calls == []

    def test_email_without_at(self, api, seed):
        response = _login(api, "juan.conecta2.pe")

        assert response.status_code == 422
        assert response.json()["detail"] == "Por favor, ingresa un email válido"

    def test_short_password(self, api, seed):
        response = _login(api, seed.users.requester.email, "abc")

        assert response.status_code == 422
        assert response.json()["detail"] == "La contraseña debe tener al menos 6 caracteres"

    def test_blocked_account_is_refused(self, api, baas, seed):
        baas.table("profiles").update({"is_blocked": True}).eq("id", seed.users.other.id).execute()

        response = _login(api, seed.users.other.email)

        assert response.status_code == 403
        assert response.json()["detail"] == "Tu cuenta ha sido bloqueada"

    def test_oauth2_form_variant(self, api, seed):
        response = api.post(
            "/api/auth/token",
            data={"username": seed.users.requester.email, "password": PASSWORD},
        )

        assert response.status_code == 200
        assert response.json()["token_type"] == "bearer"


class TestAuthErrorMessage:
    def test_unconfirmed_email(self):
        assert auth_error_message(BaasError("Email not confirmed")) == "Por favor, verifica tu correo electrónico"

    def test_unknown_failure(self):
        assert auth_error_message(BaasError("boom")) == "Error al iniciar sesión. Por favor, intenta de nuevo."


# =============================================================================
# Registration
# =============================================================================


class TestRegister:
    """POST /api/auth/register."""

    def _form(self, seed, **overrides):
        form = {
            "email": "lucia@conecta2.pe",
            "password": "secret123",
            "first_name": "Lucía",
            "last_name": "Torres",
            "role_id": seed.roles["User"],
        }
        form.update(overrides)
        return form

    def test_creates_account_and_profile(self, api, baas, seed):
        response = api.post("/api/auth/register", json=self._form(seed))

        assert response.status_code == 201
        assert response.json()["message"] == "Registro exitoso. Por favor verifica tu correo electrónico."
        profile = baas.table("profiles").select("*").eq("email", "lucia@conecta2.pe").single().execute().data
        assert profile["first_name"] == "Lucía"
        assert profile["role_id"] == seed.roles["User"]

    def test_duplicate_email(self, api, seed):
        response = api.post("/api/auth/register", json=self._form(seed, email=seed.users.requester.email))

        assert response.status_code == 409
        assert response.json()["detail"] == "Este email ya está registrado. Por favor, inicia sesión."

    def test_missing_name(self, api, seed):
        response = api.post("/api/auth/register", json=self._form(seed, last_name="  "))

        assert response.status_code == 422
        assert response.json()["detail"] == "Por favor, completa todos los campos"

    def test_roles_are_public(self, api, seed):
        response = api.get("/api/auth/roles")

        assert response.status_code == 200
        assert {role["name"] for role in response.json()} == {"admin", "manager", "Purchases", "User"}


# =============================================================================
# Session endpoints
# =============================================================================


class TestSession:
    def test_me_with_bearer(self, api, seed):
        response = api.get("/api/auth/me", headers=seed.users.purchases.headers)

        assert response.status_code == 200
        body = response.json()
        assert body["email"] == seed.users.purchases.email
        assert body["role"] == "Purchases"
        assert body["selected_area"] is None

    def test_me_with_login_cookie(self, api, seed):
        _login(api, seed.users.requester.email)

        response = api.get("/api/auth/me")

        assert response.status_code == 200
        assert response.json()["id"] == seed.users.requester.id

    def test_me_without_session(self, api, seed):
        response = api.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json()["detail"] == "Debes iniciar sesión para acceder a esta página"

    def test_me_with_garbage_token(self, api, seed):
        response = api.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401

    def test_logout_revokes_the_session(self, api, seed):
        headers = seed.users.requester.headers

        response = api.post("/api/auth/logout", headers=headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Sesión cerrada"
        assert api.get("/api/auth/me", headers=headers).status_code == 401

    def test_refresh_issues_new_tokens(self, api, seed):
        login = _login(api, seed.users.requester.email).json()

        response = api.post("/api/auth/refresh", json={"refresh_token": login["refresh_token"]})

        assert response.status_code == 200
        token = response.json()["access_token"]
        me = api.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["id"] == seed.users.requester.id

    def test_refresh_rejects_access_token(self, api, seed):
        response = api.post("/api/auth/refresh", json={"refresh_token": seed.users.requester.token})

        assert response.status_code == 401
        assert response.json()["detail"] == "Token inválido o expirado"

    def test_forgot_password(self, api, seed):
        response = api.post("/api/auth/forgot-password", json={"email": "nadie@conecta2.pe"})

        assert response.status_code == 200
        assert "restablecer tu contraseña" in response.json()["message"]

    def test_forgot_password_bad_email(self, api, seed):
        response = api.post("/api/auth/forgot-password", json={"email": "nadie"})

        assert response.status_code == 422

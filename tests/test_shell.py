"""
Tests for the session gate, the application context and the shell routes.
"""

from __future__ import annotations

import pytest

from conecta2.baas.types import AuthSession
from conecta2.services.app_context import AppContext, subscribe_to_auth
from conecta2.services.session_gate import GateState, SessionGate
from conecta2.utils.constants import EVENT_SIGNED_OUT

PASSWORD = "secret123"


def _sidebar(response) -> list[str]:
    return [item["title"] for item in response.json()["sidebar"]]


# =============================================================================
# Session gate
# =============================================================================


class TestSessionGate:
    def test_starts_loading(self, baas):
        assert SessionGate(baas).state == GateState.LOADING

    def test_no_token(self, baas):
        result = SessionGate(baas).resolve(None)

        assert result.state == GateState.UNAUTHENTICATED
        assert result.redirect == "/login"

    def test_authorized(self, baas, seed):
        result = SessionGate(baas).resolve(seed.users.requester.token)

        assert result.state == GateState.AUTHORIZED
        assert result.redirect is None
        assert result.session.role == "User"
        assert result.session.full_name == "Juan Perez"

    def test_admin_required(self, baas, seed):
        result = SessionGate(baas, require_admin=True).resolve(seed.users.purchases.token)

        assert result.state == GateState.UNAUTHORIZED
        assert result.redirect == "/"
        assert result.message == "No tienes permisos de administrador"

    def test_blocked_profile_signs_out(self, baas, seed):
        baas.table("profiles").update({"is_blocked": True}).eq("id", seed.users.other.id).execute()

        result = SessionGate(baas).resolve(seed.users.other.token)

        assert result.state == GateState.UNAUTHENTICATED
        assert result.message == "Tu cuenta ha sido bloqueada"
        # the session was revoked, so even after unblocking it stays out
        baas.table("profiles").update({"is_blocked": False}).eq("id", seed.users.other.id).execute()
        assert SessionGate(baas).resolve(seed.users.other.token).state == GateState.UNAUTHENTICATED

    def test_missing_profile(self, baas, seed):
        baas.table("profiles").delete().eq("id", seed.users.other.id).execute()

        result = SessionGate(baas).resolve(seed.users.other.token)

        assert result.state == GateState.UNAUTHENTICATED
        assert result.message == "No se encontró el perfil del usuario"

    def test_signed_out_event(self, baas, seed):
        gate = SessionGate(baas)
        gate.resolve(seed.users.requester.token)

        result = gate.handle_auth_event(EVENT_SIGNED_OUT, None)

        assert result.state == GateState.UNAUTHENTICATED


# =============================================================================
# Application context
# =============================================================================


class TestAppContext:
    def test_selected_area_roundtrip(self):
        context = AppContext()

        area = context.set_selected_area("u1", "secretaria")

        assert context.get_selected_area("u1") == area
        assert area.href == "/secretaria"
        assert context.get_selected_area("u2") is None

    def test_unknown_area(self):
        with pytest.raises(ValueError):
            AppContext().set_selected_area("u1", "finanzas")

    def test_clear(self):
        context = AppContext()
        context.set_selected_area("u1", "compras")
        context.record_profile("u1", {"is_admin": True})

        context.clear("u1")

        assert context.get_selected_area("u1") is None
        assert context.get_flags("u1") is None

    def test_sign_in_event_records_flags(self, baas, seed):
        context = AppContext()
        subscription = subscribe_to_auth(baas, context)
        try:
            baas.auth.sign_in_with_password(seed.users.admin.email, PASSWORD)
        finally:
            subscription.unsubscribe()

        flags = context.get_flags(seed.users.admin.id)
        assert flags.is_admin is True
        assert flags.is_blocked is False

    def test_event_without_session_is_ignored(self, baas):
        context = AppContext()

        context.handle_auth_event(baas, "SIGNED_IN", None)

        assert context._flags == {}

    def test_event_for_missing_profile(self, baas, seed):
        baas.table("profiles").delete().eq("id", seed.users.other.id).execute()
        user = baas.auth.get_user(seed.users.other.token)
        session = AuthSession(access_token=seed.users.other.token, refresh_token="", expires_in=60, user=user)
        context = AppContext()

        context.handle_auth_event(baas, "TOKEN_REFRESHED", session)

        assert context.get_flags(seed.users.other.id) is None


# =============================================================================
# Shell routes
# =============================================================================


class TestShellRoutes:
    def test_login_screen_is_public(self, api):
        response = api.get("/login")

        assert response.status_code == 200
        assert response.json() == {"route": "/login", "title": "Iniciar Sesión"}

    @pytest.mark.parametrize("route", ["/", "/compras", "/viajes", "/datos-maestros", "/select-area", "/admin"])
    def test_protected_without_session(self, api, route):
        response = api.get(route, follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == "/login"

    def test_admin_screen_for_non_admin(self, api, seed):
        response = api.get("/admin", headers=seed.users.purchases.headers, follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == "/"

    def test_admin_screen_for_admin(self, api, seed):
        response = api.get("/admin", headers=seed.users.admin.headers)

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Administración"
        assert body["user"]["is_admin"] is True
        assert _sidebar(response) == [
            "Inicio",
            "Administración",
            "Viajes",
            "Compras",
            "Datos Maestros",
            "Secretaría",
            "Mantenimiento",
        ]

    def test_sidebar_for_plain_user(self, api, seed):
        response = api.get("/", headers=seed.users.requester.headers)

        assert response.status_code == 200
        assert _sidebar(response) == ["Inicio", "Viajes"]
        active = [item["href"] for item in response.json()["sidebar"] if item["active"]]
        assert active == ["/"]

    def test_sidebar_for_purchases(self, api, seed):
        response = api.get("/compras", headers=seed.users.purchases.headers)

        assert _sidebar(response) == ["Inicio", "Viajes", "Compras", "Datos Maestros"]

    def test_blocked_user_is_sent_to_login(self, api, baas, seed):
        baas.table("profiles").update({"is_blocked": True}).eq("id", seed.users.other.id).execute()

        response = api.get("/viajes", headers=seed.users.other.headers, follow_redirects=False)

        assert response.headers["location"] == "/login"

    def test_unknown_path_redirects_to_login(self, api):
        response = api.get("/reportes/2024", follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == "/login"

    def test_unknown_api_path_is_404(self, api):
        assert api.get("/api/no-existe").status_code == 404


class TestSelectArea:
    def test_area_picker_lists_areas(self, api, seed):
        response = api.get("/select-area", headers=seed.users.requester.headers)

        assert [area["key"] for area in response.json()["areas"]] == ["compras", "secretaria", "mantenimiento"]

    def test_select_area(self, api, seed):
        headers = seed.users.requester.headers

        response = api.post("/select-area", json={"area": "compras"}, headers=headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Área seleccionada: Unidad de Compras"
        assert response.json()["redirect_to"] == "/compras"
        assert api.get("/", headers=headers).json()["selected_area"]["key"] == "compras"
        assert api.get("/api/auth/me", headers=headers).json()["selected_area"] == "compras"

    def test_unknown_area(self, api, seed):
        response = api.post("/select-area", json={"area": "finanzas"}, headers=seed.users.requester.headers)

        assert response.status_code == 422

    def test_logout_forgets_area(self, api, seed):
        login = api.post(
            "/api/auth/login", json={"email": seed.users.other.email, "password": PASSWORD}
        ).json()
        headers = {"Authorization": f"Bearer {login['access_token']}"}
        api.post("/select-area", json={"area": "mantenimiento"}, headers=headers)

        api.post("/api/auth/logout", headers=headers)

        fresh = seed.users.other.headers
        assert api.get("/api/auth/me", headers=fresh).json()["selected_area"] is None

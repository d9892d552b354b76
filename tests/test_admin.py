"""
Tests for the user administration endpoints under ``/api/admin``.
"""

from __future__ import annotations

from conecta2.baas.errors import BaasError

BASE = "/api/admin"


class TestAccess:
    def test_non_admin_is_forbidden(self, api, seed):
        response = api.get(f"{BASE}/usuarios", headers=seed.users.purchases.headers)

        assert response.status_code == 403
        assert response.json()["detail"] == "No tienes permisos de administrador"

    def test_anonymous_is_unauthorized(self, api, seed):
        assert api.get(f"{BASE}/usuarios").status_code == 401


class TestListUsers:
    def test_merges_profiles_with_auth(self, api, seed):
        response = api.get(f"{BASE}/usuarios", headers=seed.users.admin.headers)

        assert response.status_code == 200
        users = {user["id"]: user for user in response.json()}
        assert len(users) == 5
        requester = users[seed.users.requester.id]
        assert requester["email"] == seed.users.requester.email
        assert requester["role"]["name"] == "User"
        assert requester["email_confirmed_at"] is not None

    def test_search(self, api, seed):
        response = api.get(f"{BASE}/usuarios", params={"search": "LOPEZ"}, headers=seed.users.admin.headers)

        assert [user["id"] for user in response.json()] == [seed.users.other.id]

    def test_roles(self, api, seed):
        response = api.get(f"{BASE}/roles", headers=seed.users.admin.headers)

        assert len(response.json()) == 4


class TestUserActions:
    def test_toggle_block(self, api, seed):
        url = f"{BASE}/usuarios/{seed.users.other.id}/bloqueo"
        headers = seed.users.admin.headers

        blocked = api.patch(url, headers=headers)
        unblocked = api.patch(url, headers=headers)

        assert blocked.json()["message"] == "Usuario bloqueado exitosamente"
        assert blocked.json()["data"]["is_blocked"] is True
        assert unblocked.json()["message"] == "Usuario desbloqueado exitosamente"
        assert unblocked.json()["data"]["is_blocked"] is False

    def test_blocked_user_loses_access(self, api, seed):
        api.patch(f"{BASE}/usuarios/{seed.users.other.id}/bloqueo", headers=seed.users.admin.headers)

        response = api.get("/api/auth/me", headers=seed.users.other.headers)

        assert response.status_code == 401
        assert response.json()["detail"] == "Tu cuenta ha sido bloqueada"

    def test_promote_to_admin(self, api, seed):
        response = api.patch(f"{BASE}/usuarios/{seed.users.requester.id}/administrador", headers=seed.users.admin.headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Estado de administrador actualizado"
        assert response.json()["data"]["is_admin"] is True

    def test_demote_resets_role(self, api, baas, seed):
        baas.table("profiles").update({"is_admin": True}).eq("id", seed.users.manager.id).execute()

        response = api.patch(f"{BASE}/usuarios/{seed.users.manager.id}/administrador", headers=seed.users.admin.headers)

        data = response.json()["data"]
        assert data["is_admin"] is False
        assert data["role_id"] == seed.roles["User"]

    def test_change_role(self, api, seed):
        response = api.patch(
            f"{BASE}/usuarios/{seed.users.requester.id}/rol",
            json={"role_id": seed.roles["Purchases"]},
            headers=seed.users.admin.headers,
        )

        assert response.json()["message"] == "Rol actualizado exitosamente"
        me = api.get("/api/auth/me", headers=seed.users.requester.headers).json()
        assert me["role"] == "Purchases"

    def test_assign_and_clear_laboratory(self, api, seed):
        url = f"{BASE}/usuarios/{seed.users.requester.id}/laboratorio"
        headers = seed.users.admin.headers

        assigned = api.patch(url, json={"laboratory_id": seed.lab_id}, headers=headers)
        cleared = api.patch(url, json={"laboratory_id": None}, headers=headers)

        assert assigned.json()["message"] == "Laboratorio asignado exitosamente"
        assert assigned.json()["data"]["laboratory_id"] == seed.lab_id
        assert cleared.json()["data"]["laboratory_id"] is None

    def test_unknown_user(self, api, seed):
        response = api.patch(f"{BASE}/usuarios/no-existe/bloqueo", headers=seed.users.admin.headers)

        assert response.status_code == 404
        assert response.json()["detail"] == "Usuario no encontrado"

    def test_permission_denied_message(self, api, baas, seed):
        baas.faults.tables[("profiles", "update")] = BaasError("permission denied", code="42501", status=403)

        response = api.patch(
            f"{BASE}/usuarios/{seed.users.other.id}/rol",
            json={"role_id": seed.roles["manager"]},
            headers=seed.users.admin.headers,
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "No tienes permisos para realizar esta acción"


class TestCreateUser:
    def test_create(self, api, baas, seed):
        response = api.post(
            f"{BASE}/usuarios",
            json={
                "email": "pedro@conecta2.pe",
                "password": "secret123",
                "first_name": "Pedro",
                "last_name": "Rojas",
                "role_id": seed.roles["manager"],
            },
            headers=seed.users.admin.headers,
        )

        assert response.status_code == 201
        assert response.json()["message"] == "Usuario creado exitosamente"
        profile = baas.table("profiles").select("role_id").eq("email", "pedro@conecta2.pe").single().execute().data
        assert profile["role_id"] == seed.roles["manager"]

    def test_duplicate(self, api, seed):
        response = api.post(
            f"{BASE}/usuarios",
            json={
                "email": seed.users.other.email,
                "password": "secret123",
                "first_name": "Maria",
                "last_name": "Lopez",
                "role_id": seed.roles["User"],
            },
            headers=seed.users.admin.headers,
        )

        assert response.status_code == 409

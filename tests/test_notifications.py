"""
Tests for the notification endpoints under ``/api/notificaciones``.
"""

from __future__ import annotations

BASE = "/api/notificaciones"


def _notify(baas, user_id: str, title: str, read: bool = False) -> dict:
    return (
        baas.table("notifications")
        .insert({"user_id": user_id, "title": title, "message": f"Mensaje de {title}", "read": read})
        .execute()
        .data[0]
    )


class TestList:
    def test_only_own_notifications(self, api, baas, seed):
        _notify(baas, seed.users.requester.id, "Primera")
        _notify(baas, seed.users.other.id, "Ajena")

        response = api.get(BASE, headers=seed.users.requester.headers)

        assert response.status_code == 200
        assert [row["title"] for row in response.json()] == ["Primera"]

    def test_unread_only_and_count(self, api, baas, seed):
        _notify(baas, seed.users.requester.id, "Leída", read=True)
        _notify(baas, seed.users.requester.id, "Nueva")
        headers = seed.users.requester.headers

        unread = api.get(BASE, params={"unread_only": True}, headers=headers)
        count = api.get(f"{BASE}/no-leidas", headers=headers)

        assert [row["title"] for row in unread.json()] == ["Nueva"]
        assert count.json() == {"unread": 1}

    def test_requires_session(self, api):
        assert api.get(BASE).status_code == 401


class TestMarkRead:
    def test_mark_one(self, api, baas, seed):
        notification = _notify(baas, seed.users.requester.id, "Nueva")
        headers = seed.users.requester.headers
        api.get(f"{BASE}/no-leidas", headers=headers)

        response = api.patch(f"{BASE}/{notification['id']}/leida", headers=headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Notificación marcada como leída"
        assert api.get(f"{BASE}/no-leidas", headers=headers).json() == {"unread": 0}

    def test_someone_elses_notification(self, api, baas, seed):
        notification = _notify(baas, seed.users.other.id, "Ajena")

        response = api.patch(f"{BASE}/{notification['id']}/leida", headers=seed.users.requester.headers)

        assert response.status_code == 404
        assert response.json()["detail"] == "Notificación no encontrada"
        row = baas.table("notifications").select("read").eq("id", notification["id"]).single().execute().data
        assert row["read"] is False

    def test_mark_all(self, api, baas, seed):
        _notify(baas, seed.users.requester.id, "Una")
        _notify(baas, seed.users.requester.id, "Dos")
        _notify(baas, seed.users.other.id, "Ajena")
        headers = seed.users.requester.headers

        response = api.patch(f"{BASE}/leidas", headers=headers)

        assert response.json()["message"] == "Todas las notificaciones fueron marcadas como leídas"
        assert api.get(f"{BASE}/no-leidas", headers=headers).json() == {"unread": 0}
        assert api.get(f"{BASE}/no-leidas", headers=seed.users.other.headers).json() == {"unread": 1}

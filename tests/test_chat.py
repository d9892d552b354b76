"""
Tests for the team chat: REST history and sending, and the WebSocket feed.
"""

from __future__ import annotations

import pytest
from fastapi import WebSocketDisconnect

from conecta2.services.app_context import get_app_context, subscribe_to_auth
from conecta2.services.chat_service import get_chat_hub

BASE = "/api/chat"
PASSWORD = "secret123"


class TestMessages:
    def test_send_and_list_oldest_first(self, api, seed):
        api.post(f"{BASE}/mensajes", json={"content": "Buenos días"}, headers=seed.users.requester.headers)
        sent = api.post(f"{BASE}/mensajes", json={"content": "  Hola equipo  "}, headers=seed.users.other.headers)

        response = api.get(f"{BASE}/mensajes", headers=seed.users.requester.headers)

        assert sent.status_code == 201
        assert sent.json()["message"] == "Mensaje enviado"
        assert [row["content"] for row in response.json()] == ["Buenos días", "Hola equipo"]
        assert response.json()[1]["sender"]["email"] == seed.users.other.email

    def test_limit_keeps_latest(self, api, seed):
        for text in ("uno", "dos", "tres"):
            api.post(f"{BASE}/mensajes", json={"content": text}, headers=seed.users.requester.headers)

        response = api.get(f"{BASE}/mensajes", params={"limit": 2}, headers=seed.users.requester.headers)

        assert [row["content"] for row in response.json()] == ["dos", "tres"]

    def test_blank_message(self, api, baas, seed):
        response = api.post(f"{BASE}/mensajes", json={"content": "   "}, headers=seed.users.requester.headers)

        assert response.status_code == 422
        assert response.json()["detail"] == "El mensaje no puede estar vacío"
        assert baas.faults.table_calls("chat_messages") == []

    def test_requires_session(self, api):
        assert api.get(f"{BASE}/mensajes").status_code == 401


class TestWebSocket:
    def test_frame_is_stored_and_broadcast(self, api, baas, seed):
        with api.websocket_connect(f"{BASE}/ws?token={seed.users.requester.token}") as ws:
            ws.send_json({"content": "Hola desde el socket"})
            row = ws.receive_json()

        assert row["content"] == "Hola desde el socket"
        assert row["sender_id"] == seed.users.requester.id
        stored = baas.table("chat_messages").select("content").execute().data
        assert stored == [{"content": "Hola desde el socket"}]

    def test_rest_message_reaches_socket(self, api, seed):
        with api.websocket_connect(f"{BASE}/ws?token={seed.users.requester.token}") as ws:
            api.post(f"{BASE}/mensajes", json={"content": "Reunión a las 3"}, headers=seed.users.other.headers)
            row = ws.receive_json()

        assert row["content"] == "Reunión a las 3"
        assert row["sender_id"] == seed.users.other.id

    def test_blank_frame_returns_error(self, api, seed):
        with api.websocket_connect(f"{BASE}/ws?token={seed.users.requester.token}") as ws:
            ws.send_json({"content": " "})
            reply = ws.receive_json()

        assert reply == {"error": "El mensaje no puede estar vacío"}

    def test_disconnect_unregisters_socket(self, api, seed):
        with api.websocket_connect(f"{BASE}/ws?token={seed.users.requester.token}") as ws:
            ws.send_json({"content": "ping"})
            ws.receive_json()
            assert get_chat_hub().connections == 1

        assert get_chat_hub().connections == 0

    @pytest.mark.parametrize("query", ["", "?token=basura"])
    def test_unauthenticated_socket_is_closed(self, api, seed, query):
        with pytest.raises(WebSocketDisconnect) as excinfo:
            with api.websocket_connect(f"{BASE}/ws{query}") as ws:
                ws.receive_json()

        assert excinfo.value.code == 1008

    def test_malformed_frame_keeps_socket_open(self, api, seed):
        with api.websocket_connect(f"{BASE}/ws?token={seed.users.requester.token}") as ws:
            ws.send_text("no es json")
            reply = ws.receive_json()
            ws.send_json({"content": "sigo aquí"})
            row = ws.receive_json()

        assert reply == {"error": "Formato de mensaje inválido"}
        assert row["content"] == "sigo aquí"

    def test_socket_closes_once_user_is_blocked(self, api, baas, seed):
        requester = seed.users.requester
        subscription = subscribe_to_auth(baas, get_app_context())
        try:
            with api.websocket_connect(f"{BASE}/ws?token={requester.token}") as ws:
                baas.table("profiles").update({"is_blocked": True}).eq("id", requester.id).execute()
                baas.auth.sign_in_with_password(requester.email, PASSWORD)
                ws.send_json({"content": "hola"})
                with pytest.raises(WebSocketDisconnect) as excinfo:
                    ws.receive_json()
        finally:
            subscription.unsubscribe()

        assert excinfo.value.code == 1008
        assert baas.table("chat_messages").select("id").execute().data == []

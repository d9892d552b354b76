"""
Team chat: message history, sending, and realtime fan-out.

``ChatHub`` holds one INSERT subscription on ``chat_messages`` and hands
every new row to the queues of the connected WebSockets.  Realtime
callbacks may run on any thread (the local client fires them inside the
inserting request, the hosted client from its polling thread), so rows
reach each socket's event loop through ``call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from functools import lru_cache
from typing import Any

from fastapi import HTTPException, status

from conecta2.baas.errors import BaasError
from conecta2.baas.types import Subscription
from conecta2.schemas.common import MutationResponse
from conecta2.services.errors import raise_baas_error

logger = logging.getLogger(__name__)

MSG_EMPTY_MESSAGE = "El mensaje no puede estar vacío"

_HISTORY_LIMIT = 50


def list_messages(client: Any, limit: int = _HISTORY_LIMIT) -> list[dict]:
    """The latest *limit* messages with sender email, oldest first."""
    try:
        rows = (
            client.table("chat_messages")
            .select("*, sender:profiles(email)")
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
            .data
        )
    except BaasError as exc:
        raise_baas_error(exc, "cargar los mensajes")
    return list(reversed(rows))


def send_message(client: Any, sender_id: str, content: str) -> MutationResponse:
    text = (content or "").strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=MSG_EMPTY_MESSAGE)
    try:
        row = client.table("chat_messages").insert({"content": text, "sender_id": sender_id}).execute().data[0]
    except BaasError as exc:
        raise_baas_error(exc, "enviar el mensaje")
    logger.debug("send_message: id=%s sender=%s", row["id"], sender_id)
    return MutationResponse(message="Mensaje enviado", data=row)


class ChatHub:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[int, tuple[asyncio.AbstractEventLoop, asyncio.Queue]] = {}
        self._client: Any = None
        self._subscription: Subscription | None = None

    def attach(self, client: Any) -> None:
        """Subscribe to inserts on *client*, replacing a previous client."""
        with self._lock:
            if self._client is client:
                return
            if self._subscription is not None:
                self._subscription.unsubscribe()
            self._subscription = client.channel("chat_messages").on_insert(self._broadcast)
            self._client = client

    def detach(self) -> None:
        with self._lock:
            if self._subscription is not None:
                self._subscription.unsubscribe()
            self._subscription = None
            self._client = None

    def connect(self) -> asyncio.Queue:
        """Register a queue for the calling event loop."""
        queue: asyncio.Queue = asyncio.Queue()
        with self._lock:
            self._listeners[id(queue)] = (asyncio.get_running_loop(), queue)
        return queue

    def disconnect(self, queue: asyncio.Queue) -> None:
        with self._lock:
            self._listeners.pop(id(queue), None)

    @property
    def connections(self) -> int:
        with self._lock:
            return len(self._listeners)

    def _broadcast(self, row: dict) -> None:
        with self._lock:
            listeners = list(self._listeners.values())
        for loop, queue in listeners:
            if loop.is_closed():
                continue
            loop.call_soon_threadsafe(queue.put_nowait, row)


@lru_cache
def get_chat_hub() -> ChatHub:
    return ChatHub()

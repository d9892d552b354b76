"""
In-app notifications addressed to the signed-in user.

Rows are written by other workflows (e.g. a purchase request edited by
someone other than its requester); this module only reads them and flips
the ``read`` flag.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, status

from conecta2.baas.errors import BaasError
from conecta2.schemas.common import MessageResponse
from conecta2.services.errors import raise_baas_error
from conecta2.services.query_cache import get_query_cache

logger = logging.getLogger(__name__)

_CACHE_KEY = "notifications"


def list_notifications(client: Any, user_id: str, unread_only: bool = False) -> list[dict]:
    """Own notifications, newest first."""

    def _fetch() -> list[dict]:
        return (
            client.table("notifications")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
            .data
        )

    try:
        rows = get_query_cache().fetch((_CACHE_KEY, user_id), _fetch)
    except BaasError as exc:
        raise_baas_error(exc, "cargar las notificaciones")
    return [row for row in rows if not unread_only or not row["read"]]


def unread_count(client: Any, user_id: str) -> int:
    return len(list_notifications(client, user_id, unread_only=True))


def mark_read(client: Any, user_id: str, notification_id: str) -> MessageResponse:
    try:
        rows = (
            client.table("notifications")
            .update({"read": True})
            .eq("id", notification_id)
            .eq("user_id", user_id)
            .execute()
            .data
        )
    except BaasError as exc:
        raise_baas_error(exc, "marcar la notificación como leída")
    if not rows:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notificación no encontrada")
    get_query_cache().invalidate(_CACHE_KEY, user_id)
    return MessageResponse(message="Notificación marcada como leída")


def mark_all_read(client: Any, user_id: str) -> MessageResponse:
    try:
        rows = (
            client.table("notifications")
            .update({"read": True})
            .eq("user_id", user_id)
            .eq("read", False)
            .execute()
            .data
        )
    except BaasError as exc:
        raise_baas_error(exc, "marcar las notificaciones como leídas")
    get_query_cache().invalidate(_CACHE_KEY, user_id)
    logger.info("mark_all_read: user=%s updated=%d", user_id, len(rows))
    return MessageResponse(message="Todas las notificaciones fueron marcadas como leídas")

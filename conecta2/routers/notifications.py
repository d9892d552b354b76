"""
Notifications router.

Mounts under ``/api/notificaciones`` (prefix set in ``main.py``).

Endpoints
---------
GET   /                 — Own notifications, newest first (``?unread_only``).
GET   /no-leidas        — Unread count.
PATCH /{id}/leida       — Mark one as read.
PATCH /leidas           — Mark all as read.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from conecta2.schemas.common import MessageResponse
from conecta2.schemas.notification import NotificationResponse, UnreadCountResponse
from conecta2.services import notification_service
from conecta2.services.auth_service import get_current_session
from conecta2.services.session_gate import CurrentSession

router = APIRouter(tags=["Notificaciones"])

Session = Annotated[CurrentSession, Depends(get_current_session)]


@router.get("", response_model=list[NotificationResponse], summary="Mis notificaciones")
def list_notificaciones(
    session: Session,
    unread_only: Annotated[bool, Query(description="Solo las no leídas.")] = False,
) -> list[dict]:
    return notification_service.list_notifications(session.client, session.user_id, unread_only)


@router.get("/no-leidas", response_model=UnreadCountResponse, summary="Cantidad de notificaciones no leídas")
def unread_count(session: Session) -> UnreadCountResponse:
    return UnreadCountResponse(unread=notification_service.unread_count(session.client, session.user_id))


@router.patch("/leidas", response_model=MessageResponse, summary="Marcar todas como leídas")
def mark_all_read(session: Session) -> MessageResponse:
    return notification_service.mark_all_read(session.client, session.user_id)


@router.patch(
    "/{notification_id}/leida",
    response_model=MessageResponse,
    summary="Marcar como leída",
    responses={404: {"description": "La notificación no existe o no es del usuario."}},
)
def mark_read(notification_id: str, session: Session) -> MessageResponse:
    return notification_service.mark_read(session.client, session.user_id, notification_id)

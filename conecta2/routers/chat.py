"""
Team chat router.

Mounts under ``/api/chat`` (prefix set in ``main.py``).

Endpoints
---------
GET  /mensajes     — Latest messages with sender email, oldest first.
POST /mensajes     — Send a message (trimmed, non-empty).
WS   /ws?token=... — Realtime feed of new messages; accepts
                     ``{"content": "..."}`` frames to send; closed
                     with 1008 once the user is recorded as blocked.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool

from conecta2.baas.client import BaasClient, get_client
from conecta2.schemas.chat import ChatMessageCreate, ChatMessageResponse
from conecta2.schemas.common import MutationResponse
from conecta2.services import chat_service
from conecta2.services.app_context import AppContext, get_app_context
from conecta2.services.auth_service import get_current_session
from conecta2.services.session_gate import MSG_BLOCKED, CurrentSession, GateState, SessionGate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat"])

Session = Annotated[CurrentSession, Depends(get_current_session)]

MSG_INVALID_FRAME = "Formato de mensaje inválido"


@router.get("/mensajes", response_model=list[ChatMessageResponse], summary="Mensajes recientes")
def list_mensajes(
    session: Session,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> list[dict]:
    return chat_service.list_messages(session.client, limit)


@router.post(
    "/mensajes",
    response_model=MutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enviar mensaje",
    responses={422: {"description": "Mensaje vacío."}},
)
def send_mensaje(body: ChatMessageCreate, session: Session) -> MutationResponse:
    return chat_service.send_message(session.client, session.user_id, body.content)


# ---------------------------------------------------------------------------
# WebSocket
# ---------------------------------------------------------------------------


@router.websocket("/ws")
async def chat_ws(
    websocket: WebSocket,
    client: Annotated[BaasClient, Depends(get_client)],
    context: Annotated[AppContext, Depends(get_app_context)],
    token: Annotated[str | None, Query()] = None,
) -> None:
    result = await run_in_threadpool(SessionGate(client).resolve, token)
    if result.state != GateState.AUTHORIZED:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=result.message)
        return

    session = result.session
    hub = chat_service.get_chat_hub()
    hub.attach(client)
    # registered before accept: every insert after the handshake reaches this socket
    queue = hub.connect()

    async def _forward() -> None:
        while True:
            row = await queue.get()
            await websocket.send_json(row)

    def _forward_done(task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error("chat_ws: forwarder for user=%s failed: %r", session.user_id, task.exception())

    forwarder: asyncio.Task | None = None
    try:
        await websocket.accept()
        logger.info("chat_ws: user=%s connected (%d open)", session.user_id, hub.connections)
        forwarder = asyncio.create_task(_forward())
        forwarder.add_done_callback(_forward_done)
        while True:
            try:
                frame = await websocket.receive_json()
            except ValueError:
                await websocket.send_json({"error": MSG_INVALID_FRAME})
                continue
            # flags follow auth events, so a block lands on sockets opened before it
            flags = context.get_flags(session.user_id)
            if flags is not None and flags.is_blocked:
                logger.warning("chat_ws: closing socket of blocked user %s", session.user_id)
                await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=MSG_BLOCKED)
                return
            content = frame.get("content") if isinstance(frame, dict) else None
            try:
                await run_in_threadpool(chat_service.send_message, session.client, session.user_id, content or "")
            except HTTPException as exc:
                await websocket.send_json({"error": exc.detail})
    except WebSocketDisconnect:
        logger.info("chat_ws: user=%s disconnected", session.user_id)
    finally:
        if forwarder is not None:
            forwarder.cancel()
        hub.disconnect(queue)

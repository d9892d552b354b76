"""
Travel requests (Solicitudes de Viaje) router.

Mounts under ``/api/solicitudes-viaje`` (prefix set in ``main.py``).

Approve, reject and complete require the purchases role (``Purchases``)
or the admin flag; everything else requires an authenticated session.

Endpoints
---------
GET    /                               — List (own, or all for approvers).
POST   /                               — Create request + expenses.
GET    /{id}                           — Detail with expenses and attachments.
POST   /{id}/aprobar                   — Approve (notes optional).
POST   /{id}/rechazar                  — Reject (notes required).
POST   /{id}/completar                 — Mark an approved request completed.
GET    /{id}/gastos                    — List expenses.
POST   /{id}/gastos                    — Add an expense with optional receipt.
DELETE /gastos/{expense_id}            — Delete an expense and its receipt.
GET    /gastos/{expense_id}/comprobante — Signed URL of the receipt.
GET    /{id}/adjuntos                  — List attachments.
POST   /{id}/adjuntos                  — Upload one or more files.
GET    /adjuntos/{attachment_id}/url   — Signed URL (3600 s).
DELETE /adjuntos/{attachment_id}       — Delete object and row.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from conecta2.schemas.common import MessageResponse, MutationResponse, SignedUrlResponse, UploadResponse
from conecta2.schemas.travel_request import (
    ApproveRequest,
    Currency,
    ExpenseType,
    RejectRequest,
    TravelExpenseCreate,
    TravelExpenseResponse,
    TravelRequestCreate,
    TravelRequestDetail,
    TravelRequestResponse,
    TravelStatus,
)
from conecta2.services import attachments, travel_request_service
from conecta2.services.auth_service import get_current_session, require_role
from conecta2.services.session_gate import CurrentSession
from conecta2.utils.constants import TRAVEL_APPROVER_ROLES

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Solicitudes de Viaje"])

Session = Annotated[CurrentSession, Depends(get_current_session)]
ApproverSession = Annotated[CurrentSession, Depends(require_role(*TRAVEL_APPROVER_ROLES))]

_APPROVER_RESPONSES = {
    403: {"description": "Se requiere el rol de compras."},
    409: {"description": "La solicitud no está en un estado que lo permita."},
}


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@router.get(
    "",
    response_model=list[TravelRequestResponse],
    summary="Listado de solicitudes de viaje",
    description="Los aprobadores ven todas las solicitudes; el resto, solo las propias.",
)
def list_solicitudes(
    session: Session,
    estado: Annotated[
        TravelStatus | None,
        Query(alias="status", description="Filtrar por estado."),
    ] = None,
) -> list[dict]:
    return travel_request_service.list_travel_requests(session.client, session, estado)


@router.post(
    "",
    response_model=MutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Crear solicitud de viaje",
    responses={422: {"description": "Formulario incompleto o fechas inválidas."}},
)
def create_solicitud(body: TravelRequestCreate, session: Session) -> MutationResponse:
    return travel_request_service.create_travel_request(session.client, session.user_id, body)


@router.get("/{request_id}", response_model=TravelRequestDetail, summary="Detalle de solicitud de viaje")
def get_solicitud(request_id: str, session: Session) -> dict:
    return travel_request_service.get_travel_request(session.client, request_id)


@router.post(
    "/{request_id}/aprobar",
    response_model=MutationResponse,
    summary="Aprobar solicitud",
    description="Avanza un paso la cadena de aprobación. Las notas son opcionales.",
    responses=_APPROVER_RESPONSES,
)
def approve_solicitud(request_id: str, session: ApproverSession, body: ApproveRequest | None = None) -> MutationResponse:
    notes = body.notes if body else None
    return travel_request_service.approve(session.client, session, request_id, notes)


@router.post(
    "/{request_id}/rechazar",
    response_model=MutationResponse,
    summary="Rechazar solicitud",
    responses={**_APPROVER_RESPONSES, 422: {"description": "Falta el motivo del rechazo."}},
)
def reject_solicitud(request_id: str, body: RejectRequest, session: ApproverSession) -> MutationResponse:
    return travel_request_service.reject(session.client, session, request_id, body.notes)


@router.post(
    "/{request_id}/completar",
    response_model=MutationResponse,
    summary="Marcar como completada",
    responses=_APPROVER_RESPONSES,
)
def complete_solicitud(request_id: str, session: ApproverSession) -> MutationResponse:
    return travel_request_service.complete(session.client, request_id)


# ---------------------------------------------------------------------------
# Gastos
# ---------------------------------------------------------------------------


@router.get("/{request_id}/gastos", response_model=list[TravelExpenseResponse], summary="Gastos de la solicitud")
def list_gastos(request_id: str, session: Session) -> list[dict]:
    return travel_request_service.list_expenses(session.client, request_id)


@router.post(
    "/{request_id}/gastos",
    response_model=MutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Agregar gasto",
    description="Formulario multipart; el comprobante es opcional.",
)
async def add_gasto(
    request_id: str,
    session: Session,
    expense_type: Annotated[ExpenseType, Form()],
    estimated_amount: Annotated[float, Form(ge=0)],
    currency: Annotated[Currency, Form()] = "PEN",
    description: Annotated[str | None, Form()] = None,
    receipt: Annotated[UploadFile | None, File(description="Comprobante.")] = None,
) -> MutationResponse:
    expense = TravelExpenseCreate(
        expense_type=expense_type,
        estimated_amount=estimated_amount,
        currency=currency,
        description=description,
    )
    incoming = (await attachments.read_uploads([receipt]))[0] if receipt is not None else None
    return await run_in_threadpool(
        travel_request_service.add_expense, session.client, request_id, expense, incoming
    )


@router.delete("/gastos/{expense_id}", response_model=MessageResponse, summary="Eliminar gasto")
def delete_gasto(expense_id: str, session: Session) -> MessageResponse:
    return travel_request_service.delete_expense(session.client, expense_id)


@router.get(
    "/gastos/{expense_id}/comprobante",
    response_model=SignedUrlResponse,
    summary="Enlace firmado del comprobante",
)
def comprobante_url(expense_id: str, session: Session) -> SignedUrlResponse:
    return travel_request_service.receipt_url(session.client, expense_id)


# ---------------------------------------------------------------------------
# Adjuntos
# ---------------------------------------------------------------------------


@router.get("/{request_id}/adjuntos", summary="Archivos adjuntos")
def list_adjuntos(request_id: str, session: Session) -> list[dict]:
    return travel_request_service.list_attachments(session.client, request_id)


@router.post("/{request_id}/adjuntos", response_model=UploadResponse, summary="Subir archivos adjuntos")
async def upload_adjuntos(
    request_id: str,
    files: Annotated[list[UploadFile], File(description="Uno o más archivos.")],
    session: Session,
) -> UploadResponse:
    incoming = await attachments.read_uploads(files)
    logger.info("upload_adjuntos: travel request=%s files=%d", request_id, len(incoming))
    return await run_in_threadpool(
        travel_request_service.upload_attachments,
        session.client,
        session.user_id,
        request_id,
        incoming,
    )


@router.get("/adjuntos/{attachment_id}/url", response_model=SignedUrlResponse, summary="Enlace firmado")
def url_adjunto(attachment_id: str, session: Session) -> SignedUrlResponse:
    return travel_request_service.attachment_url(session.client, attachment_id)


@router.delete("/adjuntos/{attachment_id}", response_model=MessageResponse, summary="Eliminar archivo adjunto")
def delete_adjunto(attachment_id: str, session: Session) -> MessageResponse:
    return travel_request_service.delete_attachment(session.client, attachment_id)

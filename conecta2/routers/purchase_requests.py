"""
Purchase requests (Solicitudes de Compra) router.

Mounts under ``/api/solicitudes-compra`` (prefix set in ``main.py``).

All endpoints require an authenticated session.  Status changes and
deletion additionally require one of the purchase manager roles
(``admin``, ``manager``, ``Purchases``) or the admin flag.

Endpoints
---------
GET    /                               — List (status, search, include_deleted).
GET    /exportar                       — Filtered list as .xlsx.
POST   /                               — Create request + item.
GET    /{id}                           — Detail with attachments and comments.
PUT    /{id}                           — Edit (notifies the requester).
PATCH  /{id}/estado                    — Change status.
DELETE /{id}                           — Soft delete.
GET    /{id}/adjuntos                  — List attachments.
POST   /{id}/adjuntos                  — Upload one or more files.
GET    /adjuntos/{attachment_id}       — Download an attachment.
GET    /adjuntos/{attachment_id}/url   — Signed URL (3600 s).
DELETE /adjuntos/{attachment_id}       — Delete object and row.
GET    /{id}/comentarios               — List comments.
POST   /{id}/comentarios               — Add a comment.
"""

from __future__ import annotations

import io
import logging
from datetime import date
from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse

from conecta2.schemas.common import (
    MessageResponse,
    MutationResponse,
    SignedUrlResponse,
    UploadResponse,
)
from conecta2.schemas.purchase_request import (
    AttachmentResponse,
    CommentCreate,
    CommentResponse,
    PurchaseRequestCreate,
    PurchaseRequestDetail,
    PurchaseRequestResponse,
    PurchaseRequestUpdate,
    StatusChangeRequest,
)
from conecta2.services import attachments, purchase_request_service
from conecta2.services.auth_service import get_current_session, require_role
from conecta2.services.session_gate import CurrentSession
from conecta2.utils.constants import PURCHASE_MANAGER_ROLES, PURCHASE_STATUS_LABELS

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Solicitudes de Compra"])

Session = Annotated[CurrentSession, Depends(get_current_session)]
ManagerSession = Annotated[CurrentSession, Depends(require_role(*PURCHASE_MANAGER_ROLES))]

_XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _list_filters(
    estado: Annotated[
        str | None,
        Query(alias="status", description="Filtrar por estado, ej. 'pending'."),
    ] = None,
    search: Annotated[
        str | None,
        Query(description="Texto a buscar en número, laboratorio y estado.", max_length=200),
    ] = None,
    include_deleted: Annotated[
        bool,
        Query(description="Incluir solicitudes eliminadas."),
    ] = False,
) -> dict:
    return {"status_filter": estado, "search": search, "include_deleted": include_deleted}


Filters = Annotated[dict, Depends(_list_filters)]


# ---------------------------------------------------------------------------
# GET /
# ---------------------------------------------------------------------------


@router.get(
    "",
    response_model=list[PurchaseRequestResponse],
    summary="Listado de solicitudes de compra",
    description=(
        "Solicitudes visibles para el usuario con laboratorio, código presupuestal, "
        "ítems, producto y proveedor, de la más reciente a la más antigua."
    ),
    responses={401: {"description": "Sesión ausente o inválida."}},
)
def list_solicitudes(session: Session, filters: Filters) -> list[dict]:
    return purchase_request_service.list_purchase_requests(session.client, session.user_id, **filters)


# ---------------------------------------------------------------------------
# GET /exportar
# ---------------------------------------------------------------------------


@router.get(
    "/exportar",
    summary="Exportar solicitudes a Excel (.xlsx)",
    response_class=StreamingResponse,
    responses={200: {"content": {_XLSX: {}}, "description": "Archivo Excel generado."}},
)
def export_solicitudes(session: Session, filters: Filters) -> StreamingResponse:
    rows = purchase_request_service.list_purchase_requests(session.client, session.user_id, **filters)
    labels: dict[str, str] = {}
    if filters["status_filter"]:
        labels["Estado"] = PURCHASE_STATUS_LABELS.get(filters["status_filter"], filters["status_filter"])
    if filters["search"]:
        labels["Búsqueda"] = filters["search"]

    file_bytes = purchase_request_service.export_excel(rows, labels)
    filename = f"conecta2_solicitudes_compra_{date.today().isoformat()}.xlsx"
    return StreamingResponse(
        io.BytesIO(file_bytes),
        media_type=_XLSX,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Content-Length": str(len(file_bytes)),
        },
    )


# ---------------------------------------------------------------------------
# POST /
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=MutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Crear solicitud de compra",
    description=(
        "Inserta la solicitud y luego su ítem. Si el ítem falla la solicitud se "
        "elimina y se reporta el error. Campos faltantes o inválidos responden 422 "
        "sin escribir nada."
    ),
    responses={422: {"description": "Formulario incompleto o inválido."}},
)
def create_solicitud(body: PurchaseRequestCreate, session: Session) -> MutationResponse:
    return purchase_request_service.create_purchase_request(session.client, session.user_id, body)


# ---------------------------------------------------------------------------
# /{id}
# ---------------------------------------------------------------------------


@router.get("/{request_id}", response_model=PurchaseRequestDetail, summary="Detalle de solicitud")
def get_solicitud(request_id: str, session: Session) -> dict:
    return purchase_request_service.get_purchase_request(session.client, request_id)


@router.put(
    "/{request_id}",
    response_model=MutationResponse,
    summary="Editar solicitud",
    description=(
        "Si quien edita no es el solicitante y cambió algún campo, el solicitante "
        "recibe una notificación con la lista de campos modificados."
    ),
    responses={403: {"description": "Sin permisos para editar la solicitud."}},
)
def update_solicitud(request_id: str, body: PurchaseRequestUpdate, session: Session) -> MutationResponse:
    return purchase_request_service.update_purchase_request(session.client, session, request_id, body)


@router.patch(
    "/{request_id}/estado",
    response_model=MutationResponse,
    summary="Cambiar estado",
    responses={403: {"description": "Rol insuficiente."}, 422: {"description": "Estado desconocido."}},
)
def change_estado(request_id: str, body: StatusChangeRequest, session: ManagerSession) -> MutationResponse:
    return purchase_request_service.change_status(session.client, request_id, body.status)


@router.delete(
    "/{request_id}",
    response_model=MessageResponse,
    summary="Eliminar solicitud (borrado lógico)",
    responses={403: {"description": "Rol insuficiente."}},
)
def delete_solicitud(request_id: str, session: ManagerSession) -> MessageResponse:
    return purchase_request_service.soft_delete(session.client, request_id)


# ---------------------------------------------------------------------------
# Adjuntos
# ---------------------------------------------------------------------------


@router.get("/{request_id}/adjuntos", response_model=list[AttachmentResponse], summary="Archivos adjuntos")
def list_adjuntos(request_id: str, session: Session) -> list[dict]:
    return purchase_request_service.list_attachments(session.client, request_id)


@router.post(
    "/{request_id}/adjuntos",
    response_model=UploadResponse,
    summary="Subir archivos adjuntos",
    description=(
        "Los archivos se suben uno a uno. Un archivo que falla se reporta en "
        "``results`` y no detiene a los demás."
    ),
)
async def upload_adjuntos(
    request_id: str,
    files: Annotated[list[UploadFile], File(description="Uno o más archivos.")],
    session: Session,
) -> UploadResponse:
    incoming = await attachments.read_uploads(files)
    logger.info("upload_adjuntos: request=%s files=%d", request_id, len(incoming))
    return await run_in_threadpool(
        purchase_request_service.upload_attachments,
        session.client,
        session.user_id,
        request_id,
        incoming,
    )


@router.get("/adjuntos/{attachment_id}", summary="Descargar archivo adjunto", response_class=StreamingResponse)
def download_adjunto(attachment_id: str, session: Session) -> StreamingResponse:
    row, content = purchase_request_service.download_attachment(session.client, attachment_id)
    return StreamingResponse(
        io.BytesIO(content),
        media_type=row.get("file_type") or "application/octet-stream",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(row['file_name'])}"},
    )


@router.get("/adjuntos/{attachment_id}/url", response_model=SignedUrlResponse, summary="Enlace firmado")
def url_adjunto(attachment_id: str, session: Session) -> SignedUrlResponse:
    return purchase_request_service.attachment_url(session.client, attachment_id)


@router.delete("/adjuntos/{attachment_id}", response_model=MessageResponse, summary="Eliminar archivo adjunto")
def delete_adjunto(attachment_id: str, session: Session) -> MessageResponse:
    return purchase_request_service.delete_attachment(session.client, attachment_id)


# ---------------------------------------------------------------------------
# Comentarios
# ---------------------------------------------------------------------------


@router.get("/{request_id}/comentarios", response_model=list[CommentResponse], summary="Comentarios")
def list_comentarios(request_id: str, session: Session) -> list[dict]:
    return purchase_request_service.list_comments(session.client, request_id)


@router.post(
    "/{request_id}/comentarios",
    response_model=MutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Agregar comentario",
    responses={422: {"description": "Comentario vacío."}},
)
def add_comentario(request_id: str, body: CommentCreate, session: Session) -> MutationResponse:
    return purchase_request_service.add_comment(session.client, session.user_id, request_id, body.content)

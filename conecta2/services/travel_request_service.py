"""
Travel request (Solicitudes de Viaje) business logic.

The approval chain is ``pendiente -> aprobado_por_gerente ->
aprobado_por_finanzas -> completado``.  Approval goes through the
``approve_travel_request`` remote procedure, which picks the next step
server-side; rejection is a direct update and needs a reason.

``travel_requests`` references ``profiles`` three times (requester,
manager, finance approver), so embeds name the column:
``profiles!user_id``.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, status

from conecta2.baas.errors import BaasError
from conecta2.config import get_settings
from conecta2.schemas.common import MessageResponse, MutationResponse, SignedUrlResponse, UploadResponse
from conecta2.schemas.travel_request import TravelExpenseCreate, TravelRequestCreate
from conecta2.services import attachments
from conecta2.services.errors import not_found, raise_baas_error
from conecta2.services.query_cache import get_query_cache
from conecta2.services.session_gate import CurrentSession
from conecta2.utils.constants import (
    BUCKET_TRAVEL_ATTACHMENTS,
    BUCKET_TRAVEL_RECEIPTS,
    TRAVEL_APPROVER_ROLES,
    TRAVEL_STATUS_LABELS,
)
from conecta2.utils.filenames import receipt_path

logger = logging.getLogger(__name__)

_ENTITY = "solicitud de viaje"
_CACHE_KEY = "travelRequests"

MSG_REJECT_NOTES_REQUIRED = "Por favor ingrese un motivo para el rechazo"

_LIST_COLUMNS = (
    "*, requester:profiles!user_id(id, email, first_name, last_name), "
    "laboratory:laboratories(id, name)"
)
_DETAIL_COLUMNS = (
    f"{_LIST_COLUMNS}, budget_code:budget_codes(id, code, description), "
    "travel_expenses(*), travel_attachments(*)"
)

_APPROVABLE = ("pendiente", "aprobado_por_gerente")
_REJECTABLE = ("pendiente", "aprobado_por_gerente", "aprobado_por_finanzas")

STORE = attachments.AttachmentStore(
    bucket=BUCKET_TRAVEL_ATTACHMENTS,
    table="travel_attachments",
    owner_column="travel_request_id",
)


def status_label(value: str) -> str:
    return TRAVEL_STATUS_LABELS.get(value, value)


def _with_label(row: dict) -> dict:
    row = dict(row)
    row["status_label"] = status_label(row["status"])
    return row


def _conflict(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Solicitud de viaje no encontrada")


def _fetch_request(client: Any, request_id: str, columns: str = "id, user_id, status") -> dict:
    try:
        row = (
            client.table("travel_requests")
            .select(columns)
            .eq("id", request_id)
            .maybe_single()
            .execute()
            .data
        )
    except BaasError as exc:
        raise_baas_error(exc, "cargar la solicitud de viaje", _ENTITY)
    if row is None:
        raise _not_found()
    return row


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def list_travel_requests(
    client: Any,
    session: CurrentSession,
    status_filter: str | None = None,
) -> list[dict]:
    """Own requests, or every request for approvers, newest first."""
    see_all = session.has_role(*TRAVEL_APPROVER_ROLES)

    def _fetch() -> list[dict]:
        query = client.table("travel_requests").select(_LIST_COLUMNS)
        if not see_all:
            query = query.eq("user_id", session.user_id)
        return query.order("created_at", desc=True).execute().data

    try:
        rows = get_query_cache().fetch((_CACHE_KEY, session.user_id, see_all), _fetch)
    except BaasError as exc:
        raise_baas_error(exc, "cargar las solicitudes de viaje")
    return [_with_label(row) for row in rows if not status_filter or row["status"] == status_filter]


def get_travel_request(client: Any, request_id: str) -> dict:
    return _with_label(_fetch_request(client, request_id, _DETAIL_COLUMNS))


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


def create_travel_request(client: Any, user_id: str, data: TravelRequestCreate) -> MutationResponse:
    """Insert the request, then its expense lines.

    A failed expense insert deletes the request again before the error is
    reported.
    """
    values = data.model_dump(mode="json", exclude={"expenses"})
    values.update(user_id=user_id, status="pendiente")
    try:
        request_row = client.table("travel_requests").insert(values).execute().data[0]
    except BaasError as exc:
        raise_baas_error(exc, "crear la solicitud de viaje", _ENTITY)

    if data.expenses:
        expense_rows = [
            {**expense.model_dump(mode="json"), "travel_request_id": request_row["id"]}
            for expense in data.expenses
        ]
        try:
            client.table("travel_expenses").insert(expense_rows).execute()
        except BaasError as exc:
            logger.warning(
                "expense insert failed for travel request %s, deleting it: %s",
                request_row["id"], exc.message,
            )
            try:
                client.table("travel_requests").delete().eq("id", request_row["id"]).execute()
            except BaasError as cleanup_exc:
                logger.error("could not delete orphan travel request %s: %r", request_row["id"], cleanup_exc)
            raise_baas_error(exc, "registrar los gastos de la solicitud")

    get_query_cache().invalidate(_CACHE_KEY)
    logger.info("create_travel_request: id=%s expenses=%d", request_row["id"], len(data.expenses))
    return MutationResponse(message="Solicitud de viaje creada exitosamente", data=_with_label(request_row))


# ---------------------------------------------------------------------------
# Approval chain
# ---------------------------------------------------------------------------


def approve(client: Any, approver: CurrentSession, request_id: str, notes: str | None = None) -> MutationResponse:
    """Advance the request one approval step through the remote procedure.

    Notes are optional.

    Raises:
        HTTPException 409: The request is not awaiting an approval.
    """
    current = _fetch_request(client, request_id)
    if current["status"] not in _APPROVABLE:
        raise _conflict(f"La solicitud no puede aprobarse en estado {status_label(current['status'])}")

    params = {
        "request_id": request_id,
        "approver_id": approver.user_id,
        "notes": (notes or "").strip() or None,
    }
    try:
        result = client.rpc("approve_travel_request", params).data
    except BaasError as exc:
        raise_baas_error(exc, "aprobar la solicitud", _ENTITY)

    get_query_cache().invalidate(_CACHE_KEY)
    logger.info("approve travel request: id=%s by=%s from=%s", request_id, approver.user_id, current["status"])
    row = result if isinstance(result, dict) else _fetch_request(client, request_id, "*")
    return MutationResponse(message="Solicitud aprobada exitosamente", data=_with_label(row))


def reject(client: Any, approver: CurrentSession, request_id: str, notes: str | None) -> MutationResponse:
    """Reject with a mandatory reason.

    Blank notes are refused before any call reaches the backend.

    Raises:
        HTTPException 422: ``notes`` empty or whitespace.
        HTTPException 409: The request is already closed.
    """
    reason = (notes or "").strip()
    if not reason:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=MSG_REJECT_NOTES_REQUIRED)

    current = _fetch_request(client, request_id)
    if current["status"] not in _REJECTABLE:
        raise _conflict(f"La solicitud no puede rechazarse en estado {status_label(current['status'])}")

    try:
        rows = (
            client.table("travel_requests")
            .update({"status": "rechazado", "manager_notes": reason, "manager_id": approver.user_id})
            .eq("id", request_id)
            .execute()
            .data
        )
    except BaasError as exc:
        raise_baas_error(exc, "rechazar la solicitud", _ENTITY)
    if not rows:
        raise _not_found()

    get_query_cache().invalidate(_CACHE_KEY)
    logger.info("reject travel request: id=%s by=%s", request_id, approver.user_id)
    return MutationResponse(message="Solicitud rechazada", data=_with_label(rows[0]))


def complete(client: Any, request_id: str) -> MutationResponse:
    current = _fetch_request(client, request_id)
    if current["status"] != "aprobado_por_finanzas":
        raise _conflict("Solo las solicitudes aprobadas por finanzas pueden completarse")
    try:
        rows = (
            client.table("travel_requests")
            .update({"status": "completado"})
            .eq("id", request_id)
            .execute()
            .data
        )
    except BaasError as exc:
        raise_baas_error(exc, "completar la solicitud", _ENTITY)
    if not rows:
        raise _not_found()
    get_query_cache().invalidate(_CACHE_KEY)
    logger.info("complete travel request: id=%s", request_id)
    return MutationResponse(message="Solicitud marcada como completada", data=_with_label(rows[0]))


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------


def list_expenses(client: Any, request_id: str) -> list[dict]:
    try:
        return (
            client.table("travel_expenses")
            .select("*")
            .eq("travel_request_id", request_id)
            .order("created_at")
            .execute()
            .data
        )
    except BaasError as exc:
        raise_baas_error(exc, "cargar los gastos")


def add_expense(
    client: Any,
    request_id: str,
    data: TravelExpenseCreate,
    receipt: attachments.IncomingFile | None = None,
) -> MutationResponse:
    """Add one expense line, uploading its receipt first when given.

    The receipt lands at ``{request_id}/{uuid}-{name}`` in
    ``travel-receipts`` and is removed again if the row insert fails.
    """
    _fetch_request(client, request_id)
    bucket = client.storage.from_(BUCKET_TRAVEL_RECEIPTS)
    path = None
    if receipt is not None:
        path = receipt_path(request_id, receipt.name)
        try:
            bucket.upload(path, receipt.content, receipt.content_type, cache_control=get_settings().UPLOAD_CACHE_CONTROL)
        except BaasError as exc:
            raise_baas_error(exc, f"subir {receipt.name}")

    values = {**data.model_dump(mode="json"), "travel_request_id": request_id, "receipt_path": path}
    try:
        row = client.table("travel_expenses").insert(values).execute().data[0]
    except BaasError as exc:
        if path is not None:
            logger.warning("expense insert failed, removing receipt %s: %s", path, exc.message)
            try:
                bucket.remove([path])
            except BaasError as cleanup_exc:
                logger.error("could not remove orphan receipt %s: %r", path, cleanup_exc)
        raise_baas_error(exc, "registrar el gasto")

    get_query_cache().invalidate(_CACHE_KEY)
    logger.info("add_expense: request=%s expense=%s receipt=%s", request_id, row["id"], bool(path))
    return MutationResponse(message="Gasto agregado exitosamente", data=row)


def _fetch_expense(client: Any, expense_id: str) -> dict:
    try:
        row = client.table("travel_expenses").select("*").eq("id", expense_id).maybe_single().execute().data
    except BaasError as exc:
        raise_baas_error(exc, "cargar el gasto")
    if row is None:
        raise not_found("gasto")
    return row


def delete_expense(client: Any, expense_id: str) -> MessageResponse:
    row = _fetch_expense(client, expense_id)
    try:
        if row.get("receipt_path"):
            client.storage.from_(BUCKET_TRAVEL_RECEIPTS).remove([row["receipt_path"]])
        client.table("travel_expenses").delete().eq("id", expense_id).execute()
    except BaasError as exc:
        raise_baas_error(exc, "eliminar el gasto")
    get_query_cache().invalidate(_CACHE_KEY)
    logger.info("delete_expense: %s", expense_id)
    return MessageResponse(message="Gasto eliminado exitosamente")


def receipt_url(client: Any, expense_id: str) -> SignedUrlResponse:
    row = _fetch_expense(client, expense_id)
    if not row.get("receipt_path"):
        raise not_found("comprobante")
    expires_in = get_settings().SIGNED_URL_EXPIRES_IN
    try:
        url = client.storage.from_(BUCKET_TRAVEL_RECEIPTS).create_signed_url(row["receipt_path"], expires_in)
    except BaasError as exc:
        raise_baas_error(exc, "generar el enlace del comprobante")
    return SignedUrlResponse(url=url, expires_in=expires_in)


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------


def upload_attachments(
    client: Any,
    user_id: str,
    request_id: str,
    files: list[attachments.IncomingFile],
) -> UploadResponse:
    _fetch_request(client, request_id)
    return attachments.upload_files(client, STORE, request_id, files, user_id)


def list_attachments(client: Any, request_id: str) -> list[dict]:
    return attachments.list_files(client, STORE, request_id)


def attachment_url(client: Any, attachment_id: str) -> SignedUrlResponse:
    return attachments.signed_url(client, STORE, attachment_id)


def delete_attachment(client: Any, attachment_id: str) -> MessageResponse:
    attachments.delete_file(client, STORE, attachment_id)
    return MessageResponse(message="Archivo eliminado exitosamente")

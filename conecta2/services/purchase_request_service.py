"""
Purchase request (Solicitudes de Compra) business logic.

Provides:
- ``list_purchase_requests`` — joined list with the search and status
  filters applied in Python after the fetch.
- ``create_purchase_request`` — request row then item row; the request is
  deleted again when the item insert fails.
- ``update_purchase_request`` — field diff, request and first item
  update, and one notification to the requester when someone else edits.
- ``change_status`` / ``soft_delete``.
- attachments, comments and the ``.xlsx`` export.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, status

from conecta2.baas.errors import BaasError
from conecta2.database import utcnow
from conecta2.exporters.excel_exporter import ExcelExporter
from conecta2.schemas.common import MessageResponse, MutationResponse, SignedUrlResponse, UploadResponse
from conecta2.schemas.purchase_request import PurchaseRequestCreate, PurchaseRequestUpdate
from conecta2.services import attachments
from conecta2.services.errors import not_found, raise_baas_error
from conecta2.services.query_cache import get_query_cache
from conecta2.services.session_gate import CurrentSession
from conecta2.utils.constants import (
    BUCKET_PURCHASE_ATTACHMENTS,
    PURCHASE_MANAGER_ROLES,
    PURCHASE_STATUS_LABELS,
)

logger = logging.getLogger(__name__)

_ENTITY = "solicitud de compra"
_CACHE_KEY = "purchaseRequests"

_LIST_COLUMNS = (
    "*, laboratory:laboratories(id, name), "
    "budget_code:budget_codes(id, code, description), "
    "purchase_request_items(id, product_id, quantity, unit_price, currency, "
    "product:products(id, name, supplier:suppliers(id, name)))"
)
_DETAIL_COLUMNS = f"{_LIST_COLUMNS}, requester:profiles(id, email, first_name, last_name)"

STORE = attachments.AttachmentStore(
    bucket=BUCKET_PURCHASE_ATTACHMENTS,
    table="purchase_request_attachments",
    owner_column="purchase_request_id",
)

# (payload field, label in the change notification, lives on the item row)
_TRACKED_FIELDS: list[tuple[str, str, bool]] = [
    ("laboratory_id", "laboratorio", False),
    ("budget_code_id", "código presupuestal", False),
    ("observations", "observaciones", False),
    ("product_id", "producto", True),
    ("quantity", "cantidad", True),
    ("unit_price", "precio unitario", True),
    ("currency", "moneda", True),
]


def status_label(value: str) -> str:
    return PURCHASE_STATUS_LABELS.get(value, value)


def _with_label(row: dict) -> dict:
    row = dict(row)
    row["status_label"] = status_label(row["status"])
    return row


def _first_item(row: dict) -> dict:
    items = row.get("purchase_request_items") or []
    return items[0] if items else {}


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def _matches(row: dict, needle: str) -> bool:
    laboratory = row.get("laboratory") or {}
    haystack = " ".join([
        str(row.get("number", "")),
        laboratory.get("name") or "",
        row["status"],
        status_label(row["status"]),
    ])
    return needle in haystack.lower()


def list_purchase_requests(
    client: Any,
    user_id: str,
    status_filter: str | None = None,
    search: str | None = None,
    include_deleted: bool = False,
) -> list[dict]:
    """Requests visible to the caller, newest first.

    The backend's row policies decide which requests a user sees; this
    function only filters the fetched rows.

    Args:
        client: Caller-scoped client.
        user_id: Caller id, part of the cache key.
        status_filter: Keep only this status.
        search: Case-insensitive text matched against the number, the
                laboratory name, the status and its label.
        include_deleted: Keep soft-deleted requests.
    """

    def _fetch() -> list[dict]:
        return (
            client.table("purchase_requests")
            .select(_LIST_COLUMNS)
            .order("created_at", desc=True)
            .execute()
            .data
        )

    try:
        rows = get_query_cache().fetch((_CACHE_KEY, user_id), _fetch)
    except BaasError as exc:
        raise_baas_error(exc, "cargar las solicitudes de compra")

    result = []
    needle = (search or "").strip().lower()
    for row in rows:
        if not include_deleted and row.get("deleted_at"):
            continue
        if status_filter and row["status"] != status_filter:
            continue
        if needle and not _matches(row, needle):
            continue
        result.append(_with_label(row))
    return result


def _fetch_request(client: Any, request_id: str, columns: str = _DETAIL_COLUMNS) -> dict:
    try:
        row = (
            client.table("purchase_requests")
            .select(columns)
            .eq("id", request_id)
            .maybe_single()
            .execute()
            .data
        )
    except BaasError as exc:
        raise_baas_error(exc, "cargar la solicitud de compra", _ENTITY)
    if row is None or row.get("deleted_at"):
        raise not_found(_ENTITY)
    return row


def get_purchase_request(client: Any, request_id: str) -> dict:
    row = _with_label(_fetch_request(client, request_id))
    row["attachments"] = attachments.list_files(client, STORE, request_id)
    row["comments"] = list_comments(client, request_id)
    return row


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


def create_purchase_request(client: Any, user_id: str, data: PurchaseRequestCreate) -> MutationResponse:
    """Insert the request, then its single item.

    If the item insert fails the request row is deleted again and the item
    error is reported.

    Raises:
        HTTPException: Mapped from the failing insert.
    """
    request_values = {
        "laboratory_id": data.laboratory_id,
        "budget_code_id": data.budget_code_id,
        "user_id": user_id,
        "status": "pending",
        "observations": data.observations,
        "total_amount": data.quantity * data.unit_price,
    }
    try:
        request_row = client.table("purchase_requests").insert(request_values).execute().data[0]
    except BaasError as exc:
        raise_baas_error(exc, "crear la solicitud de compra", _ENTITY)

    item_values = {
        "purchase_request_id": request_row["id"],
        "product_id": data.product_id,
        "quantity": data.quantity,
        "unit_price": data.unit_price,
        "currency": data.currency,
    }
    try:
        client.table("purchase_request_items").insert(item_values).execute()
    except BaasError as exc:
        logger.warning(
            "item insert failed for purchase request %s, deleting it: %s",
            request_row["id"], exc.message,
        )
        try:
            client.table("purchase_requests").delete().eq("id", request_row["id"]).execute()
        except BaasError as cleanup_exc:
            logger.error("could not delete orphan purchase request %s: %r", request_row["id"], cleanup_exc)
        raise_baas_error(exc, "crear el ítem de la solicitud")

    get_query_cache().invalidate(_CACHE_KEY)
    logger.info("create_purchase_request: id=%s number=%s", request_row["id"], request_row.get("number"))
    return MutationResponse(message="Solicitud de compra creada exitosamente", data=_with_label(request_row))


# ---------------------------------------------------------------------------
# Edit
# ---------------------------------------------------------------------------


def diff_fields(current: dict, item: dict, values: dict[str, Any]) -> list[str]:
    """Labels of the tracked fields whose value in *values* differs."""
    changed = []
    for field, label, on_item in _TRACKED_FIELDS:
        if field not in values:
            continue
        old = (item if on_item else current).get(field)
        if values[field] != old:
            changed.append(label)
    return changed


def _notify_requester(client: Any, editor: CurrentSession, request: dict, changed: list[str]) -> None:
    notification = {
        "user_id": request["user_id"],
        "purchase_request_id": request["id"],
        "title": f"Solicitud #{request['number']} modificada",
        "message": (
            f"{editor.profile.get('first_name') or ''} {editor.profile.get('last_name') or ''} "
            f"ha modificado los siguientes campos de tu solicitud: {', '.join(changed)}"
        ),
    }
    try:
        client.table("notifications").insert(notification).execute()
    except BaasError as exc:
        logger.error("notification for purchase request %s failed: %r", request["id"], exc)
        return
    get_query_cache().invalidate("notifications", request["user_id"])


def update_purchase_request(
    client: Any,
    editor: CurrentSession,
    request_id: str,
    data: PurchaseRequestUpdate,
) -> MutationResponse:
    """Apply an edit and tell the requester what changed.

    The requester may edit their own request; anybody else needs one of
    the purchase manager roles.  When the editor is not the requester and
    at least one tracked field changed, exactly one notification is
    inserted for the requester.  A failed notification insert is logged
    only.
    """
    current = _fetch_request(client, request_id)
    if current["user_id"] != editor.user_id and not editor.has_role(*PURCHASE_MANAGER_ROLES):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No tienes permisos para editar esta solicitud",
        )

    values = data.model_dump(exclude_unset=True)
    item = _first_item(current)
    changed = diff_fields(current, item, values)
    if not changed:
        return MutationResponse(message="No hay cambios para guardar", data=_with_label(current))

    request_values = {k: values[k] for k, _, on_item in _TRACKED_FIELDS if not on_item and k in values}
    item_values = {k: values[k] for k, _, on_item in _TRACKED_FIELDS if on_item and k in values}
    if "quantity" in item_values or "unit_price" in item_values:
        quantity = item_values.get("quantity", item.get("quantity") or 0)
        unit_price = item_values.get("unit_price", item.get("unit_price") or 0)
        request_values["total_amount"] = quantity * unit_price

    try:
        if request_values:
            client.table("purchase_requests").update(request_values).eq("id", request_id).execute()
        if item_values and item.get("id"):
            client.table("purchase_request_items").update(item_values).eq("id", item["id"]).execute()
    except BaasError as exc:
        raise_baas_error(exc, "actualizar la solicitud de compra", _ENTITY)

    if editor.user_id != current["user_id"]:
        _notify_requester(client, editor, current, changed)

    get_query_cache().invalidate(_CACHE_KEY)
    logger.info("update_purchase_request: id=%s changed=%s", request_id, changed)
    updated = _with_label(_fetch_request(client, request_id))
    return MutationResponse(message="Solicitud actualizada exitosamente", data=updated)


def change_status(client: Any, request_id: str, new_status: str) -> MutationResponse:
    _fetch_request(client, request_id, "id, deleted_at")
    try:
        rows = (
            client.table("purchase_requests")
            .update({"status": new_status})
            .eq("id", request_id)
            .execute()
            .data
        )
    except BaasError as exc:
        raise_baas_error(exc, "actualizar el estado", _ENTITY)
    if not rows:
        raise not_found(_ENTITY)
    row = rows[0]
    get_query_cache().invalidate(_CACHE_KEY)
    logger.info("change_status: id=%s status=%s", request_id, new_status)
    return MutationResponse(message=f"Estado actualizado a {status_label(new_status)}", data=_with_label(row))


def soft_delete(client: Any, request_id: str) -> MessageResponse:
    """Mark the request deleted; the row stays for auditing."""
    _fetch_request(client, request_id, "id, deleted_at")
    try:
        client.table("purchase_requests").update({"deleted_at": utcnow().isoformat()}).eq("id", request_id).execute()
    except BaasError as exc:
        raise_baas_error(exc, "eliminar la solicitud de compra", _ENTITY)
    get_query_cache().invalidate(_CACHE_KEY)
    logger.info("soft_delete: purchase request %s", request_id)
    return MessageResponse(message="Solicitud eliminada exitosamente")


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------


def upload_attachments(
    client: Any,
    user_id: str,
    request_id: str,
    files: list[attachments.IncomingFile],
) -> UploadResponse:
    _fetch_request(client, request_id, "id, deleted_at")
    return attachments.upload_files(client, STORE, request_id, files, user_id)


def list_attachments(client: Any, request_id: str) -> list[dict]:
    return attachments.list_files(client, STORE, request_id)


def download_attachment(client: Any, attachment_id: str) -> tuple[dict, bytes]:
    return attachments.download_file(client, STORE, attachment_id)


def attachment_url(client: Any, attachment_id: str) -> SignedUrlResponse:
    return attachments.signed_url(client, STORE, attachment_id)


def delete_attachment(client: Any, attachment_id: str) -> MessageResponse:
    attachments.delete_file(client, STORE, attachment_id)
    return MessageResponse(message="Archivo eliminado exitosamente")


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


def list_comments(client: Any, request_id: str) -> list[dict]:
    try:
        return (
            client.table("purchase_request_comments")
            .select("*, user:profiles(email)")
            .eq("purchase_request_id", request_id)
            .order("created_at")
            .execute()
            .data
        )
    except BaasError as exc:
        raise_baas_error(exc, "cargar los comentarios")


def add_comment(client: Any, user_id: str, request_id: str, content: str) -> MutationResponse:
    text = content.strip()
    if not text:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="El comentario no puede estar vacío",
        )
    _fetch_request(client, request_id, "id, deleted_at")
    try:
        row = (
            client.table("purchase_request_comments")
            .insert({"purchase_request_id": request_id, "user_id": user_id, "content": text})
            .execute()
            .data[0]
        )
    except BaasError as exc:
        raise_baas_error(exc, "agregar el comentario")
    logger.info("add_comment: request=%s comment=%s", request_id, row["id"])
    return MutationResponse(message="Comentario agregado exitosamente", data=row)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

_EXPORT_HEADERS = [
    "N°",
    "Fecha",
    "Laboratorio",
    "Código presupuestal",
    "Producto",
    "Proveedor",
    "Cantidad",
    "Precio unitario",
    "Moneda",
    "Total",
    "Estado",
    "Observaciones",
]


def export_excel(rows: list[dict], filters: dict[str, str]) -> bytes:
    """Render already-filtered list rows as an ``.xlsx`` workbook."""
    table = []
    totals: dict[str, float] = {}
    for row in rows:
        item = _first_item(row)
        product = item.get("product") or {}
        supplier = product.get("supplier") or {}
        currency = item.get("currency") or ""
        total = row.get("total_amount") or 0.0
        totals[currency] = totals.get(currency, 0.0) + total
        table.append([
            row.get("number"),
            (row.get("created_at") or "")[:10],
            (row.get("laboratory") or {}).get("name"),
            (row.get("budget_code") or {}).get("code"),
            product.get("name"),
            supplier.get("name"),
            item.get("quantity"),
            item.get("unit_price"),
            currency,
            total,
            row.get("status_label") or status_label(row["status"]),
            row.get("observations"),
        ])

    exporter = ExcelExporter(title="Solicitudes de compra", filters=filters)
    exporter.add_header()
    summary: dict[str, Any] = {"Solicitudes": len(rows)}
    summary.update({f"Total {code}": amount for code, amount in sorted(totals.items()) if code})
    exporter.add_summary(summary)
    exporter.add_data_table(_EXPORT_HEADERS, table, numeric_cols={7, 9})
    logger.info("export_excel: %d purchase requests", len(rows))
    return exporter.finalize()

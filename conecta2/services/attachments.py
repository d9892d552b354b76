"""
File attachments shared by purchase and travel requests.

An attachment is an object in a storage bucket under
``{owner_id}/{sanitized name}`` plus a metadata row in the owner's
attachment table.  Uploads run one file at a time; a failing file is
reported and the loop moves on.  When the metadata insert fails after a
successful upload the object is removed again so no orphan stays behind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import UploadFile

from conecta2.baas.errors import BaasError
from conecta2.config import get_settings
from conecta2.schemas.common import FileResult, SignedUrlResponse, UploadResponse
from conecta2.services.errors import not_found, raise_baas_error
from conecta2.utils.filenames import attachment_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IncomingFile:
    name: str
    content: bytes
    content_type: str | None = None


@dataclass(frozen=True)
class AttachmentStore:
    """Where one kind of owner keeps its files.

    Attributes:
        bucket: Storage bucket name.
        table: Metadata table name.
        owner_column: FK column in ``table`` pointing at the owner row.
    """

    bucket: str
    table: str
    owner_column: str


async def read_uploads(files: list[UploadFile]) -> list[IncomingFile]:
    """Read multipart uploads into memory, keeping their order."""
    return [
        IncomingFile(name=upload.filename or "archivo", content=await upload.read(), content_type=upload.content_type)
        for upload in files
    ]


def upload_files(
    client: Any,
    store: AttachmentStore,
    owner_id: str,
    files: list[IncomingFile],
    uploaded_by: str | None,
) -> UploadResponse:
    """Upload *files* sequentially and register each one.

    Returns:
        One ``FileResult`` per file, in input order, plus the counts.
    """
    bucket = client.storage.from_(store.bucket)
    cache_control = get_settings().UPLOAD_CACHE_CONTROL
    results: list[FileResult] = []

    for incoming in files:
        path = attachment_path(owner_id, incoming.name)
        try:
            bucket.upload(path, incoming.content, incoming.content_type, cache_control=cache_control)
        except BaasError as exc:
            logger.error("upload of %s to %s failed: %r", incoming.name, store.bucket, exc)
            results.append(FileResult(file_name=incoming.name, ok=False, message=f"Error al subir {incoming.name}"))
            continue

        try:
            row = (
                client.table(store.table)
                .insert({
                    store.owner_column: owner_id,
                    "file_name": incoming.name,
                    "file_path": path,
                    "file_size": len(incoming.content),
                    "file_type": incoming.content_type,
                    "uploaded_by": uploaded_by,
                })
                .execute()
                .data[0]
            )
        except BaasError as exc:
            logger.warning("metadata insert for %s failed, removing %s/%s: %r", incoming.name, store.bucket, path, exc)
            try:
                bucket.remove([path])
            except BaasError as cleanup_exc:
                logger.error("could not remove orphan %s/%s: %r", store.bucket, path, cleanup_exc)
            results.append(
                FileResult(file_name=incoming.name, ok=False, message=f"Error al registrar {incoming.name}")
            )
            continue

        results.append(
            FileResult(
                file_name=incoming.name,
                ok=True,
                message=f"{incoming.name} subido exitosamente",
                attachment_id=row["id"],
                path=path,
            )
        )

    uploaded = sum(1 for r in results if r.ok)
    logger.info("upload_files: %s owner=%s uploaded=%d failed=%d", store.bucket, owner_id, uploaded, len(results) - uploaded)
    return UploadResponse(results=results, uploaded=uploaded, failed=len(results) - uploaded)


def list_files(client: Any, store: AttachmentStore, owner_id: str) -> list[dict]:
    try:
        return (
            client.table(store.table)
            .select("*")
            .eq(store.owner_column, owner_id)
            .order("created_at", desc=True)
            .execute()
            .data
        )
    except BaasError as exc:
        raise_baas_error(exc, "cargar los archivos adjuntos")


def get_file(client: Any, store: AttachmentStore, attachment_id: str) -> dict:
    try:
        row = client.table(store.table).select("*").eq("id", attachment_id).maybe_single().execute().data
    except BaasError as exc:
        raise_baas_error(exc, "cargar el archivo adjunto")
    if row is None:
        raise not_found("archivo adjunto")
    return row


def download_file(client: Any, store: AttachmentStore, attachment_id: str) -> tuple[dict, bytes]:
    row = get_file(client, store, attachment_id)
    try:
        content = client.storage.from_(store.bucket).download(row["file_path"])
    except BaasError as exc:
        raise_baas_error(exc, f"descargar {row['file_name']}")
    return row, content


def signed_url(client: Any, store: AttachmentStore, attachment_id: str) -> SignedUrlResponse:
    row = get_file(client, store, attachment_id)
    expires_in = get_settings().SIGNED_URL_EXPIRES_IN
    try:
        url = client.storage.from_(store.bucket).create_signed_url(row["file_path"], expires_in)
    except BaasError as exc:
        raise_baas_error(exc, "generar el enlace de descarga")
    return SignedUrlResponse(url=url, expires_in=expires_in)


def delete_file(client: Any, store: AttachmentStore, attachment_id: str) -> None:
    """Remove the stored object, then its metadata row."""
    row = get_file(client, store, attachment_id)
    try:
        client.storage.from_(store.bucket).remove([row["file_path"]])
        client.table(store.table).delete().eq("id", attachment_id).execute()
    except BaasError as exc:
        raise_baas_error(exc, "eliminar el archivo adjunto")
    logger.info("delete_file: %s/%s", store.bucket, row["file_path"])

"""
Signed-URL downloads for the local storage emulation.

The hosted BaaS serves ``/storage/v1/object/sign/...`` itself; with
``BAAS_MODE=local`` the URLs created by ``create_signed_url`` point at
this router instead.  Mounted at the application root.
"""

from __future__ import annotations

import io
import mimetypes
from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from conecta2.baas.client import BaasClient, get_client
from conecta2.baas.errors import BaasError
from conecta2.baas.local import LocalClient

router = APIRouter(tags=["Storage"])


@router.get(
    "/storage/v1/object/sign/{bucket}/{path:path}",
    summary="Descarga por enlace firmado (modo local)",
    response_class=StreamingResponse,
    responses={400: {"description": "Firma inválida o expirada."}, 404: {"description": "Objeto inexistente."}},
)
def read_signed(
    bucket: str,
    path: str,
    token: Annotated[str, Query()],
    client: Annotated[BaasClient, Depends(get_client)],
) -> StreamingResponse:
    if not isinstance(client, LocalClient):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    try:
        content = client.storage.read_signed(bucket, path, token)
    except BaasError as exc:
        raise HTTPException(status_code=exc.status or status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc

    file_name = path.rsplit("/", 1)[-1]
    media_type = mimetypes.guess_type(file_name)[0] or "application/octet-stream"
    return StreamingResponse(
        io.BytesIO(content),
        media_type=media_type,
        headers={"Content-Disposition": f"inline; filename*=UTF-8''{quote(file_name)}"},
    )

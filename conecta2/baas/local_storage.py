"""
Object storage emulation backed by the local filesystem.

Objects live at ``LOCAL_STORAGE_DIR/{bucket}/{path}``.  Signed URLs carry a
short-lived JWT and are served by ``conecta2.routers.storage`` while
``BAAS_MODE=local``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import quote

from conecta2.baas.errors import BaasError
from conecta2.utils.security import create_token, verify_token

logger = logging.getLogger(__name__)


class LocalBucket:
    def __init__(self, root: Path, bucket: str) -> None:
        self._root = root
        self.bucket = bucket

    def _object_path(self, path: str) -> Path:
        base = (self._root / self.bucket).resolve()
        target = (base / path).resolve()
        if base != target and base not in target.parents:
            raise BaasError("Ruta de objeto inválida", code="InvalidKey", status=400)
        return target

    def upload(
        self,
        path: str,
        data: bytes,
        content_type: str | None = None,
        cache_control: str = "3600",
        upsert: bool = False,
    ) -> dict:
        """Store *data* under *path*; refuses to overwrite unless *upsert*."""
        target = self._object_path(path)
        if target.exists() and not upsert:
            raise BaasError("The resource already exists", code="Duplicate", status=409)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.debug("local storage upload %s/%s (%d bytes)", self.bucket, path, len(data))
        return {"path": path, "fullPath": f"{self.bucket}/{path}"}

    def download(self, path: str) -> bytes:
        target = self._object_path(path)
        if not target.is_file():
            raise BaasError("Object not found", code="NoSuchKey", status=404)
        return target.read_bytes()

    def exists(self, path: str) -> bool:
        return self._object_path(path).is_file()

    def remove(self, paths: list[str]) -> list[dict]:
        removed = []
        for path in paths:
            target = self._object_path(path)
            if target.is_file():
                target.unlink()
                removed.append({"name": path, "bucket_id": self.bucket})
        return removed

    def create_signed_url(self, path: str, expires_in: int) -> str:
        if not self.exists(path):
            raise BaasError("Object not found", code="NoSuchKey", status=404)
        token = create_token({"url": f"{self.bucket}/{path}"}, expires_in / 60)
        return f"/storage/v1/object/sign/{self.bucket}/{quote(path)}?token={token}"


class LocalStorage:
    """``client.storage`` for the local emulation."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def from_(self, bucket: str) -> LocalBucket:
        return LocalBucket(self.root, bucket)

    def read_signed(self, bucket: str, path: str, token: str) -> bytes:
        """Return the object a signed URL points to, checking its token."""
        try:
            claims = verify_token(token)
        except ValueError as exc:
            raise BaasError(str(exc), code="InvalidJWT", status=400) from exc
        if claims.get("url") != f"{bucket}/{path}":
            raise BaasError("La firma no corresponde al objeto", code="InvalidSignature", status=400)
        return self.from_(bucket).download(path)

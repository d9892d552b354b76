"""
Shared Pydantic v2 schemas reused across multiple modules.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class MessageResponse(BaseModel):
    """Generic message envelope for operations that do not return a resource.

    Returned by write operations when the caller only needs the toast text,
    not the full updated resource.

    Attributes:
        message: Short human-readable result summary.
        detail: Optional extended information.
    """

    message: str = Field(..., description="Mensaje principal de la operación.")
    detail: str | None = Field(default=None, description="Información adicional opcional.")


class MutationResponse(BaseModel):
    """Success message plus the row the mutation returned."""

    message: str
    data: dict[str, Any] | None = None


class FileResult(BaseModel):
    """Outcome of one file in a multi-file upload."""

    file_name: str
    ok: bool
    message: str
    attachment_id: str | None = None
    path: str | None = None


class UploadResponse(BaseModel):
    results: list[FileResult]
    uploaded: int
    failed: int


class SignedUrlResponse(BaseModel):
    url: str
    expires_in: int

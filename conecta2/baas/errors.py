"""Error type raised by every BaaS client operation."""

from __future__ import annotations

from typing import Any

import requests


class BaasError(Exception):
    """Failure returned by the database, auth or storage service.

    Mirrors the PostgREST error body (``code``, ``message``, ``details``,
    ``hint``) plus the HTTP status it arrived with.  ``code`` carries the
    PostgreSQL SQLSTATE for database errors (``"42501"``, ``"23505"``...),
    the GoTrue ``error_code`` for auth errors, or ``None``.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: str | None = None,
        hint: str | None = None,
        status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.hint = hint
        self.status = status

    def __repr__(self) -> str:
        return f"BaasError(code={self.code!r}, status={self.status!r}, message={self.message!r})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "hint": self.hint,
        }

    @classmethod
    def from_response(cls, response: requests.Response) -> "BaasError":
        """Build an error from a non-2xx PostgREST, GoTrue or Storage response."""
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        message = (
            body.get("message")
            or body.get("msg")
            or body.get("error_description")
            or body.get("error")
            or response.text
            or response.reason
            or "Error desconocido"
        )
        code = body.get("code") if isinstance(body.get("code"), str) else None
        code = code or body.get("error_code") or body.get("statusCode")
        return cls(
            message=str(message),
            code=str(code) if code is not None else None,
            details=body.get("details"),
            hint=body.get("hint"),
            status=response.status_code,
        )

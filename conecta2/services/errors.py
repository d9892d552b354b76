"""
Translation of BaaS failures into the HTTP errors the front end shows.

Permission-denied and unique-violation codes get their own localized
messages; everything else falls through to a generic
``"Error al {acción}: {mensaje}"``.
"""

from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import HTTPException, status

from conecta2.baas.errors import BaasError
from conecta2.utils import constants

logger = logging.getLogger(__name__)


def raise_baas_error(
    exc: BaasError,
    action: str,
    entity: str | None = None,
    unique_field: str = "código",
    permission_detail: str | None = None,
) -> NoReturn:
    """Log *exc* and raise the matching ``HTTPException``.

    Args:
        exc: Error returned by the client.
        action: Spanish infinitive phrase, e.g. ``"crear el laboratorio"``.
        entity: Entity noun for duplicate messages, e.g. ``"proveedor"``.
        unique_field: Field named in duplicate messages, e.g. ``"RUC"``.
        permission_detail: Overrides the permission-denied message.

    Raises:
        HTTPException 403: Permission denied (``42501``).
        HTTPException 409: Unique violation (``23505``).
        HTTPException 404: ``single()`` matched no row.
        HTTPException 422: Foreign-key violation (``23503``).
        HTTPException 502: Any other backend failure.
    """
    logger.error("%s failed: %r", action, exc)

    if exc.code == constants.PG_PERMISSION_DENIED:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=permission_detail or f"No tienes permisos para {action}",
        ) from exc

    if exc.code == constants.PG_UNIQUE_VIOLATION and entity:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Ya existe un {entity} con ese {unique_field}",
        ) from exc

    if exc.code == constants.PGRST_NO_ROWS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{(entity or 'registro').capitalize()} no encontrado",
        ) from exc

    if exc.code == constants.PG_FOREIGN_KEY_VIOLATION:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Error al {action}: referencia a un registro inexistente",
        ) from exc

    raise HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"Error al {action}: {exc.message}",
    ) from exc


def not_found(entity: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"{entity.capitalize()} no encontrado",
    )

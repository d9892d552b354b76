"""
Single-table read/write helpers shared by the master data services.

Reads go through the query cache under ``(table,)``; every successful
write invalidates that key.  BaaS failures are translated with
``raise_baas_error``.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, status

from conecta2.baas.errors import BaasError
from conecta2.services.errors import not_found, raise_baas_error
from conecta2.services.query_cache import get_query_cache
from conecta2.utils import constants

logger = logging.getLogger(__name__)


def fetch_all(client: Any, table: str, columns: str = "*", order: str = "name") -> list[dict]:
    def _fetch() -> list[dict]:
        return client.table(table).select(columns).order(order).execute().data

    try:
        return get_query_cache().fetch((table, columns, order), _fetch)
    except BaasError as exc:
        raise_baas_error(exc, f"cargar {table}")


def fetch_one(client: Any, table: str, row_id: str, entity: str, columns: str = "*") -> dict:
    try:
        row = client.table(table).select(columns).eq("id", row_id).maybe_single().execute().data
    except BaasError as exc:
        raise_baas_error(exc, f"cargar el {entity}", entity)
    if row is None:
        raise not_found(entity)
    return row


def insert_one(
    client: Any,
    table: str,
    values: dict[str, Any],
    entity: str,
    unique_field: str = "código",
) -> dict:
    try:
        row = client.table(table).insert(values).execute().data[0]
    except BaasError as exc:
        raise_baas_error(exc, f"crear el {entity}", entity, unique_field)
    get_query_cache().invalidate(table)
    logger.info("create %s: id=%s", entity, row.get("id"))
    return row


def update_one(
    client: Any,
    table: str,
    row_id: str,
    values: dict[str, Any],
    entity: str,
    unique_field: str = "código",
) -> dict:
    try:
        rows = client.table(table).update(values).eq("id", row_id).execute().data
    except BaasError as exc:
        raise_baas_error(exc, f"actualizar el {entity}", entity, unique_field)
    if not rows:
        raise not_found(entity)
    get_query_cache().invalidate(table)
    logger.info("update %s: id=%s fields=%s", entity, row_id, sorted(values))
    return rows[0]


def delete_one(client: Any, table: str, row_id: str, entity: str) -> None:
    """Delete one row.

    Raises:
        HTTPException 409: Another table still points at the row.
        HTTPException 404: No such row.
    """
    try:
        rows = client.table(table).delete().eq("id", row_id).execute().data
    except BaasError as exc:
        if exc.code == constants.PG_FOREIGN_KEY_VIOLATION:
            logger.warning("delete %s refused: %s still referenced", entity, row_id)
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"No se puede eliminar el {entity} porque está siendo usado",
            ) from exc
        raise_baas_error(exc, f"eliminar el {entity}", entity)
    if not rows:
        raise not_found(entity)
    get_query_cache().invalidate(table)
    logger.info("delete %s: id=%s", entity, row_id)


def is_referenced(client: Any, table: str, column: str, value: str) -> bool:
    """Whether any row of *table* has ``column == value``."""
    try:
        rows = client.table(table).select("id").eq(column, value).limit(1).execute().data
    except BaasError as exc:
        raise_baas_error(exc, f"comprobar el uso en {table}")
    return bool(rows)

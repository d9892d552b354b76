"""
Laboratory service: CRUD plus the set of budget codes valid per laboratory.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, status

from conecta2.baas.errors import BaasError
from conecta2.schemas.master_data import LaboratoryCreate, LaboratoryUpdate
from conecta2.services import crud
from conecta2.services.errors import raise_baas_error
from conecta2.services.query_cache import get_query_cache

logger = logging.getLogger(__name__)

_TABLE = "laboratories"
_ENTITY = "laboratorio"


def list_laboratories(client: Any) -> list[dict]:
    return crud.fetch_all(client, _TABLE)


def get_laboratory(client: Any, laboratory_id: str) -> dict:
    return crud.fetch_one(client, _TABLE, laboratory_id, _ENTITY)


def create_laboratory(client: Any, data: LaboratoryCreate) -> dict:
    return crud.insert_one(client, _TABLE, data.model_dump(), _ENTITY, "nombre")


def update_laboratory(client: Any, laboratory_id: str, data: LaboratoryUpdate) -> dict:
    values = data.model_dump(exclude_unset=True)
    if not values:
        return get_laboratory(client, laboratory_id)
    return crud.update_one(client, _TABLE, laboratory_id, values, _ENTITY, "nombre")


def delete_laboratory(client: Any, laboratory_id: str) -> None:
    """Delete a laboratory not referenced by any purchase request.

    Raises:
        HTTPException 409: The laboratory is used by purchase requests or
            still referenced by profiles or travel requests.
        HTTPException 404: No such laboratory.
    """
    if crud.is_referenced(client, "purchase_requests", "laboratory_id", laboratory_id):
        logger.warning("delete_laboratory refused: %s in use", laboratory_id)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                "No se puede eliminar el laboratorio porque está siendo usado "
                "en solicitudes de compra"
            ),
        )
    crud.delete_one(client, _TABLE, laboratory_id, _ENTITY)


def list_budget_codes(client: Any, laboratory_id: str) -> list[dict]:
    """Budget codes valid for the laboratory, ordered by code."""
    try:
        rows = (
            client.table("laboratory_budget_codes")
            .select("budget_code:budget_codes(*)")
            .eq("laboratory_id", laboratory_id)
            .execute()
            .data
        )
    except BaasError as exc:
        raise_baas_error(exc, "cargar los códigos presupuestales del laboratorio")
    codes = [row["budget_code"] for row in rows if row.get("budget_code")]
    return sorted(codes, key=lambda c: c["code"])


def set_budget_codes(client: Any, laboratory_id: str, budget_code_ids: list[str]) -> list[dict]:
    """Replace the laboratory's valid budget codes with *budget_code_ids*."""
    get_laboratory(client, laboratory_id)
    unique_ids = list(dict.fromkeys(budget_code_ids))
    try:
        client.table("laboratory_budget_codes").delete().eq("laboratory_id", laboratory_id).execute()
        if unique_ids:
            client.table("laboratory_budget_codes").insert(
                [{"laboratory_id": laboratory_id, "budget_code_id": code_id} for code_id in unique_ids]
            ).execute()
    except BaasError as exc:
        raise_baas_error(exc, "actualizar los códigos presupuestales del laboratorio")
    get_query_cache().invalidate("laboratory_budget_codes")
    logger.info("set_budget_codes: laboratory=%s codes=%d", laboratory_id, len(unique_ids))
    return list_budget_codes(client, laboratory_id)

"""
Budget code service.

Besides CRUD, manages the budget-code-to-product association through the
remote procedure pair ``get_budget_code_product_list`` /
``update_budget_code_products``.  Saving always sends the full id set; the
procedure replaces the association instead of diffing it.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, status

from conecta2.baas.errors import BaasError
from conecta2.schemas.master_data import BudgetCodeCreate, BudgetCodeUpdate
from conecta2.services import crud
from conecta2.services.errors import raise_baas_error
from conecta2.services.query_cache import get_query_cache

logger = logging.getLogger(__name__)

_TABLE = "budget_codes"
_ENTITY = "código presupuestal"


def list_budget_codes(client: Any) -> list[dict]:
    return crud.fetch_all(client, _TABLE, order="code")


def get_budget_code(client: Any, budget_code_id: str) -> dict:
    return crud.fetch_one(client, _TABLE, budget_code_id, _ENTITY)


def create_budget_code(client: Any, data: BudgetCodeCreate) -> dict:
    return crud.insert_one(client, _TABLE, data.model_dump(), _ENTITY)


def update_budget_code(client: Any, budget_code_id: str, data: BudgetCodeUpdate) -> dict:
    values = data.model_dump(exclude_unset=True)
    if not values:
        return get_budget_code(client, budget_code_id)
    return crud.update_one(client, _TABLE, budget_code_id, values, _ENTITY)


def delete_budget_code(client: Any, budget_code_id: str) -> None:
    if crud.is_referenced(client, "purchase_requests", "budget_code_id", budget_code_id):
        logger.warning("delete_budget_code refused: %s in use", budget_code_id)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                "No se puede eliminar el código presupuestal porque está siendo "
                "usado en solicitudes de compra"
            ),
        )
    crud.delete_one(client, _TABLE, budget_code_id, _ENTITY)


def get_product_ids(client: Any, budget_code_id: str) -> list[str]:
    def _fetch() -> list[str]:
        data = client.rpc("get_budget_code_product_list", {"p_budget_code_id": budget_code_id}).data
        # The procedure returns either bare ids or {"product_id": ...} rows
        return [item["product_id"] if isinstance(item, dict) else item for item in data or []]

    try:
        return get_query_cache().fetch(("budgetCodeProducts", budget_code_id), _fetch)
    except BaasError as exc:
        raise_baas_error(exc, "cargar los productos del código presupuestal")


def update_products(client: Any, budget_code_id: str, product_ids: list[str]) -> list[str]:
    """Replace the products linked to the budget code with *product_ids*."""
    get_budget_code(client, budget_code_id)
    try:
        client.rpc(
            "update_budget_code_products",
            {"p_budget_code_id": budget_code_id, "p_product_ids": list(product_ids)},
        )
    except BaasError as exc:
        raise_baas_error(exc, "actualizar los productos del código presupuestal")
    get_query_cache().invalidate("budgetCodeProducts", budget_code_id)
    logger.info("update_products: budget_code=%s products=%d", budget_code_id, len(product_ids))
    return get_product_ids(client, budget_code_id)

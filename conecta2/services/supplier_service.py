"""
Supplier service: CRUD plus the supplier's product set via remote procedures.
"""

from __future__ import annotations

import logging
from typing import Any

from conecta2.baas.errors import BaasError
from conecta2.schemas.master_data import SupplierCreate, SupplierUpdate
from conecta2.services import crud
from conecta2.services.errors import raise_baas_error
from conecta2.services.query_cache import get_query_cache
from conecta2.utils.constants import PG_UNIQUE_VIOLATION

logger = logging.getLogger(__name__)

_TABLE = "suppliers"
_ENTITY = "proveedor"


def _duplicate_field(exc: BaasError) -> str:
    text = f"{exc.message} {exc.details or ''}".lower()
    return "RUC" if exc.code == PG_UNIQUE_VIOLATION and "ruc" in text else "código"


def list_suppliers(client: Any) -> list[dict]:
    return crud.fetch_all(client, _TABLE)


def get_supplier(client: Any, supplier_id: str) -> dict:
    return crud.fetch_one(client, _TABLE, supplier_id, _ENTITY)


def create_supplier(client: Any, data: SupplierCreate) -> dict:
    try:
        row = client.table(_TABLE).insert(data.model_dump()).execute().data[0]
    except BaasError as exc:
        raise_baas_error(exc, "crear el proveedor", _ENTITY, _duplicate_field(exc))
    get_query_cache().invalidate(_TABLE)
    logger.info("create_supplier: id=%s ruc=%s", row["id"], row.get("ruc"))
    return row


def update_supplier(client: Any, supplier_id: str, data: SupplierUpdate) -> dict:
    values = data.model_dump(exclude_unset=True)
    if not values:
        return get_supplier(client, supplier_id)
    try:
        return crud.update_one(client, _TABLE, supplier_id, values, _ENTITY, "RUC" if "ruc" in values else "código")
    finally:
        get_query_cache().invalidate("products")


def delete_supplier(client: Any, supplier_id: str) -> None:
    crud.delete_one(client, _TABLE, supplier_id, _ENTITY)
    get_query_cache().invalidate("products")


def get_products(client: Any, supplier_id: str) -> list[dict]:
    def _fetch() -> list[dict]:
        return client.rpc("get_supplier_products", {"p_supplier_id": supplier_id}).data or []

    try:
        return get_query_cache().fetch(("supplierProducts", supplier_id), _fetch)
    except BaasError as exc:
        raise_baas_error(exc, "cargar los productos del proveedor")


def update_products(client: Any, supplier_id: str, product_ids: list[str]) -> list[dict]:
    """Make *product_ids* exactly the supplier's products."""
    get_supplier(client, supplier_id)
    try:
        client.rpc(
            "update_supplier_products",
            {"p_supplier_id": supplier_id, "p_product_ids": list(product_ids)},
        )
    except BaasError as exc:
        raise_baas_error(exc, "actualizar los productos del proveedor")
    get_query_cache().invalidate("supplierProducts")
    get_query_cache().invalidate("products")
    logger.info("update_products: supplier=%s products=%d", supplier_id, len(product_ids))
    return get_products(client, supplier_id)

"""
Product service.
"""

from __future__ import annotations

from typing import Any

from conecta2.baas.errors import BaasError
from conecta2.schemas.master_data import ProductCreate, ProductUpdate
from conecta2.services import crud
from conecta2.services.errors import raise_baas_error
from conecta2.services.query_cache import get_query_cache

_TABLE = "products"
_ENTITY = "producto"
_COLUMNS = "*, supplier:suppliers(id, name)"


def list_products(client: Any) -> list[dict]:
    return crud.fetch_all(client, _TABLE, _COLUMNS)


def list_products_by_supplier(client: Any, supplier_id: str) -> list[dict]:
    def _fetch() -> list[dict]:
        return (
            client.table(_TABLE)
            .select(_COLUMNS)
            .eq("supplier_id", supplier_id)
            .order("name")
            .execute()
            .data
        )

    try:
        return get_query_cache().fetch((_TABLE, "bySupplier", supplier_id), _fetch)
    except BaasError as exc:
        raise_baas_error(exc, "cargar los productos del proveedor")


def get_product(client: Any, product_id: str) -> dict:
    return crud.fetch_one(client, _TABLE, product_id, _ENTITY, _COLUMNS)


def create_product(client: Any, data: ProductCreate) -> dict:
    row = crud.insert_one(client, _TABLE, data.model_dump(), _ENTITY)
    get_query_cache().invalidate("supplierProducts")
    return get_product(client, row["id"])


def update_product(client: Any, product_id: str, data: ProductUpdate) -> dict:
    values = data.model_dump(exclude_unset=True)
    if values:
        crud.update_one(client, _TABLE, product_id, values, _ENTITY)
        get_query_cache().invalidate("supplierProducts")
    return get_product(client, product_id)


def delete_product(client: Any, product_id: str) -> None:
    crud.delete_one(client, _TABLE, product_id, _ENTITY)
    get_query_cache().invalidate("supplierProducts")
    get_query_cache().invalidate("budgetCodeProducts")

"""
Master Data (Datos Maestros) router.

Mounts under ``/api/datos-maestros`` (prefix set in ``main.py``).

CRUD for laboratories, suppliers, products and budget codes plus their
many-to-many associations.  Every endpoint requires an authenticated
session; the queries run with the caller's token so the backend's
row-level policies decide what each user may change.

Endpoints
---------
GET/POST          /laboratorios
GET/PUT/DELETE    /laboratorios/{id}
GET/PUT           /laboratorios/{id}/codigos-presupuestales
GET/POST          /proveedores
GET/PUT/DELETE    /proveedores/{id}
GET/PUT           /proveedores/{id}/productos
GET/POST          /productos             (GET filterable by ``proveedor_id``)
GET/PUT/DELETE    /productos/{id}
GET/POST          /codigos-presupuestales (GET filterable by ``laboratorio_id``)
GET/PUT/DELETE    /codigos-presupuestales/{id}
GET/PUT           /codigos-presupuestales/{id}/productos
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from conecta2.schemas.common import MessageResponse, MutationResponse
from conecta2.schemas.master_data import (
    BudgetCodeCreate,
    BudgetCodeIdsRequest,
    BudgetCodeResponse,
    BudgetCodeUpdate,
    LaboratoryCreate,
    LaboratoryResponse,
    LaboratoryUpdate,
    ProductCreate,
    ProductIdsRequest,
    ProductIdsResponse,
    ProductResponse,
    ProductUpdate,
    SupplierCreate,
    SupplierResponse,
    SupplierUpdate,
)
from conecta2.services import (
    budget_code_service,
    laboratory_service,
    product_service,
    supplier_service,
)
from conecta2.services.auth_service import get_current_session
from conecta2.services.session_gate import CurrentSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Datos Maestros"])

Session = Annotated[CurrentSession, Depends(get_current_session)]

_AUTH_RESPONSES = {401: {"description": "Sesión ausente o inválida."}}


# ---------------------------------------------------------------------------
# Laboratorios
# ---------------------------------------------------------------------------


@router.get(
    "/laboratorios",
    response_model=list[LaboratoryResponse],
    summary="Listado de laboratorios",
    responses=_AUTH_RESPONSES,
)
def list_laboratorios(session: Session) -> list[dict]:
    return laboratory_service.list_laboratories(session.client)


@router.get("/laboratorios/{laboratory_id}", response_model=LaboratoryResponse, summary="Detalle de laboratorio")
def get_laboratorio(laboratory_id: str, session: Session) -> dict:
    return laboratory_service.get_laboratory(session.client, laboratory_id)


@router.post(
    "/laboratorios",
    response_model=MutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Crear laboratorio",
    responses={409: {"description": "Ya existe un laboratorio con ese nombre."}},
)
def create_laboratorio(body: LaboratoryCreate, session: Session) -> MutationResponse:
    row = laboratory_service.create_laboratory(session.client, body)
    return MutationResponse(message="Laboratorio creado exitosamente", data=row)


@router.put("/laboratorios/{laboratory_id}", response_model=MutationResponse, summary="Actualizar laboratorio")
def update_laboratorio(laboratory_id: str, body: LaboratoryUpdate, session: Session) -> MutationResponse:
    row = laboratory_service.update_laboratory(session.client, laboratory_id, body)
    return MutationResponse(message="Laboratorio actualizado exitosamente", data=row)


@router.delete(
    "/laboratorios/{laboratory_id}",
    response_model=MessageResponse,
    summary="Eliminar laboratorio",
    description="Rechazado con 409 si alguna solicitud de compra usa el laboratorio.",
    responses={409: {"description": "Laboratorio en uso."}},
)
def delete_laboratorio(laboratory_id: str, session: Session) -> MessageResponse:
    laboratory_service.delete_laboratory(session.client, laboratory_id)
    return MessageResponse(message="Laboratorio eliminado exitosamente")


@router.get(
    "/laboratorios/{laboratory_id}/codigos-presupuestales",
    response_model=list[BudgetCodeResponse],
    summary="Códigos presupuestales válidos para el laboratorio",
)
def list_laboratorio_codigos(laboratory_id: str, session: Session) -> list[dict]:
    return laboratory_service.list_budget_codes(session.client, laboratory_id)


@router.put(
    "/laboratorios/{laboratory_id}/codigos-presupuestales",
    response_model=list[BudgetCodeResponse],
    summary="Reemplazar los códigos presupuestales del laboratorio",
)
def set_laboratorio_codigos(
    laboratory_id: str,
    body: BudgetCodeIdsRequest,
    session: Session,
) -> list[dict]:
    return laboratory_service.set_budget_codes(session.client, laboratory_id, body.budget_code_ids)


# ---------------------------------------------------------------------------
# Proveedores
# ---------------------------------------------------------------------------


@router.get("/proveedores", response_model=list[SupplierResponse], summary="Listado de proveedores")
def list_proveedores(session: Session) -> list[dict]:
    return supplier_service.list_suppliers(session.client)


@router.get("/proveedores/{supplier_id}", response_model=SupplierResponse, summary="Detalle de proveedor")
def get_proveedor(supplier_id: str, session: Session) -> dict:
    return supplier_service.get_supplier(session.client, supplier_id)


@router.post(
    "/proveedores",
    response_model=MutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Crear proveedor",
    responses={409: {"description": "Código o RUC duplicado."}},
)
def create_proveedor(body: SupplierCreate, session: Session) -> MutationResponse:
    row = supplier_service.create_supplier(session.client, body)
    return MutationResponse(message="Proveedor creado exitosamente", data=row)


@router.put("/proveedores/{supplier_id}", response_model=MutationResponse, summary="Actualizar proveedor")
def update_proveedor(supplier_id: str, body: SupplierUpdate, session: Session) -> MutationResponse:
    row = supplier_service.update_supplier(session.client, supplier_id, body)
    return MutationResponse(message="Proveedor actualizado exitosamente", data=row)


@router.delete("/proveedores/{supplier_id}", response_model=MessageResponse, summary="Eliminar proveedor")
def delete_proveedor(supplier_id: str, session: Session) -> MessageResponse:
    supplier_service.delete_supplier(session.client, supplier_id)
    return MessageResponse(message="Proveedor eliminado exitosamente")


@router.get(
    "/proveedores/{supplier_id}/productos",
    response_model=list[ProductResponse],
    summary="Productos del proveedor",
)
def list_proveedor_productos(supplier_id: str, session: Session) -> list[dict]:
    return supplier_service.get_products(session.client, supplier_id)


@router.put(
    "/proveedores/{supplier_id}/productos",
    response_model=list[ProductResponse],
    summary="Reemplazar los productos del proveedor",
)
def set_proveedor_productos(supplier_id: str, body: ProductIdsRequest, session: Session) -> list[dict]:
    return supplier_service.update_products(session.client, supplier_id, body.product_ids)


# ---------------------------------------------------------------------------
# Productos
# ---------------------------------------------------------------------------


@router.get("/productos", response_model=list[ProductResponse], summary="Listado de productos")
def list_productos(
    session: Session,
    proveedor_id: Annotated[
        str | None,
        Query(description="Filtrar por ID de proveedor.", max_length=36),
    ] = None,
) -> list[dict]:
    if proveedor_id:
        return product_service.list_products_by_supplier(session.client, proveedor_id)
    return product_service.list_products(session.client)


@router.get("/productos/{product_id}", response_model=ProductResponse, summary="Detalle de producto")
def get_producto(product_id: str, session: Session) -> dict:
    return product_service.get_product(session.client, product_id)


@router.post(
    "/productos",
    response_model=MutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Crear producto",
)
def create_producto(body: ProductCreate, session: Session) -> MutationResponse:
    row = product_service.create_product(session.client, body)
    return MutationResponse(message="Producto creado exitosamente", data=row)


@router.put("/productos/{product_id}", response_model=MutationResponse, summary="Actualizar producto")
def update_producto(product_id: str, body: ProductUpdate, session: Session) -> MutationResponse:
    row = product_service.update_product(session.client, product_id, body)
    return MutationResponse(message="Producto actualizado exitosamente", data=row)


@router.delete("/productos/{product_id}", response_model=MessageResponse, summary="Eliminar producto")
def delete_producto(product_id: str, session: Session) -> MessageResponse:
    product_service.delete_product(session.client, product_id)
    return MessageResponse(message="Producto eliminado exitosamente")


# ---------------------------------------------------------------------------
# Códigos presupuestales
# ---------------------------------------------------------------------------


@router.get(
    "/codigos-presupuestales",
    response_model=list[BudgetCodeResponse],
    summary="Listado de códigos presupuestales",
    description="Con ``laboratorio_id`` retorna solo los códigos válidos para ese laboratorio.",
)
def list_codigos(
    session: Session,
    laboratorio_id: Annotated[
        str | None,
        Query(description="Filtrar por ID de laboratorio.", max_length=36),
    ] = None,
) -> list[dict]:
    if laboratorio_id:
        return laboratory_service.list_budget_codes(session.client, laboratorio_id)
    return budget_code_service.list_budget_codes(session.client)


@router.get(
    "/codigos-presupuestales/{budget_code_id}",
    response_model=BudgetCodeResponse,
    summary="Detalle de código presupuestal",
)
def get_codigo(budget_code_id: str, session: Session) -> dict:
    return budget_code_service.get_budget_code(session.client, budget_code_id)


@router.post(
    "/codigos-presupuestales",
    response_model=MutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Crear código presupuestal",
)
def create_codigo(body: BudgetCodeCreate, session: Session) -> MutationResponse:
    row = budget_code_service.create_budget_code(session.client, body)
    return MutationResponse(message="Código presupuestal creado exitosamente", data=row)


@router.put(
    "/codigos-presupuestales/{budget_code_id}",
    response_model=MutationResponse,
    summary="Actualizar código presupuestal",
)
def update_codigo(budget_code_id: str, body: BudgetCodeUpdate, session: Session) -> MutationResponse:
    row = budget_code_service.update_budget_code(session.client, budget_code_id, body)
    return MutationResponse(message="Código presupuestal actualizado exitosamente", data=row)


@router.delete(
    "/codigos-presupuestales/{budget_code_id}",
    response_model=MessageResponse,
    summary="Eliminar código presupuestal",
    responses={409: {"description": "Código presupuestal en uso."}},
)
def delete_codigo(budget_code_id: str, session: Session) -> MessageResponse:
    budget_code_service.delete_budget_code(session.client, budget_code_id)
    return MessageResponse(message="Código presupuestal eliminado exitosamente")


@router.get(
    "/codigos-presupuestales/{budget_code_id}/productos",
    response_model=ProductIdsResponse,
    summary="Productos asociados al código presupuestal",
)
def get_codigo_productos(budget_code_id: str, session: Session) -> ProductIdsResponse:
    ids = budget_code_service.get_product_ids(session.client, budget_code_id)
    return ProductIdsResponse(owner_id=budget_code_id, product_ids=ids)


@router.put(
    "/codigos-presupuestales/{budget_code_id}/productos",
    response_model=ProductIdsResponse,
    summary="Reemplazar los productos del código presupuestal",
    description="Envía el conjunto completo; la asociación se reemplaza, no se combina.",
)
def set_codigo_productos(
    budget_code_id: str,
    body: ProductIdsRequest,
    session: Session,
) -> ProductIdsResponse:
    ids = budget_code_service.update_products(session.client, budget_code_id, body.product_ids)
    logger.debug("set_codigo_productos: %s -> %d products", budget_code_id, len(ids))
    return ProductIdsResponse(owner_id=budget_code_id, product_ids=ids)

"""
Pydantic v2 schemas for the Master Data (Datos Maestros) module.

Create/Update pairs for laboratories, suppliers, products and budget
codes, their response models, and the id-list payloads used to replace
many-to-many associations in one call.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Laboratory
# ---------------------------------------------------------------------------


class LaboratoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, description="Nombre del laboratorio")
    description: str | None = Field(default=None, max_length=1000)


class LaboratoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)


class LaboratoryResponse(BaseModel):
    """Public representation of a laboratory.

    Attributes:
        id: UUID primary key.
        name: Display name.
        description: Optional free text.
    """

    id: str
    name: str
    description: str | None = None
    created_at: str | None = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "0b6f3c5e-3f5e-4a8e-9a57-2f4d7b0e8c11",
                "name": "Laboratorio de Microbiología",
                "description": "Análisis microbiológico de alimentos",
                "created_at": "2024-03-01T14:22:05.120000",
            }
        }
    )


# ---------------------------------------------------------------------------
# Supplier
# ---------------------------------------------------------------------------


class SupplierCreate(BaseModel):
    """Payload for ``POST /api/datos-maestros/proveedores``.

    Attributes:
        name: Legal or trade name.
        code: Internal short code, unique when present.
        ruc: 11-digit Peruvian tax id, unique when present.
    """

    name: str = Field(..., min_length=1, max_length=300)
    code: str | None = Field(default=None, max_length=50)
    description: str | None = Field(default=None, max_length=1000)
    ruc: str | None = Field(default=None, pattern=r"^\d{11}$", description="RUC de 11 dígitos")
    address: str | None = Field(default=None, max_length=500)
    phone: str | None = Field(default=None, max_length=50)
    email: str | None = Field(default=None, max_length=255)


class SupplierUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=300)
    code: str | None = Field(default=None, max_length=50)
    description: str | None = Field(default=None, max_length=1000)
    ruc: str | None = Field(default=None, pattern=r"^\d{11}$")
    address: str | None = Field(default=None, max_length=500)
    phone: str | None = Field(default=None, max_length=50)
    email: str | None = Field(default=None, max_length=255)


class SupplierResponse(BaseModel):
    id: str
    name: str
    code: str | None = None
    description: str | None = None
    ruc: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    created_at: str | None = None


# ---------------------------------------------------------------------------
# Product
# ---------------------------------------------------------------------------


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=300)
    code: str | None = Field(default=None, max_length=50)
    description: str | None = Field(default=None, max_length=1000)
    supplier_id: str | None = Field(default=None, max_length=36)


class ProductUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=300)
    code: str | None = Field(default=None, max_length=50)
    description: str | None = Field(default=None, max_length=1000)
    supplier_id: str | None = Field(default=None, max_length=36)


class SupplierRef(BaseModel):
    id: str
    name: str


class ProductResponse(BaseModel):
    """Product with its supplier joined (``supplier:suppliers(id, name)``)."""

    id: str
    name: str
    code: str | None = None
    description: str | None = None
    supplier_id: str | None = None
    supplier: SupplierRef | None = None
    created_at: str | None = None


# ---------------------------------------------------------------------------
# Budget code
# ---------------------------------------------------------------------------


class BudgetCodeCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50, description="Código presupuestal")
    description: str | None = Field(default=None, max_length=1000)


class BudgetCodeUpdate(BaseModel):
    code: str | None = Field(default=None, min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=1000)


class BudgetCodeResponse(BaseModel):
    id: str
    code: str
    description: str | None = None
    created_at: str | None = None


# ---------------------------------------------------------------------------
# Associations
# ---------------------------------------------------------------------------


class ProductIdsRequest(BaseModel):
    """Full replacement set of product ids (an empty list clears it)."""

    product_ids: list[str] = Field(default_factory=list)


class BudgetCodeIdsRequest(BaseModel):
    budget_code_ids: list[str] = Field(default_factory=list)


class ProductIdsResponse(BaseModel):
    owner_id: str
    product_ids: list[str]

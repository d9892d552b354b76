"""
Pydantic v2 schemas for the purchase request (Solicitudes de Compra) module.

A request carries exactly one product line on creation.  Field checks here
are what keeps invalid forms from ever reaching the insert call: FastAPI
answers 422 before the service runs.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator, model_validator

from conecta2.utils.constants import CURRENCIES, PURCHASE_STATUSES


def _check_currency(value: str) -> str:
    if value not in CURRENCIES:
        raise ValueError(f"Moneda no válida. Valores permitidos: {CURRENCIES}")
    return value


Currency = Annotated[str, AfterValidator(_check_currency)]


class PurchaseRequestCreate(BaseModel):
    """Payload for ``POST /api/solicitudes-compra``.

    Attributes:
        laboratory_id: Requesting laboratory.
        budget_code_id: Budget code the purchase is charged to.
        supplier_id: Supplier chosen in the form (the product's supplier).
        product_id: Product of the single line item.
        quantity: Units requested, at least 1.
        unit_price: Price per unit, not negative.
        currency: One of ``constants.CURRENCIES``.
        observations: Optional free text.
    """

    laboratory_id: str = Field(..., min_length=1, max_length=36)
    budget_code_id: str = Field(..., min_length=1, max_length=36)
    supplier_id: str = Field(..., min_length=1, max_length=36)
    product_id: str = Field(..., min_length=1, max_length=36)
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)
    currency: Currency = "PEN"
    observations: str | None = Field(default=None, max_length=2000)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "laboratory_id": "0b6f3c5e-3f5e-4a8e-9a57-2f4d7b0e8c11",
                "budget_code_id": "5a1d2c3b-4e5f-4a6b-8c7d-9e0f1a2b3c4d",
                "supplier_id": "7c8d9e0f-1a2b-4c3d-9e4f-5a6b7c8d9e0f",
                "product_id": "1f2e3d4c-5b6a-4798-8a9b-0c1d2e3f4a5b",
                "quantity": 3,
                "unit_price": 125.5,
                "currency": "PEN",
                "observations": "Entrega en el laboratorio 2",
            }
        }
    )


class PurchaseRequestUpdate(BaseModel):
    """Partial edit; only the fields sent are compared and written."""

    laboratory_id: str | None = Field(default=None, min_length=1, max_length=36)
    budget_code_id: str | None = Field(default=None, min_length=1, max_length=36)
    observations: str | None = Field(default=None, max_length=2000)
    product_id: str | None = Field(default=None, min_length=1, max_length=36)
    quantity: int | None = Field(default=None, ge=1)
    unit_price: float | None = Field(default=None, ge=0)
    currency: Currency | None = None

    @model_validator(mode="after")
    def _no_explicit_nulls(self) -> PurchaseRequestUpdate:
        for name in sorted(self.model_fields_set - {"observations"}):
            if getattr(self, name) is None:
                raise ValueError(f"El campo {name} no puede estar vacío")
        return self


class StatusChangeRequest(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def _known_status(cls, value: str) -> str:
        if value not in PURCHASE_STATUSES:
            raise ValueError(f"Estado no válido. Valores permitidos: {PURCHASE_STATUSES}")
        return value


class CommentCreate(BaseModel):
    content: str = Field(..., max_length=5000)


class PurchaseRequestResponse(BaseModel):
    """A request as listed: joined laboratory, budget code and items."""

    id: str
    number: int
    status: str
    status_label: str | None = None
    laboratory_id: str
    budget_code_id: str
    user_id: str
    observations: str | None = None
    total_amount: float | None = None
    deleted_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    laboratory: dict[str, Any] | None = None
    budget_code: dict[str, Any] | None = None
    purchase_request_items: list[dict[str, Any]] = Field(default_factory=list)


class PurchaseRequestDetail(PurchaseRequestResponse):
    requester: dict[str, Any] | None = None
    attachments: list[dict[str, Any]] = Field(default_factory=list)
    comments: list[dict[str, Any]] = Field(default_factory=list)


class AttachmentResponse(BaseModel):
    id: str
    purchase_request_id: str
    file_name: str
    file_path: str
    file_size: int | None = None
    file_type: str | None = None
    uploaded_by: str | None = None
    created_at: str | None = None


class CommentResponse(BaseModel):
    id: str
    purchase_request_id: str
    user_id: str
    content: str
    created_at: str | None = None
    user: dict[str, Any] | None = None

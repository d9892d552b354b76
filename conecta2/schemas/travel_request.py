"""
Pydantic v2 schemas for the travel request (Solicitudes de Viaje) module.
"""

from __future__ import annotations

from datetime import date
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, Field, model_validator

from conecta2.utils.constants import CURRENCIES


def _check_currency(value: str) -> str:
    if value not in CURRENCIES:
        raise ValueError(f"Moneda no válida. Valores permitidos: {CURRENCIES}")
    return value


Currency = Annotated[str, AfterValidator(_check_currency)]

ExpenseType = Literal["pasaje_aereo", "alojamiento", "viaticos", "transporte_local", "otros"]

TravelStatus = Literal["pendiente", "aprobado_por_gerente", "aprobado_por_finanzas", "rechazado", "completado"]


class TravelExpenseCreate(BaseModel):
    expense_type: ExpenseType
    description: str | None = Field(default=None, max_length=1000)
    estimated_amount: float = Field(..., ge=0)
    currency: Currency = "PEN"


class TravelRequestCreate(BaseModel):
    """Payload for ``POST /api/solicitudes-viaje``.

    Groups, in form order: personal data, trip, allowance, accommodation
    and the expense lines.  ``end_date`` may not precede ``start_date``
    and ``check_out`` may not precede ``check_in``.
    """

    # Personal data
    first_name: str = Field(..., min_length=1, max_length=200)
    last_name: str = Field(..., min_length=1, max_length=200)
    second_last_name: str | None = Field(default=None, max_length=200)
    document_number: str = Field(..., min_length=1, max_length=30)
    birth_date: date | None = None
    document_expiry: date | None = None
    phone: str | None = Field(default=None, max_length=50)
    email: str | None = Field(default=None, max_length=255)

    # Trip
    destination: str = Field(..., min_length=1, max_length=300)
    start_date: date
    end_date: date
    purpose: str = Field(..., min_length=1, max_length=2000)
    description: str | None = Field(default=None, max_length=5000)
    laboratory_id: str | None = Field(default=None, max_length=36)
    budget_code_id: str | None = Field(default=None, max_length=36)
    total_estimated_budget: float | None = Field(default=None, ge=0)
    currency: Currency = "PEN"
    needs_passage: bool = False
    needs_insurance: bool = False
    insurance_period: str | None = Field(default=None, max_length=100)
    emergency_contact: str | None = Field(default=None, max_length=300)
    preferred_schedule: str | None = Field(default=None, max_length=100)

    # Allowance
    requires_allowance: bool = False
    allowance_amount: float | None = Field(default=None, ge=0)
    bank: str | None = Field(default=None, max_length=100)
    account_number: str | None = Field(default=None, max_length=50)
    account_holder: str | None = Field(default=None, max_length=300)

    # Accommodation
    hotel_name: str | None = Field(default=None, max_length=300)
    check_in: date | None = None
    check_out: date | None = None
    number_of_days: int | None = Field(default=None, ge=0)

    expenses: list[TravelExpenseCreate] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_dates(self) -> "TravelRequestCreate":
        if self.end_date < self.start_date:
            raise ValueError("La fecha de retorno no puede ser anterior a la fecha de salida")
        if self.check_in and self.check_out and self.check_out < self.check_in:
            raise ValueError("La fecha de salida del hotel no puede ser anterior a la de ingreso")
        return self


class ApproveRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)


class RejectRequest(BaseModel):
    """The service, not the schema, refuses blank notes with its own message."""

    notes: str | None = Field(default=None, max_length=2000)


class TravelExpenseResponse(BaseModel):
    id: str
    travel_request_id: str
    expense_type: str
    description: str | None = None
    estimated_amount: float
    currency: str
    receipt_path: str | None = None
    status: str
    created_at: str | None = None


class TravelRequestResponse(BaseModel):
    id: str
    user_id: str
    status: str
    status_label: str | None = None
    first_name: str
    last_name: str
    second_last_name: str | None = None
    document_number: str
    destination: str
    start_date: str
    end_date: str
    purpose: str
    description: str | None = None
    laboratory_id: str | None = None
    budget_code_id: str | None = None
    total_estimated_budget: float | None = None
    currency: str
    manager_id: str | None = None
    manager_notes: str | None = None
    finance_approver_id: str | None = None
    finance_notes: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    requester: dict[str, Any] | None = None
    laboratory: dict[str, Any] | None = None


class TravelRequestDetail(TravelRequestResponse):
    """Every stored column plus expenses and attachments."""

    birth_date: str | None = None
    document_expiry: str | None = None
    phone: str | None = None
    email: str | None = None
    needs_passage: bool = False
    needs_insurance: bool = False
    insurance_period: str | None = None
    emergency_contact: str | None = None
    preferred_schedule: str | None = None
    requires_allowance: bool = False
    allowance_amount: float | None = None
    bank: str | None = None
    account_number: str | None = None
    account_holder: str | None = None
    hotel_name: str | None = None
    check_in: str | None = None
    check_out: str | None = None
    number_of_days: int | None = None
    budget_code: dict[str, Any] | None = None
    travel_expenses: list[dict[str, Any]] = Field(default_factory=list)
    travel_attachments: list[dict[str, Any]] = Field(default_factory=list)


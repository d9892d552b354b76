"""Travel request models: request, expense lines and attachments."""

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text

from conecta2.database import Base, new_id, utcnow


class TravelRequest(Base):
    """Travel request with personal data, allowance and accommodation blocks.

    The approval chain is ``pendiente`` -> ``aprobado_por_gerente`` ->
    ``aprobado_por_finanzas`` -> ``completado``; ``rechazado`` ends it at any
    step before completion.

    Attributes:
        user_id: FK to the requester's Profile.
        manager_id: Profile that gave the first approval (or rejected).
        manager_notes: Notes from the first approval or the rejection reason.
        finance_approver_id: Profile that gave the finance approval.
        finance_notes: Notes from the finance approval.
        total_estimated_budget: Sum the requester expects to spend.
        requires_allowance: Whether the allowance block applies.
        number_of_days: Accommodation nights.
    """

    __tablename__ = "travel_requests"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    laboratory_id = Column(String(36), ForeignKey("laboratories.id"), nullable=True)
    budget_code_id = Column(String(36), ForeignKey("budget_codes.id"), nullable=True)
    status = Column(String(30), default="pendiente", nullable=False)
    # "pendiente", "aprobado_por_gerente", "aprobado_por_finanzas", "rechazado", "completado"

    # Personal data
    first_name = Column(String(200), nullable=False)
    last_name = Column(String(200), nullable=False)
    second_last_name = Column(String(200), nullable=True)
    document_number = Column(String(30), nullable=False)
    birth_date = Column(Date, nullable=True)
    document_expiry = Column(Date, nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)

    # Trip
    destination = Column(String(300), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    purpose = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    total_estimated_budget = Column(Float, nullable=True)
    currency = Column(String(10), default="PEN", nullable=False)
    needs_passage = Column(Boolean, default=False, nullable=False)
    needs_insurance = Column(Boolean, default=False, nullable=False)
    insurance_period = Column(String(100), nullable=True)
    emergency_contact = Column(String(300), nullable=True)
    preferred_schedule = Column(String(100), nullable=True)

    # Allowance
    requires_allowance = Column(Boolean, default=False, nullable=False)
    allowance_amount = Column(Float, nullable=True)
    bank = Column(String(100), nullable=True)
    account_number = Column(String(50), nullable=True)
    account_holder = Column(String(300), nullable=True)

    # Accommodation
    hotel_name = Column(String(300), nullable=True)
    check_in = Column(Date, nullable=True)
    check_out = Column(Date, nullable=True)
    number_of_days = Column(Integer, nullable=True)

    # Approval
    manager_id = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    manager_notes = Column(Text, nullable=True)
    finance_approver_id = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    finance_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class TravelExpense(Base):
    __tablename__ = "travel_expenses"

    id = Column(String(36), primary_key=True, default=new_id)
    travel_request_id = Column(
        String(36), ForeignKey("travel_requests.id", ondelete="CASCADE"), nullable=False
    )
    expense_type = Column(String(30), nullable=False)
    # "pasaje_aereo", "alojamiento", "viaticos", "transporte_local", "otros"
    description = Column(Text, nullable=True)
    estimated_amount = Column(Float, nullable=False)
    currency = Column(String(10), default="PEN", nullable=False)
    receipt_path = Column(String(500), nullable=True)
    status = Column(String(30), default="pendiente", nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class TravelAttachment(Base):
    """Metadata row for an object stored in the ``travel-attachments`` bucket."""

    __tablename__ = "travel_attachments"

    id = Column(String(36), primary_key=True, default=new_id)
    travel_request_id = Column(
        String(36), ForeignKey("travel_requests.id", ondelete="CASCADE"), nullable=False
    )
    file_name = Column(String(300), nullable=False)
    file_path = Column(String(500), nullable=False)
    file_type = Column(String(150), nullable=True)
    file_size = Column(Integer, nullable=True)
    uploaded_by = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

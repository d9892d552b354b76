"""Purchase request models: the request, its line items, files and comments."""

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text

from conecta2.database import Base, new_id, utcnow


class PurchaseRequest(Base):
    """Purchase request raised by a laboratory user.

    Attributes:
        id: UUID primary key.
        number: Sequential human-facing number, assigned by the backend.
        laboratory_id: FK to Laboratory.
        budget_code_id: FK to BudgetCode.
        user_id: FK to the requester's Profile.
        status: One of ``constants.PURCHASE_STATUSES``.
        observations: Optional free text.
        total_amount: ``quantity * unit_price`` of the first item.
        deleted_at: Soft-delete timestamp; ``None`` while active.
    """

    __tablename__ = "purchase_requests"

    id = Column(String(36), primary_key=True, default=new_id)
    number = Column(Integer, unique=True, nullable=False)
    laboratory_id = Column(String(36), ForeignKey("laboratories.id"), nullable=False)
    budget_code_id = Column(String(36), ForeignKey("budget_codes.id"), nullable=False)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    status = Column(String(30), default="pending", nullable=False)
    # "pending", "in_process", "purchased", "ready_for_delivery", "delivered", "rejected"
    observations = Column(Text, nullable=True)
    total_amount = Column(Float, nullable=True)
    actions = Column(Text, nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class PurchaseRequestItem(Base):
    __tablename__ = "purchase_request_items"

    id = Column(String(36), primary_key=True, default=new_id)
    purchase_request_id = Column(
        String(36), ForeignKey("purchase_requests.id", ondelete="CASCADE"), nullable=False
    )
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    currency = Column(String(10), nullable=False)  # "PEN", "USD", "EUR"
    created_at = Column(DateTime, default=utcnow, nullable=False)


class PurchaseRequestAttachment(Base):
    """Metadata row for an object stored in the ``purchase-attachments`` bucket."""

    __tablename__ = "purchase_request_attachments"

    id = Column(String(36), primary_key=True, default=new_id)
    purchase_request_id = Column(
        String(36), ForeignKey("purchase_requests.id", ondelete="CASCADE"), nullable=False
    )
    file_name = Column(String(300), nullable=False)
    file_path = Column(String(500), nullable=False)
    file_size = Column(Integer, nullable=True)
    file_type = Column(String(150), nullable=True)
    uploaded_by = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class PurchaseRequestComment(Base):
    __tablename__ = "purchase_request_comments"

    id = Column(String(36), primary_key=True, default=new_id)
    purchase_request_id = Column(
        String(36), ForeignKey("purchase_requests.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

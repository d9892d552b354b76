"""Master data models: laboratories, suppliers, products and budget codes."""

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint

from conecta2.database import Base, new_id, utcnow


class Laboratory(Base):
    """Laboratory requesting purchases and travel.

    Attributes:
        id: UUID primary key.
        name: Display name, unique.
        description: Optional free text.
    """

    __tablename__ = "laboratories"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), unique=True, nullable=False)
    description = Column(String(1000), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Supplier(Base):
    """Supplier of products.  ``ruc`` is the Peruvian tax id, unique."""

    __tablename__ = "suppliers"

    id = Column(String(36), primary_key=True, default=new_id)
    code = Column(String(50), unique=True, nullable=True)
    name = Column(String(300), nullable=False)
    description = Column(String(1000), nullable=True)
    ruc = Column(String(20), unique=True, nullable=True)
    address = Column(String(500), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Product(Base):
    """Purchasable product, optionally tied to its supplier."""

    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=new_id)
    code = Column(String(50), unique=True, nullable=True)
    name = Column(String(300), nullable=False)
    description = Column(String(1000), nullable=True)
    supplier_id = Column(String(36), ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class BudgetCode(Base):
    """Budget code a purchase is charged to.

    Attributes:
        id: UUID primary key.
        code: Unique budget code, e.g. ``"PRES-2024-001"``.
        description: Optional free text.
    """

    __tablename__ = "budget_codes"

    id = Column(String(36), primary_key=True, default=new_id)
    code = Column(String(50), unique=True, nullable=False)
    description = Column(String(1000), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class BudgetCodeProduct(Base):
    """Many-to-many join: products purchasable under a budget code."""

    __tablename__ = "budget_code_products"
    __table_args__ = (UniqueConstraint("budget_code_id", "product_id"),)

    id = Column(String(36), primary_key=True, default=new_id)
    budget_code_id = Column(String(36), ForeignKey("budget_codes.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class LaboratoryBudgetCode(Base):
    """Many-to-many join: budget codes valid for a laboratory."""

    __tablename__ = "laboratory_budget_codes"

    laboratory_id = Column(String(36), ForeignKey("laboratories.id", ondelete="CASCADE"), primary_key=True)
    budget_code_id = Column(String(36), ForeignKey("budget_codes.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

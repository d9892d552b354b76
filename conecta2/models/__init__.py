"""SQLAlchemy models package for the local BaaS emulation.

Importing all models here ensures that SQLAlchemy's metadata is populated
before ``Base.metadata.create_all()`` runs.  The import order follows the
foreign-key dependency graph so that parent tables are always registered
before their children.

Usage from other modules:
    from conecta2.models import PurchaseRequest, Profile
"""

# Identity
from conecta2.models.profile import AdminUser, AuthUser, Profile, Role  # noqa: F401

# Master data
from conecta2.models.master_data import (  # noqa: F401
    BudgetCode,
    BudgetCodeProduct,
    Laboratory,
    LaboratoryBudgetCode,
    Product,
    Supplier,
)

# Workflows
from conecta2.models.purchase_request import (  # noqa: F401
    PurchaseRequest,
    PurchaseRequestAttachment,
    PurchaseRequestComment,
    PurchaseRequestItem,
)
from conecta2.models.travel_request import (  # noqa: F401
    TravelAttachment,
    TravelExpense,
    TravelRequest,
)

# Messaging
from conecta2.models.messaging import ChatMessage, Notification  # noqa: F401

"""
Application-wide constants for the Conecta2 back office.

Defines domain enumerations, BaaS error codes, storage bucket names and
lookup lists used across routers, services, and the BaaS clients.
"""

from typing import Final

# ---------------------------------------------------------------------------
# Roles (``roles.name``)
# ---------------------------------------------------------------------------

ROLE_ADMIN: Final[str] = "admin"
ROLE_MANAGER: Final[str] = "manager"
ROLE_PURCHASES: Final[str] = "Purchases"
ROLE_USER: Final[str] = "User"
ROLE_SECRETARY: Final[str] = "Secretary"
ROLE_MAINTENANCE: Final[str] = "Maintenance"

# Roles allowed to change purchase request status and to delete requests
PURCHASE_MANAGER_ROLES: Final[tuple[str, ...]] = (ROLE_ADMIN, ROLE_MANAGER, ROLE_PURCHASES)

# Roles that act as the "purchases user" approving travel requests
TRAVEL_APPROVER_ROLES: Final[tuple[str, ...]] = (ROLE_ADMIN, ROLE_PURCHASES)

# ---------------------------------------------------------------------------
# Purchase request statuses
# ---------------------------------------------------------------------------

PURCHASE_STATUSES: Final[list[str]] = [
    "pending",
    "in_process",
    "purchased",
    "ready_for_delivery",
    "delivered",
    "rejected",
]

PURCHASE_STATUS_LABELS: Final[dict[str, str]] = {
    "pending": "Pendiente",
    "in_process": "En Proceso",
    "purchased": "Comprado",
    "ready_for_delivery": "Listo para Entrega",
    "delivered": "Entregado",
    "rejected": "Rechazado",
}

# ---------------------------------------------------------------------------
# Travel request statuses
# ---------------------------------------------------------------------------

TRAVEL_STATUSES: Final[list[str]] = [
    "pendiente",
    "aprobado_por_gerente",
    "aprobado_por_finanzas",
    "rechazado",
    "completado",
]

TRAVEL_STATUS_LABELS: Final[dict[str, str]] = {
    "pendiente": "Pendiente",
    "aprobado_por_gerente": "Aprobado por Gerente",
    "aprobado_por_finanzas": "Aprobado por Finanzas",
    "rechazado": "Rechazado",
    "completado": "Completado",
}

TRAVEL_EXPENSE_TYPES: Final[list[str]] = [
    "pasaje_aereo",
    "alojamiento",
    "viaticos",
    "transporte_local",
    "otros",
]

CURRENCIES: Final[list[str]] = ["PEN", "USD", "EUR"]

# ---------------------------------------------------------------------------
# Storage buckets
# ---------------------------------------------------------------------------

BUCKET_PURCHASE_ATTACHMENTS: Final[str] = "purchase-attachments"
BUCKET_TRAVEL_RECEIPTS: Final[str] = "travel-receipts"
BUCKET_TRAVEL_ATTACHMENTS: Final[str] = "travel-attachments"

# ---------------------------------------------------------------------------
# BaaS (PostgreSQL / PostgREST) error codes
# ---------------------------------------------------------------------------

PG_PERMISSION_DENIED: Final[str] = "42501"
PG_UNIQUE_VIOLATION: Final[str] = "23505"
PG_FOREIGN_KEY_VIOLATION: Final[str] = "23503"
PG_NOT_NULL_VIOLATION: Final[str] = "23502"
PGRST_NO_ROWS: Final[str] = "PGRST116"
PGRST_AMBIGUOUS_EMBED: Final[str] = "PGRST201"
PGRST_UNKNOWN_RELATION: Final[str] = "PGRST200"
PGRST_UNKNOWN_FUNCTION: Final[str] = "PGRST202"

# ---------------------------------------------------------------------------
# Auth state-change events
# ---------------------------------------------------------------------------

EVENT_SIGNED_IN: Final[str] = "SIGNED_IN"
EVENT_SIGNED_OUT: Final[str] = "SIGNED_OUT"
EVENT_TOKEN_REFRESHED: Final[str] = "TOKEN_REFRESHED"

# ---------------------------------------------------------------------------
# Shell
# ---------------------------------------------------------------------------

AREAS: Final[dict[str, str]] = {
    "compras": "Unidad de Compras",
    "secretaria": "Secretaría",
    "mantenimiento": "Mantenimiento",
}

PROTECTED_ROUTES: Final[dict[str, str]] = {
    "/select-area": "Seleccionar Área",
    "/": "Inicio",
    "/admin": "Administración",
    "/compras": "Unidad de Compras",
    "/viajes": "Solicitudes de Viaje",
    "/datos-maestros": "Datos Maestros",
    "/secretaria": "Secretaría",
    "/mantenimiento": "Mantenimiento",
}

ADMIN_ROUTES: Final[frozenset[str]] = frozenset({"/admin"})

# (title, href, roles allowed); None shows the entry to everyone, an empty
# tuple only to administrators
SIDEBAR_ITEMS: Final[list[tuple[str, str, tuple[str, ...] | None]]] = [
    ("Inicio", "/", None),
    ("Administración", "/admin", ()),
    ("Viajes", "/viajes", None),
    ("Compras", "/compras", (ROLE_PURCHASES,)),
    ("Datos Maestros", "/datos-maestros", (ROLE_PURCHASES,)),
    ("Secretaría", "/secretaria", (ROLE_SECRETARY,)),
    ("Mantenimiento", "/mantenimiento", (ROLE_MAINTENANCE,)),
]

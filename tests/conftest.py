"""
Pytest fixtures for the Conecta2 back office test suite.

Provides:
- ``baas``: a ``FaultyLocalClient`` over in-memory SQLite with seeded roles,
  five users and one set of master data.  It records every table, RPC and
  storage call and can be told to fail any of them.
- ``api``: a ``TestClient`` whose ``get_client`` dependency returns ``baas``.
- ``seed``: ids and auth headers of the seeded rows.

The process-wide caches (query cache, application context, chat hub,
feeds) are reset around every test.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import SimpleNamespace

import bcrypt
import pytest
from fastapi.testclient import TestClient

from conecta2.baas.client import get_client
from conecta2.baas.errors import BaasError
from conecta2.baas.local import LocalClient
from conecta2.baas.local_storage import LocalBucket, LocalStorage
from conecta2.baas.query import QueryResult, QueryState
from conecta2.database import make_engine
from conecta2.main import app
from conecta2.services import chat_service, currency_service
from conecta2.services.app_context import get_app_context
from conecta2.services.query_cache import get_query_cache

PASSWORD = "secret123"


# =============================================================================
# Fault injection
# =============================================================================


@dataclass
class Faults:
    """Failures to inject and the calls seen so far.

    ``tables`` maps ``(table, method)`` to the error to raise, ``rpcs`` maps
    a procedure name, ``storage`` maps ``(bucket, operation)`` to
    ``(path_fragment, error)``; an empty fragment matches every path.
    ``hidden`` lists ``(table, method)`` pairs answered with no rows, as
    when row level security filters the target out.
    """

    tables: dict[tuple[str, str], BaasError] = field(default_factory=dict)
    rpcs: dict[str, BaasError] = field(default_factory=dict)
    storage: dict[tuple[str, str], tuple[str, BaasError]] = field(default_factory=dict)
    hidden: set[tuple[str, str]] = field(default_factory=set)
    calls: list[tuple[str, str]] = field(default_factory=list)

    def table_calls(self, table: str) -> list[str]:
        return [method for name, method in self.calls if name == table]


class FaultyBucket(LocalBucket):
    def __init__(self, root: Path, bucket: str, faults: Faults) -> None:
        super().__init__(root, bucket)
        self._faults = faults

    def _check(self, operation: str, path: str) -> None:
        self._faults.calls.append((f"storage:{self.bucket}", operation))
        rule = self._faults.storage.get((self.bucket, operation))
        if rule is not None and rule[0] in path:
            raise rule[1]

    def upload(self, path, data, content_type=None, cache_control="3600", upsert=False):
        self._check("upload", path)
        return super().upload(path, data, content_type, cache_control, upsert)

    def remove(self, paths):
        self._check("remove", " ".join(paths))
        return super().remove(paths)


class FaultyStorage(LocalStorage):
    def __init__(self, root: Path, faults: Faults) -> None:
        super().__init__(root)
        self._faults = faults

    def from_(self, bucket: str) -> FaultyBucket:
        return FaultyBucket(self.root, bucket, self._faults)


class FaultyLocalClient(LocalClient):
    """``LocalClient`` that records calls and raises injected errors."""

    def __init__(self, engine, storage_dir: Path) -> None:
        super().__init__(engine, storage_dir)
        self.faults = Faults()
        self.storage = FaultyStorage(storage_dir, self.faults)

    def _execute(self, state: QueryState) -> QueryResult:
        self.faults.calls.append((state.table, state.method))
        error = self.faults.tables.get((state.table, state.method))
        if error is not None:
            raise error
        if (state.table, state.method) in self.faults.hidden:
            return QueryResult(data=[])
        return super()._execute(state)

    def rpc(self, name: str, params: dict | None = None) -> QueryResult:
        self.faults.calls.append(("rpc", name))
        error = self.faults.rpcs.get(name)
        if error is not None:
            raise error
        return super().rpc(name, params)


# =============================================================================
# Global state
# =============================================================================


def _fast_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")


@pytest.fixture(autouse=True)
def _fast_password_hashing(monkeypatch):
    monkeypatch.setattr("conecta2.baas.local_auth.hash_password", _fast_hash)


@pytest.fixture(autouse=True)
def _reset_process_state():
    get_query_cache().clear()
    get_app_context.cache_clear()
    chat_service.get_chat_hub.cache_clear()
    currency_service.get_feeds.cache_clear()
    yield
    get_query_cache().clear()
    app.dependency_overrides.clear()


# =============================================================================
# Client and seed data
# =============================================================================


@pytest.fixture
def baas(tmp_path) -> FaultyLocalClient:
    client = FaultyLocalClient(make_engine("sqlite://"), tmp_path / "storage")
    yield client
    client.close()


def _make_user(client: LocalClient, email: str, first: str, last: str, role_id: str, **flags) -> SimpleNamespace:
    session = client.auth.sign_up(email, PASSWORD, {"first_name": first, "last_name": last, "role_id": role_id})
    if flags:
        client.table("profiles").update(flags).eq("id", session.user.id).execute()
    return SimpleNamespace(
        id=session.user.id,
        email=email,
        token=session.access_token,
        headers={"Authorization": f"Bearer {session.access_token}"},
    )


@pytest.fixture
def seed(baas) -> SimpleNamespace:
    """Roles, users (admin, purchases, manager, requester, other) and master data."""
    roles = {
        row["name"]: row["id"]
        for row in baas.table("roles")
        .insert([
            {"name": "admin", "description": "Administrador"},
            {"name": "manager", "description": "Gerente"},
            {"name": "Purchases", "description": "Unidad de Compras"},
            {"name": "User", "description": "Usuario"},
        ])
        .execute()
        .data
    }

    users = SimpleNamespace(
        admin=_make_user(baas, "admin@conecta2.pe", "Ana", "Admin", roles["admin"], is_admin=True),
        purchases=_make_user(baas, "compras@conecta2.pe", "Carlos", "Compras", roles["Purchases"]),
        manager=_make_user(baas, "gerente@conecta2.pe", "Gina", "Gerente", roles["manager"]),
        requester=_make_user(baas, "juan@conecta2.pe", "Juan", "Perez", roles["User"]),
        other=_make_user(baas, "maria@conecta2.pe", "Maria", "Lopez", roles["User"]),
    )

    lab = baas.table("laboratories").insert({"name": "Laboratorio de Microbiología"}).execute().data[0]
    lab2 = baas.table("laboratories").insert({"name": "Laboratorio de Química"}).execute().data[0]
    code = baas.table("budget_codes").insert({"code": "PRES-2024-001", "description": "Insumos"}).execute().data[0]
    supplier = (
        baas.table("suppliers")
        .insert({"name": "Reactivos del Sur", "code": "PRV-001", "ruc": "20123456789"})
        .execute()
        .data[0]
    )
    product = (
        baas.table("products")
        .insert({"name": "Placas Petri", "code": "PRD-001", "supplier_id": supplier["id"]})
        .execute()
        .data[0]
    )
    product2 = (
        baas.table("products")
        .insert({"name": "Pipetas", "code": "PRD-002", "supplier_id": supplier["id"]})
        .execute()
        .data[0]
    )
    baas.table("laboratory_budget_codes").insert({"laboratory_id": lab["id"], "budget_code_id": code["id"]}).execute()

    baas.faults.calls.clear()
    return SimpleNamespace(
        roles=roles,
        users=users,
        lab_id=lab["id"],
        lab2_id=lab2["id"],
        budget_code_id=code["id"],
        supplier_id=supplier["id"],
        product_id=product["id"],
        product2_id=product2["id"],
    )


@pytest.fixture
def api(baas, seed) -> TestClient:
    app.dependency_overrides[get_client] = lambda: baas
    return TestClient(app)


# =============================================================================
# Helpers
# =============================================================================


def _purchase_payload(seed: SimpleNamespace, **overrides) -> dict:
    payload = {
        "laboratory_id": seed.lab_id,
        "budget_code_id": seed.budget_code_id,
        "supplier_id": seed.supplier_id,
        "product_id": seed.product_id,
        "quantity": 3,
        "unit_price": 12.5,
        "currency": "PEN",
        "observations": "Entrega en el laboratorio 2",
    }
    payload.update(overrides)
    return payload


def _travel_payload(seed: SimpleNamespace, **overrides) -> dict:
    payload = {
        "first_name": "Juan",
        "last_name": "Perez",
        "document_number": "45678912",
        "destination": "Cusco",
        "start_date": "2024-09-10",
        "end_date": "2024-09-14",
        "purpose": "Congreso de microbiología",
        "laboratory_id": seed.lab_id,
        "currency": "PEN",
        "expenses": [
            {"expense_type": "pasaje_aereo", "estimated_amount": 850.0, "currency": "PEN"},
            {"expense_type": "alojamiento", "estimated_amount": 600.0, "currency": "PEN"},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def purchase_payload(seed):
    """Valid purchase form; keyword arguments override fields."""
    return lambda **overrides: _purchase_payload(seed, **overrides)


@pytest.fixture
def travel_payload(seed):
    return lambda **overrides: _travel_payload(seed, **overrides)


@pytest.fixture
def create_purchase(api, seed):
    """Create a purchase request as *user* (default: the requester)."""

    def _create(user=None, **overrides) -> dict:
        user = user or seed.users.requester
        response = api.post("/api/solicitudes-compra", json=_purchase_payload(seed, **overrides), headers=user.headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _create


@pytest.fixture
def create_travel(api, seed):
    def _create(user=None, **overrides) -> dict:
        user = user or seed.users.requester
        response = api.post("/api/solicitudes-viaje", json=_travel_payload(seed, **overrides), headers=user.headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _create

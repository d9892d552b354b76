"""
Local emulation of the hosted BaaS on SQLAlchemy + SQLite.

``LocalClient`` implements the same surface as ``SupabaseClient`` (table
queries with PostgREST-style embedding, remote procedures, auth, storage
and realtime INSERT events) so that the services, the development server
and the test-suite run without a hosted project.

Row-level policies are not emulated; the hosted project enforces them.
"""

from __future__ import annotations

import copy
import logging
from collections import defaultdict
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable

from sqlalchemy import Date, DateTime, Table, and_, func, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from conecta2.baas.errors import BaasError
from conecta2.baas.local_auth import LocalAuth
from conecta2.baas.local_storage import LocalStorage
from conecta2.baas.query import EmbedNode, Filter, QueryBuilder, QueryResult, QueryState, parse_select
from conecta2.baas.types import Subscription
from conecta2.database import Base, init_db, utcnow
from conecta2.utils import constants

logger = logging.getLogger(__name__)

# Columns the backend numbers itself, per table
_SEQUENCES: dict[str, str] = {"purchase_requests": "number"}


# ---------------------------------------------------------------------------
# Value conversion
# ---------------------------------------------------------------------------


def _serialize(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _coerce(column, value: Any) -> Any:
    """Turn JSON-ish input (ISO strings) into what the column type expects."""
    if value is None or not isinstance(value, str):
        return value
    if isinstance(column.type, DateTime):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    if isinstance(column.type, Date):
        return date.fromisoformat(value[:10])
    return value


def _integrity_error(exc: IntegrityError) -> BaasError:
    text = str(exc.orig)
    if "UNIQUE" in text:
        code = constants.PG_UNIQUE_VIOLATION
        message = f"duplicate key value violates unique constraint ({text})"
    elif "FOREIGN KEY" in text:
        code = constants.PG_FOREIGN_KEY_VIOLATION
        message = "insert or update violates foreign key constraint"
    elif "NOT NULL" in text:
        code = constants.PG_NOT_NULL_VIOLATION
        message = f"null value violates not-null constraint ({text})"
    else:
        code = None
        message = text
    return BaasError(message, code=code, details=text, status=409 if code else 400)


def _like_to_sql(pattern: str) -> str:
    # PostgREST accepts * as the wildcard in URLs
    return pattern.replace("*", "%")


class LocalClient:
    """SQLite-backed stand-in for the hosted BaaS.

    Args:
        engine: SQLAlchemy engine; tables are created on construction.
        storage_dir: Root directory of the object-storage emulation.
        auto_confirm: Whether sign-ups are confirmed immediately.
    """

    def __init__(self, engine: Engine, storage_dir: Path, auto_confirm: bool = True) -> None:
        init_db(engine)
        self.engine = engine
        self.auth = LocalAuth(engine, auto_confirm=auto_confirm)
        self.storage = LocalStorage(storage_dir)
        self.access_token: str | None = None
        self._insert_listeners: dict[str, list[Callable[[dict], None]]] = defaultdict(list)
        self._rpcs: dict[str, Callable[[Connection, dict], Any]] = {
            "get_budget_code_product_list": self._rpc_get_budget_code_product_list,
            "update_budget_code_products": self._rpc_update_budget_code_products,
            "get_supplier_products": self._rpc_get_supplier_products,
            "update_supplier_products": self._rpc_update_supplier_products,
            "approve_travel_request": self._rpc_approve_travel_request,
            "get_user_role": self._rpc_get_user_role,
        }

    # -----------------------------------------------------------------------
    # Public surface
    # -----------------------------------------------------------------------

    def with_token(self, access_token: str) -> "LocalClient":
        scoped = copy.copy(self)
        scoped.access_token = access_token
        return scoped

    def table(self, name: str) -> QueryBuilder:
        return QueryBuilder(name, self._execute)

    def rpc(self, name: str, params: dict[str, Any] | None = None) -> QueryResult:
        handler = self._rpcs.get(name)
        if handler is None:
            raise BaasError(
                f"Could not find the function public.{name} in the schema cache",
                code=constants.PGRST_UNKNOWN_FUNCTION,
                status=404,
            )
        try:
            with self.engine.begin() as conn:
                return QueryResult(data=handler(conn, params or {}))
        except IntegrityError as exc:
            raise _integrity_error(exc) from exc

    def channel(self, table: str) -> "LocalChannel":
        return LocalChannel(self, table)

    def close(self) -> None:
        self.engine.dispose()

    # -----------------------------------------------------------------------
    # Query execution
    # -----------------------------------------------------------------------

    def _table(self, name: str) -> Table:
        table = Base.metadata.tables.get(name)
        if table is None:
            raise BaasError(f'relation "public.{name}" does not exist', code="42P01", status=404)
        return table

    def _column(self, table: Table, name: str):
        if name not in table.c:
            raise BaasError(
                f"column {table.name}.{name} does not exist", code="42703", status=400
            )
        return table.c[name]

    def _condition(self, table: Table, flt: Filter):
        if "." in flt.column:
            raise BaasError(
                "Filtering on embedded resources is not supported locally",
                code="PGRST100",
                status=400,
            )
        column = self._column(table, flt.column)
        value = flt.value
        op = flt.operator
        if op == "eq":
            return column == _coerce(column, value)
        if op == "neq":
            return column != _coerce(column, value)
        if op == "gt":
            return column > _coerce(column, value)
        if op == "gte":
            return column >= _coerce(column, value)
        if op == "lt":
            return column < _coerce(column, value)
        if op == "lte":
            return column <= _coerce(column, value)
        if op == "like":
            return column.like(_like_to_sql(value))
        if op == "ilike":
            return func.lower(column).like(_like_to_sql(value).lower())
        if op == "is":
            return column.is_(value)
        if op == "in":
            return column.in_([_coerce(column, v) for v in value])
        raise BaasError(f"Operador no soportado: {op}", code="PGRST100", status=400)

    def _where(self, table: Table, filters: list[Filter]):
        return and_(*(self._condition(table, f) for f in filters)) if filters else None

    def _execute(self, state: QueryState) -> QueryResult:
        table = self._table(state.table)
        inserted: list[dict] = []
        try:
            with self.engine.begin() as conn:
                if state.method == "select":
                    rows, count = self._select(conn, table, state)
                elif state.method == "insert":
                    rows = inserted = self._insert(conn, table, state)
                    count = None
                elif state.method == "update":
                    rows = self._update(conn, table, state)
                    count = None
                elif state.method == "delete":
                    rows = self._delete(conn, table, state)
                    count = None
                else:
                    raise BaasError(f"Método no soportado: {state.method}", status=400)
        except IntegrityError as exc:
            raise _integrity_error(exc) from exc

        for row in inserted:
            self._notify_insert(table.name, row)

        if state.single or state.maybe_single:
            if len(rows) == 1:
                return QueryResult(data=rows[0], count=count)
            if not rows and state.maybe_single:
                return QueryResult(data=None, count=count)
            raise BaasError(
                "JSON object requested, multiple (or no) rows returned",
                code=constants.PGRST_NO_ROWS,
                details=f"The result contains {len(rows)} rows",
                status=406,
            )
        return QueryResult(data=rows, count=count)

    def _select(self, conn: Connection, table: Table, state: QueryState) -> tuple[list[dict], int | None]:
        stmt = select(table)
        where = self._where(table, state.filters)
        if where is not None:
            stmt = stmt.where(where)
        count = None
        if state.count:
            count_stmt = select(func.count()).select_from(table)
            if where is not None:
                count_stmt = count_stmt.where(where)
            count = conn.execute(count_stmt).scalar_one()
        for column_name, desc in state.order:
            column = self._column(table, column_name)
            stmt = stmt.order_by(column.desc() if desc else column.asc())
        if state.limit is not None:
            stmt = stmt.limit(state.limit)

        nodes = parse_select(state.columns)
        shaped = []
        for row in conn.execute(stmt).mappings():
            item = self._shape(conn, table, dict(row), nodes)
            if item is not None:
                shaped.append(item)
        return shaped, count

    def _pk_filter(self, table: Table, row: dict):
        return and_(*(column == row[column.name] for column in table.primary_key.columns))

    def _fetch_by_pk(self, conn: Connection, table: Table, row: dict) -> dict:
        fetched = conn.execute(select(table).where(self._pk_filter(table, row))).mappings().first()
        return {key: _serialize(value) for key, value in dict(fetched).items()}

    def _insert(self, conn: Connection, table: Table, state: QueryState) -> list[dict]:
        payload = state.payload
        rows = payload if isinstance(payload, list) else [payload]
        created = []
        for raw in rows:
            values = {}
            for key, value in raw.items():
                values[key] = _coerce(self._column(table, key), value)
            sequence_column = _SEQUENCES.get(table.name)
            if sequence_column and values.get(sequence_column) is None:
                current = conn.execute(select(func.max(table.c[sequence_column]))).scalar()
                values[sequence_column] = (current or 0) + 1
            result = conn.execute(table.insert().values(**values))
            key = dict(zip((c.name for c in table.primary_key.columns), result.inserted_primary_key))
            created.append(self._fetch_by_pk(conn, table, key))
        return created

    def _matching_keys(self, conn: Connection, table: Table, filters: list[Filter]) -> list[dict]:
        pk_columns = list(table.primary_key.columns)
        stmt = select(*pk_columns).where(self._where(table, filters))
        return [dict(row) for row in conn.execute(stmt).mappings()]

    def _update(self, conn: Connection, table: Table, state: QueryState) -> list[dict]:
        keys = self._matching_keys(conn, table, state.filters)
        if not keys:
            return []
        values = {k: _coerce(self._column(table, k), v) for k, v in state.payload.items()}
        for key in keys:
            conn.execute(table.update().where(self._pk_filter(table, key)).values(**values))
        return [self._fetch_by_pk(conn, table, key) for key in keys]

    def _delete(self, conn: Connection, table: Table, state: QueryState) -> list[dict]:
        keys = self._matching_keys(conn, table, state.filters)
        removed = [self._fetch_by_pk(conn, table, key) for key in keys]
        for key in keys:
            conn.execute(table.delete().where(self._pk_filter(table, key)))
        return removed

    # -----------------------------------------------------------------------
    # Embedding
    # -----------------------------------------------------------------------

    def _relation(self, table: Table, target: Table, hint: str | None):
        """Resolve how *target* embeds into *table*.

        Returns ``("one", local_col, remote_col)`` for a many-to-one link
        (FK on *table*) or ``("many", local_col, remote_col)`` for a
        one-to-many link (FK on *target*).
        """
        candidates = []
        for fk in table.foreign_keys:
            if fk.column.table is target and (hint is None or hint == fk.parent.name):
                candidates.append(("one", fk.parent.name, fk.column.name))
        for fk in target.foreign_keys:
            if fk.column.table is table and (hint is None or hint == fk.parent.name):
                candidates.append(("many", fk.column.name, fk.parent.name))

        if not candidates:
            raise BaasError(
                f"Could not find a relationship between '{table.name}' and '{target.name}'",
                code=constants.PGRST_UNKNOWN_RELATION,
                status=400,
            )
        if len(candidates) > 1:
            raise BaasError(
                f"Could not embed because more than one relationship was found for "
                f"'{table.name}' and '{target.name}'",
                code=constants.PGRST_AMBIGUOUS_EMBED,
                hint="Especifique la columna con table!columna",
                status=300,
            )
        return candidates[0]

    def _shape(self, conn: Connection, table: Table, row: dict, nodes: list) -> dict | None:
        result: dict[str, Any] = {}
        plain = [n for n in nodes if isinstance(n, str)]
        if "*" in plain:
            result.update({k: _serialize(v) for k, v in row.items()})
        for name in plain:
            if name == "*":
                continue
            alias, _, column_name = name.rpartition(":")
            self._column(table, column_name)
            result[alias or column_name] = _serialize(row[column_name])

        for node in nodes:
            if not isinstance(node, EmbedNode):
                continue
            target = self._table(node.table)
            kind, local_col, remote_col = self._relation(table, target, node.hint)
            if kind == "one":
                embedded = None
                if row.get(local_col) is not None:
                    child = conn.execute(
                        select(target).where(target.c[remote_col] == row[local_col])
                    ).mappings().first()
                    if child is not None:
                        embedded = self._shape(conn, target, dict(child), node.children)
                if embedded is None and node.inner:
                    return None
            else:
                children = conn.execute(
                    select(target).where(target.c[remote_col] == row[local_col])
                ).mappings()
                embedded = [
                    shaped
                    for shaped in (self._shape(conn, target, dict(c), node.children) for c in children)
                    if shaped is not None
                ]
                if not embedded and node.inner:
                    return None
            result[node.alias] = embedded
        return result

    # -----------------------------------------------------------------------
    # Realtime
    # -----------------------------------------------------------------------

    def _notify_insert(self, table: str, row: dict) -> None:
        for callback in list(self._insert_listeners.get(table, [])):
            try:
                callback(row)
            except Exception:
                logger.exception("realtime listener failed for %s", table)

    # -----------------------------------------------------------------------
    # Remote procedures
    # -----------------------------------------------------------------------

    def _rpc_get_budget_code_product_list(self, conn: Connection, params: dict) -> list[str]:
        link = self._table("budget_code_products")
        rows = conn.execute(
            select(link.c.product_id).where(link.c.budget_code_id == params["p_budget_code_id"])
        )
        return [row.product_id for row in rows]

    def _rpc_update_budget_code_products(self, conn: Connection, params: dict) -> None:
        link = self._table("budget_code_products")
        budget_code_id = params["p_budget_code_id"]
        conn.execute(link.delete().where(link.c.budget_code_id == budget_code_id))
        for product_id in dict.fromkeys(params.get("p_product_ids") or []):
            conn.execute(link.insert().values(budget_code_id=budget_code_id, product_id=product_id))

    def _rpc_get_supplier_products(self, conn: Connection, params: dict) -> list[dict]:
        products = self._table("products")
        rows = conn.execute(
            select(products)
            .where(products.c.supplier_id == params["p_supplier_id"])
            .order_by(products.c.name)
        ).mappings()
        return [{k: _serialize(v) for k, v in dict(row).items()} for row in rows]

    def _rpc_update_supplier_products(self, conn: Connection, params: dict) -> None:
        products = self._table("products")
        supplier_id = params["p_supplier_id"]
        product_ids = list(params.get("p_product_ids") or [])
        conn.execute(
            products.update()
            .where(products.c.supplier_id == supplier_id, products.c.id.not_in(product_ids))
            .values(supplier_id=None, updated_at=utcnow())
        )
        if product_ids:
            conn.execute(
                products.update()
                .where(products.c.id.in_(product_ids))
                .values(supplier_id=supplier_id, updated_at=utcnow())
            )

    def _rpc_approve_travel_request(self, conn: Connection, params: dict) -> dict:
        travel = self._table("travel_requests")
        request_id = params["request_id"]
        row = conn.execute(select(travel).where(travel.c.id == request_id)).mappings().first()
        if row is None:
            raise BaasError("Solicitud de viaje no encontrada", code="P0002", status=404)

        notes = params.get("notes")
        now = utcnow()
        if row["status"] == "pendiente":
            values = {
                "status": "aprobado_por_gerente",
                "manager_id": params["approver_id"],
                "manager_notes": notes,
            }
        elif row["status"] == "aprobado_por_gerente":
            values = {
                "status": "aprobado_por_finanzas",
                "finance_approver_id": params["approver_id"],
                "finance_notes": notes,
            }
        else:
            raise BaasError(
                f"La solicitud no puede aprobarse en estado '{row['status']}'",
                code="P0001",
                status=400,
            )
        conn.execute(travel.update().where(travel.c.id == request_id).values(updated_at=now, **values))
        updated = conn.execute(select(travel).where(travel.c.id == request_id)).mappings().first()
        return {k: _serialize(v) for k, v in dict(updated).items()}

    def _rpc_get_user_role(self, conn: Connection, params: dict) -> str | None:
        profiles = self._table("profiles")
        roles = self._table("roles")
        return conn.execute(
            select(roles.c.name)
            .select_from(profiles.join(roles, profiles.c.role_id == roles.c.id))
            .where(profiles.c.id == params["user_id"])
        ).scalar()


class LocalChannel:
    """Realtime INSERT subscription; callbacks run right after the commit."""

    def __init__(self, client: LocalClient, table: str) -> None:
        self._client = client
        self._table = table

    def on_insert(self, callback: Callable[[dict], None]) -> Subscription:
        return Subscription(self._client._insert_listeners[self._table], callback)

"""
Fluent query builder shared by the hosted and local BaaS clients.

The builder only records what was asked for; the owning client turns the
recorded ``QueryState`` into a PostgREST request (hosted) or a SQLAlchemy
statement (local).  Usage mirrors the supabase client libraries::

    result = (
        client.table("purchase_requests")
        .select("*, laboratory:laboratories(name)")
        .eq("status", "pending")
        .order("created_at", desc=True)
        .execute()
    )
    rows = result.data
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from conecta2.baas.errors import BaasError

FILTER_OPERATORS = ("eq", "neq", "gt", "gte", "lt", "lte", "like", "ilike", "is", "in")


@dataclass
class Filter:
    column: str
    operator: str
    value: Any


@dataclass
class QueryState:
    """Everything a client needs to run one table operation."""

    table: str
    method: str = "select"  # "select" | "insert" | "update" | "delete"
    columns: str = "*"
    count: str | None = None
    payload: Any = None
    filters: list[Filter] = field(default_factory=list)
    order: list[tuple[str, bool]] = field(default_factory=list)
    limit: int | None = None
    single: bool = False
    maybe_single: bool = False


@dataclass
class QueryResult:
    data: Any
    count: int | None = None


class QueryBuilder:
    """Chainable description of a single table operation."""

    def __init__(self, table: str, executor: Callable[[QueryState], QueryResult]) -> None:
        self._state = QueryState(table=table)
        self._executor = executor

    # -----------------------------------------------------------------------
    # Operations
    # -----------------------------------------------------------------------

    def select(self, columns: str = "*", count: str | None = None) -> "QueryBuilder":
        self._state.method = "select"
        self._state.columns = " ".join(columns.split())
        self._state.count = count
        return self

    def insert(self, rows: dict[str, Any] | list[dict[str, Any]]) -> "QueryBuilder":
        self._state.method = "insert"
        self._state.payload = rows
        return self

    def update(self, values: dict[str, Any]) -> "QueryBuilder":
        self._state.method = "update"
        self._state.payload = values
        return self

    def delete(self) -> "QueryBuilder":
        self._state.method = "delete"
        return self

    # -----------------------------------------------------------------------
    # Filters
    # -----------------------------------------------------------------------

    def _filter(self, column: str, operator: str, value: Any) -> "QueryBuilder":
        self._state.filters.append(Filter(column, operator, value))
        return self

    def eq(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter(column, "eq", value)

    def neq(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter(column, "neq", value)

    def gt(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter(column, "gt", value)

    def gte(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter(column, "gte", value)

    def lt(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter(column, "lt", value)

    def lte(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter(column, "lte", value)

    def like(self, column: str, pattern: str) -> "QueryBuilder":
        return self._filter(column, "like", pattern)

    def ilike(self, column: str, pattern: str) -> "QueryBuilder":
        return self._filter(column, "ilike", pattern)

    def is_(self, column: str, value: Any) -> "QueryBuilder":
        """``IS NULL`` / ``IS TRUE`` / ``IS FALSE``; *value* is ``None`` or a bool."""
        return self._filter(column, "is", value)

    def in_(self, column: str, values: list[Any]) -> "QueryBuilder":
        return self._filter(column, "in", list(values))

    # -----------------------------------------------------------------------
    # Modifiers
    # -----------------------------------------------------------------------

    def order(self, column: str, desc: bool = False) -> "QueryBuilder":
        self._state.order.append((column, desc))
        return self

    def limit(self, count: int) -> "QueryBuilder":
        self._state.limit = count
        return self

    def single(self) -> "QueryBuilder":
        self._state.single = True
        return self

    def maybe_single(self) -> "QueryBuilder":
        self._state.maybe_single = True
        return self

    def execute(self) -> QueryResult:
        if self._state.method in ("update", "delete") and not self._state.filters:
            # PostgREST refuses unfiltered UPDATE/DELETE too
            raise BaasError(
                "UPDATE/DELETE requires a WHERE clause",
                code="21000",
                status=400,
            )
        return self._executor(self._state)


# ---------------------------------------------------------------------------
# Select-string parsing (PostgREST embedding grammar)
# ---------------------------------------------------------------------------


@dataclass
class EmbedNode:
    """``alias:table!hint(columns)`` inside a select string."""

    table: str
    alias: str
    hint: str | None = None
    inner: bool = False
    children: list[Any] = field(default_factory=list)


def _split_top_level(text: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                raise BaasError(f"Paréntesis desbalanceados en select: {text!r}", code="PGRST100", status=400)
        if char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    if depth != 0:
        raise BaasError(f"Paréntesis desbalanceados en select: {text!r}", code="PGRST100", status=400)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return [p for p in parts if p]


def parse_select(columns: str) -> list[str | EmbedNode]:
    """Parse a select string into column names and ``EmbedNode`` entries.

    ``"*, laboratory:laboratories(name), purchase_request_items(*)"`` becomes
    ``["*", EmbedNode("laboratories", "laboratory", ...), EmbedNode(...)]``.
    """
    nodes: list[str | EmbedNode] = []
    for part in _split_top_level(columns.strip() or "*"):
        if "(" not in part:
            nodes.append(part.strip())
            continue

        head, _, rest = part.partition("(")
        body = rest[: rest.rfind(")")]
        alias = None
        if ":" in head:
            alias, head = head.split(":", 1)
        table, *modifiers = head.strip().split("!")
        hint = None
        inner = False
        for modifier in modifiers:
            if modifier == "inner":
                inner = True
            elif modifier != "left":
                hint = modifier
        nodes.append(
            EmbedNode(
                table=table.strip(),
                alias=(alias or table).strip(),
                hint=hint,
                inner=inner,
                children=parse_select(body),
            )
        )
    return nodes

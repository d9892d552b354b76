"""
HTTP client for the hosted BaaS project (PostgREST, GoTrue and Storage).

All traffic goes through one ``requests.Session`` so tests can inject a
fake transport.  No timeouts or retries are configured; the defaults of
``requests`` apply.

Endpoints used
--------------
REST     ``/rest/v1/{table}``, ``/rest/v1/rpc/{function}``
Auth     ``/auth/v1/signup``, ``/auth/v1/token``, ``/auth/v1/logout``,
         ``/auth/v1/user``, ``/auth/v1/recover``, ``/auth/v1/admin/users``
Storage  ``/storage/v1/object/{bucket}/{path}``,
         ``/storage/v1/object/sign/{bucket}/{path}``
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Callable
from urllib.parse import quote

import requests

from conecta2.baas.errors import BaasError
from conecta2.baas.query import QueryBuilder, QueryResult, QueryState
from conecta2.baas.types import AuthSession, AuthStateCallback, AuthUser, Subscription
from conecta2.utils.pollers import PeriodicPoller
from conecta2.utils.constants import EVENT_SIGNED_IN, EVENT_SIGNED_OUT, EVENT_TOKEN_REFRESHED, PGRST_NO_ROWS

logger = logging.getLogger(__name__)


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _format_filter(operator: str, value: Any) -> str:
    if operator == "in":
        quoted = ",".join(f'"{_format_value(v)}"' for v in value)
        return f"in.({quoted})"
    if operator in ("like", "ilike"):
        return f"{operator}.{str(value).replace('%', '*')}"
    return f"{operator}.{_format_value(value)}"


class SupabaseClient:
    """Client for a hosted project at *url* authenticated with *anon_key*.

    Args:
        url: Project URL, e.g. ``https://xyz.supabase.co``.
        anon_key: Public API key sent as ``apikey`` on every request.
        service_role_key: Optional key for admin auth endpoints.
        http: Transport; a fresh ``requests.Session`` by default.
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        service_role_key: str = "",
        http: requests.Session | None = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.service_role_key = service_role_key
        self.http = http or requests.Session()
        self.access_token: str | None = None
        self.auth = SupabaseAuth(self)
        self.storage = SupabaseStorage(self)
        self._pollers: list[Any] = []

    def with_token(self, access_token: str) -> "SupabaseClient":
        """Return a copy whose requests run as the user owning *access_token*."""
        scoped = copy.copy(self)
        scoped.access_token = access_token
        scoped.storage = SupabaseStorage(scoped)
        return scoped

    # -----------------------------------------------------------------------
    # Transport
    # -----------------------------------------------------------------------

    def _headers(self, extra: dict[str, str] | None = None, use_service_key: bool = False) -> dict[str, str]:
        bearer = self.service_role_key if use_service_key else (self.access_token or self.anon_key)
        headers = {
            "apikey": self.service_role_key if use_service_key else self.anon_key,
            "Authorization": f"Bearer {bearer}",
        }
        if extra:
            headers.update(extra)
        return headers

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Any = None,
        json: Any = None,
        data: bytes | None = None,
        headers: dict[str, str] | None = None,
        use_service_key: bool = False,
    ) -> requests.Response:
        response = self.http.request(
            method,
            f"{self.url}{path}",
            params=params,
            json=json,
            data=data,
            headers=self._headers(headers, use_service_key),
        )
        if not response.ok:
            error = BaasError.from_response(response)
            logger.debug("%s %s -> %s %s", method, path, response.status_code, error.message)
            raise error
        return response

    # -----------------------------------------------------------------------
    # PostgREST
    # -----------------------------------------------------------------------

    def table(self, name: str) -> QueryBuilder:
        return QueryBuilder(name, self._execute)

    def _execute(self, state: QueryState) -> QueryResult:
        params: list[tuple[str, str]] = []
        for flt in state.filters:
            params.append((flt.column, _format_filter(flt.operator, flt.value)))

        headers: dict[str, str] = {}
        prefer: list[str] = []
        if state.method == "select":
            params.append(("select", state.columns))
            for column, desc in state.order:
                params.append(("order", f"{column}.{'desc' if desc else 'asc'}"))
            if state.limit is not None:
                params.append(("limit", str(state.limit)))
            if state.count:
                prefer.append(f"count={state.count}")
        else:
            prefer.append("return=representation")
        if prefer:
            headers["Prefer"] = ",".join(prefer)

        method = {"select": "GET", "insert": "POST", "update": "PATCH", "delete": "DELETE"}[state.method]
        response = self.request(
            method,
            f"/rest/v1/{state.table}",
            params=params,
            json=state.payload if state.method in ("insert", "update") else None,
            headers=headers,
        )
        rows = response.json() if response.content else []

        count = None
        content_range = response.headers.get("Content-Range", "")
        if state.count and "/" in content_range:
            total = content_range.rsplit("/", 1)[1]
            count = int(total) if total.isdigit() else None

        if state.single or state.maybe_single:
            if len(rows) == 1:
                return QueryResult(data=rows[0], count=count)
            if not rows and state.maybe_single:
                return QueryResult(data=None, count=count)
            raise BaasError(
                "JSON object requested, multiple (or no) rows returned",
                code=PGRST_NO_ROWS,
                details=f"The result contains {len(rows)} rows",
                status=406,
            )
        return QueryResult(data=rows, count=count)

    def rpc(self, name: str, params: dict[str, Any] | None = None) -> QueryResult:
        response = self.request("POST", f"/rest/v1/rpc/{name}", json=params or {})
        return QueryResult(data=response.json() if response.content else None)

    # -----------------------------------------------------------------------
    # Realtime
    # -----------------------------------------------------------------------

    def channel(self, table: str) -> "PollingChannel":
        return PollingChannel(self, table)

    def close(self) -> None:
        for poller in self._pollers:
            poller.stop()
        self.http.close()


class SupabaseAuth:
    """GoTrue endpoints used by the application."""

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client
        self._listeners: list[AuthStateCallback] = []

    def on_auth_state_change(self, callback: AuthStateCallback) -> Subscription:
        return Subscription(self._listeners, callback)

    def _emit(self, event: str, session: AuthSession | None) -> None:
        for callback in list(self._listeners):
            callback(event, session)

    def _bearer(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    def sign_up(self, email: str, password: str, data: dict[str, Any] | None = None) -> AuthSession | AuthUser:
        body = self._client.request(
            "POST", "/auth/v1/signup", json={"email": email, "password": password, "data": data or {}}
        ).json()
        if body.get("access_token"):
            session = AuthSession.model_validate(body)
            self._emit(EVENT_SIGNED_IN, session)
            return session
        # Email confirmation pending: the body is the user itself
        return AuthUser.model_validate(body.get("user", body))

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        body = self._client.request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        ).json()
        session = AuthSession.model_validate(body)
        self._emit(EVENT_SIGNED_IN, session)
        return session

    def get_user(self, access_token: str) -> AuthUser:
        body = self._client.request("GET", "/auth/v1/user", headers=self._bearer(access_token)).json()
        return AuthUser.model_validate(body)

    def refresh_session(self, refresh_token: str) -> AuthSession:
        body = self._client.request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        ).json()
        session = AuthSession.model_validate(body)
        self._emit(EVENT_TOKEN_REFRESHED, session)
        return session

    def sign_out(self, access_token: str) -> None:
        self._client.request("POST", "/auth/v1/logout", headers=self._bearer(access_token))
        self._emit(EVENT_SIGNED_OUT, None)

    def reset_password_for_email(self, email: str, redirect_to: str | None = None) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        self._client.request("POST", "/auth/v1/recover", params=params, json={"email": email})

    def admin_list_users(self) -> list[AuthUser]:
        if not self._client.service_role_key:
            raise BaasError(
                "SUPABASE_SERVICE_ROLE_KEY no configurada",
                code="not_admin",
                status=403,
            )
        body = self._client.request(
            "GET",
            "/auth/v1/admin/users",
            params={"per_page": 1000},
            use_service_key=True,
        ).json()
        return [AuthUser.model_validate(user) for user in body.get("users", [])]


class SupabaseBucket:
    def __init__(self, client: SupabaseClient, bucket: str) -> None:
        self._client = client
        self.bucket = bucket

    def _object(self, path: str) -> str:
        return f"/storage/v1/object/{self.bucket}/{quote(path)}"

    def upload(
        self,
        path: str,
        data: bytes,
        content_type: str | None = None,
        cache_control: str = "3600",
        upsert: bool = False,
    ) -> dict:
        headers = {
            "Content-Type": content_type or "application/octet-stream",
            "cache-control": f"max-age={cache_control}",
            "x-upsert": "true" if upsert else "false",
        }
        self._client.request("POST", self._object(path), data=data, headers=headers)
        return {"path": path, "fullPath": f"{self.bucket}/{path}"}

    def download(self, path: str) -> bytes:
        return self._client.request("GET", self._object(path)).content

    def remove(self, paths: list[str]) -> list[dict]:
        return self._client.request(
            "DELETE", f"/storage/v1/object/{self.bucket}", json={"prefixes": list(paths)}
        ).json()

    def create_signed_url(self, path: str, expires_in: int) -> str:
        body = self._client.request(
            "POST",
            f"/storage/v1/object/sign/{self.bucket}/{quote(path)}",
            json={"expiresIn": expires_in},
        ).json()
        return f"{self._client.url}/storage/v1{body['signedURL']}"


class SupabaseStorage:
    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    def from_(self, bucket: str) -> SupabaseBucket:
        return SupabaseBucket(self._client, bucket)


class PollingChannel:
    """INSERT subscription emulated by polling ``created_at`` on the table.

    The hosted realtime socket is not used; new rows are picked up every
    ``interval`` seconds, oldest first, in the order the database returns.
    """

    def __init__(self, client: SupabaseClient, table: str, interval: float = 2.0) -> None:
        self._client = client
        self._table = table
        self._interval = interval
        self._callbacks: list[Callable[[dict], None]] = []
        self._last_seen: str | None = None
        self._primed = False
        self._lock = threading.Lock()
        self._poller = None

    def _poll(self) -> list[dict]:
        if not self._primed:
            # First poll only sets the watermark
            latest = (
                self._client.table(self._table)
                .select("created_at")
                .order("created_at", desc=True)
                .limit(1)
                .execute()
                .data
            )
            self._last_seen = latest[0]["created_at"] if latest else None
            self._primed = True
            return []

        query = self._client.table(self._table).select("*").order("created_at")
        if self._last_seen is not None:
            query = query.gt("created_at", self._last_seen)
        rows = query.execute().data
        if rows:
            self._last_seen = rows[-1]["created_at"]
        for row in rows:
            for callback in list(self._callbacks):
                callback(row)
        return rows

    def on_insert(self, callback: Callable[[dict], None]) -> Subscription:
        with self._lock:
            if self._poller is None:
                self._poller = PeriodicPoller(f"realtime:{self._table}", self._poll, self._interval)
                self._client._pollers.append(self._poller)
                self._poller.start()
        return Subscription(self._callbacks, callback)

"""
User administration service (admin only).

Profiles live in the database and email addresses in the auth service;
the two are merged on the documented join key ``profiles.id == auth
user id``.  Every action is a single-row update on ``profiles`` whose
permission failures surface as
``"No tienes permisos para realizar esta acción"``.
"""

from __future__ import annotations

import logging
from typing import Any, NoReturn

from fastapi import HTTPException, status

from conecta2.baas.errors import BaasError
from conecta2.config import get_settings
from conecta2.schemas.admin import CreateUserRequest
from conecta2.schemas.auth import RegisterRequest
from conecta2.schemas.common import MessageResponse, MutationResponse
from conecta2.services import auth_service
from conecta2.services.errors import not_found, raise_baas_error
from conecta2.services.query_cache import get_query_cache

logger = logging.getLogger(__name__)

MSG_NO_PERMISSION = "No tienes permisos para realizar esta acción"

_PROFILE_COLUMNS = "*, role:roles(id, name, description), laboratory:laboratories(id, name)"


def _fail(exc: BaasError, action: str) -> NoReturn:
    raise_baas_error(exc, action, permission_detail=MSG_NO_PERMISSION)


def _get_profile(client: Any, user_id: str) -> dict:
    try:
        row = (
            client.table("profiles")
            .select("id, is_admin, is_blocked, role_id")
            .eq("id", user_id)
            .maybe_single()
            .execute()
            .data
        )
    except BaasError as exc:
        _fail(exc, "cargar el usuario")
    if row is None:
        raise not_found("usuario")
    return row


def _update_profile(client: Any, user_id: str, values: dict[str, Any], action: str) -> dict:
    try:
        rows = client.table("profiles").update(values).eq("id", user_id).execute().data
    except BaasError as exc:
        _fail(exc, action)
    if not rows:
        raise not_found("usuario")
    logger.info("admin %s: user=%s values=%s", action, user_id, values)
    return rows[0]


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def list_users(client: Any, search: str | None = None) -> list[dict]:
    """Profiles with role and laboratory, enriched from the auth user list.

    Args:
        client: Admin-scoped client.
        search: Optional case-insensitive substring of the email or name.

    Returns:
        Rows ordered by profile creation, newest first.
    """
    try:
        profiles = (
            client.table("profiles")
            .select(_PROFILE_COLUMNS)
            .order("created_at", desc=True)
            .execute()
            .data
        )
        auth_users = {user.id: user for user in client.auth.admin_list_users()}
    except BaasError as exc:
        _fail(exc, "cargar los usuarios")

    merged = []
    for profile in profiles:
        row = dict(profile)
        auth_user = auth_users.get(profile["id"])
        if auth_user is not None:
            row["email"] = auth_user.email or profile.get("email")
            row["last_sign_in_at"] = auth_user.last_sign_in_at
            row["email_confirmed_at"] = auth_user.email_confirmed_at
        merged.append(row)

    if search:
        needle = search.strip().lower()
        merged = [
            row
            for row in merged
            if needle in " ".join(
                str(row.get(key) or "") for key in ("email", "first_name", "last_name")
            ).lower()
        ]
    logger.debug("list_users: %d of %d profiles", len(merged), len(profiles))
    return merged


def list_roles(client: Any) -> list[dict]:
    def _fetch() -> list[dict]:
        return client.table("roles").select("*").order("name").execute().data

    try:
        return get_query_cache().fetch(("roles",), _fetch)
    except BaasError as exc:
        _fail(exc, "cargar los roles")


def _default_role_id(client: Any) -> str:
    name = get_settings().DEFAULT_ROLE_NAME
    try:
        role = client.table("roles").select("id").eq("name", name).maybe_single().execute().data
    except BaasError as exc:
        _fail(exc, "cargar el rol por defecto")
    if role is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"No existe el rol por defecto '{name}'",
        )
    return role["id"]


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


def toggle_block(client: Any, user_id: str) -> MutationResponse:
    profile = _get_profile(client, user_id)
    blocked = not profile.get("is_blocked")
    row = _update_profile(client, user_id, {"is_blocked": blocked}, "cambiar el bloqueo")
    message = "Usuario bloqueado exitosamente" if blocked else "Usuario desbloqueado exitosamente"
    return MutationResponse(message=message, data=row)


def toggle_admin(client: Any, user_id: str) -> MutationResponse:
    """Flip ``is_admin``; demoting also moves the user to the default role."""
    profile = _get_profile(client, user_id)
    promote = not profile.get("is_admin")
    values: dict[str, Any] = {"is_admin": promote}
    if not promote:
        values["role_id"] = _default_role_id(client)
    row = _update_profile(client, user_id, values, "cambiar el estado de administrador")
    return MutationResponse(message="Estado de administrador actualizado", data=row)


def change_role(client: Any, user_id: str, role_id: str) -> MutationResponse:
    row = _update_profile(client, user_id, {"role_id": role_id}, "cambiar el rol")
    return MutationResponse(message="Rol actualizado exitosamente", data=row)


def change_laboratory(client: Any, user_id: str, laboratory_id: str | None) -> MutationResponse:
    row = _update_profile(client, user_id, {"laboratory_id": laboratory_id}, "asignar el laboratorio")
    return MutationResponse(message="Laboratorio asignado exitosamente", data=row)


def create_user(client: Any, data: CreateUserRequest) -> MessageResponse:
    """Create an account through auth sign-up; the profile follows from it."""
    auth_service.register(client, RegisterRequest(**data.model_dump()))
    logger.info("admin create_user: %s", data.email)
    return MessageResponse(message="Usuario creado exitosamente")

"""
Administration router.

Mounts under ``/api/admin`` (prefix set in ``main.py``).  Every endpoint
requires ``profiles.is_admin`` (``require_admin``).

Endpoints
---------
GET   /usuarios                      — Users merged from profiles and auth.
POST  /usuarios                      — Create a user through auth sign-up.
PATCH /usuarios/{id}/bloqueo         — Toggle the block flag.
PATCH /usuarios/{id}/administrador   — Toggle the admin flag.
PATCH /usuarios/{id}/rol             — Change the role.
PATCH /usuarios/{id}/laboratorio     — Assign or clear the laboratory.
GET   /roles                         — Available roles.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from conecta2.schemas.admin import (
    AdminUserResponse,
    ChangeLaboratoryRequest,
    ChangeRoleRequest,
    CreateUserRequest,
    RoleResponse,
)
from conecta2.schemas.common import MessageResponse, MutationResponse
from conecta2.services import admin_service
from conecta2.services.auth_service import require_admin
from conecta2.services.session_gate import CurrentSession

router = APIRouter(tags=["Administración"])

AdminSession = Annotated[CurrentSession, Depends(require_admin)]

_ADMIN_RESPONSES = {
    401: {"description": "Sesión ausente o inválida."},
    403: {"description": "El usuario no es administrador o no tiene permisos."},
}


@router.get(
    "/usuarios",
    response_model=list[AdminUserResponse],
    summary="Listado de usuarios",
    description=(
        "Perfiles con rol y laboratorio, combinados con los usuarios del "
        "servicio de autenticación por ``profiles.id``."
    ),
    responses=_ADMIN_RESPONSES,
)
def list_usuarios(
    session: AdminSession,
    search: Annotated[
        str | None,
        Query(description="Buscar por email o nombre.", max_length=255),
    ] = None,
) -> list[dict]:
    return admin_service.list_users(session.client, search)


@router.post(
    "/usuarios",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Crear usuario",
    responses={**_ADMIN_RESPONSES, 409: {"description": "El email ya está registrado."}},
)
def create_usuario(body: CreateUserRequest, session: AdminSession) -> MessageResponse:
    return admin_service.create_user(session.client, body)


@router.patch(
    "/usuarios/{user_id}/bloqueo",
    response_model=MutationResponse,
    summary="Bloquear / desbloquear usuario",
    responses=_ADMIN_RESPONSES,
)
def toggle_bloqueo(user_id: str, session: AdminSession) -> MutationResponse:
    return admin_service.toggle_block(session.client, user_id)


@router.patch(
    "/usuarios/{user_id}/administrador",
    response_model=MutationResponse,
    summary="Alternar estado de administrador",
    description="Al quitar el rol de administrador el usuario pasa al rol por defecto.",
    responses=_ADMIN_RESPONSES,
)
def toggle_administrador(user_id: str, session: AdminSession) -> MutationResponse:
    return admin_service.toggle_admin(session.client, user_id)


@router.patch(
    "/usuarios/{user_id}/rol",
    response_model=MutationResponse,
    summary="Cambiar rol",
    responses=_ADMIN_RESPONSES,
)
def change_rol(user_id: str, body: ChangeRoleRequest, session: AdminSession) -> MutationResponse:
    return admin_service.change_role(session.client, user_id, body.role_id)


@router.patch(
    "/usuarios/{user_id}/laboratorio",
    response_model=MutationResponse,
    summary="Asignar laboratorio",
    responses=_ADMIN_RESPONSES,
)
def change_laboratorio(
    user_id: str,
    body: ChangeLaboratoryRequest,
    session: AdminSession,
) -> MutationResponse:
    return admin_service.change_laboratory(session.client, user_id, body.laboratory_id)


@router.get("/roles", response_model=list[RoleResponse], summary="Listado de roles")
def list_roles(session: AdminSession) -> list[dict]:
    return admin_service.list_roles(session.client)

"""
Shell router: the screen routes of the back office.

Mounted at the application root, after every ``/api`` router.

Each protected route runs the session gate.  Unauthenticated callers are
redirected to ``/login``; a non-admin on ``/admin`` is redirected to ``/``.
Authorised callers receive a ``ScreenDescriptor``.  Any other path
redirects to ``/login`` except under ``/api``, which stays a 404.

Endpoints
---------
GET  /login           — Public login screen.
GET  /select-area     — Area picker (protected).
POST /select-area     — Store the chosen area for the user.
GET  /, /admin, /compras, /viajes, /datos-maestros, /secretaria,
     /mantenimiento   — Protected screens.
GET  /{anything}      — Redirect to ``/login``.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import RedirectResponse, Response

from conecta2.baas.client import BaasClient, get_client
from conecta2.schemas.shell import (
    AreaResponse,
    LoginScreen,
    ScreenDescriptor,
    SelectAreaRequest,
    SelectAreaResponse,
    ShellUser,
    SidebarItem,
)
from conecta2.services.app_context import AppContext, get_app_context
from conecta2.services.auth_service import get_access_token, get_current_session
from conecta2.services.session_gate import CurrentSession, SessionGate
from conecta2.utils.constants import ADMIN_ROUTES, AREAS, PROTECTED_ROUTES, SIDEBAR_ITEMS

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Shell"])

Client = Annotated[BaasClient, Depends(get_client)]
Context = Annotated[AppContext, Depends(get_app_context)]
Token = Annotated[str | None, Depends(get_access_token)]


def sidebar_for(session: CurrentSession, route: str) -> list[SidebarItem]:
    items = []
    for title, href, roles in SIDEBAR_ITEMS:
        if roles is not None and not session.has_role(*roles):
            continue
        items.append(SidebarItem(title=title, href=href, active=href == route))
    return items


def _area(key: str) -> AreaResponse:
    return AreaResponse(key=key, title=AREAS[key], href=f"/{key}")


def _descriptor(route: str, session: CurrentSession, context: AppContext) -> ScreenDescriptor:
    selected = context.get_selected_area(session.user_id)
    return ScreenDescriptor(
        route=route,
        title=PROTECTED_ROUTES[route],
        user=ShellUser(
            id=session.user_id,
            email=session.email,
            full_name=session.full_name,
            role=session.role,
            is_admin=session.is_admin,
        ),
        selected_area=_area(selected.key) if selected else None,
        sidebar=sidebar_for(session, route),
        areas=[_area(key) for key in AREAS] if route == "/select-area" else [],
    )


def _protected_screen(route: str):
    def screen(token: Token, client: Client, context: Context) -> Response | ScreenDescriptor:
        result = SessionGate(client, require_admin=route in ADMIN_ROUTES).resolve(token)
        if result.redirect:
            logger.debug("shell %s -> %s (%s)", route, result.redirect, result.message)
            return RedirectResponse(result.redirect, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
        return _descriptor(route, result.session, context)

    screen.__name__ = f"screen_{route.strip('/').replace('-', '_') or 'home'}"
    return screen


@router.get("/login", response_model=LoginScreen, summary="Pantalla de inicio de sesión")
def login_screen() -> LoginScreen:
    return LoginScreen()


@router.post(
    "/select-area",
    response_model=SelectAreaResponse,
    summary="Seleccionar área",
    responses={422: {"description": "Área desconocida."}},
)
def select_area(
    body: SelectAreaRequest,
    session: Annotated[CurrentSession, Depends(get_current_session)],
    context: Context,
) -> SelectAreaResponse:
    try:
        area = context.set_selected_area(session.user_id, body.area)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    logger.info("select_area: user=%s area=%s", session.user_id, area.key)
    return SelectAreaResponse(
        message=f"Área seleccionada: {area.title}",
        area=_area(area.key),
        redirect_to=area.href,
    )


for _route, _title in PROTECTED_ROUTES.items():
    router.add_api_route(
        _route,
        _protected_screen(_route),
        methods=["GET"],
        response_model=ScreenDescriptor,
        summary=_title,
        responses={307: {"description": "Redirección a /login o a /."}},
    )


@router.get("/{full_path:path}", include_in_schema=False)
def catch_all(full_path: str) -> RedirectResponse:
    if full_path == "api" or full_path.startswith("api/"):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    return RedirectResponse("/login", status_code=status.HTTP_307_TEMPORARY_REDIRECT)

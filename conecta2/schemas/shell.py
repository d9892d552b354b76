"""Screen descriptors returned by the shell routes in place of rendered pages."""

from __future__ import annotations

from pydantic import BaseModel, Field


class AreaResponse(BaseModel):
    key: str
    title: str
    href: str


class SidebarItem(BaseModel):
    title: str
    href: str
    active: bool = False


class ShellUser(BaseModel):
    id: str
    email: str | None = None
    full_name: str
    role: str | None = None
    is_admin: bool = False


class ScreenDescriptor(BaseModel):
    """What the front end needs to draw one protected screen.

    Attributes:
        route: Path that was requested, e.g. ``"/compras"``.
        title: Screen title.
        user: Signed-in user shown in the header.
        selected_area: Area chosen on ``/select-area``, if any.
        sidebar: Entries the user may see, in display order.
        areas: Selectable areas; only filled on ``/select-area``.
    """

    route: str
    title: str
    user: ShellUser
    selected_area: AreaResponse | None = None
    sidebar: list[SidebarItem] = Field(default_factory=list)
    areas: list[AreaResponse] = Field(default_factory=list)


class LoginScreen(BaseModel):
    route: str = "/login"
    title: str = "Iniciar Sesión"


class SelectAreaRequest(BaseModel):
    area: str = Field(..., description="Clave del área: compras, secretaria o mantenimiento.")


class SelectAreaResponse(BaseModel):
    message: str
    area: AreaResponse
    redirect_to: str

"""
Pydantic v2 schemas for the administration (user management) module.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class RoleResponse(BaseModel):
    id: str
    name: str
    description: str | None = None


class AdminUserResponse(BaseModel):
    """One row of the user management table.

    Profile columns come from ``profiles`` joined with ``roles`` and
    ``laboratories``; ``email`` and the sign-in timestamps come from the
    auth service's user list, matched on ``profiles.id == auth user id``.

    Attributes:
        id: Profile / auth user id.
        email: Address from the auth service, falling back to the profile's.
        role: Joined role (``id``, ``name``), if assigned.
        laboratory: Joined laboratory (``id``, ``name``), if assigned.
        last_sign_in_at: Last sign-in as reported by the auth service.
    """

    id: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    role_id: str | None = None
    role: RoleResponse | None = None
    laboratory_id: str | None = None
    laboratory: dict | None = None
    is_admin: bool = False
    is_blocked: bool = False
    created_at: str | None = None
    last_sign_in_at: datetime | None = None
    email_confirmed_at: datetime | None = None


class ChangeRoleRequest(BaseModel):
    role_id: str = Field(..., min_length=1, max_length=36)


class ChangeLaboratoryRequest(BaseModel):
    """``laboratory_id`` null removes the assignment."""

    laboratory_id: str | None = Field(default=None, max_length=36)


class CreateUserRequest(BaseModel):
    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=128)
    first_name: str = Field(default="", max_length=200)
    last_name: str = Field(default="", max_length=200)
    role_id: str = Field(default="", max_length=36)

"""Profile, Role and auth user models: identity and the admin/block flags."""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, String

from conecta2.database import Base, new_id, utcnow


class AuthUser(Base):
    """Account record owned by the auth service (``auth.users`` when hosted).

    Attributes:
        id: UUID primary key, shared with ``profiles.id``.
        email: Unique login email.
        password_hash: Bcrypt hash (local emulation only).
        email_confirmed_at: Set once the address is confirmed; sign-in is
            refused while it is ``None``.
        user_metadata: Free-form metadata supplied at sign-up
            (``first_name``, ``last_name``, ``role_id``).
        last_sign_in_at: Timestamp of the last password sign-in.
    """

    __tablename__ = "auth_users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(200), nullable=False)
    email_confirmed_at = Column(DateTime, nullable=True)
    user_metadata = Column(JSON, nullable=True)
    last_sign_in_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Role(Base):
    """Named role (``admin``, ``manager``, ``Purchases``, ``User``...)."""

    __tablename__ = "roles"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Profile(Base):
    """One row per authenticated user; the only authorization signal read here.

    Attributes:
        id: Same UUID as the auth user.
        role_id: FK to Role.
        is_admin: Grants the ``/admin`` screens.
        is_blocked: Blocked users are signed out by the session gate.
        laboratory_id: Optional laboratory assignment.
    """

    __tablename__ = "profiles"

    id = Column(String(36), ForeignKey("auth_users.id", ondelete="CASCADE"), primary_key=True)
    email = Column(String(255), nullable=True)
    first_name = Column(String(200), nullable=True)
    last_name = Column(String(200), nullable=True)
    role_id = Column(String(36), ForeignKey("roles.id"), nullable=True)
    is_admin = Column(Boolean, default=False, nullable=False)
    is_blocked = Column(Boolean, default=False, nullable=False)
    laboratory_id = Column(String(36), ForeignKey("laboratories.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class AdminUser(Base):
    """Legacy admin allow-list; a row here also makes the user an admin at login."""

    __tablename__ = "admin_users"

    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

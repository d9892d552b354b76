"""Notification and chat message models."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text

from conecta2.database import Base, new_id, utcnow


class Notification(Base):
    """In-app notification addressed to one user.

    Attributes:
        user_id: Recipient profile.
        purchase_request_id: Request the notification refers to, if any.
        title: Short headline, e.g. ``"Solicitud #12 modificada"``.
        message: Full text.
        read: Whether the recipient has opened it.
    """

    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    purchase_request_id = Column(
        String(36), ForeignKey("purchase_requests.id", ondelete="CASCADE"), nullable=True
    )
    title = Column(String(300), nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True, default=new_id)
    content = Column(Text, nullable=False)
    sender_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

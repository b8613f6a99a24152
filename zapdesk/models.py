"""
File: zapdesk/models.py

Project: ZapDesk

Purpose:
SQLAlchemy ORM models for the WhatsApp customer-service backend.

Design principles:
- Phone (digits only) is the natural key used across conversations,
  contacts and appointments; numeric/UUID ids stay internal
- No business logic in models
- Messages are append-only
- Timestamps are set in Python (microsecond precision) so that
  "most recent N" ordering is stable on every backend
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Text,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

CONVERSATION_ACTIVE = "active"
CONVERSATION_HUMAN = "human"
CONVERSATION_STATUSES = (CONVERSATION_ACTIVE, CONVERSATION_HUMAN)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------
class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    phone = Column(Text, nullable=False, unique=True)
    name = Column(Text, nullable=True)

    # active = bot may reply, human = an agent has taken over
    status = Column(
        Enum(*CONVERSATION_STATUSES, name="conversation_status"),
        nullable=False,
        default=CONVERSATION_ACTIVE,
    )

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    messages = relationship("Message", back_populates="conversation")


# ---------------------------------------------------------------------
# Message (append-only)
# ---------------------------------------------------------------------
class Message(Base):
    __tablename__ = "messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id = Column(
        Uuid,
        ForeignKey("conversations.id"),
        nullable=False,
    )
    content = Column(Text, nullable=False)
    from_me = Column(Boolean, nullable=False, default=False)
    type = Column(Text, nullable=False, default="text")
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Outbound only: "sent" | "failed". Inbound messages leave it NULL.
    delivery_status = Column(Text, nullable=True)

    conversation = relationship("Conversation", back_populates="messages")


Index("ix_messages_conversation_timestamp", Message.conversation_id, Message.timestamp)


# ---------------------------------------------------------------------
# Contact (independent of Conversation)
# ---------------------------------------------------------------------
class Contact(Base):
    __tablename__ = "contacts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    phone = Column(Text, nullable=False, unique=True)
    name = Column(Text, nullable=True)
    profile_pic_url = Column(Text, nullable=True)
    email = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


# ---------------------------------------------------------------------
# Appointment (created only from the AI booking marker)
# ---------------------------------------------------------------------
class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    phone = Column(Text, nullable=False)
    client = Column(Text, nullable=False)
    service = Column(Text, nullable=False)
    date = Column(Text, nullable=False)  # free text, e.g. "Sexta 15h30"
    completed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


# ---------------------------------------------------------------------
# System setting (key -> JSON string)
# ---------------------------------------------------------------------
class SystemSetting(Base):
    __tablename__ = "system_settings"

    key = Column(Text, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

"""
File: zapdesk/services/message_service.py
Path: zapdesk/services/message_service.py

Project: ZapDesk

Purpose:
Authoritative service responsible for:
- Conversation insert-or-get by canonical phone
- Appending inbound / outbound Message rows
- Reading recent history for the AI
- Agent-initiated sends from the dashboard

Design rules:
- Phone arguments are already canonical (digits only)
- Conversation creation relies on the UNIQUE phone constraint: a concurrent
  insert for the same phone rolls back and re-reads the winner's row
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from zapdesk.models import (
    CONVERSATION_ACTIVE,
    Conversation,
    Message,
    utcnow,
)
from zapdesk.outbound.gateway import WhatsAppProvider

logger = logging.getLogger("message_service")

DELIVERY_SENT = "sent"
DELIVERY_FAILED = "failed"


def serialize_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=False)


class MessageService:
    def __init__(self, db: Session):
        self._db = db

    # ---------------------------------------------------------
    # Conversations
    # ---------------------------------------------------------
    def find_conversation(self, phone: str) -> Optional[Conversation]:
        return (
            self._db.query(Conversation)
            .filter(Conversation.phone == phone)
            .one_or_none()
        )

    def get_or_create_conversation(self, phone: str, name: Optional[str] = None) -> Conversation:
        """
        Find the conversation for `phone`, creating it as `active` if absent.
        An existing conversation gets its updated_at bumped.
        """
        conversation = self.find_conversation(phone)
        if conversation is None:
            conversation = Conversation(
                phone=phone,
                name=name or phone,
                status=CONVERSATION_ACTIVE,
            )
            self._db.add(conversation)
            try:
                self._db.commit()
                self._db.refresh(conversation)
                logger.info("Conversation created for %s", phone)
                return conversation
            except IntegrityError:
                self._db.rollback()
                logger.info("Conversation for %s created concurrently; reusing it", phone)
                conversation = self.find_conversation(phone)
                if conversation is None:
                    raise

        conversation.updated_at = utcnow()
        self._db.commit()
        return conversation

    # ---------------------------------------------------------
    # Messages
    # ---------------------------------------------------------
    def record_message(
        self,
        conversation: Conversation,
        content: Any,
        *,
        from_me: bool,
        delivery_status: Optional[str] = None,
    ) -> Message:
        message = Message(
            conversation_id=conversation.id,
            content=serialize_content(content),
            from_me=from_me,
            type="text",
            delivery_status=delivery_status,
        )
        self._db.add(message)
        self._db.commit()
        self._db.refresh(message)
        return message

    def recent_history(self, conversation: Conversation, limit: int = 10) -> List[Message]:
        """Newest `limit` messages, returned in chronological order."""
        newest_first = (
            self._db.query(Message)
            .filter(Message.conversation_id == conversation.id)
            .order_by(Message.timestamp.desc())
            .limit(limit)
            .all()
        )
        return list(reversed(newest_first))

    def list_messages(self, conversation: Conversation) -> List[Message]:
        return (
            self._db.query(Message)
            .filter(Message.conversation_id == conversation.id)
            .order_by(Message.timestamp.asc())
            .all()
        )

    # ---------------------------------------------------------
    # Agent send (dashboard)
    # ---------------------------------------------------------
    def send_from_agent(self, provider: WhatsAppProvider, phone: str, text: str) -> Message:
        """
        Send first, persist after: a provider failure propagates and nothing
        is stored.
        """
        provider.send_message(phone, text)
        conversation = self.get_or_create_conversation(phone, name=phone)
        return self.record_message(
            conversation,
            text,
            from_me=True,
            delivery_status=DELIVERY_SENT,
        )

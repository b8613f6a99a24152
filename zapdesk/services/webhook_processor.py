"""
ZapDesk
WebhookProcessor

Responsibilities:
- Accept a parsed inbound WhatsApp payload
- Normalise, filter and persist the inbound message
- Decide whether the bot may answer (conversation status + AI switch)
- Generate the reply, extract a booking marker, notify the admin
- Dispatch the reply and record it
- Never deal with HTTP, FastAPI, or responses

Persistence order within one call is fixed:
inbound message -> AI call -> appointment -> outbound message.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from sqlalchemy.orm import Session

from zapdesk.models import CONVERSATION_ACTIVE, Appointment, Conversation, Message
from zapdesk.outbound.factory import ProviderSelector
from zapdesk.phone import canonical_phone, is_broadcast_id, is_group_id
from zapdesk.services.ai_service import HISTORY_LIMIT, AIResponder
from zapdesk.services.appointment_marker import extract_appointment
from zapdesk.services.message_service import (
    DELIVERY_FAILED,
    DELIVERY_SENT,
    MessageService,
)
from zapdesk.services.settings_service import AIConfig, get_ai_config
from zapdesk.services.webhook_payloads import InboundEvent, normalise

logger = logging.getLogger("webhook_processor")

STATUS_IGNORED = {"status": "ignored"}
STATUS_IGNORED_GROUP = {"status": "ignored_group"}
STATUS_IGNORED_BROADCAST = {"status": "ignored_broadcast"}
STATUS_SUCCESS = {"success": True}

DEFAULT_CLIENT = "Cliente"
DEFAULT_SERVICE = "Serviço não especificado"
DEFAULT_DATE = "Data não especificada"


def format_admin_notice(client: str, service: str, date: str) -> str:
    return f"🔔 *NOVO AGENDAMENTO*\n👤 {client}\n💼 {service}\n📅 {date}"


class WebhookProcessor:
    def __init__(
        self,
        db: Session,
        provider_selector: ProviderSelector,
        responder: AIResponder,
    ) -> None:
        self._db = db
        self._selector = provider_selector
        self._responder = responder
        self._messages = MessageService(db=db)

    def process(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        event = normalise(payload)
        if event is None or not event.phone or not event.content:
            return dict(STATUS_IGNORED)

        if event.is_group or is_group_id(event.phone):
            return dict(STATUS_IGNORED_GROUP)
        if is_broadcast_id(event.phone):
            return dict(STATUS_IGNORED_BROADCAST)

        phone = canonical_phone(event.phone)
        if not phone:
            return dict(STATUS_IGNORED)

        conversation = self._messages.get_or_create_conversation(phone, name=event.name)
        inbound = self._messages.record_message(conversation, event.content, from_me=False)
        logger.info("[Webhook] Message saved: %s", inbound.id)

        ai_config = self._load_ai_config()
        if self._should_auto_reply(event, inbound, conversation, ai_config):
            self._auto_reply(conversation, inbound, ai_config)

        return dict(STATUS_SUCCESS)

    # ------------------------------------------------------------------
    # Gate
    # ------------------------------------------------------------------
    def _should_auto_reply(
        self,
        event: InboundEvent,
        inbound: Message,
        conversation: Conversation,
        ai_config: AIConfig,
    ) -> bool:
        if inbound.from_me or event.from_me:
            return False
        if conversation.status != CONVERSATION_ACTIVE:
            logger.info("Conversation %s is handled by a human; bot stays silent", conversation.phone)
            return False
        if not ai_config.enabled:
            logger.info("AI auto-reply disabled; not answering %s", conversation.phone)
            return False
        return True

    def _load_ai_config(self) -> AIConfig:
        try:
            return get_ai_config(self._db)
        except Exception:
            logger.exception("Failed to read AI config; assuming defaults")
            return AIConfig()

    # ------------------------------------------------------------------
    # Reply pipeline
    # ------------------------------------------------------------------
    def _auto_reply(
        self,
        conversation: Conversation,
        inbound: Message,
        ai_config: AIConfig,
    ) -> None:
        logger.info("Triggering AI for conversation: %s", conversation.phone)

        history = self._messages.recent_history(conversation, limit=HISTORY_LIMIT)
        reply = self._responder.generate_reply(inbound.content, history)

        marker = extract_appointment(reply)
        if marker.appointment is not None:
            self._record_appointment(conversation, marker.appointment, ai_config)

        delivery_status = DELIVERY_SENT
        try:
            provider = self._selector.get_active_provider(self._db)
            provider.send_message(conversation.phone, marker.text)
        except Exception:
            logger.exception("Send Error: reply to %s not delivered", conversation.phone)
            delivery_status = DELIVERY_FAILED

        self._messages.record_message(
            conversation,
            marker.text,
            from_me=True,
            delivery_status=delivery_status,
        )

    def _record_appointment(
        self,
        conversation: Conversation,
        data: Mapping[str, Any],
        ai_config: AIConfig,
    ) -> None:
        client = str(data.get("client") or conversation.name or DEFAULT_CLIENT)
        service = str(data.get("service") or DEFAULT_SERVICE)
        date = str(data.get("date") or DEFAULT_DATE)

        try:
            self._db.add(
                Appointment(
                    phone=conversation.phone,
                    client=client,
                    service=service,
                    date=date,
                )
            )
            self._db.commit()
            logger.info("Appointment saved for %s (%s, %s)", conversation.phone, service, date)
        except Exception:
            self._db.rollback()
            logger.exception("Appt Error: failed to save appointment")
            return

        if not ai_config.admin_phone:
            return

        try:
            provider = self._selector.get_active_provider(self._db)
            provider.send_message(
                canonical_phone(ai_config.admin_phone),
                format_admin_notice(client, service, date),
            )
        except Exception:
            logger.exception("Appt Error: admin notification failed")

"""
File: zapdesk/api/routes.py

Project: ZapDesk

Purpose:
Dashboard endpoints (agents monitor and take over conversations).

Endpoints:
- GET    /api/conversations
- GET    /api/conversations/{phone}/messages
- PATCH  /api/conversations/{phone}/status          (bot <-> human handover)
- POST   /api/messages/send
- GET    /api/settings/{key}
- POST   /api/settings/{key}
- GET    /api/status | /api/qr | /api/restart | /api/logout
- GET    /api/contacts
- POST   /api/contacts
- DELETE /api/contacts/{phone}
- POST   /api/contacts/sync
- GET    /api/appointments
- GET    /api/appointments/{appointment_id}
- PUT    /api/appointments/{appointment_id}
- DELETE /api/appointments/{appointment_id}
- GET    /api/stats/messages-by-day

Design rules:
- 400 {error} for bad client input, 404 {error} for unknown records,
  500 {error, details?} for provider / persistence failures
- Provider access always goes through the ProviderSelector
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from zapdesk.api.schemas import (
    AppointmentUpdateRequest,
    ContactCreateRequest,
    SendMessageRequest,
    StatusUpdateRequest,
)
from zapdesk.api.serializers import (
    appointment_out,
    contact_out,
    conversation_out,
    message_out,
)
from zapdesk.db import get_db
from zapdesk.models import CONVERSATION_STATUSES, Appointment, Conversation, Message
from zapdesk.outbound.factory import ProviderSelector, get_provider_selector
from zapdesk.outbound.gateway import QrAlreadyConnected, QrImage
from zapdesk.outbound.settings import WHATSAPP_CONFIG_KEY
from zapdesk.phone import canonical_phone
from zapdesk.services import contacts_service
from zapdesk.services.message_service import MessageService
from zapdesk.services.settings_service import get_document, save_document

router = APIRouter(prefix="/api", tags=["dashboard"])
logger = logging.getLogger("api")

WEEKDAY_LABELS = ("Seg", "Ter", "Qua", "Qui", "Sex", "Sab", "Dom")


def _error(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    body = {"error": error}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


# -------------------------------------------------------------------
# Conversations
# -------------------------------------------------------------------
@router.get("/conversations")
def list_conversations(db: Session = Depends(get_db)):
    conversations = (
        db.query(Conversation)
        .order_by(Conversation.updated_at.desc())
        .all()
    )

    result = []
    for c in conversations:
        last = (
            db.query(Message)
            .filter(Message.conversation_id == c.id)
            .order_by(Message.timestamp.desc())
            .first()
        )
        result.append(conversation_out(c, last))
    return result


@router.get("/conversations/{phone}/messages")
def list_conversation_messages(phone: str, db: Session = Depends(get_db)):
    service = MessageService(db=db)
    conversation = service.find_conversation(canonical_phone(phone))
    if not conversation:
        return _error(404, "Conversation not found")
    return [message_out(m) for m in service.list_messages(conversation)]


@router.patch("/conversations/{phone}/status")
def update_conversation_status(
    phone: str,
    body: StatusUpdateRequest,
    db: Session = Depends(get_db),
):
    if body.status not in CONVERSATION_STATUSES:
        return _error(400, "Status must be 'active' or 'human'")

    conversation = MessageService(db=db).find_conversation(canonical_phone(phone))
    if not conversation:
        return _error(404, "Conversation not found")

    conversation.status = body.status
    db.commit()
    logger.info("Conversation %s set to %s", conversation.phone, conversation.status)
    return conversation_out(conversation)


# -------------------------------------------------------------------
# Agent send
# -------------------------------------------------------------------
@router.post("/messages/send")
def send_message(
    body: SendMessageRequest,
    db: Session = Depends(get_db),
    selector: ProviderSelector = Depends(get_provider_selector),
):
    phone = canonical_phone(body.phone)
    if not phone or not body.message:
        return _error(400, "Phone and message are required")

    try:
        provider = selector.get_active_provider(db)
        saved = MessageService(db=db).send_from_agent(provider, phone, body.message)
    except Exception as e:
        db.rollback()
        logger.exception("Error sending message")
        return _error(500, "Failed to send message", str(e))

    return {"success": True, "message": message_out(saved)}


# -------------------------------------------------------------------
# Settings (opaque JSON documents)
# -------------------------------------------------------------------
@router.get("/settings/{key}")
def get_setting(key: str, db: Session = Depends(get_db)):
    try:
        return get_document(db, key)
    except Exception:
        logger.exception("Failed to fetch setting %s", key)
        return _error(500, "Failed to fetch settings")


@router.post("/settings/{key}")
def save_setting(
    key: str,
    document: Any = Body(None),
    db: Session = Depends(get_db),
    selector: ProviderSelector = Depends(get_provider_selector),
):
    try:
        save_document(db, key, document)
    except Exception:
        db.rollback()
        logger.exception("Failed to save setting %s", key)
        return _error(500, "Failed to save settings")

    if key == WHATSAPP_CONFIG_KEY:
        selector.refresh()
        webhook_url = document.get("webhookUrl") if isinstance(document, dict) else None
        if webhook_url:
            try:
                logger.info("Auto-syncing webhook URL to provider...")
                selector.get_active_provider(db).update_webhook(webhook_url)
            except Exception:
                logger.exception("Failed to auto-sync webhook")

    return {"success": True}


# -------------------------------------------------------------------
# Instance (status / QR / restart / logout)
# -------------------------------------------------------------------
@router.get("/status")
def instance_status(
    db: Session = Depends(get_db),
    selector: ProviderSelector = Depends(get_provider_selector),
):
    try:
        return selector.get_active_provider(db).check_connection().to_dict()
    except Exception as e:
        logger.exception("Status check error")
        return _error(500, "Failed to fetch status", str(e))


@router.get("/qr")
def instance_qr(
    db: Session = Depends(get_db),
    selector: ProviderSelector = Depends(get_provider_selector),
):
    try:
        qr = selector.get_active_provider(db).get_qr_code()
    except Exception as e:
        logger.exception("[QR] Error fetching QR")
        return _error(500, "Failed to fetch QR code", str(e))

    if isinstance(qr, QrAlreadyConnected):
        return {"status": "connected", "message": qr.message}
    if isinstance(qr, QrImage):
        return Response(content=qr.data, media_type=qr.content_type)

    logger.error("[QR] Not available: %s", qr.reason)
    return _error(404, "QR Code not available", qr.reason)


@router.get("/restart")
def instance_restart(
    db: Session = Depends(get_db),
    selector: ProviderSelector = Depends(get_provider_selector),
):
    if not selector.get_active_provider(db).restart():
        return _error(500, "Failed to restart instance")
    return {"success": True, "message": "Instance restarting..."}


@router.get("/logout")
def instance_logout(
    db: Session = Depends(get_db),
    selector: ProviderSelector = Depends(get_provider_selector),
):
    if not selector.get_active_provider(db).logout():
        return _error(500, "Failed to logout instance")
    return {"success": True, "message": "Instance disconnected"}


# -------------------------------------------------------------------
# Contacts
# -------------------------------------------------------------------
@router.get("/contacts")
def list_contacts(db: Session = Depends(get_db)):
    return [contact_out(c) for c in contacts_service.list_contacts(db)]


@router.post("/contacts")
def create_contact(body: ContactCreateRequest, db: Session = Depends(get_db)):
    phone = canonical_phone(body.phone)
    if not phone:
        return _error(400, "Phone is required")

    contact = contacts_service.add_contact(
        db,
        phone=phone,
        name=body.name,
        email=body.email,
        tags=body.tags,
    )
    if contact is None:
        return _error(400, "Este número já está cadastrado.")
    return contact_out(contact)


@router.delete("/contacts/{phone}")
def delete_contact(phone: str, db: Session = Depends(get_db)):
    if not contacts_service.remove_contact(db, phone=canonical_phone(phone)):
        return _error(404, "Contact not found")
    return {"success": True}


@router.post("/contacts/sync")
def sync_contacts(
    db: Session = Depends(get_db),
    selector: ProviderSelector = Depends(get_provider_selector),
):
    try:
        provider = selector.get_active_provider(db)
    except Exception as e:
        logger.exception("Sync failed")
        return _error(500, "Failed to sync contacts", str(e))

    result = contacts_service.sync_contacts(db, provider)
    if not result.success:
        return _error(500, "Failed to sync contacts", result.error)
    return {
        "success": True,
        "count": result.count,
        "failed": result.failed,
        "message": "Sincronização concluída via API.",
    }


# -------------------------------------------------------------------
# Appointments
# -------------------------------------------------------------------
@router.get("/appointments")
def list_appointments(db: Session = Depends(get_db)):
    rows = (
        db.query(Appointment)
        .order_by(Appointment.created_at.desc())
        .limit(100)
        .all()
    )
    return [appointment_out(a) for a in rows]


@router.get("/appointments/{appointment_id}")
def get_appointment(appointment_id: UUID, db: Session = Depends(get_db)):
    appointment = db.get(Appointment, appointment_id)
    if not appointment:
        return _error(404, "Appointment not found")
    return appointment_out(appointment)


@router.put("/appointments/{appointment_id}")
def update_appointment(
    appointment_id: UUID,
    body: AppointmentUpdateRequest,
    db: Session = Depends(get_db),
):
    if body.completed is None:
        return _error(400, "Field 'completed' is required")

    appointment = db.get(Appointment, appointment_id)
    if not appointment:
        return _error(404, "Appointment not found")

    appointment.completed = body.completed
    db.commit()
    return appointment_out(appointment)


@router.delete("/appointments/{appointment_id}")
def delete_appointment(appointment_id: UUID, db: Session = Depends(get_db)):
    appointment = db.get(Appointment, appointment_id)
    if not appointment:
        return _error(404, "Appointment not found")

    db.delete(appointment)
    db.commit()
    return {"success": True}


# -------------------------------------------------------------------
# Stats
# -------------------------------------------------------------------
@router.get("/stats/messages-by-day")
def messages_by_day(db: Session = Depends(get_db)):
    today = datetime.now(timezone.utc).date()
    days = [today - timedelta(days=i) for i in range(6, -1, -1)]
    buckets = {
        d.isoformat(): {"name": WEEKDAY_LABELS[d.weekday()], "msgs": 0, "date": d.isoformat()}
        for d in days
    }

    since = datetime.combine(days[0], datetime.min.time(), tzinfo=timezone.utc)
    timestamps = (
        db.query(Message.timestamp)
        .filter(Message.timestamp >= since)
        .all()
    )
    for (ts,) in timestamps:
        key = ts.date().isoformat()
        if key in buckets:
            buckets[key]["msgs"] += 1

    return list(buckets.values())

"""
JSON shapes returned to the dashboard.

Field names are camelCase to match the dashboard's data model
(fromMe, conversationId, updatedAt, ...).
"""

from datetime import datetime
from typing import Any, Dict, Optional

from zapdesk.models import Appointment, Contact, Conversation, Message


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def message_out(m: Message) -> Dict[str, Any]:
    return {
        "id": str(m.id),
        "conversationId": str(m.conversation_id),
        "content": m.content,
        "fromMe": m.from_me,
        "type": m.type,
        "timestamp": _iso(m.timestamp),
        "deliveryStatus": m.delivery_status,
    }


def conversation_out(c: Conversation, last_message: Optional[Message] = None) -> Dict[str, Any]:
    return {
        "id": str(c.id),
        "phone": c.phone,
        "name": c.name,
        "status": c.status,
        "createdAt": _iso(c.created_at),
        "updatedAt": _iso(c.updated_at),
        "messages": [message_out(last_message)] if last_message else [],
    }


def contact_out(c: Contact) -> Dict[str, Any]:
    return {
        "id": str(c.id),
        "phone": c.phone,
        "name": c.name,
        "profilePicUrl": c.profile_pic_url,
        "email": c.email,
        "tags": c.tags or [],
        "createdAt": _iso(c.created_at),
    }


def appointment_out(a: Appointment) -> Dict[str, Any]:
    return {
        "id": str(a.id),
        "phone": a.phone,
        "client": a.client,
        "service": a.service,
        "date": a.date,
        "completed": a.completed,
        "createdAt": _iso(a.created_at),
    }

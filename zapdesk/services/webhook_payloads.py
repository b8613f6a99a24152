"""
Inbound webhook payload normalisation.

Each vendor payload shape has its own pure parser
`payload -> InboundEvent | None`. normalise() tries them in priority
order and the first match wins:

1. UltraMsg   {"event_type": "message_received", "data": {"from", "body", ...}}
2. Z-API      {"phone", "message": {"text"}} or {"phone", "text": {"message"}}
3. Generic    {"phone", "content" | "message"}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence

from zapdesk.phone import is_group_id, strip_jid_suffix


@dataclass(frozen=True)
class InboundEvent:
    phone: str
    content: Any
    name: str
    from_me: bool = False
    is_group: bool = False


Parser = Callable[[Mapping[str, Any]], Optional[InboundEvent]]


def _first(mapping: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = mapping.get(key)
        if value:
            return value
    return None


def parse_ultramsg(payload: Mapping[str, Any]) -> Optional[InboundEvent]:
    msg = payload.get("data")
    if payload.get("event_type") != "message_received" or not isinstance(msg, Mapping):
        return None

    raw_from = str(msg.get("from") or "")
    phone = strip_jid_suffix(raw_from)
    return InboundEvent(
        phone=phone,
        content=msg.get("body"),
        name=_first(msg, "pushname", "notifyName") or phone,
        from_me=bool(msg.get("fromMe")),
        is_group=is_group_id(raw_from),
    )


def parse_zapi(payload: Mapping[str, Any]) -> Optional[InboundEvent]:
    phone = payload.get("phone")
    message = payload.get("message")
    text = payload.get("text")

    if isinstance(message, Mapping) and message.get("text"):
        content = message["text"]
    elif isinstance(text, Mapping) and text.get("message"):
        content = text["message"]
    elif isinstance(text, str) and text:
        content = text
    else:
        return None

    if not phone:
        return None

    phone = str(phone)
    return InboundEvent(
        phone=phone,
        content=content,
        name=_first(payload, "senderName", "pushName", "name", "chatName") or phone,
        from_me=bool(payload.get("fromMe")),
        is_group=bool(payload.get("isGroup")),
    )


def parse_generic(payload: Mapping[str, Any]) -> Optional[InboundEvent]:
    phone = payload.get("phone")
    content = _first(payload, "content", "message")
    if not phone or not content:
        return None

    phone = str(phone)
    return InboundEvent(
        phone=phone,
        content=content,
        name=payload.get("name") or phone,
        from_me=bool(payload.get("fromMe")),
    )


PARSERS: Sequence[Parser] = (parse_ultramsg, parse_zapi, parse_generic)


def normalise(payload: Any) -> Optional[InboundEvent]:
    if not isinstance(payload, Mapping):
        return None
    for parser in PARSERS:
        event = parser(payload)
        if event is not None:
            return event
    return None


def is_connected_event(payload: Any) -> bool:
    """Vendor notification that the WhatsApp device finished pairing."""
    if not isinstance(payload, Mapping):
        return False
    return (
        payload.get("type") == "status-change" and payload.get("status") == "connected"
    ) or payload.get("status") == "CONNECTED"

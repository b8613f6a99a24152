"""
Phone helpers shared by the webhook pipeline, contact sync and the API.

Canonical phone = digits only. It is the single join key between
conversations, contacts, messages and appointments.
"""

import re

_NON_DIGITS = re.compile(r"\D")
_JID_SUFFIXES = ("@c.us", "@s.whatsapp.net")


def canonical_phone(raw) -> str:
    return _NON_DIGITS.sub("", str(raw or ""))


def strip_jid_suffix(raw: str) -> str:
    """'5511988887777@c.us' -> '5511988887777'. Group/broadcast ids are kept."""
    value = str(raw or "")
    for suffix in _JID_SUFFIXES:
        if value.endswith(suffix):
            return value[: -len(suffix)]
    return value


def is_group_id(raw: str) -> bool:
    return "@g.us" in str(raw or "")


def is_broadcast_id(raw: str) -> bool:
    value = str(raw or "")
    return value == "status" or "broadcast" in value

"""
ZapDesk
WhatsApp provider abstraction

This module defines the WhatsAppProvider interface shared by every vendor
adapter, plus the strongly-typed results the adapters hand back to callers.

Guardrails:
- Only send_message() raises. Status, QR, contacts and control calls degrade
  to a sentinel value and log the failure.
- QR shape detection (raw image / base64 data-URL / remote URL / "already
  connected" notice) happens inside the adapters, never in callers.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Union

import requests

logger = logging.getLogger("outbound")

_DATA_URL = re.compile(r"^data:([A-Za-z-+/]+);base64,(.+)$", re.DOTALL)


class ProviderError(RuntimeError):
    """Vendor answered with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderNetworkError(ProviderError):
    """Vendor could not be reached at all."""


@dataclass(frozen=True)
class ConnectionStatus:
    connected: bool
    status: str = ""
    raw: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.error is not None:
            return {"connected": False, "error": self.error}
        return {"connected": self.connected, "status": self.status, "raw": self.raw}


# ---------------------------------------------------------------------
# QR result (tagged variant)
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class QrImage:
    data: bytes
    content_type: str = "image/png"


@dataclass(frozen=True)
class QrAlreadyConnected:
    message: str


@dataclass(frozen=True)
class QrUnavailable:
    reason: str


QrResult = Union[QrImage, QrAlreadyConnected, QrUnavailable]


def decode_data_url(value: str) -> Optional[QrImage]:
    """'data:image/png;base64,....' -> QrImage, or None if it is not one."""
    match = _DATA_URL.match(value or "")
    if not match:
        return None
    try:
        data = base64.b64decode(match.group(2), validate=False)
    except (binascii.Error, ValueError):
        logger.warning("QR data-URL is not valid base64")
        return None
    return QrImage(data=data, content_type=match.group(1))


def qr_from_value(
    value: Any,
    *,
    session: requests.Session,
    timeout: float,
) -> QrResult:
    """
    Resolve a QR value found inside a vendor JSON body: a data-URL is
    decoded, an http(s) URL is downloaded, anything else is unavailable.
    """
    if not isinstance(value, str) or not value:
        return QrUnavailable("Provider returned no QR code")

    if value.startswith("data:"):
        image = decode_data_url(value)
        return image or QrUnavailable("Invalid base64 QR")

    if value.startswith("http"):
        resp = session.get(value, timeout=timeout)
        if not (200 <= resp.status_code < 300):
            return QrUnavailable(f"Failed to fetch QR image: {resp.status_code}")
        content_type = resp.headers.get("content-type", "image/png").split(";")[0]
        return QrImage(data=resp.content, content_type=content_type or "image/png")

    return QrUnavailable("Unknown QR format")


def response_json(resp: requests.Response) -> Dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {"raw_text": resp.text}
    return data if isinstance(data, dict) else {"data": data}


def mask(token: Optional[str]) -> str:
    return f"{(token or '')[:5]}..."


class WhatsAppProvider(Protocol):
    """
    Capability set every WhatsApp gateway vendor must offer.
    """

    name: str

    def send_message(self, phone: str, text: str) -> Dict[str, Any]:
        """Send a text. Raises ProviderError / ProviderNetworkError."""
        ...

    def check_connection(self) -> ConnectionStatus:
        ...

    def get_qr_code(self) -> QrResult:
        ...

    def get_contacts(self) -> List[Dict[str, Any]]:
        ...

    def restart(self) -> bool:
        ...

    def logout(self) -> bool:
        ...

    def update_webhook(self, url: str) -> bool:
        ...

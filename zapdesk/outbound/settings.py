"""
zapdesk/outbound/settings.py
ZapDesk
Provider (WhatsApp gateway) settings

Purpose:
- Parse the persisted "whatsapp_config" document into a typed config.
- Build the fallback config from environment variables when no document
  has been saved yet.

Environment fallback:
  - WHATSAPP_PROVIDER (zapi | ultramsg, defaults to zapi)
  - ZAPI_INSTANCE_ID, ZAPI_TOKEN, ZAPI_CLIENT_TOKEN, WHATSAPP_API_HOST
  - ULTRAMSG_INSTANCE_ID, ULTRAMSG_TOKEN
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from zapdesk.config import HTTP_TIMEOUT_SECONDS

WHATSAPP_CONFIG_KEY = "whatsapp_config"

PROVIDER_ZAPI = "zapi"
PROVIDER_OFFICIAL = "official"  # dashboard label for Z-API
PROVIDER_ULTRAMSG = "ultramsg"


def _text(doc: Mapping[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = doc.get(key)
        if isinstance(value, (str, int)) and str(value).strip():
            return str(value).strip()
    return None


@dataclass(frozen=True)
class ProviderConfig:
    provider: str
    instance_id: str = ""
    token: str = ""
    client_token: Optional[str] = None
    api_host: Optional[str] = None
    webhook_url: Optional[str] = None
    timeout: float = HTTP_TIMEOUT_SECONDS

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "ProviderConfig":
        return cls(
            provider=(_text(doc, "provider") or "").lower(),
            instance_id=_text(doc, "instanceId", "instance_id") or "",
            token=_text(doc, "token") or "",
            client_token=_text(doc, "clientToken", "client_token"),
            api_host=_text(doc, "apiHost", "api_host"),
            webhook_url=_text(doc, "webhookUrl", "webhook_url"),
        )


def load_env_provider_config() -> ProviderConfig:
    provider = os.getenv("WHATSAPP_PROVIDER", PROVIDER_ZAPI).strip().lower() or PROVIDER_ZAPI

    if provider == PROVIDER_ULTRAMSG:
        return ProviderConfig(
            provider=PROVIDER_ULTRAMSG,
            instance_id=os.getenv("ULTRAMSG_INSTANCE_ID", "").strip(),
            token=os.getenv("ULTRAMSG_TOKEN", "").strip(),
        )

    return ProviderConfig(
        provider=PROVIDER_ZAPI,
        instance_id=os.getenv("ZAPI_INSTANCE_ID", "").strip(),
        token=os.getenv("ZAPI_TOKEN", "").strip(),
        client_token=os.getenv("ZAPI_CLIENT_TOKEN", "").strip() or None,
        api_host=os.getenv("WHATSAPP_API_HOST", "").strip() or None,
    )

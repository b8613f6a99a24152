"""
File: zapdesk/outbound/factory.py
Path: zapdesk/outbound/factory.py

Project: ZapDesk

Purpose:
- Provide a single place to construct WhatsApp provider adapters
- Reuse one adapter instance per process until its configuration changes

Design rules:
- No business logic here
- Only construction / wiring
- The cached adapter is shared by request threads, so every read/swap
  happens under the selector lock
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from typing import Any, Callable, Optional

import requests
from sqlalchemy.orm import Session

from zapdesk.outbound.gateway import WhatsAppProvider
from zapdesk.outbound.settings import (
    PROVIDER_OFFICIAL,
    PROVIDER_ULTRAMSG,
    PROVIDER_ZAPI,
    WHATSAPP_CONFIG_KEY,
    ProviderConfig,
    load_env_provider_config,
)
from zapdesk.outbound.ultramsg import UltraMsgProvider
from zapdesk.outbound.zapi import ZAPIProvider
from zapdesk.services.settings_service import get_document

logger = logging.getLogger("outbound.factory")

_ENV_HASH = "env"


def build_provider(
    config: ProviderConfig,
    session: Optional[requests.Session] = None,
) -> Optional[WhatsAppProvider]:
    if config.provider in (PROVIDER_ZAPI, PROVIDER_OFFICIAL):
        return ZAPIProvider(config, session=session)
    if config.provider == PROVIDER_ULTRAMSG:
        return UltraMsgProvider(config, session=session)
    return None


def config_hash(document: Any) -> str:
    canonical = json.dumps(document, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ProviderSelector:
    """
    Resolves the active WhatsApp provider from the persisted
    "whatsapp_config" document, falling back to environment variables.
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], requests.Session]] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._cached: Optional[WhatsAppProvider] = None
        self._cached_hash: Optional[str] = None
        self._session_factory = session_factory

    def get_active_provider(self, db: Session) -> WhatsAppProvider:
        document = None
        try:
            document = get_document(db, WHATSAPP_CONFIG_KEY)
        except Exception:
            logger.exception("Failed to load WhatsApp config from DB")

        with self._lock:
            if isinstance(document, dict):
                current_hash = config_hash(document)
                if self._cached is not None and self._cached_hash == current_hash:
                    return self._cached

                config = ProviderConfig.from_document(document)
                provider = build_provider(config, session=self._new_session())
                if provider is not None:
                    logger.info("Switching WhatsApp provider to: %s", config.provider)
                    self._cached, self._cached_hash = provider, current_hash
                    return provider

                logger.warning("Unknown provider %r, falling back to env.", config.provider)

            if self._cached is not None and self._cached_hash == _ENV_HASH:
                return self._cached

            env_config = load_env_provider_config()
            logger.warning("Falling back to ENV config (Provider: %s)", env_config.provider)
            provider = build_provider(env_config, session=self._new_session())
            self._cached, self._cached_hash = provider, _ENV_HASH
            return provider

    def refresh(self) -> None:
        """Drop the cached adapter; the next lookup rebuilds it."""
        with self._lock:
            self._cached = None
            self._cached_hash = None

    def _new_session(self) -> Optional[requests.Session]:
        return self._session_factory() if self._session_factory else None


# -------------------------------------------------
# Process-wide selector
# -------------------------------------------------
_selector = ProviderSelector()


def get_provider_selector() -> ProviderSelector:
    return _selector

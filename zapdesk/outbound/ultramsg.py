"""
File: zapdesk/outbound/ultramsg.py

Project: ZapDesk

Purpose:
UltraMsg client ("instance token" vendor).
Base URL https://api.ultramsg.com/{instance}; the token travels as a form
field (POST) or query parameter (GET). Form-encoded bodies.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from zapdesk.outbound.gateway import (
    ConnectionStatus,
    ProviderError,
    ProviderNetworkError,
    QrAlreadyConnected,
    QrImage,
    QrResult,
    QrUnavailable,
    mask,
    qr_from_value,
    response_json,
)
from zapdesk.outbound.settings import ProviderConfig

logger = logging.getLogger("outbound.ultramsg")

API_HOST = "https://api.ultramsg.com"
_CONNECTED_STATES = ("authenticated", "connected")
_ALREADY_CONNECTED_ERROR = 'status is not equal "qr"'


def _status_string(data: Dict[str, Any]) -> str:
    # Older API versions answer {"status": "authenticated"}, newer ones
    # {"status": {"accountStatus": {"status": "authenticated"}}}
    status = data.get("status")
    if isinstance(status, str):
        return status
    if isinstance(status, dict):
        account = status.get("accountStatus")
        if isinstance(account, dict) and isinstance(account.get("status"), str):
            return account["status"]
    return ""


class UltraMsgProvider:
    name = "ultramsg"

    def __init__(
        self,
        config: ProviderConfig,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._config = config
        self._session = session or requests.Session()
        self._timeout = config.timeout
        self.base_url = f"{API_HOST}/{config.instance_id}"

    @property
    def _token_params(self) -> Dict[str, str]:
        return {"token": self._config.token}

    # ---------------------------------------------------------
    # SEND
    # ---------------------------------------------------------
    def send_message(self, phone: str, text: str) -> Dict[str, Any]:
        try:
            resp = self._session.post(
                f"{self.base_url}/messages/chat",
                data={"token": self._config.token, "to": phone, "body": text},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise ProviderNetworkError(f"UltraMsg unreachable: {e}") from e

        if not (200 <= resp.status_code < 300):
            raise ProviderError(
                f"UltraMsg Error ({resp.status_code}): {resp.reason}",
                status_code=resp.status_code,
            )
        return response_json(resp)

    # ---------------------------------------------------------
    # INSTANCE
    # ---------------------------------------------------------
    def check_connection(self) -> ConnectionStatus:
        try:
            resp = self._session.get(
                f"{self.base_url}/instance/status",
                params=self._token_params,
                timeout=self._timeout,
            )
            data = response_json(resp)
        except requests.RequestException as e:
            return ConnectionStatus(connected=False, error=str(e))

        status = _status_string(data)
        return ConnectionStatus(
            connected=status in _CONNECTED_STATES,
            status=status,
            raw=data,
        )

    def get_qr_code(self) -> QrResult:
        logger.info("[UltraMsg] Fetching QR from %s/instance/qr?token=%s", self.base_url, mask(self._config.token))
        try:
            resp = self._session.get(
                f"{self.base_url}/instance/qr",
                params=self._token_params,
                timeout=self._timeout,
            )

            content_type = resp.headers.get("content-type", "")
            if "image" in content_type:
                return QrImage(data=resp.content, content_type=content_type.split(";")[0])

            data = response_json(resp)
            error = data.get("error")
            if isinstance(error, str) and _ALREADY_CONNECTED_ERROR in error:
                return QrAlreadyConnected("Instance already connected")

            return qr_from_value(
                data.get("url") or data.get("qr"),
                session=self._session,
                timeout=self._timeout,
            )
        except requests.RequestException:
            logger.exception("[UltraMsg] QR Fetch Error")
            return QrUnavailable("UltraMsg unreachable")

    def get_contacts(self) -> List[Dict[str, Any]]:
        try:
            resp = self._session.get(
                f"{self.base_url}/contacts",
                params=self._token_params,
                timeout=self._timeout,
            )
            if not (200 <= resp.status_code < 300):
                logger.warning("UltraMsg contacts returned %s", resp.status_code)
                return []
            data = resp.json()
        except (requests.RequestException, ValueError):
            logger.exception("UltraMsg Contacts Error")
            return []
        return data if isinstance(data, list) else []

    def restart(self) -> bool:
        return self._control("/instance/restart")

    def logout(self) -> bool:
        return self._control("/instance/logout")

    def update_webhook(self, url: str) -> bool:
        logger.info("[UltraMsg] Updating webhook to: %s", url)
        try:
            resp = self._session.post(
                f"{self.base_url}/instance/settings",
                data={
                    "token": self._config.token,
                    "webhook_url": url,
                    "webhook_message_received": "true",
                },
                timeout=self._timeout,
            )
        except requests.RequestException:
            logger.exception("[UltraMsg] Webhook update error")
            return False

        if not (200 <= resp.status_code < 300):
            logger.warning("[UltraMsg] Webhook update failed: %s - %s", resp.status_code, resp.text)
            return False
        return True

    def _control(self, endpoint: str) -> bool:
        try:
            resp = self._session.post(
                f"{self.base_url}{endpoint}",
                data=self._token_params,
                timeout=self._timeout,
            )
        except requests.RequestException:
            logger.exception("UltraMsg %s failed", endpoint)
            return False
        return 200 <= resp.status_code < 300

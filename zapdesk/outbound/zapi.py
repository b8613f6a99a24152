"""
File: zapdesk/outbound/zapi.py

Project: ZapDesk

Purpose:
Z-API client ("instance + token in the path" vendor).

Hosted:       https://api.z-api.io/instances/{instance}/token/{token}/...
Self-hosted:  {host}/api/instances/{instance}/...   (token in Access-Token)

JSON bodies. Client-Token header whenever one is configured.
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
    qr_from_value,
    response_json,
)
from zapdesk.outbound.settings import ProviderConfig

logger = logging.getLogger("outbound.zapi")

DEFAULT_API_HOST = "https://api.z-api.io"


class ZAPIProvider:
    name = "zapi"

    def __init__(
        self,
        config: ProviderConfig,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._config = config
        self._session = session or requests.Session()
        self._timeout = config.timeout

        host = (config.api_host or DEFAULT_API_HOST).rstrip("/")
        if "z-api.io" in host:
            self.base_url = f"{host}/instances/{config.instance_id}/token/{config.token}"
            self.is_self_hosted = False
        else:
            self.base_url = f"{host}/api/instances/{config.instance_id}"
            self.is_self_hosted = True

    def _headers(self, json_body: bool = False) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if json_body:
            headers["Content-Type"] = "application/json"
        if self._config.client_token:
            headers["Client-Token"] = self._config.client_token
        if self.is_self_hosted:
            headers["Access-Token"] = self._config.token
        return headers

    # ---------------------------------------------------------
    # SEND
    # ---------------------------------------------------------
    def send_message(self, phone: str, text: str) -> Dict[str, Any]:
        endpoint = "/messages/chat" if self.is_self_hosted else "/send-text"

        try:
            resp = self._session.post(
                f"{self.base_url}{endpoint}",
                json={"phone": phone, "message": text},
                headers=self._headers(json_body=True),
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise ProviderNetworkError(f"Z-API unreachable: {e}") from e

        if not (200 <= resp.status_code < 300):
            raise ProviderError(
                f"Z-API Error ({resp.status_code}): {resp.text or resp.reason}",
                status_code=resp.status_code,
            )
        return response_json(resp)

    # ---------------------------------------------------------
    # INSTANCE
    # ---------------------------------------------------------
    def check_connection(self) -> ConnectionStatus:
        try:
            resp = self._session.get(
                f"{self.base_url}/status",
                headers=self._headers(),
                timeout=self._timeout,
            )
            data = response_json(resp)
        except requests.RequestException as e:
            return ConnectionStatus(connected=False, error=str(e))

        connected = bool(data.get("connected")) or data.get("status") == "connected"
        return ConnectionStatus(
            connected=connected,
            status="connected" if connected else "disconnected",
            raw=data,
        )

    def get_qr_code(self) -> QrResult:
        if self.check_connection().connected:
            return QrAlreadyConnected("Device already connected")

        try:
            resp = self._session.get(
                f"{self.base_url}/qr-code/image",
                headers=self._headers(),
                timeout=self._timeout,
            )
            if not (200 <= resp.status_code < 300):
                logger.error("Z-API QR Code Error: %s %s", resp.status_code, resp.reason)
                return QrUnavailable(f"Z-API returned {resp.status_code}")

            content_type = resp.headers.get("content-type", "")
            if "image" in content_type:
                return QrImage(data=resp.content, content_type=content_type.split(";")[0])

            # Newer Z-API versions wrap a base64 data-URL in {"value": ...}
            data = response_json(resp)
            return qr_from_value(
                data.get("value") or data.get("qr"),
                session=self._session,
                timeout=self._timeout,
            )
        except requests.RequestException:
            logger.exception("Error fetching QR code from Z-API")
            return QrUnavailable("Z-API unreachable")

    def get_contacts(self) -> List[Dict[str, Any]]:
        try:
            resp = self._session.get(
                f"{self.base_url}/contacts",
                headers=self._headers(),
                timeout=self._timeout,
            )
            if not (200 <= resp.status_code < 300):
                logger.warning("Z-API contacts returned %s", resp.status_code)
                return []
            data = resp.json()
        except (requests.RequestException, ValueError):
            logger.exception("Z-API Contacts Error")
            return []
        return data if isinstance(data, list) else []

    def restart(self) -> bool:
        return self._control("/restart")

    def logout(self) -> bool:
        return self._control("/disconnect")

    def update_webhook(self, url: str) -> bool:
        logger.info("[Z-API] Updating webhook to: %s", url)
        try:
            resp = self._session.put(
                f"{self.base_url}/update-webhook-delivery",
                json={"value": url, "enabled": True},
                headers=self._headers(json_body=True),
                timeout=self._timeout,
            )
        except requests.RequestException:
            logger.exception("[Z-API] Webhook update error")
            return False

        if not (200 <= resp.status_code < 300):
            logger.warning("[Z-API] Webhook update failed: %s - %s", resp.status_code, resp.text)
            return False
        return True

    def _control(self, endpoint: str) -> bool:
        try:
            resp = self._session.get(
                f"{self.base_url}{endpoint}",
                headers=self._headers(),
                timeout=self._timeout,
            )
        except requests.RequestException:
            logger.exception("Z-API %s failed", endpoint)
            return False
        return 200 <= resp.status_code < 300

"""Test doubles for vendor HTTP, providers, the selector and the AI."""

from typing import Any, Dict, List, Optional, Tuple

import requests

from zapdesk.outbound.gateway import (
    ConnectionStatus,
    ProviderError,
    QrResult,
    QrUnavailable,
)


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        json_data: Any = None,
        content: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
        text: str = "",
        reason: str = "",
    ) -> None:
        self.status_code = status_code
        self._json = json_data
        self.content = content
        self.headers = headers or {"content-type": "application/json"}
        self.text = text
        self.reason = reason or ("OK" if status_code < 400 else "Error")

    def json(self):
        if self._json is None:
            raise ValueError("no json")
        return self._json


class FakeHTTP:
    """
    Stand-in for requests.Session. Responses are keyed by (METHOD, url);
    a value may be a FakeResponse or an exception to raise.
    """

    def __init__(self, routes: Optional[Dict[Tuple[str, str], Any]] = None) -> None:
        self.routes = dict(routes or {})
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []

    def _request(self, method: str, url: str, **kwargs):
        self.calls.append((method, url, kwargs))
        result = self.routes.get((method, url), FakeResponse(status_code=404, json_data={}))
        if isinstance(result, Exception):
            raise result
        return result

    def get(self, url, **kwargs):
        return self._request("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._request("POST", url, **kwargs)

    def put(self, url, **kwargs):
        return self._request("PUT", url, **kwargs)


def unreachable() -> requests.ConnectionError:
    return requests.ConnectionError("connection refused")


class FakeProvider:
    name = "fake"

    def __init__(self) -> None:
        self.sent: List[Tuple[str, str]] = []
        self.fail_send = False
        self.contacts: List[Dict[str, Any]] = []
        self.qr: QrResult = QrUnavailable("not configured")
        self.webhooks: List[str] = []
        self.connection = ConnectionStatus(connected=True, status="connected", raw={"connected": True})
        self.restarted = False
        self.logged_out = False

    def send_message(self, phone: str, text: str) -> Dict[str, Any]:
        if self.fail_send:
            raise ProviderError("vendor down", status_code=503)
        self.sent.append((phone, text))
        return {"id": f"msg-{len(self.sent)}"}

    def check_connection(self) -> ConnectionStatus:
        return self.connection

    def get_qr_code(self) -> QrResult:
        return self.qr

    def get_contacts(self) -> List[Dict[str, Any]]:
        return list(self.contacts)

    def restart(self) -> bool:
        self.restarted = True
        return True

    def logout(self) -> bool:
        self.logged_out = True
        return True

    def update_webhook(self, url: str) -> bool:
        self.webhooks.append(url)
        return True


class FakeSelector:
    def __init__(self, provider: FakeProvider) -> None:
        self.provider = provider
        self.refreshed = 0

    def get_active_provider(self, db) -> FakeProvider:
        return self.provider

    def refresh(self) -> None:
        self.refreshed += 1


class FakeResponder:
    def __init__(self, reply: str = "Olá! Como posso ajudar?") -> None:
        self.reply = reply
        self.calls: List[Tuple[str, List[Tuple[bool, str]]]] = []

    def generate_reply(self, user_message: str, history=()) -> str:
        # capture plain values; ORM rows expire once the request session closes
        self.calls.append((user_message, [(m.from_me, m.content) for m in history]))
        return self.reply

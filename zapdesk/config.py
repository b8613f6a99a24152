"""
zapdesk/config.py
Application configuration
Environment-driven (Render compatible)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Tuple


def _require_env(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise RuntimeError(
            f"Missing required environment variable: {name}. "
            f"Set it in your .env / Render / shell before running."
        )
    return value


DATABASE_URL = _require_env("DATABASE_URL")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()

HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

CORS_ALLOW_ORIGINS = tuple(
    o.strip()
    for o in os.getenv(
        "CORS_ALLOW_ORIGINS",
        "http://localhost:5173,http://localhost:3000",
    ).split(",")
    if o.strip()
)


# ---------------------------------------------------------------------
# Text-completion backends (priority order: first with a key wins)
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class CompletionBackend:
    name: str
    url: str
    api_key: str
    model: str
    extra_headers: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


def load_completion_backends() -> list[CompletionBackend]:
    return [
        CompletionBackend(
            name="openrouter",
            url="https://openrouter.ai/api/v1/chat/completions",
            api_key=os.getenv("OPENROUTER_API_KEY", "").strip(),
            model=os.getenv("OPENROUTER_MODEL", "openai/gpt-3.5-turbo").strip(),
            extra_headers=(
                ("HTTP-Referer", os.getenv("OPENROUTER_REFERER", "http://localhost:3000")),
                ("X-Title", "ZapDesk"),
            ),
        ),
        CompletionBackend(
            name="perplexity",
            url="https://api.perplexity.ai/chat/completions",
            api_key=os.getenv("PERPLEXITY_API_KEY", "").strip(),
            model=os.getenv("PERPLEXITY_MODEL", "sonar").strip(),
        ),
    ]

"""
File: zapdesk/services/ai_service.py
Path: zapdesk/services/ai_service.py

Project: ZapDesk

Purpose:
Generate the bot's reply to an inbound WhatsApp message using an
OpenAI-compatible chat-completion backend (OpenRouter, then Perplexity).

Responsibilities:
- Pick the first completion backend that has a credential
- Build the system prompt from the persisted AI configuration
- Inject few-shot training examples and recent conversation history
- Return the raw completion text (booking marker included)

Design rules:
- generate_reply() never raises; every failure becomes an apology text
- The booking marker is NOT stripped here; the webhook pipeline owns that
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import requests
from sqlalchemy.orm import Session

from zapdesk.config import HTTP_TIMEOUT_SECONDS, CompletionBackend, load_completion_backends
from zapdesk.models import Message
from zapdesk.services.settings_service import AIConfig, get_ai_config

logger = logging.getLogger("ai_service")

HISTORY_LIMIT = 10

NO_PROVIDER_TEXT = (
    "⚠️ Erro: Nenhuma chave de API válida configurada (OpenRouter ou Perplexity)."
)
APOLOGY_TEXT = (
    "Desculpe, estou processando muitas solicitações no momento. "
    "Tente novamente em breve."
)
EMPTY_COMPLETION_TEXT = "Desculpe, não entendi."

DEFAULT_PERSONA = (
    "Você é o assistente virtual de atendimento da empresa.\n"
    "TOM: Profissional, cordial e objetivo.\n"
    "DIRETRIZES: Cumprimente o cliente pelo nome quando souber. "
    "Responda dúvidas com base nas informações fornecidas e nunca invente preços ou horários.\n"
    "OBJETIVO: Tirar dúvidas, ajudar o cliente e agendar atendimentos."
)

APPOINTMENT_MARKER_INSTRUCTION = (
    "REGRA DE AGENDAMENTO:\n"
    "Sempre que você FINALIZAR e CONFIRMAR um agendamento (tiver Nome do Cliente, "
    "Serviço e Horário Definitivo), adicione ao FINAL da sua resposta este código "
    "oculto para eu registrar no sistema:\n"
    '||AGENDAMENTO: {"client": "Nome", "service": "Serviço", "date": "Data e Hora"}||\n'
    "(Use exatamente formato JSON válido dentro de ||...||. O nome do cliente deve "
    "ser extraído da conversa ou do perfil do usuário.)"
)


# -------------------------------------------------
# Process-wide HTTP session (one connection pool for every request)
# -------------------------------------------------
_completion_session = requests.Session()


def get_completion_session() -> requests.Session:
    return _completion_session


class CompletionError(RuntimeError):
    pass


def select_backend(backends: Sequence[CompletionBackend]) -> Optional[CompletionBackend]:
    return next((b for b in backends if b.configured), None)


def build_system_prompt(config: AIConfig) -> str:
    sections: List[str] = []

    identity = ""
    if config.company_name:
        identity += f"VOCÊ É E REPRESENTA: {config.company_name}\n"
    if config.profession:
        identity += f"SUA FUNÇÃO: {config.profession.upper()}\n"
    if identity:
        sections.append(
            f"{identity}\nIMPORTANTE: Aja como tal. Nunca recomende procurar "
            '"um profissional", pois VOCÊ É O PROFISSIONAL.'
        )

    sections.append(config.system_prompt or DEFAULT_PERSONA)
    sections.append(APPOINTMENT_MARKER_INSTRUCTION)

    if config.behavioral_directives:
        sections.append(f"DIRETRIZES DE COMPORTAMENTO:\n{config.behavioral_directives}")
    if config.price_table:
        sections.append(f"TABELA DE PREÇOS:\n{config.price_table}")
    if config.agenda:
        sections.append(f"AGENDA / HORÁRIOS:\n{config.agenda}")
    if config.knowledge_base:
        articles = "\n".join(f"[{title}]: {content}" for title, content in config.knowledge_base)
        sections.append(f"BASE DE CONHECIMENTO:\n{articles}")

    return "\n\n".join(sections)


def build_messages(
    config: AIConfig,
    user_message: str,
    history: Sequence[Message],
) -> List[Dict[str, str]]:
    """
    System -> training examples -> chat history -> current user message.
    """
    messages = [{"role": "system", "content": build_system_prompt(config)}]

    for user_query, expected_response in config.training_examples:
        messages.append({"role": "user", "content": user_query})
        messages.append({"role": "assistant", "content": expected_response})

    for msg in list(history)[-HISTORY_LIMIT:]:
        messages.append(
            {
                "role": "assistant" if msg.from_me else "user",
                "content": msg.content,
            }
        )

    messages.append({"role": "user", "content": user_message})
    return messages


class AIResponder:
    def __init__(
        self,
        db: Session,
        backends: Optional[Sequence[CompletionBackend]] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._db = db
        self._backends = list(backends) if backends is not None else load_completion_backends()
        self._session = session or get_completion_session()

    def generate_reply(self, user_message: str, history: Sequence[Message] = ()) -> str:
        backend = select_backend(self._backends)
        if backend is None:
            return NO_PROVIDER_TEXT

        try:
            config = self._load_config()
            messages = build_messages(config, user_message, history)

            logger.info("Sending to AI (%s/%s)...", backend.name, backend.model)
            logger.debug("System prompt: %r", messages[0]["content"][:100])

            return self._complete(backend, config, messages) or EMPTY_COMPLETION_TEXT
        except Exception:
            logger.exception("AI generation error")
            return APOLOGY_TEXT

    def _load_config(self) -> AIConfig:
        try:
            return get_ai_config(self._db)
        except Exception:
            logger.warning("Failed to load AI config from DB, using default.", exc_info=True)
            return AIConfig()

    def _complete(
        self,
        backend: CompletionBackend,
        config: AIConfig,
        messages: List[Dict[str, str]],
    ) -> str:
        headers = {
            "Authorization": f"Bearer {backend.api_key}",
            "Content-Type": "application/json",
            **dict(backend.extra_headers),
        }
        resp = self._session.post(
            backend.url,
            json={
                "model": backend.model,
                "messages": messages,
                "temperature": config.temperature,
                "max_tokens": config.max_tokens,
            },
            headers=headers,
            timeout=HTTP_TIMEOUT_SECONDS,
        )

        try:
            data: Dict[str, Any] = resp.json()
        except ValueError as e:
            raise CompletionError(f"Non-JSON completion response ({resp.status_code})") from e

        if not (200 <= resp.status_code < 300):
            error = data.get("error") if isinstance(data, dict) else None
            detail = error.get("message") if isinstance(error, dict) else resp.reason
            raise CompletionError(f"AI API Error ({resp.status_code}): {detail}")

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise CompletionError("Malformed completion response") from e

        return content if isinstance(content, str) else ""

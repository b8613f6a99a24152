"""
File: zapdesk/services/settings_service.py
Project: ZapDesk

Purpose:
Generic key -> JSON document store on top of SystemSetting, plus the typed
view of the AI configuration document.

This is the ONLY place allowed to:
- read a settings document
- write a settings document

Design rules:
- Documents are opaque JSON blobs; the store never validates them
- A corrupt stored value reads as "absent" (logged), never as an error
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from zapdesk.models import SystemSetting

logger = logging.getLogger("settings_service")

AI_CONFIG_KEY = "zapai_ai_config"


# -------------------------------------------------
# Store
# -------------------------------------------------

def get_document(db: Session, key: str) -> Optional[Any]:
    setting = db.get(SystemSetting, key)
    if setting is None:
        return None
    try:
        return json.loads(setting.value)
    except ValueError:
        logger.warning("Setting %s holds invalid JSON; treating as absent", key)
        return None


def save_document(db: Session, key: str, document: Any) -> None:
    value = json.dumps(document, ensure_ascii=False)
    setting = db.get(SystemSetting, key)
    if setting is None:
        db.add(SystemSetting(key=key, value=value))
    else:
        setting.value = value
    db.commit()


# -------------------------------------------------
# AI configuration document
# -------------------------------------------------

def _opt_text(doc: Mapping[str, Any], key: str) -> Optional[str]:
    value = doc.get(key)
    if isinstance(value, str) and value.strip():
        return value
    return None


def _number(doc: Mapping[str, Any], key: str, default: float) -> float:
    value = doc.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return value


@dataclass(frozen=True)
class AIConfig:
    enabled: bool = True
    system_prompt: Optional[str] = None
    company_name: Optional[str] = None
    profession: Optional[str] = None
    admin_phone: Optional[str] = None
    price_table: Optional[str] = None
    agenda: Optional[str] = None
    behavioral_directives: Optional[str] = None
    # (user_query, expected_response)
    training_examples: Tuple[Tuple[str, str], ...] = ()
    # (title, content)
    knowledge_base: Tuple[Tuple[str, str], ...] = ()
    temperature: float = 0.8
    max_tokens: int = 500

    @classmethod
    def from_document(cls, doc: Any) -> "AIConfig":
        if not isinstance(doc, Mapping):
            return cls()

        examples = tuple(
            (ex["userQuery"], ex["expectedResponse"])
            for ex in doc.get("trainingExamples") or []
            if isinstance(ex, Mapping) and ex.get("userQuery") and ex.get("expectedResponse")
        )
        articles = tuple(
            (str(k.get("title", "")), str(k.get("content", "")))
            for k in doc.get("knowledgeBase") or []
            if isinstance(k, Mapping)
        )

        return cls(
            # only an explicit false disables the bot
            enabled=doc.get("enabled") is not False,
            system_prompt=_opt_text(doc, "systemPrompt"),
            company_name=_opt_text(doc, "companyName"),
            profession=_opt_text(doc, "profession"),
            admin_phone=_opt_text(doc, "adminPhone"),
            price_table=_opt_text(doc, "priceTable"),
            agenda=_opt_text(doc, "agenda"),
            behavioral_directives=_opt_text(doc, "behavioralDirectives"),
            training_examples=examples,
            knowledge_base=articles,
            temperature=float(_number(doc, "temperature", 0.8)),
            max_tokens=int(_number(doc, "maxTokens", 500)),
        )


def get_ai_config(db: Session) -> AIConfig:
    return AIConfig.from_document(get_document(db, AI_CONFIG_KEY))

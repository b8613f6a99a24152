"""
Booking marker codec.

The AI is instructed to end a reply that confirms a booking with

    ||AGENDAMENTO: {"client": "...", "service": "...", "date": "..."}||

The JSON may span several lines. Extraction is best effort: when the JSON
does not parse, the reply is left untouched and nothing is extracted.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger("appointment_marker")

MARKER_PATTERN = re.compile(r"\|\|AGENDAMENTO:\s*(\{[\s\S]*?\})\s*\|\|")


@dataclass(frozen=True)
class MarkerResult:
    text: str
    appointment: Optional[Dict[str, Any]] = None


def extract_appointment(text: str) -> MarkerResult:
    match = MARKER_PATTERN.search(text or "")
    if not match:
        return MarkerResult(text=text)

    logger.info("[Appt Parser] Found marker: %s", match.group(1))
    try:
        data = json.loads(match.group(1))
    except ValueError:
        logger.warning("[Appt Parser] Marker JSON is invalid; leaving reply untouched")
        return MarkerResult(text=text)

    if not isinstance(data, dict):
        logger.warning("[Appt Parser] Marker JSON is not an object; leaving reply untouched")
        return MarkerResult(text=text)

    cleaned = (text[: match.start()] + text[match.end():]).strip()
    return MarkerResult(text=cleaned, appointment=data)

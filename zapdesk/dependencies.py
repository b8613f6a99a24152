"""
FastAPI dependencies that are not plain DB sessions.
Tests override these to swap in fakes.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from zapdesk.db import get_db
from zapdesk.services.ai_service import AIResponder


def get_ai_responder(db: Session = Depends(get_db)) -> AIResponder:
    return AIResponder(db)

"""
Request bodies for dashboard commands.

Every field is optional so that a missing value is answered with our own
400 {"error": ...} instead of FastAPI's 422.
"""

from typing import List, Optional

from pydantic import BaseModel


class SendMessageRequest(BaseModel):
    phone: Optional[str] = None
    message: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: Optional[str] = None


class ContactCreateRequest(BaseModel):
    phone: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    tags: Optional[List[str]] = None


class AppointmentUpdateRequest(BaseModel):
    completed: Optional[bool] = None

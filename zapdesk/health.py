"""
Health check endpoints
Used by Render + ops
"""

from fastapi import APIRouter

from zapdesk.db import ping_database

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health_check():
    return {"status": "ok"}


@router.get("/db")
def db_health_check():
    try:
        ping_database()
        return {"database": "healthy"}
    except Exception as e:
        return {"database": "unhealthy", "error": str(e)}

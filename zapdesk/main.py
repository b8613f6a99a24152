"""
File: zapdesk/main.py

Project: ZapDesk

Purpose:
Application entry point.
Responsible only for:
- Logging setup
- FastAPI app creation (tables are created on startup)
- CORS for the dashboard
- Router registration

Design principles:
- No business logic in this file
- All inbound WhatsApp processing is delegated to zapdesk.webhooks
- All dashboard endpoints live in zapdesk.api
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from zapdesk.api import api_router
from zapdesk.config import CORS_ALLOW_ORIGINS, LOG_LEVEL
from zapdesk.db import engine
from zapdesk.health import router as health_router
from zapdesk.models import Base
from zapdesk.webhooks import router as webhooks_router

logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
logging.getLogger("urllib3").setLevel(logging.WARNING)

logger = logging.getLogger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info("Database ready")
    yield


app = FastAPI(title="ZapDesk", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(CORS_ALLOW_ORIGINS),
    allow_origin_regex=r"https?://localhost(:\d+)?",
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)

# -------------------------------------------------------------------
# Webhook routes (POST /api/webhook)
# -------------------------------------------------------------------
app.include_router(webhooks_router)

# -------------------------------------------------------------------
# Dashboard API
# -------------------------------------------------------------------
app.include_router(api_router)

# -------------------------------------------------------------------
# Health
# -------------------------------------------------------------------
app.include_router(health_router)

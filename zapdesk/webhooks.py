"""
File: zapdesk/webhooks.py
Path: zapdesk/webhooks.py

Project: ZapDesk

Purpose:
Inbound WhatsApp webhook handler (Z-API, UltraMsg and generic shapes).

Notes:
- Always answers HTTP 200. Vendors retry on anything else, and an unknown
  or broken payload must never trigger a retry storm.
- "Device connected" notifications start a contact sync in the background
  and return immediately.
- Message handling is delegated to WebhookProcessor (no HTTP there).
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from zapdesk.db import get_db, get_session_factory
from zapdesk.dependencies import get_ai_responder
from zapdesk.outbound.factory import ProviderSelector, get_provider_selector
from zapdesk.services.ai_service import AIResponder
from zapdesk.services.contacts_service import run_contact_sync
from zapdesk.services.webhook_payloads import is_connected_event
from zapdesk.services.webhook_processor import WebhookProcessor

router = APIRouter(prefix="/api", tags=["webhooks"])
logger = logging.getLogger("webhooks")


@router.post("/webhook")
@router.post("/webhook/message")
async def whatsapp_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
    selector: ProviderSelector = Depends(get_provider_selector),
    responder: AIResponder = Depends(get_ai_responder),
):
    # ---- Parse payload ----
    try:
        payload = await request.json()
    except Exception:
        logger.warning("Webhook body is not JSON; ignoring")
        return {"status": "ignored"}

    logger.debug("[Webhook] Received: %s", payload)

    # ---- Device connected -> background contact sync ----
    if is_connected_event(payload):
        logger.info("Device connected! Triggering contact sync...")
        background_tasks.add_task(run_contact_sync, session_factory, selector)
        return {"status": "sync_started"}

    # ---- Message pipeline ----
    processor = WebhookProcessor(db=db, provider_selector=selector, responder=responder)
    try:
        return await run_in_threadpool(processor.process, payload)
    except Exception:
        db.rollback()
        logger.exception("Error processing webhook")
        return {"status": "error"}

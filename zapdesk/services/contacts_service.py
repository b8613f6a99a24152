"""
File: zapdesk/services/contacts_service.py
Project: ZapDesk

Purpose:
Shared contact service.

This is the ONLY place allowed to:
- add a contact
- remove a contact
- pull the provider's contact list into the contacts table

Used by:
- api/routes.py (manual CRUD + POST /contacts/sync)
- webhooks.py (background sync after a "device connected" event)

Design rules:
- Contacts are keyed by canonical phone (digits only)
- Sync is partial-success by nature: a bad record is counted, never fatal
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from zapdesk.models import Contact
from zapdesk.outbound.gateway import WhatsAppProvider
from zapdesk.phone import canonical_phone, is_broadcast_id, is_group_id, strip_jid_suffix

logger = logging.getLogger("contacts_service")


@dataclass(frozen=True)
class SyncResult:
    success: bool
    count: int = 0
    failed: int = 0
    error: Optional[str] = None


def _first(record: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value:
            return value
    return None


# -------------------------------------------------
# Queries
# -------------------------------------------------

def find_contact(db: Session, *, phone: str) -> Optional[Contact]:
    return (
        db.query(Contact)
        .filter(Contact.phone == phone)
        .one_or_none()
    )


def list_contacts(db: Session) -> List[Contact]:
    return db.query(Contact).order_by(Contact.name.asc()).all()


# -------------------------------------------------
# Commands
# -------------------------------------------------

def add_contact(
    db: Session,
    *,
    phone: str,
    name: Optional[str] = None,
    email: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
) -> Optional[Contact]:
    """
    Adds a contact.

    Returns:
        Contact -> contact was added
        None    -> a contact with that phone already exists
    """
    contact = Contact(
        phone=phone,
        name=name or phone,
        email=email,
        tags=list(tags or []),
    )
    try:
        db.add(contact)
        db.commit()
        db.refresh(contact)
        return contact
    except IntegrityError:
        db.rollback()
        return None


def remove_contact(db: Session, *, phone: str) -> bool:
    """
    Removes a contact if it exists.

    Returns:
        True  -> contact was removed
        False -> contact did not exist
    """
    contact = find_contact(db, phone=phone)
    if not contact:
        return False

    db.delete(contact)
    db.commit()
    return True


def upsert_contact(
    db: Session,
    *,
    phone: str,
    name: str,
    profile_pic_url: Optional[str],
) -> Contact:
    contact = find_contact(db, phone=phone)
    if contact is None:
        contact = Contact(phone=phone, name=name, profile_pic_url=profile_pic_url, tags=[])
        db.add(contact)
    else:
        contact.name = name
        contact.profile_pic_url = profile_pic_url
    db.commit()
    return contact


# -------------------------------------------------
# Provider sync
# -------------------------------------------------

def sync_contacts(db: Session, provider: WhatsAppProvider) -> SyncResult:
    try:
        logger.info("Syncing contacts from provider %s...", getattr(provider, "name", "?"))
        records = provider.get_contacts()
    except Exception as e:
        logger.exception("Contact sync failed")
        return SyncResult(success=False, error=str(e))

    logger.info("Provider returned %d contacts.", len(records))

    synced = 0
    failed = 0
    for record in records:
        try:
            if not isinstance(record, Mapping):
                failed += 1
                continue

            raw_phone = _first(record, "phone", "number", "id")
            if not raw_phone:
                failed += 1
                continue

            vendor_phone = strip_jid_suffix(str(raw_phone))
            if record.get("isGroup") or is_group_id(vendor_phone) or is_broadcast_id(vendor_phone):
                continue

            phone = canonical_phone(vendor_phone)
            if not phone:
                failed += 1
                continue

            upsert_contact(
                db,
                phone=phone,
                name=str(_first(record, "name", "pushname", "notifyName", "shortName") or phone),
                profile_pic_url=_first(record, "profilePicUrl", "image", "imgUrl"),
            )
            synced += 1
        except Exception:
            db.rollback()
            logger.warning("Failed to sync contact record %r", record, exc_info=True)
            failed += 1

    logger.info("Synced %d contacts (%d failed).", synced, failed)
    return SyncResult(success=True, count=synced, failed=failed)


def run_contact_sync(session_factory: Callable[[], Session], selector) -> SyncResult:
    """
    Background-job entry: owns its session for the whole run.
    """
    session = session_factory()
    try:
        provider = selector.get_active_provider(session)
        result = sync_contacts(session, provider)
        logger.info("Background sync finished: %s", result)
        return result
    except Exception as e:
        logger.exception("Background contact sync failed")
        return SyncResult(success=False, error=str(e))
    finally:
        session.close()

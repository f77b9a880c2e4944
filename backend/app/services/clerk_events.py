"""
Applies Clerk user lifecycle events to the users table.

Events arrive out of band (Svix webhooks) and may be reordered or race with
request-time reconciliation, so every handler is idempotent:

* ``user.created``  find-or-create/backfill, same as the authentication gate
* ``user.updated``  sync name and email; unknown users are created
* ``user.deleted``  soft delete (is_active = False)

Anything else is acknowledged without side effects.
"""

import logging
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from app.models.user import User
from app.services.identity_reconciler import derive_name, primary_email, reconcile
from app.services.user_directory import user_directory

logger = logging.getLogger(__name__)


def handle_user_created(db: Session, data: dict[str, Any]) -> User:
    return reconcile(db, data["id"], data)


def handle_user_updated(db: Session, data: dict[str, Any]) -> User:
    user = user_directory.get_by_external_id(db, data["id"])
    if user is None:
        # Update delivered before (or instead of) the create event
        return handle_user_created(db, data)

    email = primary_email(data)
    changes: dict[str, Any] = {}

    new_name = derive_name(data, email, fallback=user.name)
    if new_name and new_name != user.name:
        changes["name"] = new_name
    if email and email != user.email:
        changes["email"] = email

    if changes:
        user = user_directory.update(db, user, **changes)
        logger.info("Synced user from Clerk", extra={"user_id": user.id, "fields": sorted(changes)})
    return user


def handle_user_deleted(db: Session, data: dict[str, Any]) -> Optional[User]:
    user = user_directory.get_by_external_id(db, data["id"])
    if user is None:
        return None
    if user.is_active:
        user = user_directory.update(db, user, is_active=False)
        logger.info("Soft-deleted user from Clerk event", extra={"user_id": user.id})
    return user


EVENT_HANDLERS: dict[str, Callable[[Session, dict[str, Any]], Any]] = {
    "user.created": handle_user_created,
    "user.updated": handle_user_updated,
    "user.deleted": handle_user_deleted,
}


def handle_event(db: Session, event: dict[str, Any]) -> str:
    """Dispatch a verified event and return its type."""
    event_type = event.get("type") or ""
    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.info("Ignoring unhandled Clerk event", extra={"event_type": event_type})
        return event_type

    handler(db, event.get("data") or {})
    return event_type

"""
Maps a verified Clerk identity onto exactly one local user.

The same find-or-create/backfill runs at request time (authentication gate)
and from ``user.created`` webhooks, so both paths can race on the same
identity. The unique constraints on ``email`` and ``external_id`` settle the
race: the losing writer gets DuplicateEntry, rolls back, and looks up again.
"""

import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import DuplicateEntry, ReconciliationFailed
from app.models.user import User, UserRole
from app.services.user_directory import user_directory

logger = logging.getLogger(__name__)

SYNTHETIC_EMAIL_DOMAIN = "clerk.local"


def _is_verified(address: dict[str, Any]) -> bool:
    verification = address.get("verification") or {}
    return verification.get("status") == "verified"


def primary_email(profile: dict[str, Any]) -> Optional[str]:
    """
    Verified primary email of a Clerk user payload, else any verified address.

    Unverified addresses are ignored: they would let a Clerk account claim a
    local account it does not own. Returned lower-cased, like registration.
    """
    addresses = [
        address for address in profile.get("email_addresses") or []
        if address.get("email_address") and _is_verified(address)
    ]
    if not addresses:
        return None
    primary_id = profile.get("primary_email_address_id")
    chosen = next((address for address in addresses if address.get("id") == primary_id), addresses[0])
    return chosen["email_address"].strip().lower()


def derive_email(subject_id: str, profile: dict[str, Any]) -> str:
    # Every external identity needs some email to satisfy the unique email column
    return primary_email(profile) or f"user-{subject_id}@{SYNTHETIC_EMAIL_DOMAIN}"


def derive_name(profile: dict[str, Any], email: Optional[str], fallback: Optional[str] = None) -> Optional[str]:
    """first + last name, then username, then the local part of the email."""
    first_name = profile.get("first_name")
    last_name = profile.get("last_name")
    if first_name and last_name:
        return f"{first_name} {last_name}"
    if profile.get("username"):
        return profile["username"]
    if email:
        return email.split("@")[0]
    return fallback


def reconcile(
    db: Session,
    subject_id: str,
    profile: dict[str, Any],
    max_attempts: Optional[int] = None,
) -> User:
    """
    Find or create the user for a Clerk subject.

    1. Look up by external_id OR the derived email in one query.
    2. Nothing found: create a MERCHANT with an empty password hash.
    3. Found without external_id: link it (backfill) and return it.
    4. Found and linked: return it unchanged.

    Raises:
        ReconciliationFailed: storage error, or conflicts persisted past max_attempts
    """
    attempts = max_attempts or settings.RECONCILE_MAX_ATTEMPTS
    email = derive_email(subject_id, profile)

    for attempt in range(1, attempts + 1):
        try:
            user = user_directory.find_by_external_id_or_email(db, subject_id, email)

            if user is None:
                user = user_directory.create(
                    db,
                    email=email,
                    name=derive_name(profile, email),
                    password_hash="",
                    external_id=subject_id,
                    role=UserRole.MERCHANT,
                )
                logger.info("Provisioned user from Clerk identity", extra={"user_id": user.id, "external_id": subject_id})
                return user

            if not user.external_id:
                user = user_directory.update(db, user, external_id=subject_id)
                logger.info("Linked existing user to Clerk identity", extra={"user_id": user.id, "external_id": subject_id})
                return user

            if user.external_id != subject_id:
                logger.warning(
                    "Email already linked to a different Clerk identity",
                    extra={"user_id": user.id, "external_id": subject_id},
                )
            return user

        except DuplicateEntry:
            # A concurrent request or webhook created/linked the row first
            logger.info(
                "Reconciliation conflict, retrying lookup",
                extra={"external_id": subject_id, "attempt": attempt},
            )
            continue
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Reconciliation failed for {subject_id}: {e}", exc_info=True)
            raise ReconciliationFailed() from e

    logger.error("Reconciliation gave up after conflicts", extra={"external_id": subject_id, "attempts": attempts})
    raise ReconciliationFailed()

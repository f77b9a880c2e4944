"""
Hybrid authentication gate.

Decides, per request, which verifier a bearer token goes to and resolves it to
an active local user:

* no token                                  -> MISSING_CREDENTIAL
* Clerk configured and token looks external -> external path
* otherwise                                 -> local path

A long token that neither Clerk nor the local verifier accepts fails as
INVALID_EXTERNAL_CREDENTIAL.

The external path verifies with Clerk, reconciles the identity into the users
table and checks ``is_active``. If Clerk rejects the token (or times out) the
same token is retried on the local path. A reconciliation failure is terminal.

The "looks external" test is only a length check (``EXTERNAL_TOKEN_MIN_LENGTH``).
It keeps short local tokens away from the provider; it is not a security
boundary, since both paths verify signatures independently.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ReconciliationFailed
from app.models.user import User
from app.services.clerk_client import ClerkClient
from app.services.credential_verifier import (
    FailureKind,
    VerificationFailure,
    verify_external,
    verify_local,
)
from app.services.identity_reconciler import reconcile
from app.services.user_directory import user_directory

logger = logging.getLogger(__name__)


class GateFailure(str, enum.Enum):
    MISSING_CREDENTIAL = "missing_credential"
    INVALID_CREDENTIAL = "invalid_credential"
    INVALID_EXTERNAL_CREDENTIAL = "invalid_external_credential"
    EXPIRED_CREDENTIAL = "expired_credential"
    INVALID_USER = "invalid_user"
    RECONCILIATION_FAILED = "reconciliation_failed"


@dataclass(frozen=True)
class GateOutcome:
    user: Optional[User] = None
    external_profile: Optional[dict[str, Any]] = None
    failure: Optional[GateFailure] = None

    @property
    def authenticated(self) -> bool:
        return self.failure is None and self.user is not None


def is_likely_external(token: str) -> bool:
    return len(token) >= settings.EXTERNAL_TOKEN_MIN_LENGTH


async def authenticate(
    token: Optional[str],
    db: Session,
    clerk_client: Optional[ClerkClient],
) -> GateOutcome:
    if not token:
        return GateOutcome(failure=GateFailure.MISSING_CREDENTIAL)

    if clerk_client is not None and is_likely_external(token):
        outcome = await _authenticate_external(token, db, clerk_client)
        if outcome is not None:
            return outcome
        fallback = authenticate_local(token, db)
        if fallback.failure == GateFailure.INVALID_CREDENTIAL:
            # Rejected by Clerk and by the local verifier
            return GateOutcome(failure=GateFailure.INVALID_EXTERNAL_CREDENTIAL)
        return fallback

    return authenticate_local(token, db)


async def _authenticate_external(
    token: str,
    db: Session,
    clerk_client: ClerkClient,
) -> Optional[GateOutcome]:
    """Terminal outcome of the external path, or None to fall back to local."""
    result = await verify_external(clerk_client, token, timeout=settings.CLERK_TIMEOUT_SECONDS)
    if isinstance(result, VerificationFailure):
        logger.debug(f"External verification failed ({result.reason}), trying local token")
        return None

    try:
        user = reconcile(db, result.subject_id, result.profile)
    except ReconciliationFailed:
        return GateOutcome(failure=GateFailure.RECONCILIATION_FAILED)

    if not user.is_active:
        logger.info("Rejected inactive user on external path", extra={"user_id": user.id})
        return GateOutcome(failure=GateFailure.INVALID_USER)

    return GateOutcome(user=user, external_profile=result.profile)


def authenticate_local(token: Optional[str], db: Session) -> GateOutcome:
    result = verify_local(token)
    if isinstance(result, VerificationFailure):
        if result.kind == FailureKind.MISSING_CREDENTIAL:
            return GateOutcome(failure=GateFailure.MISSING_CREDENTIAL)
        if result.kind == FailureKind.EXPIRED_LOCAL_CREDENTIAL:
            return GateOutcome(failure=GateFailure.EXPIRED_CREDENTIAL)
        return GateOutcome(failure=GateFailure.INVALID_CREDENTIAL)

    user = user_directory.get_by_id(db, result.user_id)
    if user is None or not user.is_active:
        return GateOutcome(failure=GateFailure.INVALID_USER)

    return GateOutcome(user=user)

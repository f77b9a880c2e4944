"""
Bearer credential verification for the two trust domains.

Both verifiers return a typed result instead of raising: an identity on
success, a ``VerificationFailure`` describing why otherwise. The
authentication gate branches on the result type.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from jose import ExpiredSignatureError, JWTError

from app.core.security import decode_access_token
from app.services.clerk_client import ClerkClient

logger = logging.getLogger(__name__)


class FailureKind(str, enum.Enum):
    MISSING_CREDENTIAL = "missing_credential"
    INVALID_LOCAL_CREDENTIAL = "invalid_local_credential"
    EXPIRED_LOCAL_CREDENTIAL = "expired_local_credential"
    INVALID_EXTERNAL_CREDENTIAL = "invalid_external_credential"


@dataclass(frozen=True)
class LocalIdentity:
    user_id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class ExternalIdentity:
    subject_id: str
    profile: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VerificationFailure:
    kind: FailureKind
    reason: str = ""


LocalResult = Union[LocalIdentity, VerificationFailure]
ExternalResult = Union[ExternalIdentity, VerificationFailure]


def verify_local(token: Optional[str]) -> LocalResult:
    """Check signature and expiry of a locally issued token."""
    if not token:
        return VerificationFailure(FailureKind.MISSING_CREDENTIAL)

    try:
        payload = decode_access_token(token)
    except ExpiredSignatureError:
        return VerificationFailure(FailureKind.EXPIRED_LOCAL_CREDENTIAL, "token expired")
    except JWTError as e:
        return VerificationFailure(FailureKind.INVALID_LOCAL_CREDENTIAL, str(e))

    user_id = payload.get("userId")
    if not user_id or not isinstance(user_id, str):
        return VerificationFailure(FailureKind.INVALID_LOCAL_CREDENTIAL, "payload missing userId")

    return LocalIdentity(user_id=user_id, email=payload.get("email"))


async def verify_external(
    client: ClerkClient,
    token: Optional[str],
    timeout: float,
) -> ExternalResult:
    """
    Verify a Clerk session token and load the provider profile.

    Fails closed: provider rejection, network errors, a missing subject, an
    empty profile and exceeding ``timeout`` all produce an
    INVALID_EXTERNAL_CREDENTIAL failure.
    """
    if not token:
        return VerificationFailure(FailureKind.MISSING_CREDENTIAL)

    async def _verify() -> ExternalResult:
        claims = await client.verify_session_token(token)
        subject_id = claims.get("sub")
        if not subject_id:
            return VerificationFailure(FailureKind.INVALID_EXTERNAL_CREDENTIAL, "token missing sub")

        profile = await client.get_user(subject_id)
        if not profile:
            return VerificationFailure(FailureKind.INVALID_EXTERNAL_CREDENTIAL, "empty provider profile")

        return ExternalIdentity(subject_id=subject_id, profile=profile)

    try:
        return await asyncio.wait_for(_verify(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Clerk verification timed out", extra={"timeout_seconds": timeout})
        return VerificationFailure(FailureKind.INVALID_EXTERNAL_CREDENTIAL, "timeout")
    except JWTError as e:
        logger.debug(f"Clerk token rejected: {e}")
        return VerificationFailure(FailureKind.INVALID_EXTERNAL_CREDENTIAL, str(e))
    except Exception as e:
        logger.warning(
            f"Clerk verification failed: {e}",
            extra={"error_type": type(e).__name__},
        )
        return VerificationFailure(FailureKind.INVALID_EXTERNAL_CREDENTIAL, str(e))

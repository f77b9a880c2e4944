import logging
from dataclasses import dataclass
from typing import Any, Optional
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from app.core.database import get_db
from app.core.errors import (
    AppError,
    ExpiredLocalCredential,
    InvalidExternalCredential,
    InvalidLocalCredential,
    InvalidUser,
    MissingCredential,
    ReconciliationFailed,
)
from app.models.user import User
from app.services.auth_gate import GateFailure, GateOutcome, authenticate, authenticate_local
from app.services.clerk_client import ClerkClient

logger = logging.getLogger(__name__)

# auto_error=False so a missing header becomes our MISSING_TOKEN envelope instead of FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)

_FAILURE_ERRORS: dict[GateFailure, type[AppError]] = {
    GateFailure.MISSING_CREDENTIAL: MissingCredential,
    GateFailure.INVALID_CREDENTIAL: InvalidLocalCredential,
    GateFailure.INVALID_EXTERNAL_CREDENTIAL: InvalidExternalCredential,
    GateFailure.EXPIRED_CREDENTIAL: ExpiredLocalCredential,
    GateFailure.INVALID_USER: InvalidUser,
    GateFailure.RECONCILIATION_FAILED: ReconciliationFailed,
}


@dataclass
class AuthContext:
    user: User
    # Raw Clerk user payload, only set when the request authenticated through Clerk
    external_profile: Optional[dict[str, Any]] = None


def get_clerk_client(request: Request) -> Optional[ClerkClient]:
    """Clerk client created at startup, or None when Clerk is not configured"""
    return getattr(request.app.state, "clerk_client", None)


def _bearer_token(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    return credentials.credentials if credentials else None


def _resolve(request: Request, outcome: GateOutcome) -> AuthContext:
    if not outcome.authenticated:
        logger.info("Authentication rejected", extra={"failure": outcome.failure, "path": request.url.path})
        raise _FAILURE_ERRORS[outcome.failure]()

    request.state.user = outcome.user
    request.state.external_profile = outcome.external_profile
    return AuthContext(user=outcome.user, external_profile=outcome.external_profile)


async def get_auth_context(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    clerk_client: Optional[ClerkClient] = Depends(get_clerk_client),
) -> AuthContext:
    """
    Hybrid authentication: accepts Clerk session tokens and local JWTs.

    Attaches the resolved user (and the Clerk profile on the external path) to
    request.state. Raises the mapped AppError when no active user resolves.
    """
    outcome = await authenticate(_bearer_token(credentials), db, clerk_client)
    return _resolve(request, outcome)


async def get_current_user(context: AuthContext = Depends(get_auth_context)) -> User:
    return context.user


async def get_local_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Local-JWT-only authentication, for endpoints that need a local password"""
    outcome = authenticate_local(_bearer_token(credentials), db)
    return _resolve(request, outcome).user

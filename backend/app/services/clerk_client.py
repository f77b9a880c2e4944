"""Clerk API client: session token verification (JWKS) and user lookup."""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from jose import JWTError, jwk, jwt

logger = logging.getLogger(__name__)


class ClerkClient:
    """
    Talks to the Clerk backend API with the instance secret key.

    Session tokens are verified locally against Clerk's JWKS, which is fetched
    with the secret key and cached in memory with a TTL. An unknown key id
    forces one refresh (key rotation). User profiles are read from
    ``GET /users/{id}``.

    One instance is created at application startup and shared by the
    authentication gate; call ``close()`` on shutdown.

    Example:
        >>> client = ClerkClient(secret_key="sk_test_...")
        >>> claims = await client.verify_session_token(token)
        >>> profile = await client.get_user(claims["sub"])
    """

    def __init__(
        self,
        secret_key: str,
        api_url: str = "https://api.clerk.com/v1",
        jwks_cache_ttl: int = 3600,
        timeout: float = 5.0,
        authorized_parties: Optional[list[str]] = None,
        leeway: int = 5,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if not secret_key:
            raise ValueError("ClerkClient requires a secret key")

        self.api_url = api_url.rstrip("/")
        self.jwks_cache_ttl = jwks_cache_ttl
        self.authorized_parties = authorized_parties or []
        self.leeway = leeway
        self._keys: dict[str, Any] = {}
        self._last_refresh: Optional[datetime] = None
        self._http_client = http_client or httpx.AsyncClient(
            base_url=self.api_url,
            headers={"Authorization": f"Bearer {secret_key}"},
            timeout=httpx.Timeout(timeout),
        )

    async def verify_session_token(self, token: str) -> dict[str, Any]:
        """
        Verify a Clerk session JWT and return its claims.

        Checks signature (RS256), expiry, not-before and, when configured, the
        authorized party (azp).

        Raises:
            JWTError: token is malformed, expired, or signed by an unknown key
            httpx.HTTPError: JWKS could not be fetched
        """
        header = jwt.get_unverified_header(token)
        kid = header.get("kid")
        if not kid:
            raise JWTError("Session token header missing 'kid'")

        signing_key = await self._get_signing_key(kid)
        claims = jwt.decode(
            token,
            signing_key,
            algorithms=["RS256"],
            options={
                "verify_aud": False,
                "verify_exp": True,
                "verify_nbf": True,
                "require_exp": True,
                "leeway": self.leeway,
            },
        )

        azp = claims.get("azp")
        if self.authorized_parties and azp and azp not in self.authorized_parties:
            raise JWTError(f"Unauthorized party '{azp}'")

        return claims

    async def get_user(self, user_id: str) -> dict[str, Any]:
        """Fetch the Clerk user object (snake_case JSON as the API returns it)."""
        response = await self._http_client.get(f"/users/{user_id}")
        response.raise_for_status()
        return response.json()

    async def _get_signing_key(self, kid: str) -> Any:
        if self._needs_refresh():
            await self.refresh_keys()

        key = self._keys.get(kid)
        if key is None:
            logger.warning(
                "Key id not in JWKS cache, refreshing",
                extra={"kid": kid, "cached_kids": list(self._keys)},
            )
            await self.refresh_keys()
            key = self._keys.get(kid)

        if key is None:
            raise JWTError(f"Key id '{kid}' not found in Clerk JWKS")
        return key

    async def refresh_keys(self) -> None:
        """Fetch the instance JWKS and replace the cache."""
        response = await self._http_client.get("/jwks")
        response.raise_for_status()

        new_keys: dict[str, Any] = {}
        for key_data in response.json().get("keys", []):
            kid = key_data.get("kid")
            if not kid:
                logger.warning("Clerk JWKS key missing 'kid', skipping")
                continue
            new_keys[kid] = jwk.construct(key_data, algorithm=key_data.get("alg", "RS256"))

        self._keys = new_keys
        self._last_refresh = datetime.now(timezone.utc)
        logger.info("Clerk JWKS refreshed", extra={"key_count": len(new_keys)})

    def _needs_refresh(self) -> bool:
        if self._last_refresh is None:
            return True
        age = (datetime.now(timezone.utc) - self._last_refresh).total_seconds()
        return age >= self.jwks_cache_ttl

    async def close(self) -> None:
        await self._http_client.aclose()
        logger.info("Clerk client closed")

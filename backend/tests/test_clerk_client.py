"""Tests for ClerkClient JWKS verification and user lookup."""

import time

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import JWTError, jwk, jwt

from app.services.clerk_client import ClerkClient

API_URL = "https://api.clerk.test/v1"


def _rsa_private_pem() -> bytes:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture(scope="module")
def signing_pem() -> bytes:
    return _rsa_private_pem()


@pytest.fixture(scope="module")
def public_jwk(signing_pem) -> dict:
    key_data = jwk.construct(signing_pem, algorithm="RS256").public_key().to_dict()
    key_data.update({"kid": "ins_key_1", "alg": "RS256", "use": "sig"})
    return key_data


def _session_token(pem: bytes, kid: str = "ins_key_1", **overrides) -> str:
    now = int(time.time())
    claims = {"sub": "user_ext_1", "iat": now, "nbf": now - 5, "exp": now + 60, "azp": "http://localhost:3000"}
    claims.update(overrides)
    return jwt.encode(claims, pem, algorithm="RS256", headers={"kid": kid})


def _client(handler, **kwargs) -> ClerkClient:
    http_client = httpx.AsyncClient(base_url=API_URL, transport=httpx.MockTransport(handler))
    return ClerkClient(secret_key="sk_test_123", api_url=API_URL, http_client=http_client, **kwargs)


@pytest.fixture
def requests_seen() -> list[str]:
    return []


@pytest.fixture
def handler(public_jwk, requests_seen):
    def _handler(request: httpx.Request) -> httpx.Response:
        requests_seen.append(request.url.path)
        if request.url.path == "/v1/jwks":
            return httpx.Response(200, json={"keys": [public_jwk]})
        if request.url.path == "/v1/users/user_ext_1":
            return httpx.Response(200, json={"id": "user_ext_1", "first_name": "Ana"})
        return httpx.Response(404, json={"errors": [{"code": "resource_not_found"}]})

    return _handler


def test_requires_secret_key():
    with pytest.raises(ValueError):
        ClerkClient(secret_key="")


@pytest.mark.asyncio
class TestVerifySessionToken:
    async def test_valid_token_returns_claims(self, handler, signing_pem, requests_seen):
        client = _client(handler)

        claims = await client.verify_session_token(_session_token(signing_pem))

        assert claims["sub"] == "user_ext_1"
        assert requests_seen == ["/v1/jwks"]
        await client.close()

    async def test_jwks_is_cached(self, handler, signing_pem, requests_seen):
        client = _client(handler)

        await client.verify_session_token(_session_token(signing_pem))
        await client.verify_session_token(_session_token(signing_pem))

        assert requests_seen.count("/v1/jwks") == 1
        await client.close()

    async def test_unknown_kid_refreshes_once_then_fails(self, handler, signing_pem, requests_seen):
        client = _client(handler)
        await client.refresh_keys()

        with pytest.raises(JWTError):
            await client.verify_session_token(_session_token(signing_pem, kid="rotated"))

        assert requests_seen.count("/v1/jwks") == 2
        await client.close()

    async def test_expired_token_rejected(self, handler, signing_pem):
        client = _client(handler)
        now = int(time.time())

        with pytest.raises(JWTError):
            await client.verify_session_token(_session_token(signing_pem, iat=now - 120, exp=now - 60))
        await client.close()

    async def test_token_signed_by_other_key_rejected(self, handler):
        client = _client(handler)

        with pytest.raises(JWTError):
            await client.verify_session_token(_session_token(_rsa_private_pem()))
        await client.close()

    async def test_missing_kid_rejected(self, handler, signing_pem):
        client = _client(handler)
        token = jwt.encode({"sub": "user_ext_1", "exp": int(time.time()) + 60}, signing_pem, algorithm="RS256")

        with pytest.raises(JWTError):
            await client.verify_session_token(token)
        await client.close()

    async def test_authorized_party_enforced(self, handler, signing_pem):
        client = _client(handler, authorized_parties=["https://dashboard.midatopay.com"])

        with pytest.raises(JWTError):
            await client.verify_session_token(_session_token(signing_pem))
        await client.close()


@pytest.mark.asyncio
class TestGetUser:
    async def test_returns_user_payload(self, handler):
        client = _client(handler)

        user = await client.get_user("user_ext_1")

        assert user == {"id": "user_ext_1", "first_name": "Ana"}
        await client.close()

    async def test_unknown_user_raises_http_error(self, handler):
        client = _client(handler)

        with pytest.raises(httpx.HTTPStatusError):
            await client.get_user("user_missing")
        await client.close()

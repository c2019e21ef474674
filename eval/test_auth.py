"""Bearer token validation and API identity tests."""

from __future__ import annotations

import sys
import time
from pathlib import Path

from fastapi.testclient import TestClient
import jwt
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from zonaroja import api
from zonaroja.errors import UnauthorizedError
from zonaroja.security import auth

_SECRET = "test-secret-with-at-least-32-bytes!!"


def _token(**overrides) -> str:
    claims = {
        "sub": "student-42",
        "aud": "zonaroja-api",
        "iss": "https://issuer.test",
        "exp": int(time.time()) + 300,
    }
    claims.update(overrides)
    claims = {k: v for k, v in claims.items() if v is not None}
    return jwt.encode(claims, _SECRET, algorithm="HS256")


def _validator() -> auth.TokenValidator:
    return auth.TokenValidator(
        auth.AuthConfig(
            secret=_SECRET,
            jwks_url=None,
            audiences=("zonaroja-api",),
            issuer="https://issuer.test",
        )
    )


@pytest.fixture(autouse=True)
def _clear_caches(monkeypatch, tmp_path):
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("POSTGRES_DSN", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("AZURE_OPENAI_ENDPOINT", raising=False)
    for factory in (api._token_validator, api._datastore, api._settings):
        factory.cache_clear()
    yield
    for factory in (api._token_validator, api._datastore, api._settings):
        factory.cache_clear()


def test_build_validator_disabled_by_default(monkeypatch):
    monkeypatch.delenv("AUTH_ENABLED", raising=False)
    assert auth.build_token_validator() is None


def test_build_validator_requires_key_material(monkeypatch):
    monkeypatch.setenv("AUTH_ENABLED", "true")
    monkeypatch.delenv("AUTH_JWT_SECRET", raising=False)
    monkeypatch.delenv("AUTH_JWKS_URL", raising=False)
    with pytest.raises(RuntimeError):
        auth.build_token_validator()


def test_valid_token_returns_claims():
    claims = _validator().validate_token(_token())
    assert claims["sub"] == "student-42"


@pytest.mark.parametrize(
    "token",
    [
        _token(exp=int(time.time()) - 10),
        _token(aud="someone-else"),
        _token(iss="https://evil.test"),
        _token(sub=None),
        "not-a-jwt",
        "",
    ],
)
def test_invalid_tokens_are_unauthorized(token):
    with pytest.raises(UnauthorizedError):
        _validator().validate_token(token)


def test_api_uses_token_subject_as_identity(monkeypatch):
    monkeypatch.setenv("AUTH_ENABLED", "true")
    monkeypatch.setenv("AUTH_JWT_SECRET", _SECRET)
    monkeypatch.setenv("AUTH_AUDIENCE", "zonaroja-api")
    monkeypatch.setenv("AUTH_ISSUER", "https://issuer.test")
    client = TestClient(api.app)

    missing = client.get("/v1/practice/ucr-logica")
    assert missing.status_code == 401
    assert missing.json()["code"] == "UNAUTHORIZED"
    assert missing.headers["WWW-Authenticate"] == "Bearer"

    # The gateway header is ignored once bearer auth is on.
    spoofed = client.get("/v1/practice/ucr-logica", headers={"X-User-Id": "x"})
    assert spoofed.status_code == 401

    ok = client.get(
        "/v1/practice/ucr-logica",
        headers={"Authorization": f"Bearer {_token()}"},
    )
    assert ok.status_code == 200


def test_api_reports_misconfigured_auth(monkeypatch):
    monkeypatch.setenv("AUTH_ENABLED", "true")
    monkeypatch.delenv("AUTH_JWT_SECRET", raising=False)
    monkeypatch.delenv("AUTH_JWKS_URL", raising=False)
    client = TestClient(api.app)

    response = client.get("/v1/practice/ucr-logica", headers={"X-User-Id": "x"})
    assert response.status_code == 503

"""Bearer token validation for the HTTP surface."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import jwt
from jwt import InvalidTokenError, PyJWKClient, PyJWKClientError

from ..config import truthy
from ..errors import UnauthorizedError


def _parse_csv(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class AuthConfig:
    secret: Optional[str]
    jwks_url: Optional[str]
    audiences: Tuple[str, ...]
    issuer: Optional[str]
    timeout_seconds: float = 5.0


class TokenValidator:
    """Validates HS256 tokens against a shared secret, or RS256 via JWKS."""

    def __init__(self, config: AuthConfig) -> None:
        self._config = config
        self._jwks_client = (
            PyJWKClient(config.jwks_url, timeout=int(config.timeout_seconds))
            if config.jwks_url
            else None
        )

    def _signing_key(self, token: str) -> Tuple[Any, str]:
        if self._jwks_client is not None:
            try:
                return self._jwks_client.get_signing_key_from_jwt(token).key, "RS256"
            except (PyJWKClientError, InvalidTokenError) as exc:
                raise UnauthorizedError("Token signing key not recognized.") from exc
        return self._config.secret, "HS256"

    def validate_token(self, token: str) -> Dict[str, Any]:
        if not token:
            raise UnauthorizedError("Bearer token is missing.")

        key, algorithm = self._signing_key(token)
        try:
            claims = jwt.decode(
                token,
                key=key,
                algorithms=[algorithm],
                audience=list(self._config.audiences) or None,
                issuer=self._config.issuer,
                options={
                    "require": ["exp", "sub"],
                    "verify_aud": bool(self._config.audiences),
                },
            )
        except jwt.ExpiredSignatureError as exc:
            raise UnauthorizedError("Bearer token has expired.") from exc
        except InvalidTokenError as exc:
            raise UnauthorizedError("Bearer token validation failed.") from exc

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject.strip():
            raise UnauthorizedError("Bearer token is missing a subject claim.")
        return claims


def build_token_validator() -> Optional[TokenValidator]:
    """Build a validator from environment configuration, or None when off."""
    if not truthy(os.environ.get("AUTH_ENABLED")):
        return None

    secret = os.environ.get("AUTH_JWT_SECRET")
    jwks_url = os.environ.get("AUTH_JWKS_URL")
    if not secret and not jwks_url:
        raise RuntimeError(
            "AUTH_JWT_SECRET or AUTH_JWKS_URL is required when auth is enabled."
        )

    return TokenValidator(
        AuthConfig(
            secret=secret,
            jwks_url=jwks_url,
            audiences=_parse_csv(os.environ.get("AUTH_AUDIENCE")),
            issuer=os.environ.get("AUTH_ISSUER") or None,
            timeout_seconds=float(os.environ.get("AUTH_HTTP_TIMEOUT_SECONDS", "5")),
        )
    )

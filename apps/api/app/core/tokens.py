from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

from jose import JWTError, jwt
from jose.utils import base64url_decode, base64url_encode

from app.core.config import get_settings
from app.core.errors import TokenExpired, TokenInvalid


_REQUIRED_CLAIMS = ("sub", "role", "iat", "exp")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class TokenClaims:
    principal_id: str
    role: str
    issued_at: datetime
    expires_at: datetime


class TokenCodec:
    """Issues and verifies HMAC-signed bearer tokens.

    The signing secret is held by the instance; nothing is read from globals
    at verify time.
    """

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if not secret:
            raise ValueError("token signing secret must not be empty")
        self._secret = secret
        self._algorithm = algorithm
        self._clock = clock

    def issue(self, principal_id: str, role: str, ttl: timedelta | int) -> str:
        lifetime = ttl if isinstance(ttl, timedelta) else timedelta(seconds=ttl)
        issued_at = int(self._clock().timestamp())
        claims = {
            "sub": str(principal_id),
            "role": str(role),
            "iat": issued_at,
            "exp": issued_at + int(lifetime.total_seconds()),
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenClaims:
        self._require_canonical_signature(token)
        try:
            # exp is checked below against the injected clock.
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "verify_iat": False, "verify_nbf": False},
            )
        except JWTError as exc:
            raise TokenInvalid() from exc

        claims = self._validated_claims(payload)
        if int(self._clock().timestamp()) >= claims["exp"]:
            raise TokenExpired()

        return TokenClaims(
            principal_id=claims["sub"],
            role=claims["role"],
            issued_at=datetime.fromtimestamp(claims["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        )

    @staticmethod
    def _require_canonical_signature(token: str) -> None:
        # Trailing padding bits of the last character must be zero.
        signature = token.rpartition(".")[2]
        try:
            canonical = base64url_encode(base64url_decode(signature.encode("ascii"))).decode("ascii")
        except ValueError as exc:
            raise TokenInvalid() from exc
        if canonical != signature:
            raise TokenInvalid()

    @staticmethod
    def _validated_claims(payload: Any) -> dict[str, Any]:
        if not isinstance(payload, dict):
            raise TokenInvalid()
        if any(payload.get(name) in (None, "") for name in _REQUIRED_CLAIMS):
            raise TokenInvalid()
        if not isinstance(payload["sub"], str) or not isinstance(payload["role"], str):
            raise TokenInvalid()
        for name in ("iat", "exp"):
            value = payload[name]
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TokenInvalid()
        return {
            "sub": payload["sub"],
            "role": payload["role"],
            "iat": int(payload["iat"]),
            "exp": int(payload["exp"]),
        }


@lru_cache
def get_token_codec() -> TokenCodec:
    settings = get_settings()
    return TokenCodec(settings.jwt_secret, algorithm=settings.jwt_algorithm)

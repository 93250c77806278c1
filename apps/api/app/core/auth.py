from __future__ import annotations

import logging
import uuid

from fastapi import Depends
from sqlalchemy.orm import Session
from starlette.requests import Request

from app.auth.models import User
from app.auth.repository import CredentialStore
from app.context import get_correlation_id
from app.core.context import bind_principal
from app.core.database import get_db
from app.core.errors import AuthenticationError, MissingCredential, PrincipalNotFound
from app.core.tokens import TokenCodec, get_token_codec
from app.metrics import observe_auth_failure
from app.platform.security.context import Principal


logger = logging.getLogger("app.auth")

BEARER_PREFIX = "Bearer "


def extract_bearer_token(raw_header_value: str | None) -> str:
    if not raw_header_value or not raw_header_value.startswith(BEARER_PREFIX):
        raise MissingCredential()
    token = raw_header_value[len(BEARER_PREFIX):].strip()
    if not token or " " in token:
        raise MissingCredential()
    return token


class Authenticator:
    """Resolves an ``Authorization`` header value into a live principal."""

    def __init__(self, codec: TokenCodec, store: CredentialStore) -> None:
        self.codec = codec
        self.store = store

    def authenticate(self, raw_header_value: str | None) -> Principal:
        try:
            token = extract_bearer_token(raw_header_value)
            claims = self.codec.verify(token)
            user = self._load_user(claims.principal_id)
        except AuthenticationError as exc:
            observe_auth_failure(exc.code)
            logger.info("auth.failed", extra={"reason": exc.code})
            raise

        return Principal(
            id=user.id,
            role=user.role,
            name=user.name,
            email=user.email,
            correlation_id=get_correlation_id(),
        )

    def _load_user(self, principal_id: str) -> User:
        try:
            user_id = uuid.UUID(principal_id)
        except ValueError as exc:
            raise PrincipalNotFound() from exc
        user = self.store.find_by_id(user_id)
        if user is None:
            raise PrincipalNotFound()
        return user


def get_current_principal(
    request: Request,
    db: Session = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
) -> Principal:
    principal = Authenticator(codec, CredentialStore(db)).authenticate(request.headers.get("authorization"))
    bind_principal(request, principal)
    return principal

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.auth.models import Role, User
from app.auth.repository import CredentialStore
from app.core.errors import Conflict, InvalidCredentials
from app.core.passwords import hash_password, verify_password
from app.core.tokens import TokenCodec
from app.metrics import observe_auth_failure


logger = logging.getLogger("app.auth")


@dataclass
class LoginResult:
    token: str
    expires_in: int
    user: User


class AuthService:
    def register(self, session: Session, *, name: str, email: str, password: str) -> User:
        store = CredentialStore(session)
        if store.find_by_email(email) is not None:
            raise self._duplicate_email()

        user = User(name=name.strip(), email=email, password_hash=hash_password(password), role=Role.USER.value)
        try:
            store.save(user)
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise self._duplicate_email() from exc

        logger.info("auth.registered", extra={"user_id": str(user.id)})
        return user

    def login(
        self,
        session: Session,
        codec: TokenCodec,
        *,
        email: str,
        password: str,
        ttl_seconds: int,
    ) -> LoginResult:
        user = CredentialStore(session).find_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            observe_auth_failure(InvalidCredentials.code)
            logger.info("auth.failed", extra={"reason": InvalidCredentials.code})
            raise InvalidCredentials()

        token = codec.issue(str(user.id), user.role, timedelta(seconds=ttl_seconds))
        return LoginResult(token=token, expires_in=ttl_seconds, user=user)

    @staticmethod
    def _duplicate_email() -> Conflict:
        return Conflict("User already exists", field="email", detail="Email is already registered")

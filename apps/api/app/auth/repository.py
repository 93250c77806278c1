from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.auth.models import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialStore:
    """Looks up principals for the authenticator and the login flow."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_email(self, email: str) -> User | None:
        return self.session.scalar(select(User).where(User.email == normalize_email(email)))

    def find_by_id(self, user_id: uuid.UUID) -> User | None:
        return self.session.get(User, user_id)

    def save(self, user: User) -> User:
        user.email = normalize_email(user.email)
        self.session.add(user)
        self.session.flush()
        return user

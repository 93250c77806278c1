from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.auth.models import User
from app.auth.repository import CredentialStore
from app.core.auth import Authenticator, extract_bearer_token
from app.core.database import Base, enable_sqlite_foreign_keys
from app.core.errors import Forbidden, MissingCredential, PrincipalNotFound, TokenExpired, TokenInvalid
from app.core.rbac import ADMIN_ONLY, ANY_AUTHENTICATED, USER_OR_ADMIN, authorize
from app.core.tokens import TokenCodec
from app.platform.security.context import Principal


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def codec() -> TokenCodec:
    return TokenCodec("authenticator-secret")


@pytest.fixture()
def user(db_session: Session) -> User:
    user = User(name="Ada Lovelace", email="Ada@Example.com", password_hash="x", role="user")
    CredentialStore(db_session).save(user)
    db_session.commit()
    return user


@pytest.fixture()
def authenticator(db_session: Session, codec: TokenCodec) -> Authenticator:
    return Authenticator(codec, CredentialStore(db_session))


@pytest.mark.parametrize(
    "header",
    [None, "", "Bearer", "Bearer ", "Bearer    ", "Token abc", "bearer abc", "Basic dXNlcjpwYXNz", "Bearer a b"],
)
def test_missing_or_malformed_header_is_missing_credential(header: str | None) -> None:
    with pytest.raises(MissingCredential):
        extract_bearer_token(header)


def test_extract_bearer_token_returns_token() -> None:
    assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"


def test_authenticate_resolves_live_principal(authenticator: Authenticator, codec: TokenCodec, user: User) -> None:
    token = codec.issue(str(user.id), "user", 3600)

    principal = authenticator.authenticate(f"Bearer {token}")

    assert principal.id == user.id
    assert principal.role == "user"
    assert principal.email == "ada@example.com"


def test_role_is_read_from_store_not_token(
    db_session: Session,
    authenticator: Authenticator,
    codec: TokenCodec,
    user: User,
) -> None:
    token = codec.issue(str(user.id), "user", 3600)
    user.role = "admin"
    db_session.commit()

    assert authenticator.authenticate(f"Bearer {token}").role == "admin"


def test_missing_header_fails_before_token_checks(authenticator: Authenticator) -> None:
    with pytest.raises(MissingCredential):
        authenticator.authenticate(None)


def test_expired_token_is_reported(authenticator: Authenticator, codec: TokenCodec, user: User) -> None:
    token = codec.issue(str(user.id), "user", 0)

    with pytest.raises(TokenExpired):
        authenticator.authenticate(f"Bearer {token}")


def test_foreign_token_is_invalid(authenticator: Authenticator, user: User) -> None:
    token = TokenCodec("someone-elses-secret").issue(str(user.id), "user", 3600)

    with pytest.raises(TokenInvalid):
        authenticator.authenticate(f"Bearer {token}")


def test_unknown_principal_is_rejected(authenticator: Authenticator, codec: TokenCodec) -> None:
    token = codec.issue(str(uuid.uuid4()), "user", 3600)

    with pytest.raises(PrincipalNotFound):
        authenticator.authenticate(f"Bearer {token}")


def test_non_uuid_subject_is_principal_not_found(authenticator: Authenticator, codec: TokenCodec) -> None:
    token = codec.issue("not-a-uuid", "user", 3600)

    with pytest.raises(PrincipalNotFound):
        authenticator.authenticate(f"Bearer {token}")


def test_authorize_accepts_any_authenticated_principal() -> None:
    principal = Principal(id=uuid.uuid4(), role="user")

    authorize(principal, ANY_AUTHENTICATED)
    authorize(principal, None)
    authorize(principal, USER_OR_ADMIN)


def test_authorize_rejects_role_outside_allowed_set() -> None:
    principal = Principal(id=uuid.uuid4(), role="user")

    with pytest.raises(Forbidden) as exc_info:
        authorize(principal, ADMIN_ONLY)

    assert exc_info.value.errors[0].field == "auth"
    assert "admin" in exc_info.value.errors[0].message


def test_authorize_accepts_admin_for_admin_only() -> None:
    authorize(Principal(id=uuid.uuid4(), role="admin"), ADMIN_ONLY)

from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from sqlalchemy import create_engine, delete
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.auth.models import User
from app.core.database import Base, enable_sqlite_foreign_keys
from app.core.errors import NotFoundOrForbidden
from app.crm.models import CRMCustomer, CRMLead
from app.platform.security.context import Principal
from app.platform.security.ownership import OwnershipResolver


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


def _principal(session: Session, email: str, role: str = "user") -> Principal:
    user = User(name=email.split("@")[0], email=email, password_hash="x", role=role)
    session.add(user)
    session.commit()
    return Principal(id=user.id, role=user.role)


def _customer(session: Session, owner: Principal, email: str = "buyer@example.com") -> CRMCustomer:
    customer = CRMCustomer(name="Buyer", email=email, owner_user_id=owner.id)
    session.add(customer)
    session.commit()
    return customer


def _lead(session: Session, customer: CRMCustomer, title: str = "Renewal", value: int | None = None) -> CRMLead:
    lead = CRMLead(customer_id=customer.id, title=title, value=value)
    session.add(lead)
    session.commit()
    return lead


@pytest.fixture()
def resolver(db_session: Session) -> OwnershipResolver:
    return OwnershipResolver.for_session(db_session)


def test_owner_owns_account_and_other_principal_does_not(db_session: Session, resolver: OwnershipResolver) -> None:
    owner = _principal(db_session, "owner@example.com")
    other = _principal(db_session, "other@example.com")
    customer = _customer(db_session, owner)

    assert resolver.owns_account(owner, customer.id) is True
    assert resolver.owns_account(other, customer.id) is False


def test_missing_account_is_not_owned(db_session: Session, resolver: OwnershipResolver) -> None:
    owner = _principal(db_session, "owner@example.com")

    assert resolver.owns_account(owner, uuid.uuid4()) is False


def test_opportunity_ownership_follows_its_customer(db_session: Session, resolver: OwnershipResolver) -> None:
    owner = _principal(db_session, "owner@example.com")
    other = _principal(db_session, "other@example.com")
    lead = _lead(db_session, _customer(db_session, owner))

    assert resolver.owns_opportunity(owner, lead.id) is True
    assert resolver.owns_opportunity(other, lead.id) is False
    assert resolver.owns_opportunity(owner, uuid.uuid4()) is False


def test_dangling_customer_reference_is_not_owned(db_session: Session, resolver: OwnershipResolver) -> None:
    owner = _principal(db_session, "owner@example.com")
    customer = _customer(db_session, owner)
    lead_id = _lead(db_session, customer).id

    # Simulate an external writer that bypasses both the cascade and the FK constraint.
    db_session.commit()
    db_session.connection().exec_driver_sql("PRAGMA foreign_keys=OFF")
    db_session.execute(delete(CRMCustomer).where(CRMCustomer.id == customer.id))
    db_session.commit()
    db_session.expunge_all()

    assert resolver.owns_opportunity(owner, lead_id) is False
    with pytest.raises(NotFoundOrForbidden):
        resolver.require_opportunity(owner, lead_id)


def test_admin_role_does_not_bypass_ownership(db_session: Session, resolver: OwnershipResolver) -> None:
    owner = _principal(db_session, "owner@example.com")
    admin = _principal(db_session, "admin@example.com", role="admin")
    customer = _customer(db_session, owner)
    lead = _lead(db_session, customer)

    assert resolver.owns_account(admin, customer.id) is False
    assert resolver.owns_opportunity(admin, lead.id) is False


def test_require_account_raises_not_found_or_forbidden(db_session: Session, resolver: OwnershipResolver) -> None:
    owner = _principal(db_session, "owner@example.com")
    other = _principal(db_session, "other@example.com")
    customer = _customer(db_session, owner)

    assert resolver.require_account(owner, customer.id).id == customer.id

    with pytest.raises(NotFoundOrForbidden) as foreign:
        resolver.require_account(other, customer.id)
    with pytest.raises(NotFoundOrForbidden) as missing:
        resolver.require_account(other, uuid.uuid4())

    # Foreign and missing records are indistinguishable to the caller.
    assert foreign.value.message == missing.value.message
    assert foreign.value.error_dicts() == missing.value.error_dicts()


def test_require_account_reports_requested_field(db_session: Session, resolver: OwnershipResolver) -> None:
    owner = _principal(db_session, "owner@example.com")

    with pytest.raises(NotFoundOrForbidden) as exc_info:
        resolver.require_account(owner, uuid.uuid4(), field="customer_id")

    assert exc_info.value.errors[0].field == "customer_id"


def test_scoped_opportunities_only_returns_owned_leads(db_session: Session, resolver: OwnershipResolver) -> None:
    owner = _principal(db_session, "owner@example.com")
    other = _principal(db_session, "other@example.com")
    first = _customer(db_session, owner, "first@example.com")
    second = _customer(db_session, owner, "second@example.com")
    foreign = _customer(db_session, other, "foreign@example.com")
    owned_ids = {
        _lead(db_session, first, "A").id,
        _lead(db_session, first, "B").id,
        _lead(db_session, second, "C").id,
    }
    foreign_lead = _lead(db_session, foreign, "D")

    scoped = resolver.scoped_opportunities(owner)

    assert {lead.id for lead in scoped} == owned_ids
    assert foreign_lead.id not in {lead.id for lead in scoped}
    assert [lead.id for lead in resolver.scoped_opportunities(other)] == [foreign_lead.id]


def test_scoped_opportunities_for_account_requires_ownership(db_session: Session, resolver: OwnershipResolver) -> None:
    owner = _principal(db_session, "owner@example.com")
    other = _principal(db_session, "other@example.com")
    customer = _customer(db_session, owner)
    lead = _lead(db_session, customer)

    assert [item.id for item in resolver.scoped_opportunities(owner, customer.id)] == [lead.id]
    with pytest.raises(NotFoundOrForbidden) as exc_info:
        resolver.scoped_opportunities(other, customer.id)
    assert exc_info.value.errors[0].field == "customer_id"

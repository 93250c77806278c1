from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.auth.models import User
from app.core.database import Base, enable_sqlite_foreign_keys
from app.core.errors import NotFoundOrForbidden
from app.crm.cascade import CascadeCoordinator
from app.crm.models import CRMCustomer, CRMLead
from app.crm.repositories import CustomerRepository, LeadRepository
from app.crm.schemas import CustomerUpdate, LeadCreate, LeadUpdate
from app.crm.service import CustomerService, LeadService
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


def _owner_with_customer(session: Session) -> tuple[Principal, uuid.UUID]:
    owner = User(name="Owner", email="owner@example.com", password_hash="x", role="user")
    session.add(owner)
    session.flush()
    customer = CRMCustomer(name="Acme", email="acme@example.com", owner_user_id=owner.id)
    session.add(customer)
    session.commit()
    return Principal(id=owner.id, role="user"), customer.id


def _lead_total(session: Session) -> int:
    return int(session.scalar(select(func.count()).select_from(CRMLead)))


def test_foreign_keys_are_enforced_on_sqlite(db_session: Session) -> None:
    db_session.add(CRMLead(customer_id=uuid.uuid4(), title="Orphan"))

    with pytest.raises(IntegrityError):
        db_session.flush()
    db_session.rollback()
    assert _lead_total(db_session) == 0


def test_lead_create_racing_customer_delete_is_not_found(
    db_session: Session,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    principal, customer_id = _owner_with_customer(db_session)
    original_require_account = OwnershipResolver.require_account

    def _require_then_cascade(
        self: OwnershipResolver,
        principal: Principal,
        account_id: uuid.UUID,
        *,
        field: str = "id",
    ) -> CRMCustomer:
        customer = original_require_account(self, principal, account_id, field=field)
        CascadeCoordinator(db_session).delete_account_cascade(account_id)
        return customer

    monkeypatch.setattr(OwnershipResolver, "require_account", _require_then_cascade)

    with pytest.raises(NotFoundOrForbidden) as exc_info:
        LeadService().create_lead(db_session, principal, LeadCreate(customer_id=customer_id, title="Too late"))

    assert exc_info.value.errors[0].field == "customer_id"
    assert db_session.get(CRMCustomer, customer_id) is None
    assert _lead_total(db_session) == 0


def test_customer_vanishing_during_update_rolls_back(
    db_session: Session,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    principal, customer_id = _owner_with_customer(db_session)
    monkeypatch.setattr(CustomerRepository, "update", lambda self, entity_id, partial: None)

    with pytest.raises(NotFoundOrForbidden):
        CustomerService().update_customer(db_session, principal, customer_id, CustomerUpdate(name="Renamed"))

    assert not db_session.in_transaction()


def test_lead_vanishing_during_update_rolls_back(
    db_session: Session,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    principal, customer_id = _owner_with_customer(db_session)
    lead = CRMLead(customer_id=customer_id, title="Pilot")
    db_session.add(lead)
    db_session.commit()
    lead_id = lead.id
    monkeypatch.setattr(LeadRepository, "update", lambda self, entity_id, partial: None)

    with pytest.raises(NotFoundOrForbidden):
        LeadService().update_lead(db_session, principal, lead_id, LeadUpdate(title="Renamed"))

    assert not db_session.in_transaction()

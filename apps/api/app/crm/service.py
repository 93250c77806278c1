from __future__ import annotations

import logging
import math
import uuid
from collections import Counter, defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Conflict, NotFoundOrForbidden
from app.crm.cascade import CascadeCoordinator
from app.crm.models import CRMCustomer, CRMLead, LeadStatus
from app.crm.repositories import CustomerRepository, LeadRepository
from app.crm.schemas import (
    CustomerCreate,
    CustomerRead,
    CustomerUpdate,
    LeadCreate,
    LeadRead,
    LeadUpdate,
    Pagination,
    ReportSummary,
)
from app.platform.security.context import Principal
from app.platform.security.ownership import OwnershipResolver


logger = logging.getLogger("app.crm")


def _to_float(value: Decimal | float | None) -> float | None:
    return None if value is None else float(value)


def _customer_read(customer: CRMCustomer) -> CustomerRead:
    return CustomerRead.model_validate(customer)


def _lead_read(lead: CRMLead) -> LeadRead:
    return LeadRead.model_validate(
        {
            "id": lead.id,
            "customer_id": lead.customer_id,
            "title": lead.title,
            "description": lead.description,
            "status": lead.status,
            "value": _to_float(lead.value),
            "created_at": lead.created_at,
            "updated_at": lead.updated_at,
        }
    )


def _email_conflict() -> Conflict:
    return Conflict(
        "Customer with this email already exists",
        field="email",
        detail="Email is already in use",
    )


@dataclass
class CustomerPage:
    customers: list[CustomerRead]
    pagination: Pagination


@dataclass
class CustomerDetail:
    customer: CustomerRead
    leads: list[LeadRead]


class CustomerService:
    def list_customers(
        self,
        session: Session,
        principal: Principal,
        *,
        page: int = 1,
        limit: int = 10,
        search: str | None = None,
    ) -> CustomerPage:
        repository = CustomerRepository(session)
        total = repository.count_by_owner(principal.id, search=search)
        customers = repository.list_by_owner(
            principal.id,
            search=search,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return CustomerPage(
            customers=[_customer_read(customer) for customer in customers],
            pagination=Pagination(
                current_page=page,
                total_pages=math.ceil(total / limit),
                total_customers=total,
                has_next=page * limit < total,
                has_prev=page > 1,
            ),
        )

    def get_customer(self, session: Session, principal: Principal, customer_id: uuid.UUID) -> CustomerDetail:
        customer = OwnershipResolver.for_session(session).require_account(principal, customer_id)
        leads = LeadRepository(session).list_by_account(customer.id)
        return CustomerDetail(customer=_customer_read(customer), leads=[_lead_read(lead) for lead in leads])

    def create_customer(self, session: Session, principal: Principal, dto: CustomerCreate) -> CustomerRead:
        repository = CustomerRepository(session)
        try:
            customer = repository.create(
                {
                    "name": dto.name.strip(),
                    "email": str(dto.email),
                    "phone": dto.phone,
                    "company": dto.company,
                    "owner_user_id": principal.id,
                }
            )
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise _email_conflict() from exc

        logger.info(
            "crm.customer.created",
            extra={"user_id": principal.user_id, "customer_id": str(customer.id)},
        )
        return _customer_read(customer)

    def update_customer(
        self,
        session: Session,
        principal: Principal,
        customer_id: uuid.UUID,
        dto: CustomerUpdate,
    ) -> CustomerRead:
        OwnershipResolver.for_session(session).require_account(principal, customer_id)

        changes: dict[str, Any] = dto.changes()
        if "email" in changes:
            changes["email"] = str(changes["email"])
        if "name" in changes:
            changes["name"] = changes["name"].strip()

        try:
            customer = CustomerRepository(session).update(customer_id, changes)
            if customer is None:
                session.rollback()
                raise NotFoundOrForbidden("Customer not found", detail="Customer does not exist or access denied")
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise _email_conflict() from exc

        session.refresh(customer)
        return _customer_read(customer)

    def delete_customer(self, session: Session, principal: Principal, customer_id: uuid.UUID) -> int:
        OwnershipResolver.for_session(session).require_account(principal, customer_id)
        return CascadeCoordinator(session).delete_account_cascade(customer_id)


class LeadService:
    def list_leads(self, session: Session, principal: Principal) -> list[LeadRead]:
        leads = OwnershipResolver.for_session(session).scoped_opportunities(principal)
        return [_lead_read(lead) for lead in leads]

    def list_leads_for_customer(
        self,
        session: Session,
        principal: Principal,
        customer_id: uuid.UUID,
    ) -> list[LeadRead]:
        leads = OwnershipResolver.for_session(session).scoped_opportunities(principal, customer_id)
        return [_lead_read(lead) for lead in leads]

    def get_lead(self, session: Session, principal: Principal, lead_id: uuid.UUID) -> LeadRead:
        lead = OwnershipResolver.for_session(session).require_opportunity(principal, lead_id)
        return _lead_read(lead)

    def create_lead(self, session: Session, principal: Principal, dto: LeadCreate) -> LeadRead:
        OwnershipResolver.for_session(session).require_account(principal, dto.customer_id, field="customer_id")

        try:
            lead = LeadRepository(session).create(
                {
                    "customer_id": dto.customer_id,
                    "title": dto.title.strip(),
                    "description": dto.description,
                    "status": dto.status,
                    "value": dto.value,
                }
            )
            session.commit()
        except IntegrityError as exc:
            # Customer removed after the ownership check.
            session.rollback()
            raise NotFoundOrForbidden(
                "Customer not found",
                field="customer_id",
                detail="Customer does not exist or access denied",
            ) from exc

        logger.info(
            "crm.lead.created",
            extra={"user_id": principal.user_id, "customer_id": str(dto.customer_id), "entity_id": str(lead.id)},
        )
        return _lead_read(lead)

    def update_lead(
        self,
        session: Session,
        principal: Principal,
        lead_id: uuid.UUID,
        dto: LeadUpdate,
    ) -> LeadRead:
        OwnershipResolver.for_session(session).require_opportunity(principal, lead_id)

        changes = dto.changes()
        if "title" in changes:
            changes["title"] = changes["title"].strip()

        lead = LeadRepository(session).update(lead_id, changes)
        if lead is None:
            session.rollback()
            raise NotFoundOrForbidden("Lead not found", detail="Lead does not exist or access denied")
        session.commit()
        session.refresh(lead)
        return _lead_read(lead)

    def delete_lead(self, session: Session, principal: Principal, lead_id: uuid.UUID) -> None:
        OwnershipResolver.for_session(session).require_opportunity(principal, lead_id)
        if not LeadRepository(session).delete(lead_id):
            session.rollback()
            raise NotFoundOrForbidden("Lead not found", detail="Lead does not exist or access denied")
        session.commit()


class ReportService:
    def summary(self, session: Session, principal: Principal) -> ReportSummary:
        leads = OwnershipResolver.for_session(session).scoped_opportunities(principal)
        total_customers = CustomerRepository(session).count_by_owner(principal.id)

        status_counts: Counter[str] = Counter()
        value_by_status: defaultdict[str, Decimal] = defaultdict(Decimal)
        leads_by_month: Counter[str] = Counter()
        total_value = Decimal(0)
        for lead in leads:
            value = Decimal(lead.value) if lead.value is not None else Decimal(0)
            status_counts[lead.status] += 1
            value_by_status[lead.status] += value
            leads_by_month[lead.created_at.strftime("%Y-%m")] += 1
            total_value += value

        converted_count = status_counts.get(LeadStatus.CONVERTED.value, 0)
        conversion_rate = round(converted_count * 100 / len(leads), 1) if leads else 0.0

        return ReportSummary(
            total_customers=total_customers,
            total_leads=len(leads),
            total_value=float(total_value),
            converted_count=converted_count,
            conversion_rate=conversion_rate,
            status_counts=dict(status_counts),
            value_by_status={status: float(value) for status, value in value_by_status.items()},
            leads_by_month=dict(sorted(leads_by_month.items())),
        )

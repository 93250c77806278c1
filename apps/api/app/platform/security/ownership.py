from __future__ import annotations

import logging
import uuid

from sqlalchemy.orm import Session

from app.core.errors import NotFoundOrForbidden
from app.crm.models import CRMCustomer, CRMLead
from app.crm.repositories import CustomerRepository, LeadRepository
from app.metrics import observe_ownership_denied
from app.platform.security.context import Principal


logger = logging.getLogger("app.security.ownership")


class OwnershipResolver:
    """Decides whether a principal owns a customer or, through its customer, a lead.

    The principal's role is never consulted: admins are scoped to their own
    records exactly like regular users.
    """

    def __init__(self, customers: CustomerRepository, leads: LeadRepository) -> None:
        self.customers = customers
        self.leads = leads

    @classmethod
    def for_session(cls, session: Session) -> OwnershipResolver:
        return cls(CustomerRepository(session), LeadRepository(session))

    def owns_account(self, principal: Principal, account_id: uuid.UUID) -> bool:
        return self._owned_account(principal, account_id) is not None

    def owns_opportunity(self, principal: Principal, opportunity_id: uuid.UUID) -> bool:
        return self._owned_opportunity(principal, opportunity_id) is not None

    def require_account(self, principal: Principal, account_id: uuid.UUID, *, field: str = "id") -> CRMCustomer:
        customer = self._owned_account(principal, account_id)
        if customer is None:
            self._deny(principal, self.customers.resource, account_id)
            raise NotFoundOrForbidden(
                "Customer not found",
                field=field,
                detail="Customer does not exist or access denied",
            )
        return customer

    def require_opportunity(self, principal: Principal, opportunity_id: uuid.UUID, *, field: str = "id") -> CRMLead:
        lead = self._owned_opportunity(principal, opportunity_id)
        if lead is None:
            self._deny(principal, self.leads.resource, opportunity_id)
            raise NotFoundOrForbidden(
                "Lead not found",
                field=field,
                detail="Lead does not exist or access denied",
            )
        return lead

    def scoped_opportunities(self, principal: Principal, account_id: uuid.UUID | None = None) -> list[CRMLead]:
        if account_id is None:
            return self.leads.list_by_owner(principal.id)
        self.require_account(principal, account_id, field="customer_id")
        return self.leads.list_by_account(account_id)

    def _owned_account(self, principal: Principal, account_id: uuid.UUID) -> CRMCustomer | None:
        customer = self.customers.get(account_id)
        if customer is None or customer.owner_user_id != principal.id:
            return None
        return customer

    def _owned_opportunity(self, principal: Principal, opportunity_id: uuid.UUID) -> CRMLead | None:
        lead = self.leads.get(opportunity_id)
        if lead is None:
            return None
        # A dangling customer reference reads as "not owned".
        if self._owned_account(principal, lead.customer_id) is None:
            return None
        return lead

    @staticmethod
    def _deny(principal: Principal, resource: str, entity_id: uuid.UUID) -> None:
        observe_ownership_denied(resource)
        logger.info(
            "crm.ownership.denied",
            extra={"user_id": principal.user_id, "resource": resource, "entity_id": str(entity_id)},
        )

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Select, delete, func, select

from app.crm.models import CRMCustomer, CRMLead
from app.platform.repository import BaseRepository


class CustomerRepository(BaseRepository[CRMCustomer]):
    model = CRMCustomer
    resource = "crm.customer"
    updatable_fields = frozenset({"name", "email", "phone", "company"})

    def list_by_owner(
        self,
        owner_id: uuid.UUID,
        *,
        search: str | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[CRMCustomer]:
        stmt = self._owner_query(owner_id, search).order_by(CRMCustomer.created_at.desc(), CRMCustomer.id)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt).all())

    def count_by_owner(self, owner_id: uuid.UUID, *, search: str | None = None) -> int:
        stmt = select(func.count()).select_from(self._owner_query(owner_id, search).subquery())
        return int(self.session.scalar(stmt) or 0)

    @staticmethod
    def _owner_query(owner_id: uuid.UUID, search: str | None) -> Select[Any]:
        stmt = select(CRMCustomer).where(CRMCustomer.owner_user_id == owner_id)
        if search:
            stmt = stmt.where(CRMCustomer.name.icontains(search, autoescape=True))
        return stmt


class LeadRepository(BaseRepository[CRMLead]):
    model = CRMLead
    resource = "crm.lead"
    updatable_fields = frozenset({"title", "description", "status", "value"})

    def list_by_account(self, customer_id: uuid.UUID) -> list[CRMLead]:
        stmt = select(CRMLead).where(CRMLead.customer_id == customer_id).order_by(CRMLead.created_at, CRMLead.id)
        return list(self.session.scalars(stmt).all())

    def count_by_account(self, customer_id: uuid.UUID) -> int:
        stmt = select(func.count()).select_from(CRMLead).where(CRMLead.customer_id == customer_id)
        return int(self.session.scalar(stmt) or 0)

    def list_by_owner(self, owner_id: uuid.UUID) -> list[CRMLead]:
        # Leads carry no owner column; ownership is read through the customer.
        stmt = (
            select(CRMLead)
            .join(CRMCustomer, CRMCustomer.id == CRMLead.customer_id)
            .where(CRMCustomer.owner_user_id == owner_id)
            .order_by(CRMLead.created_at.desc(), CRMLead.id)
        )
        return list(self.session.scalars(stmt).all())

    def delete_by_account(self, customer_id: uuid.UUID) -> int:
        result = self.session.execute(delete(CRMLead).where(CRMLead.customer_id == customer_id))
        return int(result.rowcount or 0)

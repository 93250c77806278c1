from __future__ import annotations

import logging
import uuid

from opentelemetry import trace
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import CascadeFailure, NotFoundOrForbidden
from app.crm.repositories import CustomerRepository, LeadRepository
from app.metrics import observe_cascade_delete


logger = logging.getLogger("app.crm.cascade")
tracer = trace.get_tracer("app.crm.cascade")


class CascadeCoordinator:
    """Removes a customer together with every lead that references it.

    Leads are deleted and flushed first, the customer second, and both run in
    the session's single transaction. Any failure rolls the whole thing back,
    so the customer is never removed while one of its leads survives.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self.customers = CustomerRepository(session)
        self.leads = LeadRepository(session)

    def delete_account_cascade(self, account_id: uuid.UUID) -> int:
        with tracer.start_as_current_span("crm.customer.cascade_delete") as span:
            span.set_attribute("crm.customer_id", str(account_id))
            try:
                deleted_leads = self._delete_leads(account_id)
                if not self.customers.delete(account_id):
                    raise NotFoundOrForbidden(
                        "Customer not found",
                        detail="Customer does not exist or access denied",
                    )
                self.session.commit()
            except NotFoundOrForbidden:
                self.session.rollback()
                observe_cascade_delete("not_found")
                raise
            except CascadeFailure as exc:
                self.session.rollback()
                self._record_failure(account_id, str(exc.errors[0].message))
                raise
            except SQLAlchemyError as exc:
                self.session.rollback()
                self._record_failure(account_id, str(exc))
                raise CascadeFailure(
                    "Failed to delete customer",
                    field="general",
                    detail="Associated leads could not be removed; customer left intact",
                ) from exc

            span.set_attribute("crm.deleted_leads", deleted_leads)

        observe_cascade_delete("deleted", deleted_leads)
        logger.info(
            "crm.customer.cascade_deleted",
            extra={"customer_id": str(account_id), "deleted_leads": deleted_leads},
        )
        return deleted_leads

    def _delete_leads(self, account_id: uuid.UUID) -> int:
        deleted = self.leads.delete_by_account(account_id)
        self.session.flush()
        remaining = self.leads.count_by_account(account_id)
        if remaining:
            raise CascadeFailure(
                "Failed to delete customer",
                field="general",
                detail=f"{remaining} associated lead(s) could not be removed; customer left intact",
            )
        return deleted

    def _record_failure(self, account_id: uuid.UUID, error: str) -> None:
        observe_cascade_delete("failed")
        logger.error(
            "crm.customer.cascade_failed",
            extra={"customer_id": str(account_id), "error": error},
        )

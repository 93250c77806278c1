from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.crm.schemas import (
    CustomerCreate,
    CustomerDetailResponse,
    CustomerListResponse,
    CustomerResponse,
    CustomerUpdate,
    DeleteResponse,
    LeadCreate,
    LeadListResponse,
    LeadResponse,
    LeadUpdate,
    ReportSummaryResponse,
)
from app.crm.service import CustomerService, LeadService, ReportService
from app.libs.auth import Principal, require_user_or_admin

router = APIRouter(prefix="/api/customers", tags=["crm.customers"])
leads_router = APIRouter(prefix="/api/leads", tags=["crm.leads"])
reports_router = APIRouter(prefix="/api/reports", tags=["crm.reports"])
service = CustomerService()
lead_service = LeadService()
report_service = ReportService()


def get_current_user(principal: Principal = Depends(require_user_or_admin)) -> Principal:
    return principal


@router.get("", response_model=CustomerListResponse)
def list_customers(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    search: str | None = Query(default=None, max_length=100),
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
) -> CustomerListResponse:
    limit = min(limit, get_settings().customers_page_size_max)
    result = service.list_customers(db, user, page=page, limit=limit, search=search or None)
    return CustomerListResponse(customers=result.customers, pagination=result.pagination)


@router.get("/{customer_id}", response_model=CustomerDetailResponse)
def get_customer(
    customer_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
) -> CustomerDetailResponse:
    detail = service.get_customer(db, user, customer_id)
    return CustomerDetailResponse(customer=detail.customer, leads=detail.leads)


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
def create_customer(
    dto: CustomerCreate,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
) -> CustomerResponse:
    customer = service.create_customer(db, user, dto)
    return CustomerResponse(message="Customer added successfully", customer=customer)


@router.put("/{customer_id}", response_model=CustomerResponse)
@router.patch("/{customer_id}", response_model=CustomerResponse)
def update_customer(
    customer_id: uuid.UUID,
    dto: CustomerUpdate,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
) -> CustomerResponse:
    customer = service.update_customer(db, user, customer_id, dto)
    return CustomerResponse(message="Customer updated successfully", customer=customer)


@router.delete("/{customer_id}", response_model=DeleteResponse)
def delete_customer(
    customer_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
) -> DeleteResponse:
    deleted_leads = service.delete_customer(db, user, customer_id)
    return DeleteResponse(
        message="Customer and associated leads deleted successfully",
        deleted_leads=deleted_leads,
    )


@leads_router.get("", response_model=LeadListResponse)
def list_leads(
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
) -> LeadListResponse:
    return LeadListResponse(leads=lead_service.list_leads(db, user))


@leads_router.get("/customer/{customer_id}", response_model=LeadListResponse)
def list_leads_for_customer(
    customer_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
) -> LeadListResponse:
    return LeadListResponse(leads=lead_service.list_leads_for_customer(db, user, customer_id))


@leads_router.get("/{lead_id}", response_model=LeadResponse)
def get_lead(
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
) -> LeadResponse:
    return LeadResponse(lead=lead_service.get_lead(db, user, lead_id))


@leads_router.post("", response_model=LeadResponse, status_code=status.HTTP_201_CREATED)
def create_lead(
    dto: LeadCreate,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
) -> LeadResponse:
    lead = lead_service.create_lead(db, user, dto)
    return LeadResponse(message="Lead added successfully", lead=lead)


@leads_router.put("/{lead_id}", response_model=LeadResponse)
@leads_router.patch("/{lead_id}", response_model=LeadResponse)
def update_lead(
    lead_id: uuid.UUID,
    dto: LeadUpdate,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
) -> LeadResponse:
    lead = lead_service.update_lead(db, user, lead_id, dto)
    return LeadResponse(message="Lead updated successfully", lead=lead)


@leads_router.delete("/{lead_id}", response_model=DeleteResponse)
def delete_lead(
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
) -> DeleteResponse:
    lead_service.delete_lead(db, user, lead_id)
    return DeleteResponse(message="Lead deleted successfully")


@reports_router.get("/summary", response_model=ReportSummaryResponse)
def report_summary(
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
) -> ReportSummaryResponse:
    return ReportSummaryResponse(summary=report_service.summary(db, user))

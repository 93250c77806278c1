from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator


LeadStatusValue = Literal["New", "Contacted", "Converted", "Lost"]
PhoneNumber = Annotated[str, Field(pattern=r"^$|^\+?[1-9]\d{0,15}$")]
LeadValue = Annotated[Decimal, Field(ge=0, le=999_999_999)]


class _PartialUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def _require_any_field(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data:
            raise ValueError("At least one field must be provided for update")
        return data

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class CustomerCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    phone: PhoneNumber | None = None
    company: str | None = Field(default=None, max_length=100)


class CustomerUpdate(_PartialUpdate):
    name: str | None = Field(default=None, min_length=2, max_length=100)
    email: EmailStr | None = None
    phone: PhoneNumber | None = None
    company: str | None = Field(default=None, max_length=100)

    @model_validator(mode="after")
    def _required_fields_not_null(self) -> CustomerUpdate:
        for field_name in ("name", "email"):
            if field_name in self.model_fields_set and getattr(self, field_name) is None:
                raise ValueError(f"{field_name} cannot be null")
        return self


class CustomerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    phone: str | None
    company: str | None
    owner_user_id: UUID
    created_at: datetime
    updated_at: datetime


class LeadCreate(BaseModel):
    customer_id: UUID
    title: str = Field(min_length=2, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    status: LeadStatusValue = "New"
    value: LeadValue | None = None


class LeadUpdate(_PartialUpdate):
    title: str | None = Field(default=None, min_length=2, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    status: LeadStatusValue | None = None
    value: LeadValue | None = None

    @model_validator(mode="after")
    def _required_fields_not_null(self) -> LeadUpdate:
        for field_name in ("title", "status"):
            if field_name in self.model_fields_set and getattr(self, field_name) is None:
                raise ValueError(f"{field_name} cannot be null")
        return self


class LeadRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    customer_id: UUID
    title: str
    description: str | None
    status: LeadStatusValue
    value: float | None
    created_at: datetime
    updated_at: datetime


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_customers: int
    has_next: bool
    has_prev: bool


class CustomerListResponse(BaseModel):
    success: bool = True
    customers: list[CustomerRead]
    pagination: Pagination


class CustomerDetailResponse(BaseModel):
    success: bool = True
    customer: CustomerRead
    leads: list[LeadRead]


class CustomerResponse(BaseModel):
    success: bool = True
    message: str
    customer: CustomerRead


class LeadListResponse(BaseModel):
    success: bool = True
    leads: list[LeadRead]


class LeadResponse(BaseModel):
    success: bool = True
    message: str | None = None
    lead: LeadRead


class DeleteResponse(BaseModel):
    success: bool = True
    message: str
    deleted_leads: int | None = None


class ReportSummary(BaseModel):
    total_customers: int
    total_leads: int
    total_value: float
    converted_count: int
    conversion_rate: float
    status_counts: dict[str, int]
    value_by_status: dict[str, float]
    leads_by_month: dict[str, int]


class ReportSummaryResponse(BaseModel):
    success: bool = True
    summary: ReportSummary

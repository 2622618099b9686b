"""Pydantic schemas.

Defines validation for incoming payloads and the response shapes of the API,
including the role-tagged insight bundles handed to the narrative generator.
"""

from __future__ import annotations

import datetime as dt
from typing import Annotated, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from sideledger.errors import ValidationError as LedgerValidationError
from sideledger.models import (
    AttendanceStatus,
    ExpenseCategory,
    ExpenseStatus,
    InvoiceStatus,
    ProjectStatus,
    Role,
    WorkerStatus,
)
from sideledger.services_attendance import normalize_attendance_date


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# --- identity -----------------------------------------------------------------


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class WorkerRegister(BaseModel):
    name: str = Field(min_length=2, max_length=120)
    email: EmailStr
    password: str = Field(min_length=8)
    phone: str = Field(min_length=5, max_length=40)
    worker_role: str = Field(min_length=2, max_length=80)
    specialty: str = Field(min_length=2, max_length=120)
    daily_rate: float = Field(gt=0)


class UserCreate(BaseModel):
    name: str = Field(min_length=2, max_length=120)
    email: EmailStr
    password: str = Field(min_length=8)
    role: Role = Role.WORKER
    phone: str | None = None
    worker_role: str | None = None
    specialty: str | None = None
    daily_rate: float | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _employment_fields_match_role(self) -> UserCreate:
        if self.role == Role.WORKER and self.daily_rate is None:
            raise ValueError("daily_rate is required for workers")
        if self.role == Role.ADMIN:
            # Employment attributes are meaningless for admins.
            self.phone = self.worker_role = self.specialty = None
            self.daily_rate = None
        return self


class WorkerUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=120)
    phone: str | None = None
    worker_role: str | None = None
    specialty: str | None = None
    daily_rate: float | None = Field(default=None, gt=0)


class WorkerSummary(ORMModel):
    id: int
    name: str
    worker_role: str | None = None


class UserRead(ORMModel):
    id: int
    name: str
    email: str
    role: Role
    status: WorkerStatus
    phone: str | None = None
    worker_role: str | None = None
    specialty: str | None = None
    daily_rate: float | None = None
    created_at: dt.datetime | None = None


class AuthResponse(BaseModel):
    token: str
    user: UserRead


class CsrfResponse(BaseModel):
    csrf_token: str


class MessageResponse(BaseModel):
    message: str


# --- projects -----------------------------------------------------------------


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=140)
    client: str = Field(min_length=1, max_length=140)
    location: str = Field(min_length=1, max_length=200)
    budget: float = Field(gt=0)
    start_date: dt.date
    end_date: dt.date | None = None
    status: ProjectStatus = ProjectStatus.ACTIVE
    description: str | None = None
    worker_ids: list[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def _end_after_start(self) -> ProjectCreate:
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ProjectUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=140)
    client: str | None = Field(default=None, min_length=1, max_length=140)
    location: str | None = Field(default=None, min_length=1, max_length=200)
    budget: float | None = Field(default=None, gt=0)
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    status: ProjectStatus | None = None
    description: str | None = None
    worker_ids: list[int] | None = None


class ProjectRead(ORMModel):
    id: int
    name: str
    client: str
    location: str
    budget: float
    start_date: dt.date
    end_date: dt.date | None = None
    status: ProjectStatus
    description: str | None = None
    created_at: dt.datetime | None = None
    workers: list[WorkerSummary] = Field(default_factory=list)


# --- attendance ---------------------------------------------------------------


class AttendanceMark(BaseModel):
    worker_id: int | None = None
    date: dt.date
    status: AttendanceStatus | None = None
    time_in: dt.datetime | None = None
    time_out: dt.datetime | None = None
    notes: str | None = None

    @field_validator("date", mode="before")
    @classmethod
    def _truncate_to_day(cls, value: object) -> object:
        if value is None:
            return value
        try:
            return normalize_attendance_date(value)
        except LedgerValidationError as exc:
            raise ValueError(exc.message) from exc


class AttendanceRead(ORMModel):
    id: int
    worker_id: int
    worker: WorkerSummary | None = None
    date: dt.date
    status: AttendanceStatus
    time_in: dt.datetime | None = None
    time_out: dt.datetime | None = None
    notes: str | None = None


# --- expenses & invoices ------------------------------------------------------


class ExpenseItemIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    quantity: float = Field(default=1, ge=0)
    unit_price: float = Field(ge=0, validation_alias=AliasChoices("unit_price", "price"))
    gst_rate: float | None = Field(default=None, ge=0)


class ExpenseItemRead(ORMModel):
    name: str
    quantity: float
    unit_price: float
    gst_rate: float | None = None
    amount: float


class ExpenseCreate(BaseModel):
    vendor: str = Field(min_length=1, max_length=200)
    category: ExpenseCategory
    sub_category: str | None = None
    items: list[ExpenseItemIn] = Field(min_length=1)
    invoice_number: str | None = None
    invoice_date: dt.date = Field(default_factory=dt.date.today)
    invoice_url: str | None = None
    status: ExpenseStatus = ExpenseStatus.PENDING
    payment_date: dt.date | None = None
    notes: str | None = None
    project_id: int | None = None


class ExpenseUpdate(BaseModel):
    vendor: str | None = Field(default=None, min_length=1, max_length=200)
    category: ExpenseCategory | None = None
    sub_category: str | None = None
    items: list[ExpenseItemIn] | None = None
    invoice_number: str | None = None
    invoice_date: dt.date | None = None
    invoice_url: str | None = None
    status: ExpenseStatus | None = None
    payment_date: dt.date | None = None
    notes: str | None = None
    project_id: int | None = None


class ExpenseRead(ORMModel):
    id: int
    vendor: str
    category: ExpenseCategory
    sub_category: str | None = None
    items: list[ExpenseItemRead]
    total_amount: float
    total_gst: float
    invoice_number: str | None = None
    invoice_date: dt.date
    invoice_url: str | None = None
    status: ExpenseStatus
    payment_date: dt.date | None = None
    notes: str | None = None
    project_id: int | None = None


class InvoiceItemIn(BaseModel):
    description: str = Field(min_length=1, max_length=300)
    quantity: float = Field(default=1, ge=0)
    unit_price: float = Field(ge=0, validation_alias=AliasChoices("unit_price", "rate"))


class InvoiceItemRead(ORMModel):
    description: str
    quantity: float
    unit_price: float
    amount: float


class InvoiceCreate(BaseModel):
    invoice_number: str = Field(min_length=1, max_length=80)
    date: dt.date
    due_date: dt.date | None = None
    company_name: str = Field(min_length=1, max_length=200)
    company_address: str | None = None
    company_email: EmailStr | None = None
    company_phone: str | None = None
    client_name: str = Field(min_length=1, max_length=200)
    client_address: str | None = None
    client_email: EmailStr | None = None
    items: list[InvoiceItemIn] = Field(min_length=1)
    status: InvoiceStatus = InvoiceStatus.DRAFT
    notes: str | None = None
    project_id: int | None = None


class InvoiceUpdate(BaseModel):
    invoice_number: str | None = Field(default=None, min_length=1, max_length=80)
    date: dt.date | None = None
    due_date: dt.date | None = None
    company_name: str | None = Field(default=None, min_length=1, max_length=200)
    company_address: str | None = None
    company_email: EmailStr | None = None
    company_phone: str | None = None
    client_name: str | None = Field(default=None, min_length=1, max_length=200)
    client_address: str | None = None
    client_email: EmailStr | None = None
    items: list[InvoiceItemIn] | None = None
    status: InvoiceStatus | None = None
    notes: str | None = None
    project_id: int | None = None


class InvoiceRead(ORMModel):
    id: int
    invoice_number: str
    date: dt.date
    due_date: dt.date | None = None
    company_name: str
    company_address: str | None = None
    company_email: str | None = None
    company_phone: str | None = None
    client_name: str
    client_address: str | None = None
    client_email: str | None = None
    items: list[InvoiceItemRead]
    total_amount: float
    status: InvoiceStatus
    notes: str | None = None
    project_id: int | None = None


# --- OCR ----------------------------------------------------------------------


class ScanRequest(BaseModel):
    image_url: str


class ScannedItem(BaseModel):
    name: str = ""
    quantity: float = 1
    price: float = 0
    gst_rate: float | None = None
    amount: float = 0


class ScannedInvoice(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    vendor: str = ""
    invoice_number: str = Field(default="", validation_alias=AliasChoices("invoice_number", "invoiceNumber"))
    date: str = ""
    items: list[ScannedItem] = Field(default_factory=list)
    total_amount: float = Field(default=0, validation_alias=AliasChoices("total_amount", "totalAmount"))
    total_gst: float = Field(default=0, validation_alias=AliasChoices("total_gst", "totalGst"))


# --- analytics & insights -----------------------------------------------------


class PeriodTotalsOut(ORMModel):
    revenue: float
    expense: float
    profit: float


class WorkerLeavesOut(ORMModel):
    worker_id: int
    name: str
    leaves: int


class ProjectStatOut(BaseModel):
    project_id: int
    name: str
    worker_count: int
    revenue: float
    expense: float
    profit: float
    margin: float
    worker_leaves: list[WorkerLeavesOut] = Field(default_factory=list)


class AdminInsightInput(BaseModel):
    role: Literal["admin"] = "admin"
    total_projects: int
    total_workers: int
    monthly_stats: PeriodTotalsOut
    lifetime_stats: PeriodTotalsOut
    project_stats: list[ProjectStatOut]
    global_leaves: list[WorkerLeavesOut]


class WorkerInsightInput(BaseModel):
    role: Literal["worker"] = "worker"
    worker_name: str
    projects_involved: list[str]
    days_present: int
    days_absent: int
    daily_rate: float
    estimated_wages: float


InsightInput = Annotated[Union[AdminInsightInput, WorkerInsightInput], Field(discriminator="role")]


class InsightsResponse(BaseModel):
    insights: str
    data: InsightInput


class DashboardStatsOut(BaseModel):
    total_projects: int
    active_workers: int
    monthly_expenses: float
    recent_projects: list[ProjectRead]


class CostBreakdownRow(BaseModel):
    category: str
    total: float

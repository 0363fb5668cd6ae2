"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Payroll run schemas
# ============================================================================


class PayrollRunCreate(BaseModel):
    """Schema for creating a new payroll run."""

    period_start: date
    period_end: date
    pay_date: date
    payroll_number: str | None = None
    description: str = ""
    created_by: str | None = None


class PayrollRunResponse(BaseModel):
    """Schema for payroll run response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_header_id: UUID
    company_id: UUID
    payroll_number: str
    description: str
    period_start: date
    period_end: date
    pay_date: date
    status: str
    total_gross_pay: Decimal
    total_deductions: Decimal
    total_net_pay: Decimal
    total_employer_cost: Decimal
    employee_count: int
    row_version: int
    calculated_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by: str | None = None
    paid_at: datetime | None = None
    payment_reference: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None
    cancel_reason: str | None = None
    created_at: datetime
    updated_at: datetime


class PayrollRunListResponse(BaseModel):
    """Schema for listing payroll runs."""

    items: list[PayrollRunResponse]
    total: int


# ============================================================================
# Detail schemas
# ============================================================================


class DeductionLineResponse(BaseModel):
    """Schema for one ordered deduction line."""

    model_config = ConfigDict(from_attributes=True)

    line_number: int
    source_kind: str
    source_id: UUID
    priority: int
    deduction_type: str
    description: str
    amount: Decimal


class PayrollDetailResponse(BaseModel):
    """Schema for an employee's payroll detail."""

    model_config = ConfigDict(from_attributes=True)

    payroll_detail_id: UUID
    employee_id: UUID
    base_pay: Decimal
    overtime_hours: Decimal
    overtime_pay: Decimal
    gross_pay: Decimal
    income_tax: Decimal
    css_employee: Decimal
    css_employer: Decimal
    se_employee: Decimal
    se_employer: Decimal
    risk_premium: Decimal
    other_deductions_total: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    employer_cost: Decimal
    inputs_fingerprint: str
    deduction_lines: list[DeductionLineResponse] = Field(default_factory=list)


class PayrollDetailListResponse(BaseModel):
    """Schema for listing the details of a run."""

    payroll_header_id: UUID
    items: list[PayrollDetailResponse]
    total: int


# ============================================================================
# Workflow schemas
# ============================================================================


class ApprovalRequest(BaseModel):
    """Schema for approval request."""

    actor: str | None = None


class CancelRequest(BaseModel):
    """Schema for cancel request."""

    reason: str = Field(min_length=1)
    actor: str | None = None


class PaymentRequest(BaseModel):
    """Schema for marking a run as paid."""

    payment_reference: str | None = None
    actor: str | None = None


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None

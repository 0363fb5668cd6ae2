"""Payroll run API endpoints."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Path, Query, status
from fastapi.responses import JSONResponse

from planilla_engine.api.dependencies import CompanyId, RunService
from planilla_engine.api.schemas import (
    ApprovalRequest,
    CancelRequest,
    ErrorResponse,
    PaymentRequest,
    PayrollDetailListResponse,
    PayrollDetailResponse,
    PayrollRunCreate,
    PayrollRunListResponse,
    PayrollRunResponse,
)
from planilla_engine.exceptions import PayrollHeaderNotFoundError
from planilla_engine.models import PayrollHeader
from planilla_engine.results import (
    ConfigurationMissing,
    InvalidInput,
    InvalidStateTransition,
    Ok,
    Outcome,
)
from planilla_engine.services.payroll_run_service import PayrollRunService

router = APIRouter(prefix="/payroll-runs", tags=["payroll-runs"])

WORKFLOW_RESPONSES: dict[int | str, dict[str, Any]] = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


def _error(
    status_code: int, message: str, code: str, context: dict[str, Any]
) -> JSONResponse:
    body = ErrorResponse(detail=message, code=code, context=context)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _unwrap(outcome: Outcome[PayrollHeader]) -> PayrollRunResponse | JSONResponse:
    """Turn a service outcome into a response or an ``ErrorResponse`` body."""
    if isinstance(outcome, Ok):
        return PayrollRunResponse.model_validate(outcome.value)
    if isinstance(outcome, InvalidStateTransition):
        return _error(
            status.HTTP_409_CONFLICT,
            outcome.message,
            "INVALID_STATE_TRANSITION",
            {"from_status": outcome.from_status, "to_status": outcome.to_status},
        )
    if isinstance(outcome, ConfigurationMissing):
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            outcome.message,
            "CONFIGURATION_MISSING",
            {
                "config_kind": outcome.config_kind,
                "as_of_date": outcome.as_of_date.isoformat(),
            },
        )
    if isinstance(outcome, InvalidInput):
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            outcome.message,
            "INVALID_INPUT",
            {
                "employee_id": str(outcome.employee_id) if outcome.employee_id else None,
                "field": outcome.field,
            },
        )
    raise TypeError(f"Unexpected outcome {outcome!r}")


async def _get_company_header(
    service: PayrollRunService, company_id: UUID, payroll_header_id: UUID
) -> PayrollHeader:
    """Load a header, hiding runs that belong to another company."""
    header = await service.get_header(payroll_header_id)
    if header.company_id != company_id:
        raise PayrollHeaderNotFoundError(payroll_header_id)
    return header


# ============================================================================
# Payroll run CRUD
# ============================================================================


@router.post(
    "",
    response_model=PayrollRunResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def create_payroll_run(
    service: RunService,
    company_id: CompanyId,
    payload: PayrollRunCreate,
) -> PayrollRunResponse:
    """Create a new payroll run in draft status."""
    header = await service.create_header(
        company_id=company_id,
        period_start=payload.period_start,
        period_end=payload.period_end,
        pay_date=payload.pay_date,
        payroll_number=payload.payroll_number,
        description=payload.description,
        created_by=payload.created_by,
    )
    return PayrollRunResponse.model_validate(header)


@router.get("", response_model=PayrollRunListResponse)
async def list_payroll_runs(
    service: RunService,
    company_id: CompanyId,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> PayrollRunListResponse:
    """List payroll runs for a company, optionally filtered by status."""
    headers = await service.list_headers(company_id, status_filter)
    return PayrollRunListResponse(
        items=[PayrollRunResponse.model_validate(h) for h in headers],
        total=len(headers),
    )


@router.get(
    "/{payroll_header_id}",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_run(
    service: RunService,
    company_id: CompanyId,
    payroll_header_id: Annotated[UUID, Path()],
) -> PayrollRunResponse:
    """Get a specific payroll run by ID."""
    header = await _get_company_header(service, company_id, payroll_header_id)
    return PayrollRunResponse.model_validate(header)


@router.get(
    "/{payroll_header_id}/details",
    response_model=PayrollDetailListResponse,
    responses={404: {"model": ErrorResponse}},
)
async def list_payroll_details(
    service: RunService,
    company_id: CompanyId,
    payroll_header_id: Annotated[UUID, Path()],
) -> PayrollDetailListResponse:
    """List the per-employee details of a payroll run."""
    await _get_company_header(service, company_id, payroll_header_id)
    details = await service.get_details(payroll_header_id)
    return PayrollDetailListResponse(
        payroll_header_id=payroll_header_id,
        items=[PayrollDetailResponse.model_validate(d) for d in details],
        total=len(details),
    )


# ============================================================================
# Workflow
# ============================================================================


@router.post(
    "/{payroll_header_id}/calculate",
    response_model=PayrollRunResponse,
    responses=WORKFLOW_RESPONSES,
)
async def calculate_payroll_run(
    service: RunService,
    company_id: CompanyId,
    payroll_header_id: Annotated[UUID, Path()],
) -> PayrollRunResponse | JSONResponse:
    """Calculate (or recalculate) a draft or calculated run."""
    await _get_company_header(service, company_id, payroll_header_id)
    return _unwrap(await service.calculate_run(payroll_header_id))


@router.post(
    "/{payroll_header_id}/approve",
    response_model=PayrollRunResponse,
    responses=WORKFLOW_RESPONSES,
)
async def approve_payroll_run(
    service: RunService,
    company_id: CompanyId,
    payroll_header_id: Annotated[UUID, Path()],
    payload: ApprovalRequest | None = None,
) -> PayrollRunResponse | JSONResponse:
    """Approve a calculated run."""
    await _get_company_header(service, company_id, payroll_header_id)
    actor = payload.actor if payload else None
    return _unwrap(await service.approve_run(payroll_header_id, actor))


@router.post(
    "/{payroll_header_id}/pay",
    response_model=PayrollRunResponse,
    responses=WORKFLOW_RESPONSES,
)
async def pay_payroll_run(
    service: RunService,
    company_id: CompanyId,
    payroll_header_id: Annotated[UUID, Path()],
    payload: PaymentRequest | None = None,
) -> PayrollRunResponse | JSONResponse:
    """Mark an approved run as paid."""
    await _get_company_header(service, company_id, payroll_header_id)
    payload = payload or PaymentRequest()
    return _unwrap(
        await service.mark_paid(
            payroll_header_id,
            payment_reference=payload.payment_reference,
            actor=payload.actor,
        )
    )


@router.post(
    "/{payroll_header_id}/cancel",
    response_model=PayrollRunResponse,
    responses=WORKFLOW_RESPONSES,
)
async def cancel_payroll_run(
    service: RunService,
    company_id: CompanyId,
    payroll_header_id: Annotated[UUID, Path()],
    payload: CancelRequest,
) -> PayrollRunResponse | JSONResponse:
    """Cancel a draft or calculated run."""
    await _get_company_header(service, company_id, payroll_header_id)
    return _unwrap(
        await service.cancel_run(payroll_header_id, payload.actor, payload.reason)
    )

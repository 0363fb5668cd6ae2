"""Payroll run service - lifecycle and persistence of payroll runs."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from planilla_engine.calculators.engine import PayrollCalculationOrchestrator, RunCalculation
from planilla_engine.calculators.line_builder import LineItemBuilder
from planilla_engine.calculators.types import ZERO, DeductionSourceKind, PayPeriod
from planilla_engine.exceptions import (
    ConcurrentModificationError,
    InvalidInputError,
    PayrollError,
    PayrollHeaderNotFoundError,
)
from planilla_engine.models import (
    Advance,
    AuditEvent,
    Loan,
    LoanPayment,
    PayrollDetail,
    PayrollDetailDeduction,
    PayrollHeader,
)
from planilla_engine.providers.sql import (
    SqlDeductionSource,
    SqlEmployeeSource,
    SqlOvertimeSource,
    SqlTaxTableProvider,
    unpaid_overtime_query,
)
from planilla_engine.results import Ok, Outcome, failure_from_error
from planilla_engine.services.state_machine import (
    PayrollRunStateMachine,
    PayrollRunStatus,
)

logger = logging.getLogger(__name__)


class PayrollRunService:
    """Service for managing the payroll run lifecycle.

    Operations:
    - create_header: Open a draft run for a company and period
    - calculate_run: Compute all details and move to calculated
    - approve_run: Freeze the details and settle what they charged or paid
    - mark_paid: Record the payment of an approved run
    - cancel_run: Abandon a draft or calculated run

    State-changing operations lock the header row, commit once on success and
    roll back on any failure. Payroll failures come back as tagged outcomes;
    an unknown header raises PayrollHeaderNotFoundError.
    """

    def __init__(
        self,
        session: AsyncSession,
        orchestrator: PayrollCalculationOrchestrator | None = None,
    ):
        self.session = session
        self.orchestrator = orchestrator or PayrollCalculationOrchestrator(
            SqlTaxTableProvider(session),
            SqlEmployeeSource(session),
            SqlDeductionSource(session),
            overtime_source=SqlOvertimeSource(session),
        )

    # ===== Reads =====

    async def get_header(self, payroll_header_id: UUID) -> PayrollHeader:
        result = await self.session.execute(
            select(PayrollHeader).where(PayrollHeader.payroll_header_id == payroll_header_id)
        )
        header = result.scalar_one_or_none()
        if header is None:
            raise PayrollHeaderNotFoundError(payroll_header_id)
        return header

    async def list_headers(
        self, company_id: UUID, status: str | None = None
    ) -> list[PayrollHeader]:
        query = select(PayrollHeader).where(PayrollHeader.company_id == company_id)
        if status is not None:
            query = query.where(PayrollHeader.status == status)
        result = await self.session.execute(
            query.order_by(PayrollHeader.period_start.desc(), PayrollHeader.payroll_number)
        )
        return list(result.scalars().all())

    async def get_details(self, payroll_header_id: UUID) -> list[PayrollDetail]:
        """Details of a run ordered by employee, with their deduction lines."""
        await self.get_header(payroll_header_id)
        return await self._load_details(payroll_header_id)

    # ===== Lifecycle =====

    async def create_header(
        self,
        company_id: UUID,
        period_start: date,
        period_end: date,
        pay_date: date,
        payroll_number: str | None = None,
        description: str = "",
        created_by: str | None = None,
    ) -> PayrollHeader:
        """Create a draft payroll run.

        A missing or already used ``payroll_number`` is replaced with the next
        ``YYYY-NNN`` number for the period's year.

        Raises:
            InvalidInputError: period end before period start
        """
        PayPeriod(period_start, period_end)

        if not payroll_number or await self._payroll_number_exists(company_id, payroll_number):
            payroll_number = await self._next_payroll_number(company_id, period_start.year)

        header = PayrollHeader(
            company_id=company_id,
            payroll_number=payroll_number,
            description=description,
            period_start=period_start,
            period_end=period_end,
            pay_date=pay_date,
            status=PayrollRunStatus.DRAFT.value,
            created_by=created_by,
        )
        self.session.add(header)
        try:
            await self.session.flush()
            await self._record_audit(header, "created", created_by)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        await self.session.refresh(header)
        logger.info(
            "Created payroll %s (%s) for company %s",
            header.payroll_number,
            header.payroll_header_id,
            company_id,
        )
        return header

    async def calculate_run(self, payroll_header_id: UUID) -> Outcome[PayrollHeader]:
        """Calculate (or recalculate) every detail of a run.

        All details are computed before anything is written; the details,
        totals and status are then replaced in a single commit.
        """
        try:
            header = await self._lock_header(payroll_header_id)
            PayrollRunStateMachine.require_transition(header, PayrollRunStatus.CALCULATED)
            from_status = header.status
            expected_version = header.row_version

            calculation = await self.orchestrator.calculate_run(header)

            await self._replace_details(header, calculation)
            totals = calculation.totals
            await self._conditional_update(
                header,
                expected_version,
                status=PayrollRunStatus.CALCULATED.value,
                total_gross_pay=totals.total_gross_pay,
                total_deductions=totals.total_deductions,
                total_net_pay=totals.total_net_pay,
                total_employer_cost=totals.total_employer_cost,
                employee_count=totals.employee_count,
                calculated_at=_now(),
            )
            await self._record_audit(
                header,
                f"status_change:{from_status}:{PayrollRunStatus.CALCULATED.value}",
                None,
                before={"status": from_status, "row_version": expected_version},
                after={
                    "employee_count": totals.employee_count,
                    "total_net_pay": str(totals.total_net_pay),
                },
            )
            await self.session.commit()
        except PayrollError as e:
            await self.session.rollback()
            logger.warning("Calculation of payroll %s aborted: %s", payroll_header_id, e)
            return failure_from_error(e)
        except Exception:
            await self.session.rollback()
            raise

        await self.session.refresh(header)
        logger.info(
            "Calculated payroll %s: %d employees, net %s",
            payroll_header_id,
            header.employee_count,
            header.total_net_pay,
        )
        return Ok(header)

    async def approve_run(
        self, payroll_header_id: UUID, actor: str | None = None
    ) -> Outcome[PayrollHeader]:
        """Approve a calculated run, freezing its details.

        The records the details charged or paid are settled in the same
        commit; see ``_settle_details``.
        """
        return await self._transition(
            payroll_header_id,
            PayrollRunStatus.APPROVED,
            actor,
            approved_at=_now(),
            approved_by=actor,
        )

    async def mark_paid(
        self,
        payroll_header_id: UUID,
        payment_reference: str | None = None,
        actor: str | None = None,
    ) -> Outcome[PayrollHeader]:
        """Record the payment of an approved run."""
        return await self._transition(
            payroll_header_id,
            PayrollRunStatus.PAID,
            actor,
            paid_at=_now(),
            payment_reference=payment_reference,
        )

    async def cancel_run(
        self, payroll_header_id: UUID, actor: str | None, reason: str
    ) -> Outcome[PayrollHeader]:
        """Cancel a draft or calculated run. A reason is required."""
        if not reason or not reason.strip():
            return failure_from_error(
                InvalidInputError("Cancelling a payroll run requires a reason", field="reason")
            )
        return await self._transition(
            payroll_header_id,
            PayrollRunStatus.CANCELLED,
            actor,
            cancelled_at=_now(),
            cancelled_by=actor,
            cancel_reason=reason.strip(),
        )

    # ===== Internals =====

    async def _transition(
        self,
        payroll_header_id: UUID,
        to_status: PayrollRunStatus,
        actor: str | None,
        **values: Any,
    ) -> Outcome[PayrollHeader]:
        """Move a header to ``to_status`` with its side-effect columns."""
        try:
            header = await self._lock_header(payroll_header_id)
            from_status = header.status
            expected_version = header.row_version
            detail_count = await self._count_details(payroll_header_id)

            PayrollRunStateMachine.require_transition(header, to_status, detail_count)

            after = {k: _jsonable(v) for k, v in values.items()}
            if to_status is PayrollRunStatus.APPROVED:
                after["settled"] = await self._settle_details(header)

            await self._conditional_update(
                header, expected_version, status=to_status.value, **values
            )
            await self._record_audit(
                header,
                f"status_change:{from_status}:{to_status.value}",
                actor,
                before={"status": from_status, "row_version": expected_version},
                after=after,
            )
            await self.session.commit()
        except PayrollError as e:
            await self.session.rollback()
            logger.info("Payroll %s not moved to %s: %s", payroll_header_id, to_status.value, e)
            return failure_from_error(e)
        except Exception:
            await self.session.rollback()
            raise

        await self.session.refresh(header)
        logger.info("Payroll %s moved %s -> %s", payroll_header_id, from_status, to_status.value)
        return Ok(header)

    async def _lock_header(self, payroll_header_id: UUID) -> PayrollHeader:
        """Load a header with a row lock held until commit/rollback."""
        result = await self.session.execute(
            select(PayrollHeader)
            .where(PayrollHeader.payroll_header_id == payroll_header_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        header = result.scalar_one_or_none()
        if header is None:
            raise PayrollHeaderNotFoundError(payroll_header_id)
        return header

    async def _conditional_update(
        self, header: PayrollHeader, expected_version: int, **values: Any
    ) -> None:
        """Update the header only if nobody bumped its row version meanwhile."""
        result = await self.session.execute(
            update(PayrollHeader)
            .where(
                PayrollHeader.payroll_header_id == header.payroll_header_id,
                PayrollHeader.row_version == expected_version,
            )
            .values(row_version=expected_version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConcurrentModificationError(header.payroll_header_id)

    async def _replace_details(
        self, header: PayrollHeader, calculation: RunCalculation
    ) -> None:
        """Delete the run's details and insert the freshly calculated set."""
        header_id = header.payroll_header_id
        for old in await self._load_details(header_id):
            await self.session.delete(old)
        # Deletes must hit the table before rows with the same ids come back
        await self.session.flush()

        for result in calculation.details:
            self.session.add(
                PayrollDetail(
                    payroll_detail_id=result.payroll_detail_id,
                    payroll_header_id=header_id,
                    employee_id=result.employee_id,
                    base_pay=result.base_pay,
                    overtime_hours=result.overtime_hours,
                    overtime_pay=result.overtime_pay,
                    gross_pay=result.gross_pay,
                    income_tax=result.income_tax,
                    css_employee=result.css_employee,
                    css_employer=result.css_employer,
                    se_employee=result.se_employee,
                    se_employer=result.se_employer,
                    risk_premium=result.risk_premium,
                    other_deductions_total=result.other_deductions_total,
                    total_deductions=result.total_deductions,
                    net_pay=result.net_pay,
                    employer_cost=result.employer_cost,
                    inputs_fingerprint=result.inputs_fingerprint,
                    deduction_lines=[
                        PayrollDetailDeduction(
                            line_number=number,
                            source_kind=line.source_kind.value,
                            source_id=line.source_id,
                            priority=line.priority,
                            deduction_type=line.deduction_type,
                            description=line.description,
                            amount=line.amount,
                            line_hash=LineItemBuilder.compute_line_hash(line),
                        )
                        for number, line in enumerate(result.deduction_lines, start=1)
                    ],
                )
            )
        await self.session.flush()

    async def _load_details(self, payroll_header_id: UUID) -> list[PayrollDetail]:
        result = await self.session.execute(
            select(PayrollDetail)
            .where(PayrollDetail.payroll_header_id == payroll_header_id)
            .order_by(PayrollDetail.employee_id)
            .options(selectinload(PayrollDetail.deduction_lines))
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def _settle_details(self, header: PayrollHeader) -> dict[str, int]:
        """Consume what the approved details charged or paid.

        Each loan line records a LoanPayment and advances the loan by one
        installment, each advance line marks the advance discounted, and the
        overtime a detail paid is linked to it. Records that changed since the
        run was calculated raise InvalidInputError and the approval rolls back.
        """
        period = PayPeriod(header.period_start, header.period_end)
        settled = {"loan_payments": 0, "advances": 0, "overtime_entries": 0}

        for detail in await self._load_details(header.payroll_header_id):
            for line in detail.deduction_lines:
                if line.source_kind == DeductionSourceKind.LOAN_INSTALLMENT.value:
                    await self._settle_loan(header, detail, line)
                    settled["loan_payments"] += 1
                elif line.source_kind == DeductionSourceKind.ADVANCE.value:
                    await self._settle_advance(header, detail, line)
                    settled["advances"] += 1
            settled["overtime_entries"] += await self._settle_overtime(detail, period)

        await self.session.flush()
        return settled

    async def _settle_loan(
        self,
        header: PayrollHeader,
        detail: PayrollDetail,
        line: PayrollDetailDeduction,
    ) -> None:
        loan = (
            await self.session.execute(
                select(Loan)
                .where(Loan.loan_id == line.source_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if (
            loan is None
            or loan.status != "active"
            or loan.installments_paid >= loan.installments_total
            or line.amount > loan.outstanding_balance
        ):
            raise InvalidInputError(
                f"Loan {line.source_id} changed since the run was calculated",
                employee_id=detail.employee_id,
                field="loan_id",
            )

        balance_before = loan.outstanding_balance
        balance_after = max(balance_before - line.amount, ZERO)
        self.session.add(
            LoanPayment(
                loan_id=loan.loan_id,
                payroll_header_id=header.payroll_header_id,
                payroll_detail_id=detail.payroll_detail_id,
                installment_number=loan.next_installment_number,
                amount=line.amount,
                balance_before=balance_before,
                balance_after=balance_after,
                paid_on=header.pay_date,
            )
        )
        loan.installments_paid += 1
        if loan.installments_paid >= loan.installments_total or balance_after <= 0:
            loan.status = "paid_off"

    async def _settle_advance(
        self,
        header: PayrollHeader,
        detail: PayrollDetail,
        line: PayrollDetailDeduction,
    ) -> None:
        advance = (
            await self.session.execute(
                select(Advance)
                .where(Advance.advance_id == line.source_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if advance is None or advance.status != "approved" or advance.amount != line.amount:
            raise InvalidInputError(
                f"Advance {line.source_id} changed since the run was calculated",
                employee_id=detail.employee_id,
                field="advance_id",
            )
        advance.status = "discounted"
        advance.payroll_header_id = header.payroll_header_id

    async def _settle_overtime(self, detail: PayrollDetail, period: PayPeriod) -> int:
        result = await self.session.execute(
            unpaid_overtime_query(detail.employee_id, period)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        entries = list(result.scalars().all())
        if sum((e.hours for e in entries), ZERO) != detail.overtime_hours:
            raise InvalidInputError(
                f"Approved overtime of employee {detail.employee_id} changed "
                "since the run was calculated",
                employee_id=detail.employee_id,
                field="overtime",
            )
        for entry in entries:
            entry.payroll_detail_id = detail.payroll_detail_id
        return len(entries)

    async def _count_details(self, payroll_header_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(PayrollDetail)
            .where(PayrollDetail.payroll_header_id == payroll_header_id)
        )
        return result.scalar_one()

    async def _payroll_number_exists(self, company_id: UUID, payroll_number: str) -> bool:
        result = await self.session.execute(
            select(func.count())
            .select_from(PayrollHeader)
            .where(
                PayrollHeader.company_id == company_id,
                PayrollHeader.payroll_number == payroll_number,
            )
        )
        return result.scalar_one() > 0

    async def _next_payroll_number(self, company_id: UUID, year: int) -> str:
        """Next ``YYYY-NNN`` number for the company and year."""
        prefix = f"{year}-"
        result = await self.session.execute(
            select(PayrollHeader.payroll_number).where(
                PayrollHeader.company_id == company_id,
                PayrollHeader.payroll_number.like(f"{prefix}%"),
            )
        )
        sequence = [
            int(number[len(prefix):])
            for number in result.scalars().all()
            if number[len(prefix):].isdigit()
        ]
        return f"{prefix}{max(sequence, default=0) + 1:03d}"

    async def _record_audit(
        self,
        header: PayrollHeader,
        action: str,
        actor: str | None,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
    ) -> None:
        """Record an audit event for a payroll run action."""
        self.session.add(
            AuditEvent(
                company_id=header.company_id,
                actor=actor,
                entity_type="payroll_header",
                entity_id=header.payroll_header_id,
                action=action,
                before_json=before,
                after_json=after,
            )
        )


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value

"""Planilla engine services."""

from planilla_engine.services.payroll_run_service import PayrollRunService
from planilla_engine.services.state_machine import PayrollRunStateMachine, PayrollRunStatus

__all__ = [
    "PayrollRunService",
    "PayrollRunStateMachine",
    "PayrollRunStatus",
]

"""REST endpoints for payroll calculations and runs."""

from __future__ import annotations

import logging
from typing import Any

from flask import Blueprint, current_app, request
from pydantic import ValidationError

from ukpayroll.backend.app.http import problem_response
from ukpayroll.backend.app.models import PayrollRunRequest, format_validation_error
from ukpayroll.backend.app.services.calculation_service import (
    build_calculation_input,
    calculate_payroll,
)
from ukpayroll.backend.app.services.errors import (
    PUBLIC_FAILURE_MESSAGE,
    DuplicatePeriodError,
    RecordNotFoundError,
    StaleYTDError,
)
from ukpayroll.backend.app.services.payroll_run import run_employee_payroll
from ukpayroll.backend.app.services.records import PayrollRecordStore
from ukpayroll.backend.config.year_config import ConfigurationError
from ukpayroll.backend.services import build_calculation_response, parse_json_payload

_LOGGER = logging.getLogger(__name__)

RECORD_STORE_EXTENSION = "ukpayroll.record_store"

blueprint = Blueprint("payroll", __name__, url_prefix="/api/v1/payroll")


def _record_store() -> PayrollRecordStore:
    return current_app.extensions[RECORD_STORE_EXTENSION]


@blueprint.post("/calculations")
def create_calculation() -> tuple[Any, int]:
    """Calculate a payslip from a self-contained JSON payload without persisting it."""

    payload = parse_json_payload(request)
    try:
        calculation_input = build_calculation_input(payload)
    except FileNotFoundError as exc:
        return problem_response("not_found", message=str(exc)).to_response()
    except ValueError as exc:
        return problem_response("validation_error", message=str(exc)).to_response()

    return build_calculation_response(calculate_payroll(calculation_input))


@blueprint.post("/runs")
def create_run() -> tuple[Any, int]:
    """Run payroll for a stored employee and persist the updated year-to-date totals."""

    payload = parse_json_payload(request)
    try:
        run_request = PayrollRunRequest.model_validate(payload)
    except ValidationError as exc:
        return problem_response(
            "validation_error", message=format_validation_error(exc)
        ).to_response()

    try:
        outcome = run_employee_payroll(_record_store(), run_request)
    except RecordNotFoundError as exc:
        return problem_response("not_found", message=str(exc)).to_response()
    except (DuplicatePeriodError, StaleYTDError) as exc:
        return problem_response("conflict", message=str(exc)).to_response()
    except ConfigurationError:
        _LOGGER.exception(
            "Configuration failure during payroll run for %s", run_request.employee_id
        )
        return problem_response(
            "calculation_failed", message=PUBLIC_FAILURE_MESSAGE
        ).to_response()

    return build_calculation_response(outcome)

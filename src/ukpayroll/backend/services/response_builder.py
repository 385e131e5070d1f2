"""Utilities for turning calculation outcomes into HTTP responses."""

from __future__ import annotations

from typing import Any, Tuple

from flask import jsonify

from ukpayroll.backend.app.http import problem_response
from ukpayroll.backend.app.services.calculation_service import CalculationOutcome
from ukpayroll.backend.app.services.errors import PUBLIC_FAILURE_MESSAGE, ErrorKind

ResponseTuple = Tuple[Any, int]


def build_calculation_response(outcome: CalculationOutcome) -> ResponseTuple:
    """Return the payslip for a completed outcome, otherwise a problem payload.

    Validation failures list every violation; configuration and invariant
    failures only expose the generic public message.
    """

    if outcome.completed and outcome.result is not None:
        return jsonify(outcome.result.model_dump(mode="json")), 200

    if outcome.error_kind is ErrorKind.VALIDATION:
        messages = [failure.message for failure in outcome.errors]
        return problem_response(
            "validation_error",
            message="; ".join(messages),
            violations=messages,
        ).to_response()

    return problem_response(
        "calculation_failed",
        message=PUBLIC_FAILURE_MESSAGE,
        kind=outcome.error_kind.value if outcome.error_kind else None,
    ).to_response()

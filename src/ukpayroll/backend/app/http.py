"""HTTP helper utilities shared across Flask blueprints."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from flask import jsonify

# Problem codes and their HTTP status.
PROBLEM_STATUSES: Mapping[str, int] = {
    "bad_request": 400,
    "not_found": 404,
    "method_not_allowed": 405,
    "conflict": 409,
    "validation_error": 422,
    "calculation_failed": 500,
}


@dataclass(frozen=True)
class ProblemResponse:
    """Lightweight representation of an RFC 7807-style error payload."""

    error: str
    status: int
    message: str | None = None
    extra: Mapping[str, Any] | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.error}
        if self.message:
            payload["message"] = self.message
        if self.extra:
            payload.update(self.extra)
        return payload

    def to_response(self) -> tuple[Any, int]:
        """Convert the problem payload into a Flask response tuple."""

        return jsonify(self.as_dict()), self.status


def problem_response(
    error: str,
    *,
    status: int | None = None,
    message: str | None = None,
    **extra: Any,
) -> ProblemResponse:
    """Build a problem payload, defaulting the status from the problem code."""

    resolved_status = status if status is not None else PROBLEM_STATUSES.get(error, 500)
    additional: Mapping[str, Any] | None = extra or None
    return ProblemResponse(
        error=error, status=resolved_status, message=message, extra=additional
    )


__all__ = ["PROBLEM_STATUSES", "ProblemResponse", "problem_response"]

"""Request and response helpers for the payroll HTTP layer."""

from .request_parser import parse_json_payload
from .response_builder import build_calculation_response

__all__ = [
    "build_calculation_response",
    "parse_json_payload",
]

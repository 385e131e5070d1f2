"""Expose tax-year configuration metadata and figures."""

from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify

from ukpayroll.backend.app.http import problem_response
from ukpayroll.backend.config.year_config import (
    ConfigurationError,
    default_tax_year,
    load_tax_year_configuration,
    manifest_entries,
)
from ukpayroll.backend.version import get_project_version

blueprint = Blueprint("config", __name__, url_prefix="/api/v1/config")


def get_configuration_metadata() -> dict[str, Any]:
    """Expose runtime metadata derived from the configuration manifest."""

    return {
        "version": get_project_version(),
        "supported_tax_years": [entry.tax_year for entry in manifest_entries()],
        "default_tax_year": default_tax_year(),
    }


@blueprint.get("/tax-years")
def list_tax_years() -> tuple[Any, int]:
    """Return the configured tax years with their manifest metadata."""

    entries = [
        {
            "tax_year": entry.tax_year,
            "status": entry.status,
            "notes_url": entry.notes_url,
        }
        for entry in manifest_entries()
    ]
    payload = {"tax_years": entries, "default_tax_year": default_tax_year()}
    return jsonify(payload), 200


@blueprint.get("/<tax_year>")
def get_tax_year(tax_year: str) -> tuple[Any, int]:
    """Return the full statutory configuration for ``tax_year``."""

    try:
        configuration = load_tax_year_configuration(tax_year)
    except FileNotFoundError as exc:
        return problem_response("not_found", message=str(exc)).to_response()
    except ConfigurationError as exc:
        return problem_response("bad_request", message=str(exc)).to_response()

    return jsonify(configuration.model_dump(mode="json")), 200

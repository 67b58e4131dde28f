"""Expose fiscal year and trade configuration to the front-end.

The SPA reads slab tables and country/category duty rates from here so that
forms and previews never duplicate the YAML-backed configuration.
"""

from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify

from bdtax.backend.app.http import problem_response
from bdtax.backend.config.year_config import (
    load_fiscal_year_configuration,
    load_manifest,
    load_trade_configuration,
    to_slab_table,
)
from bdtax.backend.services.calculators import format_percentage
from bdtax.backend.version import get_project_version

blueprint = Blueprint("config", __name__, url_prefix="/api/v1/config")


def get_configuration_metadata() -> dict[str, Any]:
    """Expose runtime metadata derived from the configuration manifest."""

    manifest = load_manifest()
    return {
        "version": get_project_version(),
        "supported_fiscal_years": list(manifest.supported_fiscal_years),
        "default_fiscal_year": manifest.resolved_default,
    }


@blueprint.get("/meta")
def get_meta():
    return jsonify(get_configuration_metadata()), 200


@blueprint.get("/fiscal-years")
def list_fiscal_years():
    """List the fiscal years declared in the manifest."""

    manifest = load_manifest()
    default_label = manifest.resolved_default
    years = [
        {
            "fiscal_year": entry.fiscal_year,
            "status": entry.status,
            "notes_url": entry.notes_url,
            "default": entry.fiscal_year == default_label,
        }
        for entry in sorted(manifest.years, key=lambda item: item.fiscal_year)
    ]
    return jsonify({"default_fiscal_year": default_label, "fiscal_years": years}), 200


@blueprint.get("/fiscal-years/<label>/slabs")
def get_fiscal_year_slabs(label: str):
    """Return the slab table configured for ``label``."""

    try:
        configuration = load_fiscal_year_configuration(label)
    except FileNotFoundError as exc:
        return problem_response("not_found", status=404, message=str(exc)).to_response()

    table = to_slab_table(configuration)
    slabs = [
        {**slab.as_dict(), "rate_label": format_percentage(slab.rate)}
        for slab in table.slabs
    ]
    payload = {
        "fiscal_year": table.fiscal_year,
        "currency": configuration.currency,
        "slabs": slabs,
        "meta": dict(configuration.meta),
    }
    return jsonify(payload), 200


@blueprint.get("/trade")
def get_trade_configuration():
    """Return the country and product category duty rates."""

    configuration = load_trade_configuration()
    return jsonify(configuration.model_dump(mode="json")), 200

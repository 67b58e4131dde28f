"""Expose translation catalogues to front-end consumers."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from bdtax.backend.app.localization import load_translations

blueprint = Blueprint("translations", __name__, url_prefix="/api/v1/translations")


@blueprint.get("/")
def get_default_translations():
    """Return the catalogue for ``?locale=`` or the default locale."""

    return jsonify(load_translations(request.args.get("locale"))), 200


@blueprint.get("/<locale>")
def get_locale_translations(locale: str):
    return jsonify(load_translations(locale)), 200

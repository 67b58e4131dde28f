"""Application factory for BDTax backend services."""

import logging
import os
from warnings import warn

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import BadRequest

from .http import problem_response
from .routes import register_routes
from .routes.config import get_configuration_metadata
from .routes.review import EXTENSION_KEY
from .services import ReviewService, build_review_service
from .services.review_store import InvalidTransitionError, RecordNotFoundError

_LOGGER = logging.getLogger(__name__)


def _parse_allowed_origins(raw: str | None) -> set[str]:
    """Convert an environment variable into a normalised set of origins."""

    if not raw:
        return set()

    return {origin.strip() for origin in raw.split(",") if origin.strip()}


def create_app(review_service: ReviewService | None = None) -> Flask:
    """Create and configure the Flask application instance.

    ``review_service`` overrides the workflow store built from the
    environment, which lets tests inject a service with a fixed clock.
    """

    app = Flask(__name__)

    allowed_origins = _parse_allowed_origins(os.getenv("BDTAX_ALLOWED_ORIGINS"))
    if not allowed_origins:
        warn(
            "No allowed origins configured; cross-origin requests will be rejected.",
            stacklevel=1,
        )

    CORS(
        app,
        resources={r"/api/*": {"origins": sorted(allowed_origins)}},
        supports_credentials=False,
        methods=["GET", "OPTIONS", "POST"],
        allow_headers=["Content-Type", "Accept-Language", "X-User-Id", "X-User-Role"],
    )

    app.extensions[EXTENSION_KEY] = review_service or build_review_service()
    register_routes(app)

    @app.route("/health", methods=["GET"])
    def health_check():
        """Simple health check endpoint for infrastructure monitoring."""

        payload = {"status": "ok", **get_configuration_metadata()}
        return jsonify(payload)

    @app.errorhandler(BadRequest)
    def handle_bad_request(error: BadRequest):
        """Return consistent JSON responses for malformed payloads."""

        message = error.description or "Invalid request"
        return problem_response("bad_request", status=400, message=message).to_response()

    @app.errorhandler(InvalidTransitionError)
    def handle_invalid_transition(error: InvalidTransitionError):
        return problem_response("conflict", status=409, message=str(error)).to_response()

    @app.errorhandler(ValueError)
    def handle_value_error(error: ValueError):
        """Gracefully surface domain validation errors to clients."""

        return problem_response(
            "validation_error", status=400, message=str(error)
        ).to_response()

    @app.errorhandler(RecordNotFoundError)
    def handle_record_not_found(error: RecordNotFoundError):
        identifier = error.args[0] if error.args else "unknown"
        return problem_response(
            "not_found", status=404, message=f"No record with id {identifier}"
        ).to_response()

    @app.errorhandler(FileNotFoundError)
    def handle_missing_configuration(error: FileNotFoundError):
        _LOGGER.warning("Configuration lookup failed: %s", error)
        return problem_response("not_found", status=404, message=str(error)).to_response()

    @app.errorhandler(PermissionError)
    def handle_permission_error(error: PermissionError):
        return problem_response("forbidden", status=403, message=str(error)).to_response()

    return app

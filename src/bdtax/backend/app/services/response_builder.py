"""Utilities for serialising service results into Flask responses."""

from __future__ import annotations

from collections.abc import Mapping
from http import HTTPStatus
from typing import Any, Tuple

from flask import jsonify

ResponseTuple = Tuple[Any, int]


def build_json_response(
    payload: Mapping[str, Any], status: int = HTTPStatus.OK
) -> ResponseTuple:
    """Return a Flask JSON response for ``payload``."""

    return jsonify(payload), int(status)

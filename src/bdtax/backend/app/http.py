"""HTTP helper utilities shared across Flask blueprints."""

from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Mapping

from flask import Request, jsonify

ROLES = ("citizen", "officer", "admin")
REVIEWER_ROLES = frozenset({"officer", "admin"})


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
        return jsonify(self.as_dict()), self.status


def problem_response(
    error: str,
    *,
    status: int,
    message: str | None = None,
    **extra: Any,
) -> ProblemResponse:
    """Convenience factory mirroring Flask's ``jsonify`` interface."""

    additional: Mapping[str, Any] | None = extra or None
    return ProblemResponse(error=error, status=int(status), message=message, extra=additional)


@dataclass(frozen=True)
class Identity:
    """Caller identity forwarded by the authenticating gateway."""

    user_id: str
    role: str

    @property
    def is_reviewer(self) -> bool:
        return self.role in REVIEWER_ROLES


def resolve_identity(req: Request) -> Identity | ProblemResponse:
    """Read ``X-User-Id``/``X-User-Role`` headers set by the upstream auth layer."""

    user_id = (req.headers.get("X-User-Id") or "").strip()
    if not user_id:
        return problem_response(
            "unauthorized",
            status=HTTPStatus.UNAUTHORIZED,
            message="X-User-Id header is required",
        )

    role = (req.headers.get("X-User-Role") or "citizen").strip().lower()
    if role not in ROLES:
        return problem_response(
            "forbidden", status=HTTPStatus.FORBIDDEN, message=f"Unknown role '{role}'"
        )
    return Identity(user_id=user_id, role=role)


def require_reviewer(req: Request) -> Identity | ProblemResponse:
    """Resolve the caller and ensure they are an officer or admin."""

    identity = resolve_identity(req)
    if isinstance(identity, ProblemResponse):
        return identity
    if not identity.is_reviewer:
        return problem_response(
            "forbidden",
            status=HTTPStatus.FORBIDDEN,
            message="Officer or admin role required",
        )
    return identity


__all__ = [
    "Identity",
    "ProblemResponse",
    "REVIEWER_ROLES",
    "ROLES",
    "problem_response",
    "require_reviewer",
    "resolve_identity",
]

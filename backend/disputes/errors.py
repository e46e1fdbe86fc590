"""Typed service errors.

Use cases raise these; the message router turns them into the wire shape
``{"status": <int>, "message": <str>}``. Anything else escaping a handler is
reported as an Internal error.
"""

from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    status: int = 500

    def __init__(self, message: str, *, details: Any | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"status": self.status, "message": self.message}
        if self.details is not None:
            payload["errors"] = self.details
        return payload


class NotFound(ServiceError):
    status = 404


class Forbidden(ServiceError):
    status = 403


class BadRequest(ServiceError):
    status = 400


class Internal(ServiceError):
    status = 500

"""Request/response message patterns.

Each pattern takes a JSON payload and returns a JSON result. Failures always
leave as ``{"status": <int>, "message": <str>}`` (plus ``errors`` for payload
validation), never as an untyped exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from marshmallow import Schema, ValidationError
from sqlalchemy.orm.exc import StaleDataError

from ...errors import BadRequest, Internal, NotFound, ServiceError
from ...extensions import db
from ...logging import get_logger

logger = get_logger(__name__)

Handler = Callable[[Any, dict], Any]


@dataclass
class _Route:
    handler: Handler
    schema: Schema | None


class MessageRouter:
    def __init__(self) -> None:
        self._routes: dict[str, _Route] = {}

    def pattern(self, name: str, schema: type[Schema] | None = None) -> Callable[[Handler], Handler]:
        """Register ``handler(services, data)`` for a message pattern.

        When a schema is given the payload is loaded through it first and the
        handler receives the deserialized dict.
        """

        def decorator(fn: Handler) -> Handler:
            if name in self._routes:
                raise ValueError(f"Pattern '{name}' is already registered")
            self._routes[name] = _Route(fn, schema() if schema is not None else None)
            return fn

        return decorator

    @property
    def patterns(self) -> list[str]:
        return sorted(self._routes)

    def dispatch(self, name: str, payload: dict | None, services) -> tuple[int, Any]:
        try:
            route = self._routes.get(name)
            if route is None:
                raise NotFound(f"Unknown message pattern '{name}'")
            data = route.schema.load(payload or {}) if route.schema is not None else dict(payload or {})
            return 200, route.handler(services, data)
        except ValidationError as e:
            db.session.rollback()
            return 400, BadRequest("Invalid payload", details=e.messages).to_dict()
        except StaleDataError:
            db.session.rollback()
            logger.warning("Concurrent update rejected for pattern %s", name)
            return 400, BadRequest("The record was modified concurrently, retry the operation").to_dict()
        except ServiceError as e:
            db.session.rollback()
            logger.info("Pattern %s failed: %s %s", name, e.status, e.message)
            return e.status, e.to_dict()
        except Exception:
            db.session.rollback()
            logger.exception("Unexpected error handling pattern %s", name)
            return 500, Internal("Internal server error").to_dict()

from __future__ import annotations

from typing import Any, Callable

from ..logging import get_logger

logger = get_logger(__name__)

MAX_EVIDENCE_URLS = 10


def best_effort(action: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> bool:
    """Run a side effect whose failure must never fail the primary operation.

    Used for notifications and identity-service sanctions, always after the
    state change has been committed. Returns True when the call succeeded.
    """
    try:
        fn(*args, **kwargs)
        return True
    except Exception:
        logger.exception("Best-effort %s failed", action)
        return False


def clean_urls(urls: list[str] | None) -> list[str]:
    return [u.strip() for u in (urls or []) if u and u.strip()]

from __future__ import annotations

from typing import Any

import requests


class IntegrationError(RuntimeError):
    """A collaborating service answered with an error or could not be reached."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ServiceClient:
    """Thin JSON-over-HTTP client shared by the collaborator integrations."""

    service_name = "service"

    def __init__(self, base_url: str, *, timeout: int = 15, session: requests.Session | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, *, allow_404: bool = False, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise IntegrationError(f"{self.service_name} unreachable ({method} {path}): {e}") from e
        if allow_404 and resp.status_code == 404:
            return None
        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            # Surface the collaborator's {status, message} error shape when present
            try:
                payload = resp.json()
                msg = payload.get("message") or str(e)
                details = f"{self.service_name} error (HTTP {resp.status_code}): {msg}"
            except Exception:
                details = f"HTTP {resp.status_code}: {resp.text[:500]}"
            raise IntegrationError(details, status=resp.status_code) from e
        if not resp.content:
            return None
        return resp.json()

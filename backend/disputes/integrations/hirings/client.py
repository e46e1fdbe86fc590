from __future__ import annotations

from dataclasses import dataclass

from ..http import IntegrationError, ServiceClient


@dataclass
class Hiring:
    """Snapshot of a hiring as owned by the hirings service."""

    id: int
    client_id: int
    provider_id: int
    status_id: int | None
    status_code: str | None = None
    title: str | None = None
    service_id: int | None = None

    @property
    def party_ids(self) -> tuple[int, int]:
        return (self.client_id, self.provider_id)


def _hiring_from_payload(data: dict) -> Hiring:
    # Provider id lives on the contracted service
    service = data.get("service") or {}
    status = data.get("status") or {}
    return Hiring(
        id=int(data["id"]),
        client_id=int(data["userId"]),
        provider_id=int(service.get("userId") if service.get("userId") is not None else data["providerId"]),
        status_id=data.get("statusId") if data.get("statusId") is not None else status.get("id"),
        status_code=status.get("code"),
        title=service.get("title"),
        service_id=service.get("id"),
    )


class HiringsClient(ServiceClient):
    service_name = "hirings-service"

    def find_by_id(self, hiring_id: int) -> Hiring | None:
        data = self._request("GET", f"/service-hirings/{int(hiring_id)}", allow_404=True)
        if not data:
            return None
        return _hiring_from_payload(data)

    def find_status_id(self, code: str) -> int:
        data = self._request("GET", f"/service-hiring-statuses/{code}", allow_404=True)
        if not data or data.get("id") is None:
            raise IntegrationError(f"Hiring status '{code}' not found")
        return int(data["id"])

    def update_status(self, hiring_id: int, status_id: int) -> None:
        self._request("PATCH", f"/service-hirings/{int(hiring_id)}", json={"statusId": int(status_id)})

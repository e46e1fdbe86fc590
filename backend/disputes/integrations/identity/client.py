from __future__ import annotations

from ..http import ServiceClient


def display_name(user: dict | None, fallback: str | None = "User") -> str | None:
    """Best display name from an identity-service user payload."""
    if not user:
        return fallback
    profile = user.get("profile") or {}
    first = profile.get("firstName") or profile.get("name") or user.get("name")
    last = profile.get("lastName") or user.get("lastName")
    full = " ".join(p for p in (first, last) if p).strip()
    return full or fallback


class IdentityClient(ServiceClient):
    service_name = "identity-service"

    def get_user_by_id(self, user_id: int) -> dict | None:
        return self._request("GET", f"/users/{int(user_id)}", allow_404=True)

    def get_users_by_ids(self, user_ids: list[int]) -> list[dict]:
        ids = sorted({int(u) for u in user_ids if u is not None})
        if not ids:
            return []
        data = self._request("POST", "/users/batch", json={"ids": ids})
        return list(data or [])

    def suspend_user_for_compliance_violation(
        self, user_id: int, compliance_id: str, reason: str, days: int, moderator_id: int | None = None
    ) -> dict | None:
        return self._request(
            "POST",
            f"/users/{int(user_id)}/suspensions",
            json={
                "complianceId": compliance_id,
                "reason": reason,
                "days": int(days),
                "moderatorId": moderator_id,
            },
        )

    def ban_user_for_compliance_violation(
        self, user_id: int, compliance_id: str, reason: str, moderator_id: int | None = None
    ) -> dict | None:
        return self._request(
            "POST",
            f"/users/{int(user_id)}/bans",
            json={"complianceId": compliance_id, "reason": reason, "moderatorId": moderator_id},
        )

from __future__ import annotations

from typing import Any

from ..http import ServiceClient


class NotificationClient(ServiceClient):
    """Email dispatch through the notifications service.

    Every method maps to one template; rendering and delivery belong to the
    notifications service. Recipients are either a user id (resolved there)
    or a raw email address.
    """

    service_name = "notifications-service"

    def _send(self, template: str, data: dict[str, Any], *, user_id: int | None = None, email: str | None = None) -> None:
        self._request(
            "POST",
            "/notifications/email",
            json={"template": template, "to": {"userId": user_id, "email": email}, "data": data},
        )

    # ---- claims ----------------------------------------------------------

    def claim_created_confirmation(self, user_id: int, claim: dict) -> None:
        self._send("claim_created_confirmation", {"claim": claim}, user_id=user_id)

    def claim_created(self, user_id: int, claim: dict) -> None:
        self._send("claim_created", {"claim": claim}, user_id=user_id)

    def claim_created_admin(self, email: str, claim: dict) -> None:
        self._send("claim_created_admin", {"claim": claim}, email=email)

    def claim_observations(self, user_id: int, claim: dict, observations: str) -> None:
        self._send("claim_observations", {"claim": claim, "observations": observations}, user_id=user_id)

    def claim_updated(self, claim: dict, *, user_id: int | None = None, email: str | None = None) -> None:
        self._send("claim_updated", {"claim": claim}, user_id=user_id, email=email)

    def respondent_observations_submitted(self, claim: dict, *, user_id: int | None = None, email: str | None = None) -> None:
        self._send("respondent_observations_submitted", {"claim": claim}, user_id=user_id, email=email)

    def claim_resolved(self, user_id: int, claim: dict, compliances: list[dict]) -> None:
        self._send("claim_resolved", {"claim": claim, "compliances": compliances}, user_id=user_id)

    def claim_cancelled(self, claim: dict, *, user_id: int | None = None, email: str | None = None) -> None:
        self._send("claim_cancelled", {"claim": claim}, user_id=user_id, email=email)

    # ---- compliances -----------------------------------------------------

    def compliance_submitted(self, user_id: int, compliance: dict) -> None:
        """Ask the counter-party to peer review a submission."""
        self._send("compliance_submitted", {"compliance": compliance}, user_id=user_id)

    def compliance_submitted_moderator(self, compliance: dict, *, user_id: int | None = None, email: str | None = None) -> None:
        self._send("compliance_submitted_moderator", {"compliance": compliance}, user_id=user_id, email=email)

    def compliance_peer_reviewed(self, user_id: int, compliance: dict, approved: bool, reason: str | None) -> None:
        template = "compliance_peer_approved" if approved else "compliance_peer_rejected"
        self._send(template, {"compliance": compliance, "reason": reason}, user_id=user_id)

    def peer_review_to_moderator(
        self, compliance: dict, approved: bool, reason: str | None, *, user_id: int | None = None, email: str | None = None
    ) -> None:
        self._send(
            "peer_review_to_moderator",
            {"compliance": compliance, "approved": approved, "reason": reason},
            user_id=user_id,
            email=email,
        )

    def compliance_approved(self, user_id: int, compliance: dict, notes: str | None) -> None:
        self._send("compliance_approved", {"compliance": compliance, "notes": notes}, user_id=user_id)

    def compliance_rejected(self, user_id: int, compliance: dict, reason: str | None, notes: str | None) -> None:
        self._send("compliance_rejected", {"compliance": compliance, "reason": reason, "notes": notes}, user_id=user_id)

    def compliance_adjustment_requested(self, user_id: int, compliance: dict, notes: str | None) -> None:
        self._send("compliance_adjustment_requested", {"compliance": compliance, "notes": notes}, user_id=user_id)

    # ---- escalation ladder -------------------------------------------------

    def compliance_overdue(self, user_id: int, compliance: dict, extended_deadline: str) -> None:
        self._send("compliance_overdue", {"compliance": compliance, "extendedDeadline": extended_deadline}, user_id=user_id)

    def compliance_warning(self, user_id: int, compliance: dict, final_deadline: str, suspension_days: int) -> None:
        self._send(
            "compliance_warning",
            {"compliance": compliance, "finalDeadline": final_deadline, "suspensionDays": suspension_days},
            user_id=user_id,
        )

    def compliance_escalated(self, user_id: int, compliance: dict) -> None:
        self._send("compliance_escalated", {"compliance": compliance}, user_id=user_id)

    def non_compliance_notice(self, user_id: int, compliance: dict, level: int) -> None:
        """Tell the counter-party the other side missed a deadline."""
        self._send("non_compliance_notice", {"compliance": compliance, "level": level}, user_id=user_id)

    def compliance_deadline_reminder(self, user_id: int, compliance: dict, hours_remaining: int) -> None:
        self._send(
            "compliance_deadline_reminder",
            {"compliance": compliance, "hoursRemaining": hours_remaining},
            user_id=user_id,
        )

from __future__ import annotations

import math
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable

from ...clock import as_utc, utcnow
from ...errors import BadRequest, Forbidden, NotFound
from ...extensions import db
from ...integrations.notifications.client import NotificationClient
from ...logging import get_logger
from ...models.claim import Claim
from ...models.compliance import ClaimCompliance
from ...models.compliance_submission import ComplianceReview, ComplianceSubmission
from ...models.enums import (
    REVIEWABLE_COMPLIANCE_STATUSES,
    ComplianceRequirement,
    ComplianceStatus,
    ComplianceType,
)
from ..claims import roles
from ..claims.store import ClaimStore
from ..common import MAX_EVIDENCE_URLS, best_effort, clean_urls
from .consequences import reset_consequences
from .presenters import compliance_summary
from .store import ComplianceStore

logger = get_logger(__name__)

PEER = "peer"
MODERATOR = "moderator"

MODERATOR_DECISIONS = ("approve", "reject", "adjust")

_AWAITING_REVIEW = REVIEWABLE_COMPLIANCE_STATUSES


def _round1(value: float) -> float:
    # Half-up, one decimal
    return math.floor(value * 10 + 0.5) / 10


class ComplianceLifecycleService:
    def __init__(
        self,
        store: ComplianceStore,
        claims: ClaimStore,
        notifications: NotificationClient,
        *,
        moderation_inbox: str | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.claims = claims
        self.notifications = notifications
        self.moderation_inbox = moderation_inbox
        self.clock = clock

    # ---- creation (called by claim resolution) ---------------------------

    def create_for_claim(self, claim: Claim, hiring, items: list[dict], now: datetime) -> list[ClaimCompliance]:
        """Create one compliance per resolution entry.

        ``items`` come from the resolve payload (already schema-validated).
        Responsible users are checked against the hiring parties before any
        row is written. Order numbers: explicit value, else parent order + 1
        when a dependency is given, else the current sibling count.
        """
        for i, item in enumerate(items):
            if not roles.is_party(hiring, item["responsible_user_id"]):
                raise BadRequest(
                    f"Compliance #{i + 1}: responsible user {item['responsible_user_id']} is not a party of the hiring"
                )
            idx = item.get("depends_on_index")
            if idx is not None and not (0 <= int(idx) < i):
                raise BadRequest(f"Compliance #{i + 1}: dependsOnIndex must point to an earlier compliance")

        created: list[ClaimCompliance] = []
        siblings = self.store.count_siblings(claim.id)
        for item in items:
            parent = None
            if item.get("depends_on_index") is not None:
                parent = created[int(item["depends_on_index"])]
            elif item.get("depends_on"):
                parent = self.store.get(item["depends_on"])
                if parent is None or parent.claim_id != claim.id:
                    raise BadRequest(f"Compliance {item['depends_on']} does not belong to this claim")

            if item.get("order_number") is not None:
                order_number = int(item["order_number"])
            elif parent is not None:
                order_number = int(parent.order_number) + 1
            else:
                order_number = siblings

            days = int(item["deadline_days"])
            amount = item.get("amount")
            compliance = ClaimCompliance(
                claim_id=claim.id,
                responsible_user_id=int(item["responsible_user_id"]),
                compliance_type=ComplianceType(item["compliance_type"]).value,
                status=ComplianceStatus.PENDING.value,
                moderator_instructions=item["moderator_instructions"].strip(),
                deadline=now + timedelta(days=days),
                original_deadline_days=days,
                amount=Decimal(str(amount)) if amount is not None else None,
                currency=item.get("currency") or "ARS",
                payment_link=item.get("payment_link"),
                requires_files=item.get("requires_files", True),
                evidence_urls=[],
                current_attempt=0,
                rejection_count=0,
                warning_level=0,
                appealed=False,
                depends_on=parent.id if parent is not None else None,
                order_number=order_number,
                requirement=ComplianceRequirement(item.get("requirement") or ComplianceRequirement.SEQUENTIAL.value).value,
                created_at=now,
                updated_at=now,
            )
            self.store.add(compliance)
            created.append(compliance)
            siblings += 1
        return created

    # ---- helpers ---------------------------------------------------------

    def is_actionable(self, compliance: ClaimCompliance) -> bool:
        return not compliance.awaits_prerequisite()

    def _start_dependents(self, parent: ClaimCompliance, now: datetime) -> None:
        # Gated items get their full grant from the moment the chain unblocks
        for child in self.store.dependents(parent.id):
            if not child.is_sequential() or child.status != ComplianceStatus.PENDING:
                continue
            restarted = now + timedelta(days=int(child.original_deadline_days))
            if restarted > as_utc(child.deadline):
                child.deadline = restarted
                logger.info("Compliance %s unblocked, deadline moved to %s", child.id, restarted)

    def _notify_moderators(self, claim: Claim, send: Callable, action: str, *args) -> None:
        if claim.assigned_moderator_id is not None:
            best_effort(action, send, *args, user_id=claim.assigned_moderator_id)
        elif claim.assigned_moderator_email or self.moderation_inbox:
            best_effort(action, send, *args, email=claim.assigned_moderator_email or self.moderation_inbox)

    # ---- submission ------------------------------------------------------

    def submit(
        self,
        compliance_id: str,
        user_id: int,
        user_notes: str | None = None,
        evidence_urls: list[str] | None = None,
    ) -> ClaimCompliance:
        compliance = self.store.get_or_404(compliance_id)
        now = self.clock()
        if int(user_id) != int(compliance.responsible_user_id):
            raise Forbidden("Only the responsible user can submit this compliance")
        if compliance.status == ComplianceStatus.APPROVED:
            raise BadRequest("This compliance was already approved")
        if compliance.status == ComplianceStatus.REJECTED:
            raise BadRequest("This compliance was rejected, it must be appealed first")
        if compliance.status == ComplianceStatus.ESCALATED:
            raise BadRequest("This compliance was escalated and no longer accepts submissions")
        if not compliance.can_still_submit(now):
            raise BadRequest("The submission window for this compliance has closed")
        if not self.is_actionable(compliance):
            raise BadRequest("The previous compliance in the chain must be approved first")
        if compliance.status in _AWAITING_REVIEW:
            raise BadRequest("The current submission is still awaiting review")
        evidence = clean_urls(evidence_urls)
        if compliance.requires_files and not evidence:
            raise BadRequest("This compliance requires at least one evidence file")
        if len(evidence) > MAX_EVIDENCE_URLS:
            raise BadRequest(f"At most {MAX_EVIDENCE_URLS} evidence files are allowed")

        attempt = self.store.next_attempt_number(compliance.id)
        notes = (user_notes or "").strip() or None
        self.store.add_submission(
            ComplianceSubmission(
                compliance_id=compliance.id,
                attempt_number=attempt,
                submitted_by=int(user_id),
                evidence_urls=evidence,
                user_notes=notes,
                submitted_at=now,
                created_at=now,
            )
        )
        compliance.current_attempt = attempt
        compliance.evidence_urls = evidence
        compliance.user_notes = notes
        compliance.submitted_at = now
        compliance.status = ComplianceStatus.SUBMITTED.value
        # Extended and final deadlines stay: an adjusted item resumes the ladder from them
        compliance.warning_level = 0
        compliance.clear_review_cycle()
        db.session.commit()
        logger.info("Compliance %s submitted by %s (attempt %d)", compliance.id, user_id, attempt)

        claim = compliance.claim
        summary = compliance_summary(compliance)
        counterparty = roles.other_party_id(claim, compliance.responsible_user_id)
        if counterparty is not None:
            best_effort("peer review request email", self.notifications.compliance_submitted, counterparty, summary)
        self._notify_moderators(
            claim, self.notifications.compliance_submitted_moderator, "compliance submitted moderator email", summary
        )
        return compliance

    def submit_by_claim(
        self,
        claim_id: str,
        user_id: int,
        compliance_id: str | None = None,
        user_notes: str | None = None,
        evidence_urls: list[str] | None = None,
    ) -> ClaimCompliance:
        """Submit the caller's own compliance within a claim."""
        claim = self.claims.get_or_404(claim_id)
        items = self.store.by_claim(claim.id)
        if compliance_id:
            target = next((c for c in items if c.id == str(compliance_id)), None)
            if target is None:
                raise NotFound("Compliance not found in this claim")
        else:
            own = [c for c in items if int(c.responsible_user_id) == int(user_id) and not c.is_final()]
            if not own:
                raise NotFound("You have no pending compliance in this claim")
            target = next((c for c in own if self.is_actionable(c)), own[0])
        return self.submit(target.id, user_id, user_notes=user_notes, evidence_urls=evidence_urls)

    # ---- reviews ---------------------------------------------------------

    def peer_review(self, compliance_id: str, user_id: int, approved: bool, reason: str | None = None) -> ClaimCompliance:
        compliance = self.store.get_or_404(compliance_id)
        claim = compliance.claim
        if int(user_id) == int(compliance.responsible_user_id):
            raise Forbidden("The responsible user cannot review their own compliance")
        if roles.other_party_id(claim, compliance.responsible_user_id) != int(user_id):
            raise Forbidden("Only the counter-party can peer review this compliance")
        if not compliance.can_be_peer_reviewed():
            if compliance.peer_reviewed_by is not None:
                raise BadRequest("This submission was already peer reviewed")
            raise BadRequest(f"Compliance in status '{compliance.status}' cannot be peer reviewed")

        now = self.clock()
        reason = (reason or "").strip() or None
        compliance.peer_reviewed_by = int(user_id)
        compliance.peer_approved = bool(approved)
        compliance.peer_review_reason = reason
        compliance.peer_reviewed_at = now
        compliance.status = (ComplianceStatus.PEER_APPROVED if approved else ComplianceStatus.PEER_OBJECTED).value
        self._record_review(compliance, PEER, user_id, "approve" if approved else "object", reason, None, now)
        db.session.commit()
        logger.info("Compliance %s peer %s by %s", compliance.id, "approved" if approved else "objected", user_id)

        summary = compliance_summary(compliance)
        best_effort(
            "peer review email",
            self.notifications.compliance_peer_reviewed,
            compliance.responsible_user_id,
            summary,
            bool(approved),
            reason,
        )
        self._notify_moderators(
            claim, self.notifications.peer_review_to_moderator, "peer review moderator email", summary, bool(approved), reason
        )
        return compliance

    def moderator_review(
        self,
        compliance_id: str,
        moderator_id: int,
        decision: str,
        moderator_notes: str | None = None,
        rejection_reason: str | None = None,
    ) -> ClaimCompliance:
        if decision not in MODERATOR_DECISIONS:
            raise BadRequest(f"Unknown decision '{decision}'")
        compliance = self.store.get_or_404(compliance_id)
        if not compliance.needs_moderator_review():
            raise BadRequest(f"Compliance in status '{compliance.status}' is not awaiting moderator review")

        now = self.clock()
        notes = (moderator_notes or "").strip() or None
        compliance.reviewed_by = int(moderator_id)
        compliance.reviewed_at = now
        compliance.moderator_notes = notes
        if decision == "approve":
            compliance.status = ComplianceStatus.APPROVED.value
            compliance.rejection_reason = None
            reset_consequences(compliance)
            self._start_dependents(compliance, now)
        elif decision == "reject":
            compliance.status = ComplianceStatus.REJECTED.value
            compliance.rejection_reason = (rejection_reason or "").strip() or None
            compliance.rejection_count = (compliance.rejection_count or 0) + 1
        else:
            compliance.status = ComplianceStatus.REQUIRES_ADJUSTMENT.value
            compliance.rejection_reason = (rejection_reason or "").strip() or None
        self._record_review(compliance, MODERATOR, moderator_id, decision, compliance.rejection_reason, notes, now)
        db.session.commit()
        logger.info("Compliance %s moderator decision %s by %s", compliance.id, decision, moderator_id)

        summary = compliance_summary(compliance)
        uid = compliance.responsible_user_id
        if decision == "approve":
            best_effort("compliance approved email", self.notifications.compliance_approved, uid, summary, notes)
        elif decision == "reject":
            best_effort(
                "compliance rejected email",
                self.notifications.compliance_rejected,
                uid,
                summary,
                compliance.rejection_reason,
                notes,
            )
        else:
            best_effort("compliance adjustment email", self.notifications.compliance_adjustment_requested, uid, summary, notes)
        return compliance

    def _record_review(
        self,
        compliance: ClaimCompliance,
        kind: str,
        reviewer_id: int,
        decision: str,
        reason: str | None,
        notes: str | None,
        now: datetime,
    ) -> None:
        submission = self.store.latest_submission(compliance.id)
        if submission is None:
            logger.warning("Compliance %s reviewed without a recorded submission", compliance.id)
            return
        self.store.add_review(
            ComplianceReview(
                submission_id=submission.id,
                reviewer_kind=kind,
                reviewer_id=int(reviewer_id),
                decision=decision,
                reason=reason,
                notes=notes,
                reviewed_at=now,
            )
        )

    # ---- stats -----------------------------------------------------------

    def stats_for_user(self, user_id: int) -> dict:
        items = self.store.by_responsible_user(user_id)
        completed = [c for c in items if c.status == ComplianceStatus.APPROVED]
        pending = [
            c
            for c in items
            if c.status in (ComplianceStatus.PENDING, ComplianceStatus.SUBMITTED, ComplianceStatus.REQUIRES_ADJUSTMENT)
        ]
        overdue = [c for c in items if (c.warning_level or 0) > 0 or c.status == ComplianceStatus.OVERDUE]

        with_dates = [c for c in completed if c.submitted_at and c.created_at]
        total_days = sum(
            math.floor((as_utc(c.submitted_at) - as_utc(c.created_at)).total_seconds() / 86400) for c in with_dates
        )
        average = total_days / len(with_dates) if with_dates else 0
        rate = len(completed) / len(items) * 100 if items else 0
        return {
            "totalPending": len(pending),
            "totalCompleted": len(completed),
            "totalOverdue": len(overdue),
            "averageCompletionDays": _round1(average),
            "complianceRate": _round1(rate),
        }

from __future__ import annotations

from datetime import datetime

from ...clock import isoformat, utcnow
from ...models.compliance import ClaimCompliance
from ...models.compliance_submission import ComplianceReview, ComplianceSubmission


def _amount(value) -> float | None:
    return float(value) if value is not None else None


def review_dto(review: ComplianceReview | None) -> dict | None:
    if review is None:
        return None
    return {
        "id": review.id,
        "reviewerKind": review.reviewer_kind,
        "reviewerId": review.reviewer_id,
        "decision": review.decision,
        "reason": review.reason,
        "notes": review.notes,
        "reviewedAt": isoformat(review.reviewed_at),
    }


def submission_dto(sub: ComplianceSubmission) -> dict:
    return {
        "id": sub.id,
        "attemptNumber": sub.attempt_number,
        "submittedBy": sub.submitted_by,
        "evidenceUrls": list(sub.evidence_urls or []),
        "userNotes": sub.user_notes,
        "submittedAt": isoformat(sub.submitted_at),
        "peerReview": review_dto(sub.review_by("peer")),
        "moderatorReview": review_dto(sub.review_by("moderator")),
    }


def compliance_summary(c: ClaimCompliance) -> dict:
    """Compact payload handed to notification templates."""
    return {
        "id": c.id,
        "claimId": c.claim_id,
        "complianceType": c.compliance_type,
        "status": c.status,
        "responsibleUserId": c.responsible_user_id,
        "moderatorInstructions": c.moderator_instructions,
        "amount": _amount(c.amount),
        "currency": c.currency,
        "deadline": isoformat(c.current_deadline()),
        "warningLevel": c.warning_level,
    }


def compliance_dto(c: ClaimCompliance, now: datetime | None = None) -> dict:
    now = now or utcnow()
    return {
        "id": c.id,
        "claimId": c.claim_id,
        "responsibleUserId": c.responsible_user_id,
        "complianceType": c.compliance_type,
        "status": c.status,
        "moderatorInstructions": c.moderator_instructions,
        "amount": _amount(c.amount),
        "currency": c.currency,
        "paymentLink": c.payment_link,
        "requiresFiles": c.requires_files,
        "deadline": isoformat(c.deadline),
        "extendedDeadline": isoformat(c.extended_deadline),
        "finalDeadline": isoformat(c.final_deadline),
        "originalDeadlineDays": c.original_deadline_days,
        "evidenceUrls": list(c.evidence_urls or []),
        "userNotes": c.user_notes,
        "submittedAt": isoformat(c.submitted_at),
        "currentAttempt": c.current_attempt,
        "peerReviewedBy": c.peer_reviewed_by,
        "peerApproved": c.peer_approved,
        "peerReviewReason": c.peer_review_reason,
        "peerReviewedAt": isoformat(c.peer_reviewed_at),
        "reviewedBy": c.reviewed_by,
        "reviewedAt": isoformat(c.reviewed_at),
        "moderatorNotes": c.moderator_notes,
        "rejectionReason": c.rejection_reason,
        "rejectionCount": c.rejection_count or 0,
        "warningLevel": c.warning_level,
        "appealed": c.appealed,
        "dependsOn": c.depends_on,
        "orderNumber": c.order_number,
        "requirement": c.requirement,
        "createdAt": isoformat(c.created_at),
        "updatedAt": isoformat(c.updated_at),
        # computed
        "isOverdue": c.is_overdue(now),
        "daysOverdue": c.days_overdue(now),
        "overdueStatus": c.overdue_status(now),
        "canStillSubmit": c.can_still_submit(now),
        "timeRemaining": c.time_remaining(now),
        "submissions": [submission_dto(s) for s in c.submissions],
    }

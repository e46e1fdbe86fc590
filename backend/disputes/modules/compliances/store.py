from __future__ import annotations

from datetime import datetime

from ...errors import NotFound
from ...extensions import db
from ...models.compliance import ClaimCompliance
from ...models.compliance_submission import ComplianceReview, ComplianceSubmission
from ...models.enums import AWAITING_USER_COMPLIANCE_STATUSES

_AWAITING = sorted(s.value for s in AWAITING_USER_COMPLIANCE_STATUSES)


class ComplianceStore:
    """Persistence for compliances and their append-only submission history."""

    def get(self, compliance_id: str) -> ClaimCompliance | None:
        if not compliance_id:
            return None
        return db.session.get(ClaimCompliance, str(compliance_id))

    def get_or_404(self, compliance_id: str) -> ClaimCompliance:
        compliance = self.get(compliance_id)
        if compliance is None:
            raise NotFound("Compliance not found")
        return compliance

    def add(self, compliance: ClaimCompliance) -> ClaimCompliance:
        db.session.add(compliance)
        db.session.flush()
        return compliance

    def by_claim(self, claim_id: str) -> list[ClaimCompliance]:
        return (
            ClaimCompliance.query.filter(ClaimCompliance.claim_id == str(claim_id))
            .order_by(ClaimCompliance.order_number.asc(), ClaimCompliance.created_at.asc())
            .all()
        )

    def by_claim_ids(self, claim_ids: list[str]) -> dict[str, list[ClaimCompliance]]:
        grouped: dict[str, list[ClaimCompliance]] = {cid: [] for cid in claim_ids}
        if not claim_ids:
            return grouped
        rows = (
            ClaimCompliance.query.filter(ClaimCompliance.claim_id.in_(list(claim_ids)))
            .order_by(ClaimCompliance.order_number.asc(), ClaimCompliance.created_at.asc())
            .all()
        )
        for row in rows:
            grouped.setdefault(row.claim_id, []).append(row)
        return grouped

    def dependents(self, compliance_id: str) -> list[ClaimCompliance]:
        return (
            ClaimCompliance.query.filter(ClaimCompliance.depends_on == str(compliance_id))
            .order_by(ClaimCompliance.order_number.asc())
            .all()
        )

    def by_responsible_user(self, user_id: int) -> list[ClaimCompliance]:
        return (
            ClaimCompliance.query.filter(ClaimCompliance.responsible_user_id == int(user_id))
            .order_by(ClaimCompliance.deadline.asc())
            .all()
        )

    def count_siblings(self, claim_id: str) -> int:
        return ClaimCompliance.query.filter(ClaimCompliance.claim_id == str(claim_id)).count()

    def search(
        self,
        *,
        claim_id: str | None = None,
        user_id: int | None = None,
        status: str | None = None,
        only_overdue: bool = False,
        now: datetime,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[ClaimCompliance], int]:
        qry = ClaimCompliance.query
        if claim_id:
            qry = qry.filter(ClaimCompliance.claim_id == str(claim_id))
        if user_id is not None:
            qry = qry.filter(ClaimCompliance.responsible_user_id == int(user_id))
        if status:
            qry = qry.filter(ClaimCompliance.status == status)
        if only_overdue:
            qry = qry.filter(
                db.or_(
                    ClaimCompliance.warning_level > 0,
                    db.and_(ClaimCompliance.status.in_(_AWAITING), ClaimCompliance.deadline < now),
                )
            )
        page = max(int(page or 1), 1)
        limit = max(min(int(limit or 10), 100), 1)
        total = qry.count()
        rows = (
            qry.order_by(ClaimCompliance.deadline.asc(), ClaimCompliance.id.asc())
            .limit(limit)
            .offset((page - 1) * limit)
            .all()
        )
        return rows, total

    # ---- consequence engine ---------------------------------------------

    def overdue_candidates(self, now: datetime) -> list[ClaimCompliance]:
        """Non-appealed items awaiting the user with at least one deadline in the past.

        The caller decides per item against the deadline of its warning level.
        """
        return (
            ClaimCompliance.query.filter(
                ClaimCompliance.status.in_(_AWAITING),
                ClaimCompliance.appealed.is_(False),
                db.or_(
                    ClaimCompliance.deadline < now,
                    ClaimCompliance.extended_deadline < now,
                    ClaimCompliance.final_deadline < now,
                ),
            )
            .order_by(ClaimCompliance.deadline.asc(), ClaimCompliance.id.asc())
            .all()
        )

    def expiring_between(self, start: datetime, end: datetime) -> list[ClaimCompliance]:
        return (
            ClaimCompliance.query.filter(
                ClaimCompliance.status.in_(_AWAITING),
                ClaimCompliance.appealed.is_(False),
                db.or_(
                    ClaimCompliance.deadline.between(start, end),
                    ClaimCompliance.extended_deadline.between(start, end),
                    ClaimCompliance.final_deadline.between(start, end),
                ),
            )
            .order_by(ClaimCompliance.deadline.asc(), ClaimCompliance.id.asc())
            .all()
        )

    # ---- submission history ---------------------------------------------

    def next_attempt_number(self, compliance_id: str) -> int:
        count = ComplianceSubmission.query.filter(ComplianceSubmission.compliance_id == str(compliance_id)).count()
        return count + 1

    def latest_submission(self, compliance_id: str) -> ComplianceSubmission | None:
        return (
            ComplianceSubmission.query.filter(ComplianceSubmission.compliance_id == str(compliance_id))
            .order_by(ComplianceSubmission.attempt_number.desc())
            .first()
        )

    def add_submission(self, submission: ComplianceSubmission) -> ComplianceSubmission:
        db.session.add(submission)
        db.session.flush()
        return submission

    def add_review(self, review: ComplianceReview) -> ComplianceReview:
        db.session.add(review)
        db.session.flush()
        return review


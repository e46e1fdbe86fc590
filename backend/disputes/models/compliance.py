from __future__ import annotations

import math
from datetime import datetime

from sqlalchemy import Index, func

from ..clock import as_utc, utcnow
from ..extensions import db
from .claim import _uuid, json_list
from .enums import (
    REVIEWABLE_COMPLIANCE_STATUSES,
    TERMINAL_COMPLIANCE_STATUSES,
    WARNING_LEVEL_BY_STATUS,
    ComplianceRequirement,
    ComplianceStatus,
    compliance_status_enum,
    compliance_type_enum,
)

# Evidence is accepted until this many whole days past the original deadline
SUBMISSION_GRACE_DAYS = 5

_SECONDS_PER_DAY = 60 * 60 * 24


class ClaimCompliance(db.Model):
    """A remediation obligation assigned to one party when a claim is resolved.

    Items may be chained (``depends_on`` + sequential requirement) or run in
    parallel. Deadlines move along the escalation ladder: ``deadline`` is the
    moderator's grant, ``extended_deadline`` is set on the first escalation and
    ``final_deadline`` on the second.
    """

    __tablename__ = "claim_compliances"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    claim_id = db.Column(db.String(36), db.ForeignKey("claims.id", ondelete="CASCADE"), nullable=False)
    responsible_user_id = db.Column(db.BigInteger, nullable=False)
    compliance_type = db.Column(compliance_type_enum, nullable=False)
    status = db.Column(compliance_status_enum, nullable=False, default=ComplianceStatus.PENDING.value)
    moderator_instructions = db.Column(db.Text, nullable=False)

    deadline = db.Column(db.DateTime(timezone=True), nullable=False)
    extended_deadline = db.Column(db.DateTime(timezone=True))
    final_deadline = db.Column(db.DateTime(timezone=True))
    original_deadline_days = db.Column(db.Integer, nullable=False, default=7)

    amount = db.Column(db.Numeric(10, 2))
    currency = db.Column(db.String(10), default="ARS")
    payment_link = db.Column(db.Text)
    requires_files = db.Column(db.Boolean, nullable=False, default=True)

    evidence_urls = db.Column(json_list, nullable=False, default=list)
    user_notes = db.Column(db.Text)
    submitted_at = db.Column(db.DateTime(timezone=True))
    current_attempt = db.Column(db.Integer, nullable=False, default=0)

    # Counter-party pre-review, once per submission cycle
    peer_reviewed_by = db.Column(db.BigInteger)
    peer_approved = db.Column(db.Boolean)
    peer_review_reason = db.Column(db.Text)
    peer_reviewed_at = db.Column(db.DateTime(timezone=True))

    reviewed_by = db.Column(db.BigInteger)
    reviewed_at = db.Column(db.DateTime(timezone=True))
    moderator_notes = db.Column(db.Text)
    rejection_reason = db.Column(db.Text)
    rejection_count = db.Column(db.Integer, nullable=False, default=0)

    # 0 = ok, 1 = overdue, 2 = warning (suspended), 3 = escalated (banned)
    warning_level = db.Column(db.Integer, nullable=False, default=0)
    appealed = db.Column(db.Boolean, nullable=False, default=False)

    depends_on = db.Column(db.String(36), db.ForeignKey("claim_compliances.id", ondelete="SET NULL"))
    order_number = db.Column(db.Integer, nullable=False, default=0)
    requirement = db.Column(db.String(20), nullable=False, default=ComplianceRequirement.SEQUENTIAL.value)

    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    claim = db.relationship("Claim", back_populates="compliances")
    parent = db.relationship("ClaimCompliance", remote_side=[id], foreign_keys=[depends_on])
    submissions = db.relationship(
        "ComplianceSubmission",
        back_populates="compliance",
        cascade="all, delete-orphan",
        order_by="ComplianceSubmission.attempt_number",
        lazy=True,
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_compliances_claim", "claim_id"),
        Index("idx_compliances_responsible", "responsible_user_id"),
        Index("idx_compliances_status_deadline", "status", "deadline"),
    )

    # ---- deadlines -------------------------------------------------------

    def current_deadline(self) -> datetime:
        return as_utc(self.final_deadline or self.extended_deadline or self.deadline)

    def tracked_deadline(self, level: int | None = None) -> datetime:
        """Deadline the escalation ladder watches for ``level`` (default: the stored level)."""
        level = self.warning_level if level is None else level
        if level == 2 and self.final_deadline:
            return as_utc(self.final_deadline)
        if level == 1 and self.extended_deadline:
            return as_utc(self.extended_deadline)
        return as_utc(self.deadline)

    def ladder_level(self) -> int:
        """Tier the sweep evaluates from.

        A submission drops ``warning_level`` to 0 but keeps the extended and
        final deadlines. An item sent back for adjustment resumes from the last
        tier those deadlines record, so no tier is applied twice.
        """
        level = self.warning_level or 0
        if self.status != ComplianceStatus.REQUIRES_ADJUSTMENT:
            return level
        if self.final_deadline:
            return max(level, 2)
        if self.extended_deadline:
            return max(level, 1)
        return level

    def days_overdue(self, now: datetime | None = None) -> int:
        """Whole days past the original deadline, 0 when not overdue."""
        now = now or utcnow()
        deadline = as_utc(self.deadline)
        if now <= deadline:
            return 0
        return int((now - deadline).total_seconds() // _SECONDS_PER_DAY)

    def overdue_status(self, now: datetime | None = None) -> str:
        now = now or utcnow()
        if now <= as_utc(self.deadline):
            return "NOT_OVERDUE"
        days = self.days_overdue(now)
        if days < 3:
            return "FIRST_WARNING"
        if days < 5:
            return "SUSPENDED"
        return "BANNED"

    def is_overdue(self, now: datetime | None = None) -> bool:
        now = now or utcnow()
        return now > self.current_deadline()

    def time_remaining(self, now: datetime | None = None) -> dict:
        now = now or utcnow()
        diff = (self.current_deadline() - now).total_seconds()
        if diff < 0:
            return {"days": 0, "hours": 0, "totalHours": 0, "isOverdue": True}
        total_hours = int(diff // 3600)
        return {
            "days": total_hours // 24,
            "hours": total_hours % 24,
            "totalHours": total_hours,
            "isOverdue": False,
        }

    def days_remaining(self, now: datetime | None = None) -> int:
        now = now or utcnow()
        return math.ceil((self.current_deadline() - now).total_seconds() / _SECONDS_PER_DAY)

    # ---- state -----------------------------------------------------------

    def is_final(self) -> bool:
        return self.status in TERMINAL_COMPLIANCE_STATUSES

    def can_still_submit(self, now: datetime | None = None) -> bool:
        if self.is_final():
            return False
        return self.days_overdue(now) < SUBMISSION_GRACE_DAYS

    def can_be_peer_reviewed(self) -> bool:
        return self.status == ComplianceStatus.SUBMITTED and self.peer_reviewed_by is None

    def needs_moderator_review(self) -> bool:
        return self.status in REVIEWABLE_COMPLIANCE_STATUSES

    def expected_warning_level(self) -> int:
        return WARNING_LEVEL_BY_STATUS.get(ComplianceStatus(self.status), 0)

    def is_sequential(self) -> bool:
        return self.requirement == ComplianceRequirement.SEQUENTIAL

    def awaits_prerequisite(self) -> bool:
        """Sequential items wait for their parent to be approved; parallel items never wait."""
        if not self.depends_on or not self.is_sequential():
            return False
        return self.parent is None or self.parent.status != ComplianceStatus.APPROVED

    def clear_review_cycle(self) -> None:
        self.peer_reviewed_by = None
        self.peer_approved = None
        self.peer_review_reason = None
        self.peer_reviewed_at = None
        self.reviewed_by = None
        self.reviewed_at = None
        self.moderator_notes = None
        self.rejection_reason = None

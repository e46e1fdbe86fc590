from sqlalchemy import Index, func

from ..extensions import db
from .claim import _uuid, json_list


class ComplianceSubmission(db.Model):
    """One evidence attempt for a compliance. Rows are written once and never updated."""

    __tablename__ = "claim_compliance_submissions"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    compliance_id = db.Column(
        db.String(36), db.ForeignKey("claim_compliances.id", ondelete="CASCADE"), nullable=False
    )
    attempt_number = db.Column(db.Integer, nullable=False)
    submitted_by = db.Column(db.BigInteger, nullable=False)
    evidence_urls = db.Column(json_list, nullable=False, default=list)
    user_notes = db.Column(db.Text)
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    compliance = db.relationship("ClaimCompliance", back_populates="submissions")
    reviews = db.relationship(
        "ComplianceReview",
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="ComplianceReview.reviewed_at",
        lazy=True,
    )

    __table_args__ = (
        Index("uq_compliance_submission_attempt", "compliance_id", "attempt_number", unique=True),
    )

    def review_by(self, kind: str):
        """Latest review of the given kind ('peer' or 'moderator'), if any."""
        found = None
        for review in self.reviews:
            if review.reviewer_kind == kind:
                found = review
        return found


class ComplianceReview(db.Model):
    """Append-only peer or moderator outcome for a submission."""

    __tablename__ = "claim_compliance_reviews"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    submission_id = db.Column(
        db.String(36), db.ForeignKey("claim_compliance_submissions.id", ondelete="CASCADE"), nullable=False
    )
    reviewer_kind = db.Column(db.String(20), nullable=False)  # peer | moderator
    reviewer_id = db.Column(db.BigInteger, nullable=False)
    decision = db.Column(db.String(20), nullable=False)  # approve | object | reject | adjust
    reason = db.Column(db.Text)
    notes = db.Column(db.Text)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=False)

    submission = db.relationship("ComplianceSubmission", back_populates="reviews")

    __table_args__ = (
        Index("idx_compliance_reviews_submission", "submission_id"),
    )

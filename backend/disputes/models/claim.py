import uuid

from sqlalchemy import JSON, Index, func
from sqlalchemy.dialects.postgresql import JSONB

from ..extensions import db
from .enums import (
    ClaimStatus,
    claim_resolution_type_enum,
    claim_role_enum,
    claim_status_enum,
    claim_type_enum,
)

json_list = JSONB().with_variant(JSON(), "sqlite")


def _uuid() -> str:
    return str(uuid.uuid4())


class Claim(db.Model):
    __tablename__ = "claims"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    hiring_id = db.Column(db.BigInteger, nullable=False)
    claimant_user_id = db.Column(db.BigInteger, nullable=False)
    claimant_role = db.Column(claim_role_enum, nullable=False)
    claim_type = db.Column(claim_type_enum, nullable=False)
    description = db.Column(db.Text, nullable=False)
    other_reason = db.Column(db.String(30))
    evidence_urls = db.Column(json_list, nullable=False, default=list)
    status = db.Column(claim_status_enum, nullable=False, default=ClaimStatus.OPEN.value)
    # Hiring parties at creation time, so "my claims" can filter without fetching every hiring
    client_user_id = db.Column(db.BigInteger, nullable=False)
    provider_user_id = db.Column(db.BigInteger, nullable=False)
    # Hiring status before the claim moved it to "in claim"; restored on reject/cancel
    previous_hiring_status_id = db.Column(db.BigInteger)

    # Moderator asks the claimant to clarify
    observations = db.Column(db.Text)
    observations_by = db.Column(db.BigInteger)
    observations_at = db.Column(db.DateTime(timezone=True))
    # Claimant's answer; never overwrites the original description
    clarification_response = db.Column(db.Text)
    clarification_evidence_urls = db.Column(json_list, nullable=False, default=list)

    # Respondent's side of the story
    respondent_observations = db.Column(db.Text)
    respondent_evidence_urls = db.Column(json_list, nullable=False, default=list)
    respondent_observations_by = db.Column(db.BigInteger)
    respondent_observations_at = db.Column(db.DateTime(timezone=True))

    assigned_moderator_id = db.Column(db.BigInteger)
    assigned_moderator_email = db.Column(db.String(255))
    assigned_at = db.Column(db.DateTime(timezone=True))

    resolution = db.Column(db.Text)
    resolution_type = db.Column(claim_resolution_type_enum)
    partial_agreement_details = db.Column(db.Text)
    resolved_by = db.Column(db.BigInteger)
    resolved_at = db.Column(db.DateTime(timezone=True))

    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    compliances = db.relationship(
        "ClaimCompliance",
        back_populates="claim",
        cascade="all, delete-orphan",
        order_by="ClaimCompliance.order_number",
        lazy=True,
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_claims_hiring", "hiring_id"),
        Index("idx_claims_claimant", "claimant_user_id"),
        Index("idx_claims_client", "client_user_id"),
        Index("idx_claims_provider", "provider_user_id"),
        Index("idx_claims_status", "status"),
        Index("idx_claims_created_at", "created_at"),
    )

    # Duck-types the hiring snapshot used by role derivation
    @property
    def client_id(self) -> int:
        return self.client_user_id

    @property
    def provider_id(self) -> int:
        return self.provider_user_id

    @property
    def all_evidence_urls(self) -> list[str]:
        return list(self.evidence_urls or []) + list(self.clarification_evidence_urls or [])

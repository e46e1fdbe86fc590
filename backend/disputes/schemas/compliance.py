from datetime import timezone

from marshmallow import EXCLUDE, Schema, fields, validate

from ..models.enums import ComplianceRequirement, ComplianceStatus, ComplianceType


class _Payload(Schema):
    class Meta:
        unknown = EXCLUDE


class ComplianceItemSchema(_Payload):
    """One remediation obligation inside a resolve payload."""

    responsible_user_id = fields.Int(required=True, data_key="responsibleUserId", validate=validate.Range(min=1))
    compliance_type = fields.Str(
        required=True, data_key="complianceType", validate=validate.OneOf([t.value for t in ComplianceType])
    )
    moderator_instructions = fields.Str(required=True, data_key="instructions", validate=validate.Length(min=20, max=2000))
    deadline_days = fields.Int(required=True, data_key="deadlineDays", validate=validate.Range(min=1, max=90))
    order_number = fields.Int(load_default=None, allow_none=True, data_key="order", validate=validate.Range(min=0))
    amount = fields.Decimal(load_default=None, allow_none=True, places=2, validate=validate.Range(min=0))
    currency = fields.Str(load_default="ARS", validate=validate.Length(min=3, max=10))
    payment_link = fields.Str(load_default=None, allow_none=True, data_key="paymentLink")
    requires_files = fields.Bool(load_default=True, data_key="requiresFiles")
    depends_on = fields.Str(load_default=None, allow_none=True, data_key="dependsOn")
    depends_on_index = fields.Int(load_default=None, allow_none=True, data_key="dependsOnIndex", validate=validate.Range(min=0))
    requirement = fields.Str(
        load_default=ComplianceRequirement.SEQUENTIAL.value,
        validate=validate.OneOf([r.value for r in ComplianceRequirement]),
    )


class GetCompliancesSchema(_Payload):
    claim_id = fields.Str(load_default=None, allow_none=True, data_key="claimId")
    user_id = fields.Int(load_default=None, allow_none=True, data_key="userId")
    status = fields.Str(load_default=None, allow_none=True, validate=validate.OneOf([s.value for s in ComplianceStatus]))
    only_overdue = fields.Bool(load_default=False, data_key="onlyOverdue")
    page = fields.Int(load_default=1, validate=validate.Range(min=1))
    limit = fields.Int(load_default=10, validate=validate.Range(min=1, max=100))


class ComplianceIdSchema(_Payload):
    compliance_id = fields.Str(required=True, data_key="complianceId")


class SubmitComplianceSchema(ComplianceIdSchema):
    user_id = fields.Int(required=True, data_key="userId")
    user_notes = fields.Str(load_default=None, allow_none=True, data_key="userNotes", validate=validate.Length(max=2000))
    evidence_urls = fields.List(
        fields.Str(validate=validate.Length(min=1, max=2048)),
        load_default=list,
        data_key="evidenceUrls",
        validate=validate.Length(max=10),
    )


class SubmitComplianceByClaimSchema(_Payload):
    claim_id = fields.Str(required=True, data_key="claimId")
    user_id = fields.Int(required=True, data_key="userId")
    compliance_id = fields.Str(load_default=None, allow_none=True, data_key="complianceId")
    user_notes = fields.Str(load_default=None, allow_none=True, data_key="userNotes", validate=validate.Length(max=2000))
    evidence_urls = fields.List(
        fields.Str(validate=validate.Length(min=1, max=2048)),
        load_default=list,
        data_key="evidenceUrls",
        validate=validate.Length(max=10),
    )


class PeerReviewSchema(ComplianceIdSchema):
    user_id = fields.Int(required=True, data_key="userId")
    approved = fields.Bool(required=True)
    # Objection text on reject, optional comment on approve
    objection = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=2000))


class ModeratorReviewSchema(ComplianceIdSchema):
    moderator_id = fields.Int(required=True, data_key="moderatorId")
    decision = fields.Str(required=True, validate=validate.OneOf(["approve", "reject", "adjust"]))
    moderator_notes = fields.Str(load_default=None, allow_none=True, data_key="moderatorNotes", validate=validate.Length(max=2000))
    rejection_reason = fields.Str(load_default=None, allow_none=True, data_key="rejectionReason", validate=validate.Length(max=2000))


class UserStatsSchema(_Payload):
    user_id = fields.Int(required=True, data_key="userId")


class SweepSchema(_Payload):
    now = fields.AwareDateTime(load_default=None, allow_none=True, default_timezone=timezone.utc)

from marshmallow import EXCLUDE, Schema, fields, validate

from ..models.enums import ClaimResolutionType, ClaimRole, ClaimStatus, ClaimType
from ..modules.claims.store import REQUIRES_RESPONSE
from .compliance import ComplianceItemSchema

_claim_types = [t.value for t in ClaimType]
_claim_statuses = [s.value for s in ClaimStatus] + [REQUIRES_RESPONSE]


class _Payload(Schema):
    class Meta:
        unknown = EXCLUDE


class _Paged(_Payload):
    page = fields.Int(load_default=1, validate=validate.Range(min=1))
    limit = fields.Int(load_default=10, validate=validate.Range(min=1, max=100))


class CreateClaimSchema(_Payload):
    user_id = fields.Int(required=True, data_key="userId")
    hiring_id = fields.Int(required=True, data_key="hiringId")
    claim_type = fields.Str(required=True, data_key="claimType", validate=validate.OneOf(_claim_types))
    description = fields.Str(required=True, validate=validate.Length(min=10, max=2000))
    evidence_urls = fields.List(
        fields.Str(validate=validate.Length(min=1, max=2048)),
        load_default=list,
        data_key="evidenceUrls",
        validate=validate.Length(max=10),
    )
    other_reason = fields.Str(load_default=None, allow_none=True, data_key="otherReason", validate=validate.Length(max=30))


class ClaimIdSchema(_Payload):
    claim_id = fields.Str(required=True, data_key="claimId")


class CancelClaimSchema(ClaimIdSchema):
    user_id = fields.Int(required=True, data_key="userId")


class GetClaimsSchema(_Paged):
    hiring_id = fields.Int(load_default=None, allow_none=True, data_key="hiringId")
    status = fields.Str(load_default=None, allow_none=True, validate=validate.OneOf(_claim_statuses))
    claimant_role = fields.Str(
        load_default=None,
        allow_none=True,
        data_key="claimantRole",
        validate=validate.OneOf([r.value for r in ClaimRole]),
    )
    search_term = fields.Str(load_default=None, allow_none=True, data_key="searchTerm")


class GetMyClaimsSchema(_Paged):
    user_id = fields.Int(required=True, data_key="userId")
    status = fields.Str(load_default=None, allow_none=True, validate=validate.OneOf(_claim_statuses))
    limit = fields.Int(load_default=12, validate=validate.Range(min=1, max=100))


class ClaimDetailSchema(ClaimIdSchema):
    requester_id = fields.Int(required=True, data_key="requesterId")
    is_staff = fields.Bool(load_default=False, data_key="isStaff")


class ClaimsByHiringSchema(_Payload):
    hiring_id = fields.Int(required=True, data_key="hiringId")


class MarkInReviewSchema(ClaimIdSchema):
    moderator_id = fields.Int(load_default=None, allow_none=True, data_key="moderatorId")
    moderator_email = fields.Email(load_default=None, allow_none=True, data_key="moderatorEmail")


class AddObservationsSchema(ClaimIdSchema):
    moderator_id = fields.Int(required=True, data_key="moderatorId")
    observations = fields.Str(required=True, validate=validate.Length(min=10, max=2000))


class RespondentObservationsSchema(ClaimIdSchema):
    user_id = fields.Int(required=True, data_key="userId")
    observations = fields.Str(required=True, validate=validate.Length(min=10, max=2000))
    evidence_urls = fields.List(
        fields.Str(validate=validate.Length(min=1, max=2048)),
        load_default=list,
        data_key="evidenceUrls",
        validate=validate.Length(max=10),
    )


class UpdateClaimSchema(ClaimIdSchema):
    """Claimant's answer to the moderator's observations."""

    user_id = fields.Int(required=True, data_key="userId")
    clarification_response = fields.Str(
        load_default=None, allow_none=True, data_key="clarificationResponse", validate=validate.Length(max=2000)
    )
    evidence_urls = fields.List(
        fields.Str(validate=validate.Length(min=1, max=2048)),
        load_default=list,
        data_key="evidenceUrls",
        validate=validate.Length(max=10),
    )


class ResolveDtoSchema(_Payload):
    status = fields.Str(
        required=True, validate=validate.OneOf([ClaimStatus.RESOLVED.value, ClaimStatus.REJECTED.value])
    )
    resolution = fields.Str(required=True, validate=validate.Length(min=20, max=2000))
    resolution_type = fields.Str(
        load_default=None,
        allow_none=True,
        data_key="resolutionType",
        validate=validate.OneOf([t.value for t in ClaimResolutionType]),
    )
    partial_agreement_details = fields.Str(
        load_default=None, allow_none=True, data_key="partialAgreementDetails", validate=validate.Length(max=500)
    )
    compliances = fields.List(fields.Nested(ComplianceItemSchema), load_default=list, validate=validate.Length(max=5))


class ResolveClaimSchema(ClaimIdSchema):
    resolved_by = fields.Int(required=True, data_key="resolvedBy")
    resolve_dto = fields.Nested(ResolveDtoSchema, required=True, data_key="resolveDto")

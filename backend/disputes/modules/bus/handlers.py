from __future__ import annotations

from ...schemas.claim import (
    AddObservationsSchema,
    CancelClaimSchema,
    ClaimDetailSchema,
    ClaimIdSchema,
    ClaimsByHiringSchema,
    CreateClaimSchema,
    GetClaimsSchema,
    GetMyClaimsSchema,
    MarkInReviewSchema,
    RespondentObservationsSchema,
    ResolveClaimSchema,
    UpdateClaimSchema,
)
from ...schemas.compliance import (
    ComplianceIdSchema,
    GetCompliancesSchema,
    ModeratorReviewSchema,
    PeerReviewSchema,
    SubmitComplianceByClaimSchema,
    SubmitComplianceSchema,
    SweepSchema,
    UserStatsSchema,
)
from ..claims.presenters import claim_dto
from ..compliances.presenters import compliance_dto
from .router import MessageRouter

router = MessageRouter()


# ---- claims ---------------------------------------------------------------

@router.pattern("createClaim", CreateClaimSchema)
def create_claim(services, data: dict) -> dict:
    claim = services.claims.create(
        data["user_id"],
        data["hiring_id"],
        data["claim_type"],
        data["description"],
        evidence_urls=data["evidence_urls"],
        other_reason=data["other_reason"],
    )
    return claim_dto(claim)


@router.pattern("cancelClaim", CancelClaimSchema)
def cancel_claim(services, data: dict) -> dict:
    return claim_dto(services.claims.cancel(data["claim_id"], data["user_id"]))


@router.pattern("getClaims", GetClaimsSchema)
def get_claims(services, data: dict) -> dict:
    return services.queries.get_claims(**data)


@router.pattern("getMyClaims", GetMyClaimsSchema)
def get_my_claims(services, data: dict) -> dict:
    return services.queries.get_my_claims(**data)


@router.pattern("getClaimDetail", ClaimDetailSchema)
def get_claim_detail(services, data: dict) -> dict:
    return services.queries.get_claim_detail(data["claim_id"], data["requester_id"], data["is_staff"])


@router.pattern("getClaimById", ClaimIdSchema)
def get_claim_by_id(services, data: dict) -> dict:
    return services.queries.get_claim_by_id(data["claim_id"])


@router.pattern("getClaimsByHiring", ClaimsByHiringSchema)
def get_claims_by_hiring(services, data: dict) -> list[dict]:
    return services.queries.get_claims_by_hiring(data["hiring_id"])


@router.pattern("markClaimAsInReview", MarkInReviewSchema)
def mark_in_review(services, data: dict) -> dict:
    claim = services.claims.mark_in_review(data["claim_id"], data["moderator_id"], data["moderator_email"])
    return claim_dto(claim)


@router.pattern("addClaimObservations", AddObservationsSchema)
def add_observations(services, data: dict) -> dict:
    claim = services.claims.add_observations(data["claim_id"], data["moderator_id"], data["observations"])
    return claim_dto(claim)


@router.pattern("submitRespondentObservations", RespondentObservationsSchema)
def submit_respondent_observations(services, data: dict) -> dict:
    claim = services.claims.submit_respondent_observations(
        data["claim_id"], data["user_id"], data["observations"], evidence_urls=data["evidence_urls"]
    )
    return claim_dto(claim)


@router.pattern("updateClaim", UpdateClaimSchema)
def update_claim(services, data: dict) -> dict:
    claim = services.claims.submit_clarification(
        data["claim_id"], data["user_id"], data["clarification_response"], evidence_urls=data["evidence_urls"]
    )
    return claim_dto(claim)


@router.pattern("resolveClaim", ResolveClaimSchema)
def resolve_claim(services, data: dict) -> dict:
    dto = data["resolve_dto"]
    claim, created = services.claims.resolve(
        data["claim_id"],
        data["resolved_by"],
        dto["status"],
        dto["resolution"],
        resolution_type=dto["resolution_type"],
        partial_agreement_details=dto["partial_agreement_details"],
        compliances=dto["compliances"],
    )
    now = services.clock()
    return {"claim": claim_dto(claim), "compliances": [compliance_dto(c, now) for c in created]}


# ---- compliances ----------------------------------------------------------

@router.pattern("getCompliances", GetCompliancesSchema)
def get_compliances(services, data: dict) -> dict:
    return services.queries.get_compliances(**data)


@router.pattern("getComplianceById", ComplianceIdSchema)
def get_compliance_by_id(services, data: dict) -> dict:
    return services.queries.get_compliance_by_id(data["compliance_id"])


@router.pattern("submitCompliance", SubmitComplianceSchema)
def submit_compliance(services, data: dict) -> dict:
    compliance = services.compliances.submit(
        data["compliance_id"], data["user_id"], user_notes=data["user_notes"], evidence_urls=data["evidence_urls"]
    )
    return compliance_dto(compliance, services.clock())


@router.pattern("submitComplianceByClaim", SubmitComplianceByClaimSchema)
def submit_compliance_by_claim(services, data: dict) -> dict:
    compliance = services.compliances.submit_by_claim(
        data["claim_id"],
        data["user_id"],
        compliance_id=data["compliance_id"],
        user_notes=data["user_notes"],
        evidence_urls=data["evidence_urls"],
    )
    return compliance_dto(compliance, services.clock())


@router.pattern("peerReviewCompliance", PeerReviewSchema)
def peer_review_compliance(services, data: dict) -> dict:
    compliance = services.compliances.peer_review(
        data["compliance_id"], data["user_id"], data["approved"], data["objection"]
    )
    return compliance_dto(compliance, services.clock())


@router.pattern("moderatorReviewCompliance", ModeratorReviewSchema)
def moderator_review_compliance(services, data: dict) -> dict:
    compliance = services.compliances.moderator_review(
        data["compliance_id"],
        data["moderator_id"],
        data["decision"],
        moderator_notes=data["moderator_notes"],
        rejection_reason=data["rejection_reason"],
    )
    return compliance_dto(compliance, services.clock())


@router.pattern("getUserComplianceStats", UserStatsSchema)
def get_user_compliance_stats(services, data: dict) -> dict:
    return services.compliances.stats_for_user(data["user_id"])


# ---- jobs -----------------------------------------------------------------

@router.pattern("runOverdueCompliancesJob", SweepSchema)
def run_overdue_compliances_job(services, data: dict) -> dict:
    return services.consequences.run_overdue_sweep(data["now"])


@router.pattern("runDeadlineRemindersJob", SweepSchema)
def run_deadline_reminders_job(services, data: dict) -> dict:
    return services.consequences.send_deadline_reminders(data["now"])

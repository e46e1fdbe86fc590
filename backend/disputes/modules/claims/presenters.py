from __future__ import annotations

from ...clock import isoformat
from ...models.claim import Claim
from ...models.enums import CLAIM_TYPE_LABELS, ClaimType


def claim_type_label(claim_type: str) -> str:
    try:
        return CLAIM_TYPE_LABELS[ClaimType(claim_type)]
    except ValueError:
        return claim_type


def claim_summary(claim: Claim, hiring_title: str | None = None) -> dict:
    """Compact payload handed to notification templates."""
    return {
        "id": claim.id,
        "hiringId": claim.hiring_id,
        "hiringTitle": hiring_title,
        "claimType": claim.claim_type,
        "claimTypeLabel": claim_type_label(claim.claim_type),
        "otherReason": claim.other_reason,
        "status": claim.status,
        "resolution": claim.resolution,
        "resolutionType": claim.resolution_type,
    }


def claim_dto(claim: Claim) -> dict:
    return {
        "id": claim.id,
        "hiringId": claim.hiring_id,
        "claimantUserId": claim.claimant_user_id,
        "claimantRole": claim.claimant_role,
        "claimType": claim.claim_type,
        "claimTypeLabel": claim_type_label(claim.claim_type),
        "description": claim.description,
        "otherReason": claim.other_reason,
        "evidenceUrls": list(claim.evidence_urls or []),
        "clarificationEvidenceUrls": list(claim.clarification_evidence_urls or []),
        "status": claim.status,
        "observations": claim.observations,
        "observationsBy": claim.observations_by,
        "observationsAt": isoformat(claim.observations_at),
        "clarificationResponse": claim.clarification_response,
        "respondentObservations": claim.respondent_observations,
        "respondentEvidenceUrls": list(claim.respondent_evidence_urls or []),
        "respondentObservationsBy": claim.respondent_observations_by,
        "respondentObservationsAt": isoformat(claim.respondent_observations_at),
        "assignedModeratorId": claim.assigned_moderator_id,
        "assignedModeratorEmail": claim.assigned_moderator_email,
        "assignedAt": isoformat(claim.assigned_at),
        "resolution": claim.resolution,
        "resolutionType": claim.resolution_type,
        "partialAgreementDetails": claim.partial_agreement_details,
        "resolvedBy": claim.resolved_by,
        "resolvedAt": isoformat(claim.resolved_at),
        "previousHiringStatusId": claim.previous_hiring_status_id,
        "createdAt": isoformat(claim.created_at),
        "updatedAt": isoformat(claim.updated_at),
    }

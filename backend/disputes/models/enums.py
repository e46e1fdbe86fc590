from enum import Enum

from sqlalchemy import String
from sqlalchemy.dialects.postgresql import ENUM


class ClaimRole(str, Enum):
    CLIENT = "client"
    PROVIDER = "provider"


class ClaimType(str, Enum):
    # client
    NOT_DELIVERED = "not_delivered"
    OFF_AGREEMENT = "off_agreement"
    DEFECTIVE_DELIVERY = "defective_delivery"
    CLIENT_OTHER = "client_other"
    # provider
    PAYMENT_NOT_RECEIVED = "payment_not_received"
    PROVIDER_OTHER = "provider_other"


class ClaimStatus(str, Enum):
    OPEN = "open"
    IN_REVIEW = "in_review"
    PENDING_CLARIFICATION = "pending_clarification"
    REQUIRES_STAFF_RESPONSE = "requires_staff_response"
    RESOLVED = "resolved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    FINISHED_BY_MODERATION = "finished_by_moderation"


class ClaimResolutionType(str, Enum):
    CLIENT_FAVOR = "client_favor"
    PROVIDER_FAVOR = "provider_favor"
    PARTIAL_AGREEMENT = "partial_agreement"


class ComplianceType(str, Enum):
    FULL_REFUND = "full_refund"
    PARTIAL_REFUND = "partial_refund"
    PAYMENT_REQUIRED = "payment_required"
    PARTIAL_PAYMENT = "partial_payment"
    WORK_COMPLETION = "work_completion"
    WORK_REVISION = "work_revision"
    FULL_REDELIVERY = "full_redelivery"
    CORRECTED_DELIVERY = "corrected_delivery"
    ADDITIONAL_DELIVERY = "additional_delivery"
    EVIDENCE_UPLOAD = "evidence_upload"
    CONFIRMATION_ONLY = "confirmation_only"
    OTHER = "other"


class ComplianceStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    PEER_APPROVED = "peer_approved"
    PEER_OBJECTED = "peer_objected"
    IN_REVIEW = "in_review"
    REQUIRES_ADJUSTMENT = "requires_adjustment"
    APPROVED = "approved"
    REJECTED = "rejected"
    OVERDUE = "overdue"
    WARNING = "warning"
    ESCALATED = "escalated"


class ComplianceRequirement(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


class HiringStatusCode(str, Enum):
    """Status codes owned by the hirings service that the claim flow reads or writes."""

    IN_PROGRESS = "in_progress"
    APPROVED = "approved"
    REVISION_REQUESTED = "revision_requested"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    IN_CLAIM = "in_claim"
    CANCELLED_BY_CLAIM = "cancelled_by_claim"
    COMPLETED_BY_CLAIM = "completed_by_claim"
    COMPLETED_WITH_AGREEMENT = "completed_with_agreement"


CLAIM_TYPES_BY_ROLE: dict[ClaimRole, tuple[ClaimType, ...]] = {
    ClaimRole.CLIENT: (
        ClaimType.NOT_DELIVERED,
        ClaimType.OFF_AGREEMENT,
        ClaimType.DEFECTIVE_DELIVERY,
        ClaimType.CLIENT_OTHER,
    ),
    ClaimRole.PROVIDER: (
        ClaimType.PAYMENT_NOT_RECEIVED,
        ClaimType.PROVIDER_OTHER,
    ),
}

OTHER_CLAIM_TYPES = frozenset({ClaimType.CLIENT_OTHER, ClaimType.PROVIDER_OTHER})

CLAIM_TYPE_LABELS: dict[ClaimType, str] = {
    ClaimType.NOT_DELIVERED: "Work not delivered",
    ClaimType.OFF_AGREEMENT: "Delivery outside the agreement",
    ClaimType.DEFECTIVE_DELIVERY: "Defective delivery",
    ClaimType.CLIENT_OTHER: "Other (specify)",
    ClaimType.PAYMENT_NOT_RECEIVED: "Payment not received",
    ClaimType.PROVIDER_OTHER: "Other (specify)",
}

ACTIVE_CLAIM_STATUSES = (
    ClaimStatus.OPEN,
    ClaimStatus.IN_REVIEW,
    ClaimStatus.PENDING_CLARIFICATION,
    ClaimStatus.REQUIRES_STAFF_RESPONSE,
)

RESOLVABLE_CLAIM_STATUSES = (ClaimStatus.IN_REVIEW, ClaimStatus.REQUIRES_STAFF_RESPONSE)

CLAIMABLE_HIRING_STATUSES = frozenset({
    HiringStatusCode.IN_PROGRESS,
    HiringStatusCode.APPROVED,
    HiringStatusCode.REVISION_REQUESTED,
    HiringStatusCode.DELIVERED,
    # warranty window after completion
    HiringStatusCode.COMPLETED,
})

HIRING_STATUS_BY_RESOLUTION: dict[ClaimResolutionType, HiringStatusCode] = {
    ClaimResolutionType.CLIENT_FAVOR: HiringStatusCode.CANCELLED_BY_CLAIM,
    ClaimResolutionType.PROVIDER_FAVOR: HiringStatusCode.COMPLETED_BY_CLAIM,
    ClaimResolutionType.PARTIAL_AGREEMENT: HiringStatusCode.COMPLETED_WITH_AGREEMENT,
}

TERMINAL_COMPLIANCE_STATUSES = frozenset({
    ComplianceStatus.APPROVED,
    ComplianceStatus.REJECTED,
    ComplianceStatus.ESCALATED,
})

REVIEWABLE_COMPLIANCE_STATUSES = frozenset({
    ComplianceStatus.SUBMITTED,
    ComplianceStatus.PEER_APPROVED,
    ComplianceStatus.PEER_OBJECTED,
    ComplianceStatus.IN_REVIEW,
})

# Statuses where the responsible user owes an action; only these are escalated
AWAITING_USER_COMPLIANCE_STATUSES = frozenset({
    ComplianceStatus.PENDING,
    ComplianceStatus.REQUIRES_ADJUSTMENT,
    ComplianceStatus.OVERDUE,
    ComplianceStatus.WARNING,
})

WARNING_LEVEL_BY_STATUS: dict[ComplianceStatus, int] = {
    ComplianceStatus.OVERDUE: 1,
    ComplianceStatus.WARNING: 2,
    ComplianceStatus.ESCALATED: 3,
}


def _pg_enum(enum_cls: type[Enum], name: str):
    # Postgres ENUM types assume the types already exist in the DB (create_type=False).
    # SQLite (tests) stores the plain string value.
    values = [member.value for member in enum_cls]
    return ENUM(*values, name=name, create_type=False).with_variant(String(40), "sqlite")


claim_role_enum = _pg_enum(ClaimRole, "claim_role_enum")
claim_type_enum = _pg_enum(ClaimType, "claim_type_enum")
claim_status_enum = _pg_enum(ClaimStatus, "claim_status_enum")
claim_resolution_type_enum = _pg_enum(ClaimResolutionType, "claim_resolution_type_enum")
compliance_type_enum = _pg_enum(ComplianceType, "compliance_type_enum")
compliance_status_enum = _pg_enum(ComplianceStatus, "compliance_status_enum")

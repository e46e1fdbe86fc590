from .claim import Claim
from .compliance import ClaimCompliance
from .compliance_submission import ComplianceReview, ComplianceSubmission

__all__ = ["Claim", "ClaimCompliance", "ComplianceSubmission", "ComplianceReview"]

"""Party derivation for a claim.

The respondent is never stored: it is whichever hiring party is not the
claimant. Everything here is pure and works on plain attributes so it can be
used on models, hiring snapshots and test doubles alike.
"""

from __future__ import annotations

from ...models.enums import CLAIM_TYPES_BY_ROLE, ClaimRole, ClaimType

CLAIMANT = "claimant"
RESPONDENT = "respondent"


def party_role(hiring, user_id: int) -> ClaimRole | None:
    """Role of ``user_id`` on the hiring itself (client or provider)."""
    if user_id is None:
        return None
    if int(user_id) == int(hiring.client_id):
        return ClaimRole.CLIENT
    if int(user_id) == int(hiring.provider_id):
        return ClaimRole.PROVIDER
    return None


def is_party(hiring, user_id: int) -> bool:
    return party_role(hiring, user_id) is not None


def respondent_id(claim, hiring) -> int:
    if claim.claimant_role == ClaimRole.CLIENT:
        return int(hiring.provider_id)
    return int(hiring.client_id)


def other_party_id(hiring, user_id: int) -> int | None:
    role = party_role(hiring, user_id)
    if role == ClaimRole.CLIENT:
        return int(hiring.provider_id)
    if role == ClaimRole.PROVIDER:
        return int(hiring.client_id)
    return None


def role(claim, hiring, user_id: int) -> str | None:
    """'claimant', 'respondent' or None for the given user."""
    if user_id is None:
        return None
    if int(user_id) == int(claim.claimant_user_id):
        return CLAIMANT
    if int(user_id) == respondent_id(claim, hiring):
        return RESPONDENT
    return None


def claim_type_allowed(claimant_role: ClaimRole, claim_type: str) -> bool:
    try:
        ctype = ClaimType(claim_type)
    except ValueError:
        return False
    return ctype in CLAIM_TYPES_BY_ROLE.get(ClaimRole(claimant_role), ())

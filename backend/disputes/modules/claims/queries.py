"""Read side: claim listings and per-viewer detail views.

Presentation only; profile lookups in the identity service are best-effort
and degrade to id-only payloads.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Callable

from ...clock import isoformat, utcnow
from ...errors import Forbidden
from ...integrations.hirings.client import HiringsClient
from ...integrations.http import IntegrationError
from ...integrations.identity.client import IdentityClient, display_name
from ...logging import get_logger
from ...models.claim import Claim
from ...models.compliance import ClaimCompliance
from ...models.enums import ACTIVE_CLAIM_STATUSES, ClaimStatus, ComplianceStatus
from ..compliances.presenters import compliance_dto
from ..compliances.store import ComplianceStore
from . import roles
from .presenters import claim_dto
from .store import ClaimFilters, ClaimStore

logger = get_logger(__name__)


def _pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def _pending_compliance(items: list[ClaimCompliance]) -> ClaimCompliance | None:
    for c in items:
        if c.status != ComplianceStatus.APPROVED:
            return c
    return items[0] if items else None


def moderator_actions(claim: Claim, items: list[ClaimCompliance]) -> list[str]:
    actions = ["view_detail"]
    if claim.status == ClaimStatus.OPEN:
        actions.append("mark_in_review")
    if claim.status == ClaimStatus.IN_REVIEW:
        actions += ["add_observations", "resolve_claim"]
    if claim.status == ClaimStatus.REQUIRES_STAFF_RESPONSE:
        actions.append("resolve_claim")
    pending = _pending_compliance(items)
    if pending is not None and pending.needs_moderator_review():
        actions.append("review_compliance")
    return actions


def user_actions(claim: Claim, user_role: str | None, user_id: int, items: list[ClaimCompliance]) -> list[str]:
    actions = ["view_detail"]
    if user_role == roles.RESPONDENT and claim.status == ClaimStatus.OPEN:
        actions.append("submit_observations")
    if user_role == roles.CLAIMANT and claim.status == ClaimStatus.PENDING_CLARIFICATION:
        actions.append("submit_clarification")
    pending = _pending_compliance(items)
    if pending is not None and int(pending.responsible_user_id) == int(user_id):
        actions.append("upload_compliance")
    if user_role == roles.CLAIMANT and claim.status == ClaimStatus.RESOLVED:
        actions.append("create_review")
    if user_role == roles.CLAIMANT and claim.status in ACTIVE_CLAIM_STATUSES:
        actions.append("cancel_claim")
    return actions


def _profile(user_id: int | None, users: dict[int, dict]) -> dict | None:
    if user_id is None:
        return None
    user = users.get(int(user_id)) or {}
    profile = user.get("profile") or {}
    return {
        "id": int(user_id),
        "name": display_name(user, fallback=None) if user else None,
        "username": user.get("username") or profile.get("username"),
        "profilePicture": profile.get("profilePicture") or profile.get("avatar"),
    }


class ClaimQueryService:
    def __init__(
        self,
        claims: ClaimStore,
        compliances: ComplianceStore,
        identity: IdentityClient,
        hirings: HiringsClient,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.claims = claims
        self.compliances = compliances
        self.identity = identity
        self.hirings = hirings
        self.clock = clock

    def _users(self, ids) -> dict[int, dict]:
        ids = [i for i in ids if i is not None]
        if not ids:
            return {}
        try:
            return {int(u["id"]): u for u in self.identity.get_users_by_ids(ids) if u.get("id") is not None}
        except IntegrationError as e:
            logger.warning("User lookup failed, returning claims without profiles: %s", e)
            return {}

    def _hiring_title(self, hiring_id: int) -> str | None:
        try:
            hiring = self.hirings.find_by_id(hiring_id)
        except IntegrationError as e:
            logger.warning("Hiring lookup failed for %s: %s", hiring_id, e)
            return None
        return hiring.title if hiring else None

    def _full(self, claim: Claim, items: list[ClaimCompliance], now: datetime) -> dict:
        data = claim_dto(claim)
        data["compliances"] = [compliance_dto(c, now) for c in items]
        return data

    # ---- staff-facing ----------------------------------------------------

    def get_claims(
        self,
        hiring_id: int | None = None,
        status: str | None = None,
        claimant_role: str | None = None,
        search_term: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> dict:
        filters = ClaimFilters(
            hiring_id=hiring_id,
            status=status,
            claimant_role=claimant_role,
            search_term=search_term,
            page=page,
            limit=limit,
        )
        rows, total = self.claims.search(filters)
        grouped = self.compliances.by_claim_ids([c.id for c in rows])
        ids = set()
        for c in rows:
            ids.update({c.claimant_user_id, roles.respondent_id(c, c), c.resolved_by})
        users = self._users(ids)
        now = self.clock()

        out = []
        for claim in rows:
            items = grouped.get(claim.id, [])
            data = self._full(claim, items, now)
            resolver = users.get(int(claim.resolved_by)) if claim.resolved_by else None
            email_prefix = None
            if resolver and resolver.get("email"):
                email_prefix = resolver["email"].split("@")[0] or None
            data.update(
                {
                    "claimant": _profile(claim.claimant_user_id, users),
                    "otherUser": _profile(roles.respondent_id(claim, claim), users),
                    "resolvedByEmailPrefix": email_prefix,
                    "availableActions": moderator_actions(claim, items),
                }
            )
            out.append(data)
        limit = max(min(int(limit or 10), 100), 1)
        return {"claims": out, "total": total, "pages": _pages(total, limit), "page": max(int(page or 1), 1), "limit": limit}

    def get_claim_by_id(self, claim_id: str) -> dict:
        claim = self.claims.get_or_404(claim_id)
        return self._full(claim, self.compliances.by_claim(claim.id), self.clock())

    def get_claims_by_hiring(self, hiring_id: int) -> list[dict]:
        now = self.clock()
        rows = self.claims.by_hiring(hiring_id)
        grouped = self.compliances.by_claim_ids([c.id for c in rows])
        return [self._full(c, grouped.get(c.id, []), now) for c in rows]

    # ---- party-facing ----------------------------------------------------

    def get_my_claims(self, user_id: int, status: str | None = None, page: int = 1, limit: int = 12) -> dict:
        rows, total = self.claims.for_user(user_id, status=status, page=page, limit=limit)
        grouped = self.compliances.by_claim_ids([c.id for c in rows])
        users = self._users({roles.other_party_id(c, user_id) for c in rows})
        now = self.clock()

        out = []
        for claim in rows:
            items = grouped.get(claim.id, [])
            user_role = roles.role(claim, claim, user_id)
            pending = _pending_compliance(items)
            out.append(
                {
                    "id": claim.id,
                    "hiringId": claim.hiring_id,
                    "claimType": claim.claim_type,
                    "status": claim.status,
                    "userRole": user_role,
                    "otherUser": _profile(roles.other_party_id(claim, user_id), users),
                    "createdAt": isoformat(claim.created_at),
                    "updatedAt": isoformat(claim.updated_at),
                    "compliance": (
                        {
                            "id": pending.id,
                            "type": pending.compliance_type,
                            "status": pending.status,
                            "deadline": isoformat(pending.current_deadline()),
                            "daysRemaining": pending.days_remaining(now),
                        }
                        if pending is not None
                        else None
                    ),
                    "availableActions": user_actions(claim, user_role, user_id, items),
                }
            )
        limit = max(min(int(limit or 12), 100), 1)
        return {"claims": out, "total": total, "pages": _pages(total, limit), "page": max(int(page or 1), 1), "limit": limit}

    def get_claim_detail(self, claim_id: str, requester_id: int, is_staff: bool = False) -> dict:
        claim = self.claims.get_or_404(claim_id)
        if not is_staff and not roles.is_party(claim, requester_id):
            raise Forbidden("Not allowed to view this claim")
        items = self.compliances.by_claim(claim.id)
        user_role = roles.role(claim, claim, requester_id)
        other_id = roles.other_party_id(claim, requester_id) if user_role else roles.respondent_id(claim, claim)
        users = self._users({claim.claimant_user_id, other_id})
        now = self.clock()

        data = self._full(claim, items, now)
        data["userRole"] = user_role
        if is_staff:
            actions = moderator_actions(claim, items)
        else:
            actions = user_actions(claim, user_role, requester_id, items)
        return {
            "claim": data,
            "claimant": _profile(claim.claimant_user_id, users),
            "otherUser": _profile(other_id, users),
            "hiring": {"id": claim.hiring_id, "title": self._hiring_title(claim.hiring_id)},
            "assignedModerator": {"id": claim.assigned_moderator_id, "email": claim.assigned_moderator_email},
            "availableActions": actions,
        }

    # ---- compliances -----------------------------------------------------

    def get_compliances(
        self,
        claim_id: str | None = None,
        user_id: int | None = None,
        status: str | None = None,
        only_overdue: bool = False,
        page: int = 1,
        limit: int = 10,
    ) -> dict:
        now = self.clock()
        rows, total = self.compliances.search(
            claim_id=claim_id,
            user_id=user_id,
            status=status,
            only_overdue=only_overdue,
            now=now,
            page=page,
            limit=limit,
        )
        limit = max(min(int(limit or 10), 100), 1)
        return {
            "compliances": [compliance_dto(c, now) for c in rows],
            "total": total,
            "pages": _pages(total, limit),
            "page": max(int(page or 1), 1),
            "limit": limit,
        }

    def get_compliance_by_id(self, compliance_id: str) -> dict:
        return compliance_dto(self.compliances.get_or_404(compliance_id), self.clock())

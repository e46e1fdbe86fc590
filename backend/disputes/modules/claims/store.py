from __future__ import annotations

from dataclasses import dataclass

from ...errors import NotFound
from ...extensions import db
from ...models.claim import Claim
from ...models.enums import ACTIVE_CLAIM_STATUSES, ClaimStatus

# Staff-facing virtual status: claims waiting on a moderator answer
REQUIRES_RESPONSE = "requires_response"


@dataclass
class ClaimFilters:
    hiring_id: int | None = None
    status: str | None = None
    claimant_role: str | None = None
    search_term: str | None = None
    page: int = 1
    limit: int = 10


def _status_condition(status: str):
    if status == REQUIRES_RESPONSE:
        # Either the claimant answered a clarification request, or the
        # respondent added their side while the claim sits in review
        return db.or_(
            Claim.status == ClaimStatus.REQUIRES_STAFF_RESPONSE.value,
            db.and_(
                Claim.status == ClaimStatus.IN_REVIEW.value,
                Claim.respondent_observations.isnot(None),
            ),
        )
    return Claim.status == status


class ClaimStore:
    """Persistence for claims. Callers own the transaction (commit/rollback)."""

    def get(self, claim_id: str) -> Claim | None:
        if not claim_id:
            return None
        return db.session.get(Claim, str(claim_id))

    def get_or_404(self, claim_id: str) -> Claim:
        claim = self.get(claim_id)
        if claim is None:
            raise NotFound("Claim not found")
        return claim

    def add(self, claim: Claim) -> Claim:
        db.session.add(claim)
        db.session.flush()
        return claim

    def has_active_claim(self, hiring_id: int) -> bool:
        active = [s.value for s in ACTIVE_CLAIM_STATUSES]
        q = Claim.query.filter(Claim.hiring_id == int(hiring_id), Claim.status.in_(active))
        return db.session.query(q.exists()).scalar()

    def by_hiring(self, hiring_id: int) -> list[Claim]:
        return (
            Claim.query.filter(Claim.hiring_id == int(hiring_id))
            .order_by(Claim.created_at.desc())
            .all()
        )

    def search(self, filters: ClaimFilters) -> tuple[list[Claim], int]:
        qry = Claim.query
        if filters.hiring_id:
            qry = qry.filter(Claim.hiring_id == int(filters.hiring_id))
        if filters.status:
            qry = qry.filter(_status_condition(filters.status))
        if filters.claimant_role:
            qry = qry.filter(Claim.claimant_role == filters.claimant_role)
        if filters.search_term:
            like = f"%{filters.search_term.strip()}%"
            qry = qry.filter(
                db.or_(
                    Claim.id.ilike(like),
                    Claim.description.ilike(like),
                    Claim.other_reason.ilike(like),
                    Claim.resolution.ilike(like),
                )
            )
        return self._page(qry, filters.page, filters.limit)

    def for_user(self, user_id: int, *, status: str | None = None, page: int = 1, limit: int = 12) -> tuple[list[Claim], int]:
        """Claims where the user is either hiring party (claimant or respondent)."""
        uid = int(user_id)
        qry = Claim.query.filter(
            db.or_(
                Claim.claimant_user_id == uid,
                Claim.client_user_id == uid,
                Claim.provider_user_id == uid,
            )
        )
        if status:
            qry = qry.filter(_status_condition(status))
        return self._page(qry, page, limit)

    @staticmethod
    def _page(qry, page: int, limit: int) -> tuple[list[Claim], int]:
        page = max(int(page or 1), 1)
        limit = max(min(int(limit or 10), 100), 1)
        total = qry.count()
        rows = (
            qry.order_by(Claim.created_at.desc(), Claim.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
            .all()
        )
        return rows, total

"""Claim state machine.

    open -> in_review -> pending_clarification -> requires_staff_response
      |         |                                        |
      +---------+---- resolve (resolved | rejected) -----+
      +-- cancel (claimant, any non-terminal status)

Every transition commits before notifications go out; notification and
collaborator failures after the commit are logged and swallowed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from ...clock import utcnow
from ...errors import BadRequest, Forbidden, Internal, NotFound
from ...extensions import db
from ...integrations.hirings.client import Hiring, HiringsClient
from ...integrations.http import IntegrationError
from ...integrations.notifications.client import NotificationClient
from ...logging import get_logger
from ...models.claim import Claim
from ...models.compliance import ClaimCompliance
from ...models.enums import (
    ACTIVE_CLAIM_STATUSES,
    CLAIMABLE_HIRING_STATUSES,
    HIRING_STATUS_BY_RESOLUTION,
    OTHER_CLAIM_TYPES,
    RESOLVABLE_CLAIM_STATUSES,
    ClaimResolutionType,
    ClaimStatus,
    ClaimType,
    HiringStatusCode,
)
from ..common import MAX_EVIDENCE_URLS, best_effort, clean_urls
from ..compliances.presenters import compliance_summary
from ..compliances.service import ComplianceLifecycleService
from . import roles
from .presenters import claim_summary
from .store import ClaimStore

logger = get_logger(__name__)

MAX_COMPLIANCES_PER_RESOLUTION = 5


class ClaimLifecycleService:
    def __init__(
        self,
        claims: ClaimStore,
        compliances: ComplianceLifecycleService,
        hirings: HiringsClient,
        notifications: NotificationClient,
        *,
        moderation_inbox: str | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.claims = claims
        self.compliances = compliances
        self.hirings = hirings
        self.notifications = notifications
        self.moderation_inbox = moderation_inbox
        self.clock = clock

    # ---- helpers ---------------------------------------------------------

    def _hiring(self, hiring_id: int) -> Hiring:
        hiring = self.hirings.find_by_id(hiring_id)
        if hiring is None:
            raise NotFound(f"Hiring {hiring_id} not found")
        return hiring

    def _set_hiring_status(self, hiring_id: int, *, code: str | None = None, status_id: int | None = None) -> None:
        try:
            if status_id is None:
                status_id = self.hirings.find_status_id(code)
            self.hirings.update_status(hiring_id, status_id)
        except IntegrationError as e:
            logger.error("Could not move hiring %s to %s: %s", hiring_id, code or status_id, e)
            raise Internal("Could not update the hiring status") from e

    def _restore_hiring(self, claim: Claim) -> None:
        if claim.previous_hiring_status_id is None:
            logger.warning("Claim %s has no previous hiring status to restore", claim.id)
            return
        self._set_hiring_status(claim.hiring_id, status_id=claim.previous_hiring_status_id)

    def _notify_moderator(self, claim: Claim, send: Callable, action: str, *args) -> None:
        # Assigned moderator when there is one, the moderation inbox otherwise
        if claim.assigned_moderator_id is not None:
            best_effort(action, send, *args, user_id=claim.assigned_moderator_id)
        elif claim.assigned_moderator_email or self.moderation_inbox:
            best_effort(action, send, *args, email=claim.assigned_moderator_email or self.moderation_inbox)

    # ---- operations ------------------------------------------------------

    def create(
        self,
        user_id: int,
        hiring_id: int,
        claim_type: str,
        description: str,
        evidence_urls: list[str] | None = None,
        other_reason: str | None = None,
    ) -> Claim:
        hiring = self._hiring(hiring_id)
        party = roles.party_role(hiring, user_id)
        if party is None:
            raise Forbidden("Only the client or the provider of the hiring can open a claim")
        if not roles.claim_type_allowed(party, claim_type):
            raise BadRequest(f"Claim type '{claim_type}' is not allowed for the {party.value} role")
        other_reason = (other_reason or "").strip() or None
        if ClaimType(claim_type) in OTHER_CLAIM_TYPES and not other_reason:
            raise BadRequest("otherReason is required for 'other' claim types")
        if hiring.status_code not in CLAIMABLE_HIRING_STATUSES:
            raise BadRequest(f"A claim cannot be opened while the hiring is '{hiring.status_code}'")
        if self.claims.has_active_claim(hiring.id):
            raise BadRequest("There is already an active claim for this hiring")
        evidence = clean_urls(evidence_urls)
        if len(evidence) > MAX_EVIDENCE_URLS:
            raise BadRequest(f"At most {MAX_EVIDENCE_URLS} evidence files are allowed")

        now = self.clock()
        claim = Claim(
            hiring_id=hiring.id,
            claimant_user_id=int(user_id),
            claimant_role=party.value,
            client_user_id=hiring.client_id,
            provider_user_id=hiring.provider_id,
            claim_type=ClaimType(claim_type).value,
            description=description.strip(),
            other_reason=other_reason if ClaimType(claim_type) in OTHER_CLAIM_TYPES else None,
            evidence_urls=evidence,
            status=ClaimStatus.OPEN.value,
            previous_hiring_status_id=hiring.status_id,
            created_at=now,
            updated_at=now,
        )
        self.claims.add(claim)
        self._set_hiring_status(hiring.id, code=HiringStatusCode.IN_CLAIM.value)
        db.session.commit()
        logger.info("Claim %s opened on hiring %s by user %s (%s)", claim.id, hiring.id, user_id, party.value)

        summary = claim_summary(claim, hiring.title)
        best_effort("claim confirmation email", self.notifications.claim_created_confirmation, claim.claimant_user_id, summary)
        best_effort(
            "claim respondent email",
            self.notifications.claim_created,
            roles.respondent_id(claim, hiring),
            summary,
        )
        if self.moderation_inbox:
            best_effort("claim moderation email", self.notifications.claim_created_admin, self.moderation_inbox, summary)
        return claim

    def mark_in_review(self, claim_id: str, moderator_id: int | None = None, moderator_email: str | None = None) -> Claim:
        claim = self.claims.get_or_404(claim_id)
        if claim.status not in (ClaimStatus.OPEN, ClaimStatus.IN_REVIEW):
            raise BadRequest(f"Claim cannot be marked in review from status '{claim.status}'")
        changed = False
        if claim.status == ClaimStatus.OPEN:
            claim.status = ClaimStatus.IN_REVIEW.value
            changed = True
        # First moderator wins
        if claim.assigned_moderator_id is None and claim.assigned_moderator_email is None and (moderator_id or moderator_email):
            claim.assigned_moderator_id = int(moderator_id) if moderator_id is not None else None
            claim.assigned_moderator_email = moderator_email
            claim.assigned_at = self.clock()
            changed = True
        if changed:
            db.session.commit()
            logger.info("Claim %s in review (moderator %s)", claim.id, claim.assigned_moderator_id)
        return claim

    def add_observations(self, claim_id: str, moderator_id: int, observations: str) -> Claim:
        claim = self.claims.get_or_404(claim_id)
        if claim.status not in (ClaimStatus.OPEN, ClaimStatus.IN_REVIEW):
            raise BadRequest(f"Observations cannot be added to a claim in status '{claim.status}'")
        claim.observations = observations.strip()
        claim.observations_by = int(moderator_id)
        claim.observations_at = self.clock()
        claim.status = ClaimStatus.PENDING_CLARIFICATION.value
        db.session.commit()
        logger.info("Claim %s pending clarification (moderator %s)", claim.id, moderator_id)

        best_effort(
            "claim observations email",
            self.notifications.claim_observations,
            claim.claimant_user_id,
            claim_summary(claim),
            claim.observations,
        )
        return claim

    def submit_clarification(
        self, claim_id: str, claimant_id: int, response: str | None = None, evidence_urls: list[str] | None = None
    ) -> Claim:
        response = (response or "").strip() or None
        evidence = clean_urls(evidence_urls)
        if not response and not evidence:
            raise BadRequest("A clarification needs a response or at least one evidence file")
        claim = self.claims.get_or_404(claim_id)
        if claim.status != ClaimStatus.PENDING_CLARIFICATION:
            raise BadRequest("The claim is not waiting for a clarification")
        if int(claimant_id) != int(claim.claimant_user_id):
            raise Forbidden("Only the claimant can answer the moderator's observations")
        if len(claim.all_evidence_urls) + len(evidence) > MAX_EVIDENCE_URLS:
            raise BadRequest(f"At most {MAX_EVIDENCE_URLS} evidence files are allowed per claim")

        if response:
            claim.clarification_response = response
        if evidence:
            claim.clarification_evidence_urls = list(claim.clarification_evidence_urls or []) + evidence
        claim.status = ClaimStatus.REQUIRES_STAFF_RESPONSE.value
        db.session.commit()
        logger.info("Claim %s clarified by claimant %s", claim.id, claimant_id)

        self._notify_moderator(claim, self.notifications.claim_updated, "claim clarification email", claim_summary(claim))
        return claim

    def submit_respondent_observations(
        self, claim_id: str, respondent_id: int, observations: str, evidence_urls: list[str] | None = None
    ) -> Claim:
        claim = self.claims.get_or_404(claim_id)
        hiring = self._hiring(claim.hiring_id)
        if roles.role(claim, hiring, respondent_id) != roles.RESPONDENT:
            raise Forbidden("Only the respondent can submit observations")
        if claim.status != ClaimStatus.OPEN:
            raise BadRequest("Respondent observations are only accepted while the claim is open")
        evidence = clean_urls(evidence_urls)
        if len(evidence) > MAX_EVIDENCE_URLS:
            raise BadRequest(f"At most {MAX_EVIDENCE_URLS} evidence files are allowed")

        claim.respondent_observations = observations.strip()
        claim.respondent_evidence_urls = evidence
        claim.respondent_observations_by = int(respondent_id)
        claim.respondent_observations_at = self.clock()
        claim.status = ClaimStatus.IN_REVIEW.value
        db.session.commit()
        logger.info("Claim %s answered by respondent %s", claim.id, respondent_id)

        self._notify_moderator(
            claim,
            self.notifications.respondent_observations_submitted,
            "respondent observations email",
            claim_summary(claim, hiring.title),
        )
        return claim

    def resolve(
        self,
        claim_id: str,
        moderator_id: int,
        status: str,
        resolution: str,
        resolution_type: str | None = None,
        partial_agreement_details: str | None = None,
        compliances: list[dict] | None = None,
    ) -> tuple[Claim, list[ClaimCompliance]]:
        items = list(compliances or [])
        if status not in (ClaimStatus.RESOLVED, ClaimStatus.REJECTED):
            raise BadRequest("A claim can only be resolved or rejected")
        if len(items) > MAX_COMPLIANCES_PER_RESOLUTION:
            raise BadRequest(f"At most {MAX_COMPLIANCES_PER_RESOLUTION} compliances per resolution")
        claim = self.claims.get_or_404(claim_id)
        if claim.status not in RESOLVABLE_CLAIM_STATUSES:
            raise BadRequest(f"Claim cannot be resolved from status '{claim.status}'")
        hiring = self._hiring(claim.hiring_id)
        now = self.clock()

        created: list[ClaimCompliance] = []
        if status == ClaimStatus.REJECTED:
            if items:
                raise BadRequest("A rejected claim cannot carry compliances")
            claim.resolution_type = None
            claim.partial_agreement_details = None
        else:
            if not resolution_type:
                raise BadRequest("resolutionType is required to resolve a claim")
            try:
                rtype = ClaimResolutionType(resolution_type)
            except ValueError:
                raise BadRequest(f"Unknown resolution type '{resolution_type}'")
            claim.resolution_type = rtype.value
            details = None
            if rtype == ClaimResolutionType.PARTIAL_AGREEMENT:
                details = (partial_agreement_details or "").strip() or None
            claim.partial_agreement_details = details
            created = self.compliances.create_for_claim(claim, hiring, items, now)

        claim.status = ClaimStatus(status).value
        claim.resolution = resolution.strip()
        claim.resolved_by = int(moderator_id)
        claim.resolved_at = now

        if status == ClaimStatus.REJECTED:
            self._restore_hiring(claim)
        else:
            target = HIRING_STATUS_BY_RESOLUTION[ClaimResolutionType(claim.resolution_type)]
            self._set_hiring_status(hiring.id, code=target.value)
        db.session.commit()
        logger.info(
            "Claim %s %s by moderator %s (%s, %d compliances)",
            claim.id, claim.status, moderator_id, claim.resolution_type, len(created),
        )

        summary = claim_summary(claim, hiring.title)
        for party_id in hiring.party_ids:
            own = [compliance_summary(c) for c in created if int(c.responsible_user_id) == int(party_id)]
            best_effort("claim resolution email", self.notifications.claim_resolved, party_id, summary, own)
        return claim, created

    def cancel(self, claim_id: str, user_id: int) -> Claim:
        claim = self.claims.get_or_404(claim_id)
        if int(user_id) != int(claim.claimant_user_id):
            raise Forbidden("Only the claimant can cancel the claim")
        if claim.status not in ACTIVE_CLAIM_STATUSES:
            raise BadRequest(f"A claim in status '{claim.status}' cannot be cancelled")
        claim.status = ClaimStatus.CANCELLED.value
        self._restore_hiring(claim)
        db.session.commit()
        logger.info("Claim %s cancelled by claimant %s", claim.id, user_id)

        summary = claim_summary(claim)
        best_effort("claim cancelled email", self.notifications.claim_cancelled, summary, user_id=claim.claimant_user_id)
        best_effort(
            "claim cancelled email",
            self.notifications.claim_cancelled,
            summary,
            user_id=roles.respondent_id(claim, claim),
        )
        if claim.assigned_moderator_id is not None or claim.assigned_moderator_email:
            self._notify_moderator(claim, self.notifications.claim_cancelled, "claim cancelled email", summary)
        return claim

from datetime import timedelta

import pytest

from conftest import (
    CLIENT_ID,
    HIRING_ID,
    MODERATOR_ID,
    PROVIDER_ID,
    STATUS_IDS,
    STRANGER_ID,
    compliance_item,
)
from disputes.clock import as_utc
from disputes.errors import BadRequest, Forbidden, Internal, NotFound
from disputes.extensions import db
from disputes.models.claim import Claim

RESOLUTION = "After reviewing both sides the work must be redone."


# ---- create ---------------------------------------------------------------

def test_create_opens_claim_and_moves_hiring_to_in_claim(services, hirings, notifications):
    claim = services.claims.create(
        CLIENT_ID, HIRING_ID, "defective_delivery", "The delivered files are corrupted.", ["https://f/1.png"]
    )

    assert claim.status == "open"
    assert claim.claimant_role == "client"
    assert claim.previous_hiring_status_id == STATUS_IDS["delivered"]
    assert hirings.status_of(HIRING_ID) == "in_claim"
    assert notifications.to("claim_created_confirmation") == [CLIENT_ID]
    assert notifications.to("claim_created") == [PROVIDER_ID]
    assert notifications.to("claim_created_admin") == ["moderation@test.local"]


def test_created_claim_round_trips(services, open_claim):
    fetched = services.queries.get_claim_by_id(open_claim.id)

    assert fetched["claimType"] == "not_delivered"
    assert fetched["description"] == "The provider never delivered the agreed work."
    assert fetched["evidenceUrls"] == ["https://files.test/chat.png"]
    assert fetched["status"] == "open"


def test_create_unknown_hiring_is_not_found(services):
    with pytest.raises(NotFound):
        services.claims.create(CLIENT_ID, 404, "not_delivered", "Nothing was delivered at all.")


def test_create_by_non_party_is_forbidden(services):
    with pytest.raises(Forbidden):
        services.claims.create(STRANGER_ID, HIRING_ID, "not_delivered", "Nothing was delivered at all.")


def test_create_rejects_type_outside_role(services):
    with pytest.raises(BadRequest):
        services.claims.create(PROVIDER_ID, HIRING_ID, "not_delivered", "Nothing was delivered at all.")


def test_other_type_requires_reason(services):
    with pytest.raises(BadRequest):
        services.claims.create(PROVIDER_ID, HIRING_ID, "provider_other", "Client keeps changing scope.")

    claim = services.claims.create(
        PROVIDER_ID, HIRING_ID, "provider_other", "Client keeps changing scope.", other_reason="Scope creep"
    )
    assert claim.other_reason == "Scope creep"
    assert claim.claimant_role == "provider"


def test_create_rejects_unclaimable_hiring(services, hirings):
    hirings.add(2, CLIENT_ID, PROVIDER_ID, "cancelled")
    with pytest.raises(BadRequest):
        services.claims.create(CLIENT_ID, 2, "not_delivered", "Nothing was delivered at all.")


def test_no_double_open(services, open_claim):
    with pytest.raises(BadRequest):
        services.claims.create(PROVIDER_ID, HIRING_ID, "payment_not_received", "The client never paid me.")


@pytest.mark.parametrize("status", ["in_review", "pending_clarification", "requires_staff_response"])
def test_no_double_open_for_every_active_status(services, open_claim, status):
    open_claim.status = status
    with pytest.raises(BadRequest):
        services.claims.create(CLIENT_ID, HIRING_ID, "off_agreement", "Work does not match the agreement.")


def test_create_caps_evidence(services):
    with pytest.raises(BadRequest):
        services.claims.create(
            CLIENT_ID, HIRING_ID, "not_delivered", "Nothing was delivered at all.", [f"https://f/{i}" for i in range(11)]
        )


def test_create_fails_and_persists_nothing_when_hiring_update_fails(services, hirings):
    hirings.fail_updates = True
    with pytest.raises(Internal):
        services.claims.create(CLIENT_ID, HIRING_ID, "not_delivered", "Nothing was delivered at all.")

    db.session.rollback()
    assert Claim.query.count() == 0


def test_notification_failures_do_not_fail_create(services, notifications):
    notifications.fail = True
    claim = services.claims.create(CLIENT_ID, HIRING_ID, "not_delivered", "Nothing was delivered at all.")
    assert claim.status == "open"


# ---- triage ---------------------------------------------------------------

def test_mark_in_review_is_idempotent_and_first_moderator_wins(services, open_claim, clock):
    first = services.claims.mark_in_review(open_claim.id, MODERATOR_ID, "mod.one@test.local")
    assigned_at = as_utc(first.assigned_at)
    clock.advance(hours=1)

    again = services.claims.mark_in_review(open_claim.id, 501, "mod.two@test.local")

    assert again.status == "in_review"
    assert again.assigned_moderator_id == MODERATOR_ID
    assert again.assigned_moderator_email == "mod.one@test.local"
    assert as_utc(again.assigned_at) == assigned_at


def test_mark_in_review_from_terminal_status_fails(services, open_claim):
    services.claims.cancel(open_claim.id, CLIENT_ID)
    with pytest.raises(BadRequest):
        services.claims.mark_in_review(open_claim.id, MODERATOR_ID)


def test_clarification_round(services, in_review_claim, notifications):
    claim = services.claims.add_observations(in_review_claim.id, MODERATOR_ID, "Please attach the chat history.")
    assert claim.status == "pending_clarification"
    assert claim.observations_by == MODERATOR_ID
    assert notifications.to("claim_observations") == [CLIENT_ID]

    claim = services.claims.submit_clarification(
        claim.id, CLIENT_ID, "Here is the chat history.", ["https://files.test/history.pdf"]
    )

    assert claim.status == "requires_staff_response"
    assert claim.clarification_response == "Here is the chat history."
    assert claim.description == "The provider never delivered the agreed work."
    assert claim.clarification_evidence_urls == ["https://files.test/history.pdf"]
    assert notifications.to("claim_updated") == [MODERATOR_ID]


def test_clarification_guards(services, in_review_claim):
    with pytest.raises(BadRequest):
        services.claims.submit_clarification(in_review_claim.id, CLIENT_ID, "Too early.")

    services.claims.add_observations(in_review_claim.id, MODERATOR_ID, "Please attach the chat history.")
    with pytest.raises(Forbidden):
        services.claims.submit_clarification(in_review_claim.id, PROVIDER_ID, "Not my claim.")
    with pytest.raises(BadRequest):
        services.claims.submit_clarification(in_review_claim.id, CLIENT_ID, "", [])
    with pytest.raises(BadRequest):
        services.claims.submit_clarification(
            in_review_claim.id, CLIENT_ID, "Lots of files", [f"https://f/{i}" for i in range(10)]
        )


def test_respondent_observations(services, open_claim):
    with pytest.raises(Forbidden):
        services.claims.submit_respondent_observations(open_claim.id, CLIENT_ID, "I am the claimant here.")

    claim = services.claims.submit_respondent_observations(
        open_claim.id, PROVIDER_ID, "I delivered through the shared drive.", ["https://f/drive.png"]
    )

    assert claim.status == "in_review"
    assert claim.respondent_observations_by == PROVIDER_ID
    assert claim.respondent_evidence_urls == ["https://f/drive.png"]
    with pytest.raises(BadRequest):
        services.claims.submit_respondent_observations(open_claim.id, PROVIDER_ID, "Second answer is refused.")


# ---- resolve --------------------------------------------------------------

def test_resolve_from_open_fails(services, open_claim):
    with pytest.raises(BadRequest):
        services.claims.resolve(open_claim.id, MODERATOR_ID, "rejected", RESOLUTION)


def test_reject_restores_hiring_and_clears_type(services, in_review_claim, hirings):
    claim, created = services.claims.resolve(
        in_review_claim.id, MODERATOR_ID, "rejected", RESOLUTION, resolution_type="client_favor"
    )

    assert claim.status == "rejected"
    assert claim.resolution_type is None
    assert created == []
    assert hirings.status_of(HIRING_ID) == "delivered"


def test_reject_with_compliances_fails(services, in_review_claim):
    with pytest.raises(BadRequest):
        services.claims.resolve(
            in_review_claim.id, MODERATOR_ID, "rejected", RESOLUTION, compliances=[compliance_item(PROVIDER_ID)]
        )


def test_resolved_requires_resolution_type(services, in_review_claim):
    with pytest.raises(BadRequest):
        services.claims.resolve(in_review_claim.id, MODERATOR_ID, "resolved", RESOLUTION)


@pytest.mark.parametrize(
    "resolution_type,hiring_status",
    [
        ("client_favor", "cancelled_by_claim"),
        ("provider_favor", "completed_by_claim"),
        ("partial_agreement", "completed_with_agreement"),
    ],
)
def test_resolution_type_sets_hiring_terminal_status(services, in_review_claim, hirings, resolution_type, hiring_status):
    claim, _ = services.claims.resolve(
        in_review_claim.id, MODERATOR_ID, "resolved", RESOLUTION, resolution_type=resolution_type
    )

    assert claim.status == "resolved"
    assert claim.resolution_type == resolution_type
    assert hirings.status_of(HIRING_ID) == hiring_status


def test_resolve_rejects_non_party_responsible(services, in_review_claim, hirings):
    with pytest.raises(BadRequest):
        services.claims.resolve(
            in_review_claim.id,
            MODERATOR_ID,
            "resolved",
            RESOLUTION,
            resolution_type="client_favor",
            compliances=[compliance_item(PROVIDER_ID), compliance_item(STRANGER_ID)],
        )
    assert hirings.status_of(HIRING_ID) == "in_claim"


def test_resolve_rejects_more_than_five_compliances(services, in_review_claim):
    with pytest.raises(BadRequest):
        services.claims.resolve(
            in_review_claim.id,
            MODERATOR_ID,
            "resolved",
            RESOLUTION,
            resolution_type="client_favor",
            compliances=[compliance_item(PROVIDER_ID) for _ in range(6)],
        )


def test_resolve_creates_compliances_with_deadlines_and_order(services, resolve_with, clock, notifications):
    claim, created = resolve_with(
        compliance_item(PROVIDER_ID, deadline_days=3),
        compliance_item(CLIENT_ID, compliance_type="confirmation_only", requires_files=False, depends_on_index=0),
        compliance_item(PROVIDER_ID, compliance_type="evidence_upload", order_number=7, requirement="parallel"),
    )

    first, second, third = created
    assert [c.order_number for c in created] == [0, 1, 7]
    assert second.depends_on == first.id
    assert as_utc(first.deadline) == clock.now + timedelta(days=3)
    assert first.original_deadline_days == 3
    assert all(c.status == "pending" and c.warning_level == 0 for c in created)
    assert third.requirement == "parallel"

    resolved_mails = {s["user_id"]: s["data"]["compliances"] for s in notifications.sent if s["template"] == "claim_resolved"}
    assert {c["id"] for c in resolved_mails[PROVIDER_ID]} == {first.id, third.id}
    assert [c["id"] for c in resolved_mails[CLIENT_ID]] == [second.id]


def test_resolve_rejects_forward_dependency_index(services, resolve_with):
    with pytest.raises(BadRequest):
        resolve_with(compliance_item(PROVIDER_ID, depends_on_index=0))


def test_resolve_from_requires_staff_response(services, in_review_claim):
    services.claims.add_observations(in_review_claim.id, MODERATOR_ID, "Please attach the chat history.")
    services.claims.submit_clarification(in_review_claim.id, CLIENT_ID, "Attached.", ["https://f/h.pdf"])

    claim, _ = services.claims.resolve(
        in_review_claim.id, MODERATOR_ID, "resolved", RESOLUTION, resolution_type="provider_favor"
    )
    assert claim.status == "resolved"


# ---- cancel ---------------------------------------------------------------

def test_cancel_only_by_claimant(services, open_claim):
    with pytest.raises(Forbidden):
        services.claims.cancel(open_claim.id, PROVIDER_ID)


def test_cancel_restores_hiring_and_notifies_everyone(services, in_review_claim, hirings, notifications):
    claim = services.claims.cancel(in_review_claim.id, CLIENT_ID)

    assert claim.status == "cancelled"
    assert hirings.status_of(HIRING_ID) == "delivered"
    assert sorted(notifications.to("claim_cancelled")) == sorted([CLIENT_ID, PROVIDER_ID, MODERATOR_ID])


def test_cancel_terminal_claim_fails(services, open_claim):
    services.claims.cancel(open_claim.id, CLIENT_ID)
    with pytest.raises(BadRequest):
        services.claims.cancel(open_claim.id, CLIENT_ID)


def test_new_claim_allowed_after_cancel(services, open_claim):
    services.claims.cancel(open_claim.id, CLIENT_ID)
    claim = services.claims.create(CLIENT_ID, HIRING_ID, "off_agreement", "Work does not match the agreement.")
    assert claim.status == "open"

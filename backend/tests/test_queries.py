import pytest

from conftest import CLIENT_ID, HIRING_ID, MODERATOR_ID, PROVIDER_ID, STRANGER_ID, compliance_item
from disputes.errors import Forbidden


@pytest.fixture
def queries(services):
    return services.queries


def _ids(page):
    return [c["id"] for c in page["claims"]]


def test_requires_response_covers_both_waiting_cases(services, queries, hirings):
    hirings.add(2, CLIENT_ID, PROVIDER_ID)
    hirings.add(3, CLIENT_ID, PROVIDER_ID)

    answered = services.claims.create(CLIENT_ID, HIRING_ID, "not_delivered", "Nothing was delivered at all.")
    services.claims.submit_respondent_observations(answered.id, PROVIDER_ID, "I delivered it by email last week.")

    clarified = services.claims.create(CLIENT_ID, 2, "off_agreement", "Work does not match the agreement.")
    services.claims.mark_in_review(clarified.id, MODERATOR_ID)
    services.claims.add_observations(clarified.id, MODERATOR_ID, "Which part of the agreement is missing?")
    services.claims.submit_clarification(clarified.id, CLIENT_ID, "The mobile version was never built.")

    plain = services.claims.create(CLIENT_ID, 3, "off_agreement", "Work does not match the agreement.")
    services.claims.mark_in_review(plain.id, MODERATOR_ID)

    result = queries.get_claims(status="requires_response")

    assert sorted(_ids(result)) == sorted([answered.id, clarified.id])
    assert result["total"] == 2


def test_get_claims_filters_and_decorates(queries, open_claim):
    result = queries.get_claims(claimant_role="client", search_term="agreed work")

    (claim,) = result["claims"]
    assert claim["id"] == open_claim.id
    assert claim["claimant"]["name"] == "Ana Client"
    assert claim["otherUser"]["id"] == PROVIDER_ID
    assert claim["availableActions"] == ["view_detail", "mark_in_review"]
    assert claim["compliances"] == []
    assert queries.get_claims(claimant_role="provider")["total"] == 0


def test_get_claims_paginates(services, queries, hirings):
    for hiring_id in range(2, 7):
        hirings.add(hiring_id, CLIENT_ID, PROVIDER_ID)
        services.claims.create(CLIENT_ID, hiring_id, "not_delivered", "Nothing was delivered at all.")

    first = queries.get_claims(page=1, limit=2)
    last = queries.get_claims(page=3, limit=2)

    assert (first["total"], first["pages"], len(first["claims"])) == (5, 3, 2)
    assert len(last["claims"]) == 1
    assert not set(_ids(first)) & set(_ids(last))


def test_resolved_by_email_prefix(services, queries, resolve_with):
    resolve_with()
    (claim,) = queries.get_claims(status="resolved")["claims"]
    assert claim["resolvedByEmailPrefix"] == "mod.one"


def test_profiles_degrade_when_identity_is_down(queries, open_claim, identity):
    identity.fail = True
    (claim,) = queries.get_claims()["claims"]
    assert claim["claimant"] == {"id": CLIENT_ID, "name": None, "username": None, "profilePicture": None}


def test_my_claims_for_both_parties(services, queries, open_claim):
    mine = queries.get_my_claims(CLIENT_ID)["claims"][0]
    theirs = queries.get_my_claims(PROVIDER_ID)["claims"][0]

    assert mine["userRole"] == "claimant"
    assert "cancel_claim" in mine["availableActions"]
    assert theirs["userRole"] == "respondent"
    assert theirs["otherUser"]["id"] == CLIENT_ID
    assert "submit_observations" in theirs["availableActions"]
    assert "cancel_claim" not in theirs["availableActions"]
    assert queries.get_my_claims(STRANGER_ID)["total"] == 0


def test_my_claims_point_at_pending_compliance(services, queries, resolve_with):
    resolve_with(compliance_item(PROVIDER_ID, deadline_days=3))

    provider_view = queries.get_my_claims(PROVIDER_ID)["claims"][0]
    client_view = queries.get_my_claims(CLIENT_ID)["claims"][0]

    assert provider_view["compliance"]["daysRemaining"] == 3
    assert "upload_compliance" in provider_view["availableActions"]
    assert "upload_compliance" not in client_view["availableActions"]
    assert "create_review" in client_view["availableActions"]


def test_claim_detail_is_private_to_parties(queries, open_claim):
    with pytest.raises(Forbidden):
        queries.get_claim_detail(open_claim.id, STRANGER_ID)

    staff_view = queries.get_claim_detail(open_claim.id, MODERATOR_ID, is_staff=True)
    assert staff_view["claim"]["userRole"] is None
    assert staff_view["otherUser"]["id"] == PROVIDER_ID
    assert "mark_in_review" in staff_view["availableActions"]

    client_view = queries.get_claim_detail(open_claim.id, CLIENT_ID)
    assert client_view["claim"]["userRole"] == "claimant"
    assert client_view["hiring"] == {"id": HIRING_ID, "title": f"Hiring {HIRING_ID}"}


def test_claims_by_hiring(services, queries, open_claim, clock):
    services.claims.cancel(open_claim.id, CLIENT_ID)
    clock.advance(minutes=5)
    services.claims.create(CLIENT_ID, HIRING_ID, "off_agreement", "Work does not match the agreement.")

    assert [c["status"] for c in queries.get_claims_by_hiring(HIRING_ID)] == ["open", "cancelled"]


def test_only_overdue_compliances(services, queries, resolve_with, clock):
    _, (late, on_time) = resolve_with(
        compliance_item(PROVIDER_ID, deadline_days=1),
        compliance_item(CLIENT_ID, deadline_days=10, requirement="parallel"),
    )
    clock.advance(days=2)

    overdue = queries.get_compliances(only_overdue=True)
    assert [c["id"] for c in overdue["compliances"]] == [late.id]
    assert overdue["compliances"][0]["isOverdue"] is True
    assert overdue["compliances"][0]["overdueStatus"] == "FIRST_WARNING"

    by_user = queries.get_compliances(user_id=CLIENT_ID)
    assert [c["id"] for c in by_user["compliances"]] == [on_time.id]
    assert by_user["compliances"][0]["timeRemaining"]["days"] == 8

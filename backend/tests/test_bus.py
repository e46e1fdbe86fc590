import pytest
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from conftest import CLIENT_ID, HIRING_ID, MODERATOR_ID, PROVIDER_ID
from disputes.errors import Forbidden
from disputes.extensions import db
from disputes.models.compliance import ClaimCompliance
from disputes.modules.bus.handlers import router as bus_router
from disputes.modules.bus.router import MessageRouter
from disputes.schemas.claim import ClaimIdSchema
from disputes.security import issue_service_token

BASE = "/api/v1/messages"


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth():
    return {"Authorization": f"Bearer {issue_service_token('gateway', secret='test-secret')}"}


@pytest.fixture
def send(client, auth):
    def _send(pattern, payload=None):
        resp = client.post(f"{BASE}/{pattern}", json=payload or {}, headers=auth)
        return resp.status_code, resp.get_json()

    return _send


def _create_payload(**overrides):
    payload = {
        "userId": CLIENT_ID,
        "hiringId": HIRING_ID,
        "claimType": "not_delivered",
        "description": "The provider never delivered the agreed work.",
        "evidenceUrls": ["https://files.test/chat.png"],
    }
    payload.update(overrides)
    return payload


def test_health_needs_no_token(client):
    assert client.get("/health").get_json() == {"status": "ok"}


def test_service_token_required(client):
    resp = client.post(f"{BASE}/getClaims", json={})
    assert resp.status_code == 401
    assert resp.get_json()["status"] == 401

    forged = issue_service_token("gateway", secret="someone-else")
    resp = client.post(f"{BASE}/getClaims", json={}, headers={"Authorization": f"Bearer {forged}"})
    assert resp.status_code == 401


def test_lists_patterns(client, auth):
    patterns = client.get(BASE, headers=auth).get_json()["patterns"]
    assert "createClaim" in patterns
    assert "resolveClaim" in patterns
    assert "runOverdueCompliancesJob" in patterns


def test_unknown_pattern(send):
    status, body = send("deleteEverything")
    assert status == 404
    assert body == {"status": 404, "message": "Unknown message pattern 'deleteEverything'"}


def test_invalid_payload_reports_field_errors(send):
    status, body = send("createClaim", _create_payload(description="short", claimType="made_up"))

    assert status == 400
    assert body["message"] == "Invalid payload"
    assert set(body["errors"]) == {"description", "claimType"}


def test_service_errors_keep_their_status(send):
    status, body = send("getClaimById", {"claimId": "missing"})
    assert (status, body) == (404, {"status": 404, "message": "Claim not found"})

    status, body = send("createClaim", _create_payload(userId=99))
    assert status == 403


def test_claim_flow_over_the_bus(send, hirings, identity):
    status, claim = send("createClaim", _create_payload())
    assert status == 200
    assert claim["status"] == "open"
    assert claim["claimantRole"] == "client"

    status, claim = send("markClaimAsInReview", {"claimId": claim["id"], "moderatorId": MODERATOR_ID})
    assert (status, claim["status"]) == (200, "in_review")

    status, body = send(
        "resolveClaim",
        {
            "claimId": claim["id"],
            "resolvedBy": MODERATOR_ID,
            "resolveDto": {
                "status": "resolved",
                "resolution": "The provider must redeliver the complete work.",
                "resolutionType": "client_favor",
                "compliances": [
                    {
                        "responsibleUserId": PROVIDER_ID,
                        "complianceType": "partial_refund",
                        "instructions": "Refund half of the agreed price to the client.",
                        "deadlineDays": 3,
                        "amount": "1500.50",
                    }
                ],
            },
        },
    )
    assert status == 200
    assert body["claim"]["status"] == "resolved"
    (compliance,) = body["compliances"]
    assert compliance["amount"] == 1500.5
    assert compliance["currency"] == "ARS"
    assert compliance["status"] == "pending"
    assert hirings.status_of(HIRING_ID) == "cancelled_by_claim"

    status, stats = send("getUserComplianceStats", {"userId": PROVIDER_ID})
    assert stats["totalPending"] == 1

    status, detail = send("getClaimDetail", {"claimId": claim["id"], "requesterId": PROVIDER_ID})
    assert status == 200
    assert detail["claim"]["userRole"] == "respondent"
    assert detail["otherUser"]["name"] == "Ana Client"


def test_nested_compliance_validation(send, in_review_claim):
    status, body = send(
        "resolveClaim",
        {
            "claimId": in_review_claim.id,
            "resolvedBy": MODERATOR_ID,
            "resolveDto": {
                "status": "resolved",
                "resolution": "The provider must redeliver the complete work.",
                "resolutionType": "client_favor",
                "compliances": [{"responsibleUserId": PROVIDER_ID, "complianceType": "full_refund", "deadlineDays": 0}],
            },
        },
    )
    assert status == 400
    assert "resolveDto" in body["errors"]


def test_sweep_job_accepts_explicit_time(send, compliance):
    status, summary = send("runOverdueCompliancesJob", {"now": "2025-03-16T00:00:00Z"})
    assert status == 200
    assert summary["overdue"] == 1


def test_router_maps_concurrent_updates_and_crashes(app):
    router = MessageRouter()

    @router.pattern("stale", ClaimIdSchema)
    def stale(services, data):
        raise StaleDataError("version mismatch")

    @router.pattern("crash")
    def crash(services, data):
        raise RuntimeError("boom")

    @router.pattern("forbidden")
    def forbidden(services, data):
        raise Forbidden("nope")

    assert router.dispatch("stale", {"claimId": "x"}, None)[0] == 400
    assert router.dispatch("crash", {}, None) == (500, {"status": 500, "message": "Internal server error"})
    assert router.dispatch("forbidden", {}, None) == (403, {"status": 403, "message": "nope"})


def test_duplicate_pattern_registration_fails():
    router = MessageRouter()
    router.pattern("x")(lambda services, data: None)
    with pytest.raises(ValueError):
        router.pattern("x")(lambda services, data: None)


def test_concurrent_review_loses_to_the_first_commit(services, compliance):
    services.compliances.submit(compliance.id, PROVIDER_ID, evidence_urls=["https://files.test/a.zip"])
    loaded = db.session.get(ClaimCompliance, compliance.id)
    assert loaded.status == "submitted"

    with Session(db.engine) as other:
        row = other.get(ClaimCompliance, compliance.id)
        row.status = "approved"
        row.reviewed_by = 501
        other.commit()

    status, body = bus_router.dispatch(
        "moderatorReviewCompliance",
        {"complianceId": compliance.id, "moderatorId": MODERATOR_ID, "decision": "reject", "rejectionReason": "Fake"},
        services,
    )

    assert (status, body) == (400, {"status": 400, "message": "The record was modified concurrently, retry the operation"})
    db.session.expire_all()
    row = db.session.get(ClaimCompliance, compliance.id)
    assert (row.status, row.reviewed_by, row.rejection_count) == ("approved", 501, 0)

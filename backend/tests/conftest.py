from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from disputes import create_app
from disputes.extensions import db
from disputes.integrations.hirings.client import Hiring
from disputes.integrations.http import IntegrationError
from disputes.integrations.identity.client import IdentityClient
from disputes.integrations.notifications.client import NotificationClient
from disputes.services import get_services

CLIENT_ID = 10
PROVIDER_ID = 20
STRANGER_ID = 99
MODERATOR_ID = 500
HIRING_ID = 1

STATUS_IDS = {
    "in_progress": 1,
    "approved": 2,
    "revision_requested": 3,
    "delivered": 4,
    "completed": 5,
    "in_claim": 6,
    "cancelled_by_claim": 7,
    "completed_by_claim": 8,
    "completed_with_agreement": 9,
    "cancelled": 10,
}


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


class FakeHirings:
    def __init__(self):
        self.hirings: dict[int, Hiring] = {}
        self.updates: list[tuple[int, int]] = []
        self.fail_updates = False

    def add(self, hiring_id: int, client_id: int, provider_id: int, status: str = "delivered") -> Hiring:
        hiring = Hiring(
            id=hiring_id,
            client_id=client_id,
            provider_id=provider_id,
            status_id=STATUS_IDS[status],
            status_code=status,
            title=f"Hiring {hiring_id}",
        )
        self.hirings[hiring_id] = hiring
        return hiring

    def status_of(self, hiring_id: int) -> str:
        return self.hirings[hiring_id].status_code

    def find_by_id(self, hiring_id: int):
        hiring = self.hirings.get(int(hiring_id))
        return replace(hiring) if hiring else None

    def find_status_id(self, code: str) -> int:
        if code not in STATUS_IDS:
            raise IntegrationError(f"Hiring status '{code}' not found")
        return STATUS_IDS[code]

    def update_status(self, hiring_id: int, status_id: int) -> None:
        if self.fail_updates:
            raise IntegrationError("hirings-service unreachable")
        code = next(c for c, i in STATUS_IDS.items() if i == int(status_id))
        hiring = self.hirings[int(hiring_id)]
        hiring.status_id = int(status_id)
        hiring.status_code = code
        self.updates.append((int(hiring_id), int(status_id)))


class FakeIdentity(IdentityClient):
    def __init__(self):
        super().__init__("http://identity.test")
        self.users: dict[int, dict] = {}
        self.suspensions: list[dict] = []
        self.bans: list[dict] = []
        self.fail = False

    def get_user_by_id(self, user_id):
        return self.users.get(int(user_id))

    def get_users_by_ids(self, user_ids):
        if self.fail:
            raise IntegrationError("identity-service unreachable")
        return [self.users[int(u)] for u in user_ids if int(u) in self.users]

    def suspend_user_for_compliance_violation(self, user_id, compliance_id, reason, days, moderator_id=None):
        if self.fail:
            raise IntegrationError("identity-service unreachable")
        self.suspensions.append({"user_id": user_id, "compliance_id": compliance_id, "days": days})

    def ban_user_for_compliance_violation(self, user_id, compliance_id, reason, moderator_id=None):
        if self.fail:
            raise IntegrationError("identity-service unreachable")
        self.bans.append({"user_id": user_id, "compliance_id": compliance_id})


class RecordingNotifications(NotificationClient):
    """Real template methods, recorded instead of posted."""

    def __init__(self):
        super().__init__("http://notifications.test")
        self.sent: list[dict] = []
        self.fail = False

    def _send(self, template, data, *, user_id=None, email=None):
        if self.fail:
            raise IntegrationError("notifications-service unreachable")
        self.sent.append({"template": template, "data": data, "user_id": user_id, "email": email})

    def templates(self) -> list[str]:
        return [s["template"] for s in self.sent]

    def to(self, template: str) -> list:
        return [s["user_id"] or s["email"] for s in self.sent if s["template"] == template]

    def clear(self) -> None:
        self.sent.clear()


@pytest.fixture
def clock():
    return Clock(datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def hirings():
    fake = FakeHirings()
    fake.add(HIRING_ID, CLIENT_ID, PROVIDER_ID, "delivered")
    return fake


@pytest.fixture
def identity():
    fake = FakeIdentity()
    fake.users = {
        CLIENT_ID: {"id": CLIENT_ID, "email": "client@test.local", "profile": {"firstName": "Ana", "lastName": "Client"}},
        PROVIDER_ID: {"id": PROVIDER_ID, "email": "provider@test.local", "profile": {"firstName": "Pablo"}},
        MODERATOR_ID: {"id": MODERATOR_ID, "email": "mod.one@test.local", "profile": {}},
    }
    return fake


@pytest.fixture
def notifications():
    return RecordingNotifications()


@pytest.fixture
def app(clock, hirings, identity, notifications):
    app = create_app("testing", identity=identity, hirings=hirings, notifications=notifications, clock=clock)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def services(app):
    return get_services(app)


def compliance_item(responsible_user_id: int, **overrides) -> dict:
    item = {
        "responsible_user_id": responsible_user_id,
        "compliance_type": "full_redelivery",
        "moderator_instructions": "Deliver the complete work as agreed in the hiring.",
        "deadline_days": 5,
        "order_number": None,
        "amount": None,
        "currency": "ARS",
        "payment_link": None,
        "requires_files": True,
        "depends_on": None,
        "depends_on_index": None,
        "requirement": "sequential",
    }
    item.update(overrides)
    return item


@pytest.fixture
def open_claim(services):
    return services.claims.create(
        CLIENT_ID,
        HIRING_ID,
        "not_delivered",
        "The provider never delivered the agreed work.",
        evidence_urls=["https://files.test/chat.png"],
    )


@pytest.fixture
def in_review_claim(services, open_claim):
    return services.claims.mark_in_review(open_claim.id, MODERATOR_ID, "mod.one@test.local")


@pytest.fixture
def resolve_with(services, in_review_claim):
    """Resolve the in-review claim in the client's favor with the given items."""

    def _resolve(*items, resolution_type="client_favor"):
        return services.claims.resolve(
            in_review_claim.id,
            MODERATOR_ID,
            "resolved",
            "The provider must redeliver the complete work.",
            resolution_type=resolution_type,
            compliances=list(items),
        )

    return _resolve


@pytest.fixture
def compliance(resolve_with):
    _, created = resolve_with(compliance_item(PROVIDER_ID))
    return created[0]

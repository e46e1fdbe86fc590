"""Process-wide service graph.

Stores, collaborator clients and use-case services are assembled once per app
and kept on ``app.extensions``. Tests swap collaborators by passing overrides
to ``create_app``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping

from flask import Flask, current_app

from .clock import utcnow
from .integrations.hirings.client import HiringsClient
from .integrations.identity.client import IdentityClient
from .integrations.notifications.client import NotificationClient
from .modules.claims.queries import ClaimQueryService
from .modules.claims.service import ClaimLifecycleService
from .modules.claims.store import ClaimStore
from .modules.compliances.consequences import ConsequenceEngine
from .modules.compliances.service import ComplianceLifecycleService
from .modules.compliances.store import ComplianceStore

_EXTENSION_KEY = "disputes"


@dataclass
class Services:
    claims: ClaimLifecycleService
    compliances: ComplianceLifecycleService
    consequences: ConsequenceEngine
    queries: ClaimQueryService
    clock: Callable[[], datetime]


def build_services(
    config: Mapping[str, Any],
    *,
    identity: IdentityClient | None = None,
    hirings: HiringsClient | None = None,
    notifications: NotificationClient | None = None,
    clock: Callable[[], datetime] | None = None,
) -> Services:
    timeout = int(config.get("SERVICE_HTTP_TIMEOUT", 15))
    identity = identity or IdentityClient(config["IDENTITY_SERVICE_URL"], timeout=timeout)
    hirings = hirings or HiringsClient(config["HIRINGS_SERVICE_URL"], timeout=timeout)
    notifications = notifications or NotificationClient(config["NOTIFICATIONS_SERVICE_URL"], timeout=timeout)
    clock = clock or utcnow
    inbox = config.get("MODERATION_INBOX_EMAIL")

    claim_store = ClaimStore()
    compliance_store = ComplianceStore()
    compliances = ComplianceLifecycleService(
        compliance_store, claim_store, notifications, moderation_inbox=inbox, clock=clock
    )
    return Services(
        claims=ClaimLifecycleService(
            claim_store, compliances, hirings, notifications, moderation_inbox=inbox, clock=clock
        ),
        compliances=compliances,
        consequences=ConsequenceEngine(compliance_store, identity, notifications, clock=clock),
        queries=ClaimQueryService(claim_store, compliance_store, identity, hirings, clock=clock),
        clock=clock,
    )


def init_services(app: Flask, **overrides: Any) -> Services:
    services = build_services(app.config, **overrides)
    app.extensions[_EXTENSION_KEY] = services
    return services


def get_services(app: Flask | None = None) -> Services:
    app = app or current_app
    return app.extensions[_EXTENSION_KEY]

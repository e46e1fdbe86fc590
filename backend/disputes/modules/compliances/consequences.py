"""Escalation ladder for missed compliance deadlines.

    level 0 --(deadline passed)----------> overdue  (level 1), extended = now + 3d
    level 1 --(extended deadline passed)-> warning  (level 2), final = now + 2d, 15-day suspension
    level 2 --(final deadline passed)----> escalated (level 3), permanent ban

An item moves at most one tier per sweep, so every warning email goes out even
when the scheduler skipped days. Each item is committed on its own; identity
sanctions and emails run after the commit and only log their failures. Sequential
items still waiting on their parent are skipped.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable

from ...clock import isoformat, utcnow
from ...extensions import db
from ...integrations.identity.client import IdentityClient
from ...integrations.notifications.client import NotificationClient
from ...logging import get_logger
from ...models.compliance import ClaimCompliance
from ...models.enums import ComplianceStatus
from ..claims import roles
from ..common import best_effort
from .presenters import compliance_summary
from .store import ComplianceStore

logger = get_logger(__name__)

EXTENSION_DAYS = 3
FINAL_EXTENSION_DAYS = 2
SUSPENSION_DAYS = 15
REMINDER_WINDOW = timedelta(hours=24)


def reset_consequences(compliance: ClaimCompliance) -> None:
    """Clear the ladder once the item is approved; late compliers are not penalized retroactively."""
    compliance.warning_level = 0
    compliance.extended_deadline = None
    compliance.final_deadline = None


class ConsequenceEngine:
    def __init__(
        self,
        store: ComplianceStore,
        identity: IdentityClient,
        notifications: NotificationClient,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.identity = identity
        self.notifications = notifications
        self.clock = clock

    # ---- overdue sweep ---------------------------------------------------

    def run_overdue_sweep(self, now: datetime | None = None) -> dict:
        now = now or self.clock()
        summary = {"checked": 0, "overdue": 0, "warning": 0, "escalated": 0, "healed": 0, "failed": 0}
        candidates = self.store.overdue_candidates(now)
        logger.info("Overdue sweep: %d candidates", len(candidates))
        for compliance in candidates:
            compliance_id = compliance.id
            summary["checked"] += 1
            try:
                healed, outcome = self._advance(compliance, now)
            except Exception:
                db.session.rollback()
                summary["failed"] += 1
                logger.exception("Overdue sweep failed for compliance %s", compliance_id)
                continue
            if healed:
                summary["healed"] += 1
            if outcome:
                summary[outcome] += 1
        logger.info("Overdue sweep done: %s", summary)
        return summary

    def _advance(self, compliance: ClaimCompliance, now: datetime) -> tuple[bool, str | None]:
        healed = False
        expected = compliance.expected_warning_level()
        if (compliance.warning_level or 0) != expected:
            logger.warning(
                "Compliance %s has warning level %s for status %s; resetting to 0",
                compliance.id, compliance.warning_level, compliance.status,
            )
            compliance.warning_level = 0
            healed = True

        level = compliance.ladder_level()
        if compliance.awaits_prerequisite() or now <= compliance.tracked_deadline(level):
            if healed:
                db.session.commit()
            return healed, None

        if level == 0:
            self._to_overdue(compliance, now)
            return healed, "overdue"
        if level == 1:
            self._to_warning(compliance, now)
            return healed, "warning"
        if level == 2:
            self._to_escalated(compliance, now)
            return healed, "escalated"
        return healed, None

    def _counterparty(self, compliance: ClaimCompliance) -> int | None:
        return roles.other_party_id(compliance.claim, compliance.responsible_user_id)

    def _notice(self, compliance: ClaimCompliance, summary: dict, level: int) -> None:
        counterparty = self._counterparty(compliance)
        if counterparty is not None:
            best_effort("non-compliance notice", self.notifications.non_compliance_notice, counterparty, summary, level)

    def _to_overdue(self, compliance: ClaimCompliance, now: datetime) -> None:
        compliance.status = ComplianceStatus.OVERDUE.value
        compliance.warning_level = 1
        compliance.extended_deadline = now + timedelta(days=EXTENSION_DAYS)
        db.session.commit()
        logger.info("Compliance %s overdue, extended to %s", compliance.id, compliance.extended_deadline)

        summary = compliance_summary(compliance)
        best_effort(
            "overdue email",
            self.notifications.compliance_overdue,
            compliance.responsible_user_id,
            summary,
            isoformat(compliance.extended_deadline),
        )
        self._notice(compliance, summary, 1)

    def _to_warning(self, compliance: ClaimCompliance, now: datetime) -> None:
        compliance.status = ComplianceStatus.WARNING.value
        compliance.warning_level = 2
        compliance.final_deadline = now + timedelta(days=FINAL_EXTENSION_DAYS)
        db.session.commit()
        logger.info("Compliance %s in warning, final deadline %s", compliance.id, compliance.final_deadline)

        best_effort(
            "compliance suspension",
            self.identity.suspend_user_for_compliance_violation,
            compliance.responsible_user_id,
            compliance.id,
            "Compliance not fulfilled after the extended deadline",
            SUSPENSION_DAYS,
            None,
        )
        summary = compliance_summary(compliance)
        best_effort(
            "warning email",
            self.notifications.compliance_warning,
            compliance.responsible_user_id,
            summary,
            isoformat(compliance.final_deadline),
            SUSPENSION_DAYS,
        )
        self._notice(compliance, summary, 2)

    def _to_escalated(self, compliance: ClaimCompliance, now: datetime) -> None:
        compliance.status = ComplianceStatus.ESCALATED.value
        compliance.warning_level = 3
        db.session.commit()
        logger.info("Compliance %s escalated", compliance.id)

        best_effort(
            "compliance ban",
            self.identity.ban_user_for_compliance_violation,
            compliance.responsible_user_id,
            compliance.id,
            "Compliance not fulfilled after the final deadline",
            None,
        )
        summary = compliance_summary(compliance)
        best_effort("escalation email", self.notifications.compliance_escalated, compliance.responsible_user_id, summary)
        self._notice(compliance, summary, 3)

    # ---- reminders -------------------------------------------------------

    def send_deadline_reminders(self, now: datetime | None = None) -> dict:
        now = now or self.clock()
        end = now + REMINDER_WINDOW
        summary = {"reminded": 0, "failed": 0}
        for compliance in self.store.expiring_between(now, end):
            deadline = compliance.current_deadline()
            if compliance.awaits_prerequisite() or not (now <= deadline <= end):
                continue
            hours = compliance.time_remaining(now)["totalHours"]
            sent = best_effort(
                "deadline reminder",
                self.notifications.compliance_deadline_reminder,
                compliance.responsible_user_id,
                compliance_summary(compliance),
                hours,
            )
            summary["reminded" if sent else "failed"] += 1
        logger.info("Deadline reminders: %s", summary)
        return summary

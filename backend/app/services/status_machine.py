"""
Report status machine.

All status changes of an accident report go through
``ReportStatusMachine.transition``. The allowed moves are table driven;
adding a status means adding a row to ``ALLOWED_TRANSITIONS``.
"""
from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional

from sqlalchemy.orm import Session

from app.core.errors import InvalidStateTransition, PreconditionFailed
from app.core.logging import get_logger
from app.db.models import AccidentReport, ReportStatus
from app.services.audit import AuditService
from app.services.db_utils import with_db_retry
from app.services.report_store import ReportRepository

logger = get_logger(__name__)


ALLOWED_TRANSITIONS: Dict[ReportStatus, FrozenSet[ReportStatus]] = {
    ReportStatus.PENDING: frozenset({ReportStatus.ASSIGNED}),
    ReportStatus.ASSIGNED: frozenset({ReportStatus.COMPLETED}),
    ReportStatus.COMPLETED: frozenset(),
}

# Fields a transition must set together with the status
REQUIRED_CHANGES: Dict[ReportStatus, FrozenSet[str]] = {
    ReportStatus.ASSIGNED: frozenset({"provider_name", "provider_contact"}),
}

PROVIDER_FIELDS = frozenset({"provider_name", "provider_contact"})

TIMESTAMP_FIELDS: Dict[ReportStatus, str] = {
    ReportStatus.ASSIGNED: "assigned_at",
    ReportStatus.COMPLETED: "completed_at",
}

AUDIT_EVENTS: Dict[ReportStatus, str] = {
    ReportStatus.ASSIGNED: "report.assigned",
    ReportStatus.COMPLETED: "report.completed",
}


def can_transition(current: ReportStatus, target: ReportStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: ReportStatus, target: ReportStatus) -> None:
    if not can_transition(current, target):
        raise InvalidStateTransition(current, target)


class ReportStatusMachine:
    """Guards and applies report status transitions."""

    def __init__(self, db: Session, repository: Optional[ReportRepository] = None):
        self.db = db
        self.repository = repository or ReportRepository(db)
        self.audit = AuditService(db)

    @with_db_retry()
    def transition(
        self,
        report_id,
        target: ReportStatus,
        actor: Optional[str] = None,
        changes: Optional[Dict[str, Any]] = None,
        notes: str = "",
    ) -> AccidentReport:
        """
        Move a report to ``target``.

        Raises ``InvalidStateTransition`` when the move is not allowed from
        the current status, including when a concurrent caller changed the
        status between the read and the conditional write.
        """
        changes = dict(changes or {})
        report = self.repository.get(report_id)
        current = report.status

        ensure_transition(current, target)

        missing = {f for f in REQUIRED_CHANGES.get(target, frozenset()) if not changes.get(f)}
        if missing:
            raise PreconditionFailed(
                f"Moving a report to '{target.value}' requires: {', '.join(sorted(missing))}"
            )
        if target != ReportStatus.ASSIGNED and PROVIDER_FIELDS.intersection(changes):
            raise PreconditionFailed("A provider can only be set when a report is assigned")

        timestamp_field = TIMESTAMP_FIELDS.get(target)
        if timestamp_field:
            changes[timestamp_field] = datetime.utcnow()

        if not self.repository.compare_and_set_status(report.report_id, current, target, changes):
            self.db.rollback()
            self.db.expire_all()
            latest = self.repository.get(report.report_id)
            self.audit.log_report_event(
                "transition.rejected",
                actor,
                str(report.report_id),
                {"current": latest.status.value, "target": target.value},
            )
            raise InvalidStateTransition(latest.status, target)

        # The conditional UPDATE bypassed the identity map
        self.db.expire(report)
        report.add_timeline_event(target.value, actor or "system", notes)
        self.audit.log_report_event(
            AUDIT_EVENTS.get(target, f"report.{target.value}"),
            actor,
            str(report.report_id),
            {"from": current.value, "to": target.value, "notes": notes},
            commit=False,
        )
        self.db.commit()
        self.db.refresh(report)

        logger.info(f"Report {report.report_id}: {current.value} -> {target.value}")
        return report

    def mark_completed(self, report_id, actor: Optional[str] = None, notes: str = "") -> AccidentReport:
        """Close an assigned report once the tow job is done."""
        return self.transition(
            report_id,
            ReportStatus.COMPLETED,
            actor=actor,
            notes=notes or "Tow job completed",
        )

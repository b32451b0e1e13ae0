"""
Audit trail for TowDesk.

Every link issued, consumed or refused, every report submitted, every
status transition (accepted or lost to a concurrent caller) and every
client notification leaves an ``AuditLog`` row. Details are sanitized
before they are stored.
"""

from datetime import datetime
from typing import Any, Optional
from sqlalchemy.orm import Session

from app.db.models import AuditLog
from app.core.data_classification import sanitize_for_logging, classify_request_body
from app.core.logging import get_logger

logger = get_logger(__name__)


class AuditService:
    # Logged at warning level
    SECURITY_EVENTS = frozenset({"link.rejected", "transition.rejected"})

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        event_type: str,
        actor_type: str,
        actor_id: Optional[str],
        resource_type: str,
        resource_id: str,
        details: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        commit: bool = True,
    ) -> AuditLog:
        """
        Record one event. With ``commit=False`` the row joins the caller's
        unit of work, so it is written together with the change it describes.
        """
        details = details or {}
        stored = sanitize_for_logging(details)
        stored["_metadata"] = {
            "recorded_at": datetime.utcnow().isoformat(),
            "data_classification": classify_request_body(details).value,
        }

        entry = AuditLog(
            event_type=event_type,
            actor_type=actor_type,
            actor_id=actor_id,
            resource_type=resource_type,
            resource_id=resource_id,
            action=event_type.split(".", 1)[-1],
            details=stored,
            ip_address=ip_address,
        )
        self.db.add(entry)
        if commit:
            self.db.commit()

        message = f"AUDIT: {event_type} | {actor_type}:{actor_id} | {resource_type}:{resource_id}"
        if event_type in self.SECURITY_EVENTS:
            logger.warning(message)
        else:
            logger.info(message)
        return entry

    def log_report_event(
        self,
        event_type: str,
        actor_id: Optional[str],
        report_id: str,
        details: Optional[dict] = None,
        actor_type: str = "operator",
        commit: bool = True,
    ) -> AuditLog:
        return self.log(event_type, actor_type, actor_id, "accident_report", report_id, details, commit=commit)

    def log_link_event(
        self,
        event_type: str,
        actor_id: Optional[str],
        link_id: str,
        details: Optional[dict] = None,
        commit: bool = True,
    ) -> AuditLog:
        actor_type = "operator" if actor_id else "system"
        return self.log(event_type, actor_type, actor_id, "accident_link", link_id, details, commit=commit)

    def get_resource_history(self, resource_type: str, resource_id: str, limit: int = 50) -> list[AuditLog]:
        """Events for one link or report, newest first."""
        return (
            self.db.query(AuditLog)
            .filter(
                AuditLog.resource_type == resource_type,
                AuditLog.resource_id == resource_id,
            )
            .order_by(AuditLog.timestamp.desc())
            .limit(limit)
            .all()
        )

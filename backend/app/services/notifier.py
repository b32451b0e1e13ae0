"""
Client notifier: tell the reporter which tow company is on its way.
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.core.errors import PreconditionFailed
from app.core.logging import get_logger
from app.db.models import AccidentReport, ReportStatus
from app.services.audit import AuditService
from app.services.location import ADDRESS_PLACEHOLDER
from app.services.messaging import MessagingTransport, WhatsAppLinkBuilder
from app.services.report_store import ReportRepository

logger = get_logger(__name__)


def compose_client_message(report: AccidentReport) -> str:
    return (
        f"Hello {report.client_name}, a tow company ({report.provider_name}) has been "
        f"assigned to assist with your vehicle at {report.address or ADDRESS_PLACEHOLDER}."
    )


@dataclass
class NotificationResult:
    report: AccidentReport
    wa_link: str


class ClientNotifier:
    def __init__(self, db: Session, messaging: Optional[MessagingTransport] = None):
        self.db = db
        self.messaging = messaging or WhatsAppLinkBuilder()
        self.repository = ReportRepository(db)
        self.audit = AuditService(db)

    def notify_client(self, report_id, actor: Optional[str] = None) -> NotificationResult:
        """Deep link to the reporter's phone. The report must be assigned."""
        report = self.repository.get(report_id)
        if report.status != ReportStatus.ASSIGNED or not report.provider_name:
            raise PreconditionFailed(
                "The client can only be notified once a tow company is assigned",
                {"status": report.status.value},
            )

        # Phone is reduced to digits inside the transport
        wa_link = self.messaging.build_link(report.client_phone, compose_client_message(report))

        self.audit.log_report_event(
            "report.client_notified",
            actor,
            str(report.report_id),
            {"provider": report.provider_name},
        )
        return NotificationResult(report=report, wa_link=wa_link)

"""
Dispatch coordinator: assign a tow provider to a pending report and
compose the provider's notification link.
"""
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.db.models import AccidentReport, ReportStatus
from app.services.location import ADDRESS_PLACEHOLDER
from app.services.messaging import MessagingTransport, WhatsAppLinkBuilder
from app.services.providers import TowProvider, TowProviderDirectory, get_provider_directory
from app.services.report_store import ReportRepository
from app.services.status_machine import ReportStatusMachine

logger = get_logger(__name__)

MAPS_URL = "https://www.google.com/maps?q={lat},{lng}"


def report_reference(report: AccidentReport) -> str:
    """Short human-friendly reference for messages."""
    return str(report.report_id).split("-")[0].upper()


def compose_dispatch_message(report: AccidentReport) -> str:
    """
    Message for the tow provider. Openable without an account on this
    system, so everything the driver needs is in the text itself. The
    reporter's name is left out.
    """
    lines = [
        f"Tow request {report_reference(report)}",
        f"Vehicle: {report.vehicle_make} {report.vehicle_model}",
        f"Location: {report.address or ADDRESS_PLACEHOLDER}",
    ]
    if report.latitude or report.longitude:
        lines.append(f"Map: {MAPS_URL.format(lat=report.latitude, lng=report.longitude)}")
    if report.description:
        lines.append(f"Details: {report.description}")
    return "\n".join(lines)


@dataclass
class DispatchResult:
    report: AccidentReport
    provider: TowProvider
    wa_link: str


class DispatchCoordinator:
    """Owns the ``pending -> assigned`` transition."""

    def __init__(
        self,
        db: Session,
        directory: Optional[TowProviderDirectory] = None,
        messaging: Optional[MessagingTransport] = None,
    ):
        self.db = db
        self.directory = directory or get_provider_directory()
        self.messaging = messaging or WhatsAppLinkBuilder()
        self.repository = ReportRepository(db)
        self.status_machine = ReportStatusMachine(db, self.repository)

    def list_providers(self) -> List[TowProvider]:
        return self.directory.list_providers()

    def assign(self, report_id, provider_ref: str, actor: Optional[str] = None) -> DispatchResult:
        """
        Assign ``provider_ref`` to the report and return the provider's link.

        Raises ``NotFound`` for an unknown report or provider and
        ``InvalidStateTransition`` when the report is no longer pending.
        The link is composed before the transition so a failure to build
        it leaves the report untouched.
        """
        report = self.repository.get(report_id)
        provider = self.directory.get(provider_ref)

        wa_link = self.messaging.build_link(
            provider.notification_address,
            compose_dispatch_message(report),
        )

        report = self.status_machine.transition(
            report.report_id,
            ReportStatus.ASSIGNED,
            actor=actor,
            changes={
                "provider_name": provider.name,
                "provider_contact": provider.notification_address,
            },
            notes=f"Assigned to {provider.name}",
        )

        logger.info(f"Report {report.report_id} dispatched to {provider.name}")
        return DispatchResult(report=report, provider=provider, wa_link=wa_link)

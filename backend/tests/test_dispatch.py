"""
Tests for tow dispatch and client notification.
"""

import pytest
from dataclasses import replace
from urllib.parse import unquote

from app.core.errors import InvalidStateTransition, NotFound, PreconditionFailed
from app.db.models import ReportStatus
from app.services.dispatch import DispatchCoordinator, compose_dispatch_message
from app.services.notifier import ClientNotifier
from app.services.report_store import ReportRepository


@pytest.fixture
def coordinator(db, directory, messaging):
    return DispatchCoordinator(db, directory=directory, messaging=messaging)


@pytest.fixture
def notifier(db, messaging):
    return ClientNotifier(db, messaging=messaging)


class TestDispatchMessage:
    """Test the provider message."""

    def test_message_contents(self, pending_report):
        """Test the message carries vehicle, address and a map link, not the reporter's name."""
        message = compose_dispatch_message(pending_report)
        assert "Toyota Corolla" in message
        assert "12 Main Road, Cape Town" in message
        assert "https://www.google.com/maps?q=-33.9249,18.4241" in message
        assert "Thandi" not in message

    def test_message_without_location(self, intake_service, issued_link, report_fields):
        """Test a report without a fix has no map line."""
        report = intake_service.submit(
            issued_link.link.token,
            replace(report_fields, latitude=0.0, longitude=0.0, address=""),
        ).report
        message = compose_dispatch_message(report)
        assert "Address not available" in message
        assert "maps" not in message


class TestDispatchCoordinator:
    """Test assigning tow providers."""

    def test_assign_by_name(self, db, coordinator, pending_report):
        """Test assigning a provider returns its deep link."""
        result = coordinator.assign(pending_report.report_id, "QuickTow Services", actor="operator-1")

        assert result.report.status == ReportStatus.ASSIGNED
        assert result.report.provider_name == "QuickTow Services"
        assert result.wa_link.startswith("https://wa.me/27698053809?text=")
        assert "Toyota Corolla" in unquote(result.wa_link)

    def test_assign_case_insensitive(self, coordinator, pending_report):
        """Test provider lookup ignores case."""
        result = coordinator.assign(pending_report.report_id, "eugene towing")
        assert result.provider.name == "Eugene Towing"

    def test_assign_unknown_provider(self, db, coordinator, pending_report):
        """Test an unknown provider leaves the report pending."""
        with pytest.raises(NotFound):
            coordinator.assign(pending_report.report_id, "Nobody Towing")
        assert ReportRepository(db).get(pending_report.report_id).status == ReportStatus.PENDING

    def test_assign_unknown_report(self, coordinator):
        """Test assigning a missing report fails."""
        import uuid
        with pytest.raises(NotFound):
            coordinator.assign(uuid.uuid4(), "QuickTow Services")

    def test_second_assign_rejected(self, db, coordinator, pending_report):
        """Test a report cannot be reassigned and keeps its first provider."""
        coordinator.assign(pending_report.report_id, "QuickTow Services")

        with pytest.raises(InvalidStateTransition):
            coordinator.assign(pending_report.report_id, "Eugene Towing")

        report = ReportRepository(db).get(pending_report.report_id)
        assert report.provider_name == "QuickTow Services"
        assert report.status == ReportStatus.ASSIGNED


class TestClientNotifier:
    """Test telling the reporter who is coming."""

    def test_notify_after_assign(self, coordinator, notifier, pending_report):
        """Test the reporter's link names the provider and the address."""
        coordinator.assign(pending_report.report_id, "QuickTow Services")

        result = notifier.notify_client(pending_report.report_id, actor="operator-1")
        message = unquote(result.wa_link.split("?text=", 1)[1])

        assert result.wa_link.startswith("https://wa.me/27821234567?text=")
        assert "Hello Thandi Mokoena" in message
        assert "QuickTow Services" in message
        assert "12 Main Road, Cape Town" in message

    def test_notify_pending_refused(self, notifier, pending_report):
        """Test a pending report cannot be announced."""
        with pytest.raises(PreconditionFailed):
            notifier.notify_client(pending_report.report_id)

    def test_notify_does_not_change_status(self, db, coordinator, notifier, pending_report):
        """Test notifying is not a transition."""
        coordinator.assign(pending_report.report_id, "QuickTow Services")
        notifier.notify_client(pending_report.report_id)
        notifier.notify_client(pending_report.report_id)
        assert ReportRepository(db).get(pending_report.report_id).status == ReportStatus.ASSIGNED

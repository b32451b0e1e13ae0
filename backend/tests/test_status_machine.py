"""
Tests for report status transitions.
"""

import pytest

from app.core.errors import InvalidStateTransition, NotFound, PreconditionFailed, ValidationError
from app.db.models import AuditLog, ReportStatus
from app.services.report_store import ReportRepository
from app.services.status_machine import ReportStatusMachine, can_transition

PROVIDER = {"provider_name": "QuickTow Services", "provider_contact": "+27698053809"}


class TestTransitionTable:
    """Test the allowed moves."""

    def test_forward_moves(self):
        """Test pending -> assigned -> completed."""
        assert can_transition(ReportStatus.PENDING, ReportStatus.ASSIGNED)
        assert can_transition(ReportStatus.ASSIGNED, ReportStatus.COMPLETED)

    def test_no_skip_or_reverse(self):
        """Test no skipping ahead, going back, or leaving completed."""
        assert not can_transition(ReportStatus.PENDING, ReportStatus.COMPLETED)
        assert not can_transition(ReportStatus.ASSIGNED, ReportStatus.PENDING)
        assert not can_transition(ReportStatus.COMPLETED, ReportStatus.ASSIGNED)
        assert not can_transition(ReportStatus.COMPLETED, ReportStatus.COMPLETED)


class TestReportStatusMachine:
    """Test applying transitions to stored reports."""

    def test_assign_sets_provider_and_timestamp(self, db, pending_report):
        """Test assigning records the provider atomically with the status."""
        machine = ReportStatusMachine(db)
        report = machine.transition(pending_report.report_id, ReportStatus.ASSIGNED, "operator-1", PROVIDER)

        assert report.status == ReportStatus.ASSIGNED
        assert report.provider_name == "QuickTow Services"
        assert report.assigned_at is not None
        assert [e["status"] for e in report.timeline] == ["pending", "assigned"]

    def test_assign_requires_provider(self, db, pending_report):
        """Test assigned without a provider is refused."""
        machine = ReportStatusMachine(db)
        with pytest.raises(PreconditionFailed):
            machine.transition(pending_report.report_id, ReportStatus.ASSIGNED)
        assert ReportRepository(db).get(pending_report.report_id).status == ReportStatus.PENDING

    def test_complete_pending_rejected(self, db, pending_report):
        """Test a pending report cannot be completed directly."""
        machine = ReportStatusMachine(db)
        with pytest.raises(InvalidStateTransition) as exc:
            machine.mark_completed(pending_report.report_id)
        assert exc.value.current == ReportStatus.PENDING

    def test_complete_assigned(self, db, pending_report):
        """Test an assigned report can be completed once."""
        machine = ReportStatusMachine(db)
        machine.transition(pending_report.report_id, ReportStatus.ASSIGNED, changes=PROVIDER)

        report = machine.mark_completed(pending_report.report_id, actor="operator-1")
        assert report.status == ReportStatus.COMPLETED
        assert report.completed_at is not None
        assert report.provider_name == "QuickTow Services"

        with pytest.raises(InvalidStateTransition):
            machine.mark_completed(pending_report.report_id)

    def test_provider_only_set_on_assign(self, db, pending_report):
        """Test completing cannot rewrite the provider."""
        machine = ReportStatusMachine(db)
        machine.transition(pending_report.report_id, ReportStatus.ASSIGNED, changes=PROVIDER)
        with pytest.raises(PreconditionFailed):
            machine.transition(
                pending_report.report_id,
                ReportStatus.COMPLETED,
                changes={"provider_name": "Speedy Tow"},
            )

    def test_stale_read_loses_race(self, db, pending_report):
        """Test a caller that read a stale status is refused by the conditional write."""
        machine = ReportStatusMachine(db)
        machine.transition(pending_report.report_id, ReportStatus.ASSIGNED, changes=PROVIDER)

        # In-memory copy still believes the report is pending
        pending_report.status = ReportStatus.PENDING

        with pytest.raises(InvalidStateTransition) as exc:
            machine.transition(
                pending_report.report_id,
                ReportStatus.ASSIGNED,
                changes={"provider_name": "Speedy Tow", "provider_contact": "0712345678"},
            )
        assert exc.value.current == ReportStatus.ASSIGNED

        stored = ReportRepository(db).get(pending_report.report_id)
        assert stored.provider_name == "QuickTow Services"
        assert db.query(AuditLog).filter(AuditLog.event_type == "transition.rejected").count() == 1

    def test_unknown_report(self, db):
        """Test transitions on a missing report fail with not found."""
        with pytest.raises(NotFound):
            ReportStatusMachine(db).mark_completed("not-a-uuid")


class TestReportRepository:
    """Test the report store."""

    def test_compare_and_set_requires_expected_status(self, db, pending_report):
        """Test the conditional update matches nothing when the status differs."""
        repo = ReportRepository(db)
        assert not repo.compare_and_set_status(
            pending_report.report_id, ReportStatus.ASSIGNED, ReportStatus.COMPLETED
        )

    def test_update_refuses_status(self, db, pending_report):
        """Test status cannot be patched around the status machine."""
        with pytest.raises(ValidationError):
            ReportRepository(db).update(pending_report.report_id, {"status": ReportStatus.COMPLETED})

    def test_update_plain_fields(self, db, pending_report):
        """Test ordinary fields can be patched."""
        report = ReportRepository(db).update(pending_report.report_id, {"description": "Updated"})
        assert report.description == "Updated"

    def test_list_search_and_filter(self, db, intake_service, issued_link, report_fields, pending_report):
        """Test free-text search and status filtering."""
        from dataclasses import replace

        intake_service.submit(
            issued_link.link.token,
            replace(report_fields, client_name="Sipho Dlamini", vehicle_make="Ford", vehicle_model="Ranger"),
        )
        repo = ReportRepository(db)

        assert [r.vehicle_make for r in repo.list(search="ranger")] == ["Ford"]
        assert len(repo.list(search="THANDI")) == 1
        assert len(repo.list(status=ReportStatus.PENDING)) == 2
        assert repo.list(status=ReportStatus.ASSIGNED) == []
        assert repo.list(search="100%") == []

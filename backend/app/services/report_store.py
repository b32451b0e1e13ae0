"""
Accident report record store.
"""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.errors import NotFound, ValidationError
from app.db.models import AccidentReport, ReportStatus
from app.services.db_utils import with_db_retry

# Only the status machine writes these
PROTECTED_FIELDS = frozenset({
    "report_id",
    "status",
    "provider_name",
    "provider_contact",
    "assigned_at",
    "completed_at",
    "created_at",
    "timeline",
})


def _parse_report_id(report_id: Union[str, uuid.UUID]) -> uuid.UUID:
    if isinstance(report_id, uuid.UUID):
        return report_id
    try:
        return uuid.UUID(str(report_id))
    except ValueError:
        raise NotFound("AccidentReport", report_id)


class ReportRepository:
    """Persistence for ``AccidentReport`` rows."""

    def __init__(self, db: Session):
        self.db = db

    @with_db_retry()
    def save(self, report: AccidentReport, commit: bool = True) -> AccidentReport:
        """With ``commit=False`` the report joins the caller's unit of work."""
        self.db.add(report)
        if commit:
            self.db.commit()
            self.db.refresh(report)
        return report

    def get(self, report_id: Union[str, uuid.UUID]) -> AccidentReport:
        report = (
            self.db.query(AccidentReport)
            .filter(AccidentReport.report_id == _parse_report_id(report_id))
            .first()
        )
        if report is None:
            raise NotFound("AccidentReport", report_id)
        return report

    @with_db_retry()
    def update(self, report_id: Union[str, uuid.UUID], patch: Dict[str, Any]) -> AccidentReport:
        """Apply a plain field patch. Status and provider fields are refused."""
        protected = PROTECTED_FIELDS.intersection(patch)
        if protected:
            raise ValidationError(
                f"Fields cannot be patched directly: {', '.join(sorted(protected))}",
                field=sorted(protected)[0],
            )

        report = self.get(report_id)
        for field, value in patch.items():
            if not hasattr(AccidentReport, field):
                raise ValidationError(f"Unknown field: {field}", field=field)
            setattr(report, field, value)

        self.db.commit()
        self.db.refresh(report)
        return report

    def list(
        self,
        search: Optional[str] = None,
        status: Optional[ReportStatus] = None,
    ) -> List[AccidentReport]:
        """Reports newest first, optionally filtered by free text and status."""
        query = self.db.query(AccidentReport)

        if search and search.strip():
            needle = search.strip().lower()
            query = query.filter(
                or_(
                    func.lower(AccidentReport.client_name).contains(needle, autoescape=True),
                    func.lower(AccidentReport.client_phone).contains(needle, autoescape=True),
                    func.lower(AccidentReport.vehicle_make).contains(needle, autoescape=True),
                    func.lower(AccidentReport.vehicle_model).contains(needle, autoescape=True),
                )
            )

        if status is not None:
            query = query.filter(AccidentReport.status == status)

        return query.order_by(AccidentReport.created_at.desc()).all()

    def compare_and_set_status(
        self,
        report_id: uuid.UUID,
        expected: ReportStatus,
        target: ReportStatus,
        changes: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Move the report to ``target`` only if it is still in ``expected``.

        A single conditional UPDATE, so of two concurrent callers exactly
        one sees a matched row. The caller owns the commit.
        """
        values = {"status": target, "updated_at": datetime.utcnow(), **(changes or {})}
        matched = (
            self.db.query(AccidentReport)
            .filter(
                AccidentReport.report_id == report_id,
                AccidentReport.status == expected,
            )
            .update(values, synchronize_session=False)
        )
        return matched == 1

"""
Database models package
"""
from app.db.models.accident_link import AccidentLink, LinkStatus
from app.db.models.accident_report import (
    AccidentReport, ReportAttachment, ReportStatus, LocationSource, AttachmentKind
)
from app.db.models.audit import AuditLog

__all__ = [
    # Accident links
    "AccidentLink",
    "LinkStatus",
    # Accident reports
    "AccidentReport",
    "ReportAttachment",
    "ReportStatus",
    "LocationSource",
    "AttachmentKind",
    # Audit
    "AuditLog",
]

"""
Accident report database models
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Column, String, Text, DateTime, Enum, Float, ForeignKey, Integer, Uuid, JSON
from sqlalchemy.orm import relationship

from app.db.base import Base


class ReportStatus(str, PyEnum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    COMPLETED = "completed"


class LocationSource(str, PyEnum):
    GPS = "gps"
    MANUAL = "manual"
    NONE = "none"


class AttachmentKind(str, PyEnum):
    REGISTRATION = "registration"
    SCENE = "scene"


class AccidentReport(Base):
    """Roadside accident report submitted through an accident link."""

    __tablename__ = "accident_reports"

    report_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    link_id = Column(Uuid, ForeignKey("accident_links.link_id"), nullable=True)

    # Reporter
    client_name = Column(String(255), nullable=False)
    client_phone = Column(String(50), nullable=False)
    client_email = Column(String(255), nullable=True)

    # Vehicle
    vehicle_make = Column(String(100), nullable=False)
    vehicle_model = Column(String(100), nullable=False)

    description = Column(Text, nullable=True)
    insurance_company = Column(String(255), nullable=True)

    # Location: (0, 0) with a manual address when the device gave no fix
    latitude = Column(Float, default=0.0, nullable=False)
    longitude = Column(Float, default=0.0, nullable=False)
    address = Column(String(500), default="", nullable=False)
    location_source = Column(Enum(LocationSource), default=LocationSource.NONE, nullable=False)

    status = Column(Enum(ReportStatus), default=ReportStatus.PENDING, nullable=False, index=True)

    # Set only by the pending -> assigned transition
    provider_name = Column(String(255), nullable=True)
    provider_contact = Column(String(50), nullable=True)
    assigned_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    # Timeline: list of {status, timestamp, actor, notes}
    timeline = Column(JSON, default=list)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    link = relationship("AccidentLink", back_populates="reports")
    attachments = relationship(
        "ReportAttachment",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="ReportAttachment.position",
    )

    def __repr__(self) -> str:
        return f"<AccidentReport {self.report_id} ({self.status.value})>"

    @property
    def registration_image(self):
        for attachment in self.attachments:
            if attachment.kind == AttachmentKind.REGISTRATION:
                return attachment
        return None

    @property
    def scene_images(self) -> list:
        return [a for a in self.attachments if a.kind == AttachmentKind.SCENE]

    def add_timeline_event(self, status: str, actor: str, notes: str = "") -> None:
        """Add an event to the report timeline."""
        # Reassign so the JSON column registers the change
        self.timeline = [
            *(self.timeline or []),
            {
                "status": status,
                "timestamp": datetime.utcnow().isoformat(),
                "actor": actor,
                "notes": notes,
            },
        ]


class ReportAttachment(Base):
    """Image attached to an accident report."""

    __tablename__ = "report_attachments"

    attachment_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    report_id = Column(Uuid, ForeignKey("accident_reports.report_id"), nullable=False)
    kind = Column(Enum(AttachmentKind), nullable=False)
    position = Column(Integer, default=0, nullable=False)
    filename = Column(String(255), nullable=False)
    content_type = Column(String(100), nullable=True)
    storage_url = Column(String(500), nullable=False)
    file_size = Column(String(50), nullable=True)

    uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    report = relationship("AccidentReport", back_populates="attachments")

    def __repr__(self) -> str:
        return f"<ReportAttachment {self.filename} ({self.kind.value})>"

"""
Accident link database model (token-gated public form access)
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import Column, String, DateTime, Enum, Uuid
from sqlalchemy.orm import relationship

from app.db.base import Base


class LinkStatus(str, PyEnum):
    VALID = "valid"
    CONSUMED = "consumed"
    EXPIRED = "expired"


class AccidentLink(Base):
    """A link token bound to the contact identity a report is expected from."""

    __tablename__ = "accident_links"

    link_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    token = Column(String(128), unique=True, nullable=False, index=True)

    # Bound identity: pre-filled intent, not a verified identity
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False)
    email = Column(String(255), nullable=True)

    status = Column(Enum(LinkStatus), default=LinkStatus.VALID, nullable=False)
    created_by = Column(String(100), nullable=True)
    expires_at = Column(DateTime, nullable=True)
    consumed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    reports = relationship("AccidentReport", back_populates="link")

    def effective_status(self, now: Optional[datetime] = None) -> LinkStatus:
        """Status as seen by the validator. Reading never writes."""
        if self.status != LinkStatus.VALID:
            return self.status
        now = now or datetime.utcnow()
        if self.expires_at is not None and self.expires_at <= now:
            return LinkStatus.EXPIRED
        return LinkStatus.VALID

    def __repr__(self) -> str:
        return f"<AccidentLink {self.link_id} ({self.status.value})>"

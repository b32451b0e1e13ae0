"""
Accident report intake.

Turns a token-gated form submission into a ``pending`` report. The link
token is checked as a precondition only; whether a link is single-use is
decided by the caller (see ``LinkTokenService.consume``).
"""
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import TransportFailure, ValidationError
from app.core.logging import get_logger
from app.db.models import (
    AccidentReport,
    AttachmentKind,
    LocationSource,
    ReportAttachment,
    ReportStatus,
)
from app.services.audit import AuditService
from app.services.blob_storage import BlobStorage, LocalBlobStorage
from app.services.db_utils import with_db_retry
from app.services.link_tokens import LinkTokenService
from app.services.messaging import PhoneNumberValidator
from app.services.report_store import ReportRepository

logger = get_logger(__name__)


@dataclass
class AttachmentUpload:
    filename: str
    content_type: Optional[str]
    data: bytes


@dataclass
class ReportFields:
    client_name: str
    client_phone: str
    vehicle_make: str
    vehicle_model: str
    description: Optional[str] = None
    insurance_company: Optional[str] = None
    latitude: float = 0.0
    longitude: float = 0.0
    address: str = ""
    client_email: Optional[str] = None


@dataclass
class AttachmentFailure:
    kind: AttachmentKind
    filename: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "filename": self.filename, "reason": self.reason}


@dataclass
class IntakeResult:
    report: AccidentReport
    attachment_failures: List[AttachmentFailure] = field(default_factory=list)
    dropped_scene_images: int = 0


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


class AccidentIntakeService:
    """Validate and persist accident reports submitted through a link."""

    def __init__(
        self,
        db: Session,
        storage: Optional[BlobStorage] = None,
        links: Optional[LinkTokenService] = None,
        phone_validator: Optional[PhoneNumberValidator] = None,
    ):
        self.db = db
        self.storage = storage or LocalBlobStorage()
        self.links = links or LinkTokenService(db)
        self.phone_validator = phone_validator or PhoneNumberValidator()
        self.repository = ReportRepository(db)
        self.audit = AuditService(db)

    def submit(
        self,
        token: Optional[str],
        fields: ReportFields,
        registration_images: Sequence[AttachmentUpload] = (),
        scene_images: Sequence[AttachmentUpload] = (),
        consume_link: bool = False,
    ) -> IntakeResult:
        """
        Store a new ``pending`` report.

        Raises ``InvalidToken`` or ``ValidationError``. Attachment problems
        are reported in the result and never block the report.

        With ``consume_link`` the link is consumed in the same transaction
        that stores the report: of two submissions racing on one link,
        one report is stored and the other caller gets ``InvalidToken``.
        """
        link = self.links.validate(token)
        values = self._validate_fields(fields)

        if len(registration_images) > 1:
            raise ValidationError(
                "Only one registration document image is accepted",
                field="carRegistrationImage",
            )

        # Keep the first N scene images in submission order
        max_scenes = settings.MAX_SCENE_IMAGES
        kept_scenes = list(scene_images)[:max_scenes]
        dropped = max(len(scene_images) - max_scenes, 0)
        if dropped:
            logger.info(f"Dropped {dropped} scene image(s) over the limit of {max_scenes}")

        report = AccidentReport(
            report_id=uuid.uuid4(),
            link_id=link.link_id,
            status=ReportStatus.PENDING,
            client_email=_clean(fields.client_email) or link.email,
            timeline=[],
            **values,
        )

        failures: List[AttachmentFailure] = []
        uploads = [(AttachmentKind.REGISTRATION, 0, u) for u in registration_images]
        uploads += [(AttachmentKind.SCENE, i, u) for i, u in enumerate(kept_scenes)]
        for kind, position, upload in uploads:
            attachment = self._store_attachment(report, kind, position, upload, failures)
            if attachment is not None:
                report.attachments.append(attachment)

        report.add_timeline_event(ReportStatus.PENDING.value, "reporter", "Accident report submitted")
        stored_blobs = [attachment.storage_url for attachment in report.attachments]
        try:
            report = self._persist(report, token, consume_link)
        except Exception:
            self._discard_blobs(stored_blobs)
            raise

        self.audit.log_report_event(
            "report.submitted",
            str(link.link_id),
            str(report.report_id),
            {
                "client_phone": report.client_phone,
                "attachments": len(report.attachments),
                "attachment_failures": len(failures),
                "location_source": report.location_source.value,
            },
            actor_type="reporter",
        )
        logger.info(f"Accident report submitted: {report.report_id}")

        return IntakeResult(report=report, attachment_failures=failures, dropped_scene_images=dropped)

    @with_db_retry()
    def _persist(self, report: AccidentReport, token: Optional[str], consume_link: bool) -> AccidentReport:
        if consume_link:
            self.links.claim(token)
        self.repository.save(report, commit=False)
        self.db.commit()
        self.db.refresh(report)
        return report

    def _discard_blobs(self, references: List[str]) -> None:
        """Remove attachments written for a report that was never stored."""
        for reference in references:
            self.storage.delete(reference)
        if references:
            logger.info(f"Discarded {len(references)} attachment(s) of an unsaved report")

    def _validate_fields(self, fields: ReportFields) -> Dict[str, Any]:
        required = {
            "client_name": ("clientName", fields.client_name),
            "vehicle_make": ("vehicleMake", fields.vehicle_make),
            "vehicle_model": ("vehicleModel", fields.vehicle_model),
        }
        values: Dict[str, Any] = {}
        for attr, (form_name, raw) in required.items():
            value = _clean(raw)
            if not value:
                raise ValidationError(f"{form_name} is required", field=form_name)
            values[attr] = value

        values["client_phone"] = self.phone_validator.validate(fields.client_phone, field="clientPhone")

        try:
            latitude = float(fields.latitude or 0.0)
            longitude = float(fields.longitude or 0.0)
        except (TypeError, ValueError):
            raise ValidationError("lat/lng must be numbers", field="lat")
        if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
            raise ValidationError("lat/lng are out of range", field="lat")

        address = _clean(fields.address)
        if latitude or longitude:
            source = LocationSource.GPS
        elif address:
            source = LocationSource.MANUAL
        else:
            source = LocationSource.NONE

        values.update(
            description=_clean(fields.description) or None,
            insurance_company=_clean(fields.insurance_company) or None,
            latitude=latitude,
            longitude=longitude,
            address=address,
            location_source=source,
        )
        return values

    def _store_attachment(
        self,
        report: AccidentReport,
        kind: AttachmentKind,
        position: int,
        upload: AttachmentUpload,
        failures: List[AttachmentFailure],
    ) -> Optional[ReportAttachment]:
        filename = upload.filename or f"{kind.value}-{position + 1}"
        max_size = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024

        if not upload.content_type or not upload.content_type.startswith("image/"):
            failures.append(AttachmentFailure(kind, filename, "unsupported_content_type"))
            return None
        if not upload.data:
            failures.append(AttachmentFailure(kind, filename, "empty_file"))
            return None
        if len(upload.data) > max_size:
            failures.append(AttachmentFailure(kind, filename, "file_too_large"))
            return None

        try:
            reference = self.storage.store(
                upload.data,
                upload.content_type,
                folder=str(report.report_id),
                filename=filename,
            )
        except TransportFailure as exc:
            logger.warning(f"Attachment {filename} not stored: {exc.message}")
            failures.append(AttachmentFailure(kind, filename, "storage_failed"))
            return None

        return ReportAttachment(
            kind=kind,
            position=position,
            filename=filename,
            content_type=upload.content_type,
            storage_url=reference,
            file_size=f"{len(upload.data) / 1024:.1f}KB",
        )

"""
Accident report API routes (dispatch operator dashboard)
"""
from typing import List, Optional, Dict, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from app.api.deps import (
    Operator,
    get_client_notifier,
    get_db,
    get_dispatch_coordinator,
    get_status_machine,
    require_operator,
)
from app.db.models import AccidentReport, ReportStatus
from app.services.dispatch import DispatchCoordinator
from app.services.notifier import ClientNotifier
from app.services.report_store import ReportRepository
from app.services.status_machine import ReportStatusMachine

router = APIRouter()


# Request/Response schemas
class LocationResponse(BaseModel):
    lat: float
    lng: float
    address: str
    source: str


class AssignedProviderResponse(BaseModel):
    name: str
    contact_address: str


class AccidentResponse(BaseModel):
    report_id: str
    client_name: str
    client_phone: str
    client_email: Optional[str]
    vehicle_make: str
    vehicle_model: str
    description: Optional[str]
    insurance_company: Optional[str]
    location: LocationResponse
    status: str
    assigned_provider: Optional[AssignedProviderResponse]
    registration_image: Optional[str]
    scene_images: List[str]
    timeline: List[Dict[str, Any]]
    created_at: str
    assigned_at: Optional[str]
    completed_at: Optional[str]


class AccidentListResponse(BaseModel):
    accidents: List[AccidentResponse]


class AssignTowRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tow_company: str = Field(..., alias="towCompany", min_length=1)


class AssignTowResponse(BaseModel):
    message: str
    accident: AccidentResponse
    wa_link: str


class NotifyClientResponse(BaseModel):
    report_id: str
    wa_link: str


def report_to_response(report: AccidentReport) -> AccidentResponse:
    """Convert AccidentReport model to AccidentResponse."""
    registration = report.registration_image
    provider = None
    if report.provider_name:
        provider = AssignedProviderResponse(
            name=report.provider_name,
            contact_address=report.provider_contact or "",
        )
    return AccidentResponse(
        report_id=str(report.report_id),
        client_name=report.client_name,
        client_phone=report.client_phone,
        client_email=report.client_email,
        vehicle_make=report.vehicle_make,
        vehicle_model=report.vehicle_model,
        description=report.description,
        insurance_company=report.insurance_company,
        location=LocationResponse(
            lat=report.latitude,
            lng=report.longitude,
            address=report.address or "",
            source=report.location_source.value,
        ),
        status=report.status.value,
        assigned_provider=provider,
        registration_image=registration.storage_url if registration else None,
        scene_images=[a.storage_url for a in report.scene_images],
        timeline=report.timeline or [],
        created_at=report.created_at.isoformat(),
        assigned_at=report.assigned_at.isoformat() if report.assigned_at else None,
        completed_at=report.completed_at.isoformat() if report.completed_at else None,
    )


@router.get("", response_model=AccidentListResponse)
async def list_accidents(
    search: Optional[str] = None,
    status: Optional[ReportStatus] = None,
    operator: Operator = Depends(require_operator),
    db: Session = Depends(get_db),
):
    """List reports, newest first, filtered by free text and status."""
    reports = ReportRepository(db).list(search=search, status=status)
    return AccidentListResponse(accidents=[report_to_response(r) for r in reports])


@router.get("/{report_id}", response_model=AccidentResponse)
async def get_accident(
    report_id: str,
    operator: Operator = Depends(require_operator),
    db: Session = Depends(get_db),
):
    """Get report details by ID."""
    return report_to_response(ReportRepository(db).get(report_id))


@router.patch("/{report_id}/assign-tow", response_model=AssignTowResponse)
async def assign_tow(
    report_id: str,
    request: AssignTowRequest,
    operator: Operator = Depends(require_operator),
    coordinator: DispatchCoordinator = Depends(get_dispatch_coordinator),
):
    """Assign a tow company to a pending report and return its WhatsApp link."""
    result = coordinator.assign(report_id, request.tow_company, actor=operator.subject)
    return AssignTowResponse(
        message="Tow company assigned successfully",
        accident=report_to_response(result.report),
        wa_link=result.wa_link,
    )


@router.post("/{report_id}/notify-client", response_model=NotifyClientResponse)
async def notify_client(
    report_id: str,
    operator: Operator = Depends(require_operator),
    notifier: ClientNotifier = Depends(get_client_notifier),
):
    """WhatsApp link telling the reporter which tow company is coming."""
    result = notifier.notify_client(report_id, actor=operator.subject)
    return NotifyClientResponse(report_id=str(result.report.report_id), wa_link=result.wa_link)


@router.patch("/{report_id}/mark-completed", response_model=AccidentResponse)
async def mark_completed(
    report_id: str,
    operator: Operator = Depends(require_operator),
    status_machine: ReportStatusMachine = Depends(get_status_machine),
):
    """Close an assigned report."""
    report = status_machine.mark_completed(report_id, actor=operator.subject)
    return report_to_response(report)

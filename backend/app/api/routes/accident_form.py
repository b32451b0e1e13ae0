"""
Public accident form routes (token gated, no operator login)
"""
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from pydantic import BaseModel

from app.api.deps import Geocoder, get_geocoder, get_intake_service, get_link_service
from app.api.routes.accidents import AccidentResponse, report_to_response
from app.core.config import settings
from app.core.logging import get_logger
from app.services.intake import AccidentIntakeService, AttachmentUpload, ReportFields
from app.services.link_tokens import LinkTokenService
from app.services.location import (
    Coordinates,
    LocationResolver,
    PositionOptions,
    ReportedPosition,
)
from app.services.rate_limiter import rate_limited

logger = get_logger(__name__)

router = APIRouter()


# Request/Response schemas
class FormContextResponse(BaseModel):
    name: str
    phone: str
    email: Optional[str]
    position_options: Dict[str, Any]
    max_scene_images: int


class LocationReportRequest(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None
    error_code: Optional[Union[int, str]] = None
    manual_address: Optional[str] = None


class SubmissionResponse(BaseModel):
    message: str
    accident: AccidentResponse
    attachment_failures: List[Dict[str, str]]
    dropped_scene_images: int


def _parse_coordinate(value: Optional[str]) -> Optional[float]:
    try:
        return float(value) if value not in (None, "") else 0.0
    except ValueError:
        return None


async def _read_uploads(files: Optional[List[UploadFile]]) -> List[AttachmentUpload]:
    uploads = []
    for file in files or []:
        # Browsers send an empty part for an untouched file input
        if not file.filename:
            continue
        uploads.append(
            AttachmentUpload(
                filename=file.filename,
                content_type=file.content_type,
                data=await file.read(),
            )
        )
    return uploads


@router.get(
    "/{token}",
    response_model=FormContextResponse,
    dependencies=[Depends(rate_limited("link_validation"))],
)
async def open_form(
    token: str,
    links: LinkTokenService = Depends(get_link_service),
):
    """Identity bound to the link plus the options the form uses to get a GPS fix."""
    link = links.validate(token)
    return FormContextResponse(
        name=link.name,
        phone=link.phone,
        email=link.email,
        position_options=PositionOptions.from_settings().to_client_options(),
        max_scene_images=settings.MAX_SCENE_IMAGES,
    )


@router.post("/{token}/location", dependencies=[Depends(rate_limited("location_report"))])
async def report_location(
    token: str,
    request: LocationReportRequest,
    links: LinkTokenService = Depends(get_link_service),
    geocoder: Geocoder = Depends(get_geocoder),
):
    """
    Resolve what the browser's geolocation call produced.

    The form posts either the fix or the error code it got. The response
    carries the address (when it could be resolved), a user-facing
    message for failures, and whether manual entry or retry is offered.
    """
    links.validate(token)

    resolver = LocationResolver(
        ReportedPosition(request.lat, request.lng, request.error_code),
        geocoder=geocoder,
    )
    result = await resolver.acquire()
    if request.manual_address and request.manual_address.strip():
        result = resolver.manual_override(request.manual_address)
    return result.to_dict()


@router.post(
    "",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limited("form_submission"))],
)
async def submit_accident(
    token: str = Form(...),
    clientName: str = Form(""),
    clientPhone: str = Form(""),
    vehicleMake: str = Form(""),
    vehicleModel: str = Form(""),
    description: Optional[str] = Form(None),
    insuranceCompany: Optional[str] = Form(None),
    clientEmail: Optional[str] = Form(None),
    lat: Optional[str] = Form(None),
    lng: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    carRegistrationImage: Optional[List[UploadFile]] = File(None),
    accidentImages: Optional[List[UploadFile]] = File(None),
    intake: AccidentIntakeService = Depends(get_intake_service),
    links: LinkTokenService = Depends(get_link_service),
    geocoder: Geocoder = Depends(get_geocoder),
):
    """Submit an accident report with its registration and scene images."""
    # Reject dead links before any geocoding; the intake service re-checks
    links.validate(token)

    address = (address or "").strip()
    latitude = _parse_coordinate(lat)
    longitude = _parse_coordinate(lng)

    if not address and latitude is not None and longitude is not None:
        resolved, ok = await LocationResolver(None, geocoder=geocoder).reverse_resolve(
            Coordinates(latitude, longitude)
        )
        if ok:
            logger.debug("Missing address filled from submitted coordinates")
            address = resolved

    fields = ReportFields(
        client_name=clientName,
        client_phone=clientPhone,
        vehicle_make=vehicleMake,
        vehicle_model=vehicleModel,
        description=description,
        insurance_company=insuranceCompany,
        latitude=lat if latitude is None else latitude,
        longitude=lng if longitude is None else longitude,
        address=address,
        client_email=clientEmail,
    )
    result = intake.submit(
        token,
        fields,
        registration_images=await _read_uploads(carRegistrationImage),
        scene_images=await _read_uploads(accidentImages),
        consume_link=settings.CONSUME_LINK_ON_SUBMIT,
    )

    return SubmissionResponse(
        message="Accident report submitted successfully",
        accident=report_to_response(result.report),
        attachment_failures=[f.to_dict() for f in result.attachment_failures],
        dropped_scene_images=result.dropped_scene_images,
    )

"""
Accident link API routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator

from app.api.deps import Operator, get_link_service, require_operator
from app.db.models import AccidentLink
from app.services.link_tokens import LinkTokenService
from app.services.rate_limiter import rate_limited

router = APIRouter()


# Request/Response schemas
class IssueLinkRequest(BaseModel):
    name: str
    phone: str
    email: Optional[str] = None

    @field_validator("name", "phone")
    @classmethod
    def validate_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("field is required")
        return v.strip()


class IssueLinkResponse(BaseModel):
    link_id: str
    token: str
    form_url: str
    wa_link: str
    expires_at: Optional[str]


class LinkValidationResponse(BaseModel):
    valid: bool
    name: str
    phone: str
    email: Optional[str]


class LinkResponse(BaseModel):
    link_id: str
    status: str
    consumed_at: Optional[str]


def link_to_validation(link: AccidentLink) -> LinkValidationResponse:
    return LinkValidationResponse(valid=True, name=link.name, phone=link.phone, email=link.email)


@router.post("", response_model=IssueLinkResponse, status_code=status.HTTP_201_CREATED)
async def issue_link(
    request: IssueLinkRequest,
    operator: Operator = Depends(require_operator),
    links: LinkTokenService = Depends(get_link_service),
):
    """Issue an accident link for a reporter and return its WhatsApp link."""
    issued = links.issue(
        name=request.name,
        phone=request.phone,
        email=request.email,
        issued_by=operator.subject,
    )
    return IssueLinkResponse(
        link_id=str(issued.link.link_id),
        token=issued.link.token,
        form_url=issued.form_url,
        wa_link=issued.wa_link,
        expires_at=issued.link.expires_at.isoformat() if issued.link.expires_at else None,
    )


@router.get(
    "/validate/{token}",
    response_model=LinkValidationResponse,
    dependencies=[Depends(rate_limited("link_validation"))],
)
async def validate_link(
    token: str,
    links: LinkTokenService = Depends(get_link_service),
):
    """Check a link without using it up."""
    return link_to_validation(links.validate(token))


@router.post("/{token}/consume", response_model=LinkResponse)
async def consume_link(
    token: str,
    operator: Operator = Depends(require_operator),
    links: LinkTokenService = Depends(get_link_service),
):
    """Mark a link as used. Fails if it was already consumed or has expired."""
    link = links.consume(token, actor_id=operator.subject)
    return LinkResponse(
        link_id=str(link.link_id),
        status=link.status.value,
        consumed_at=link.consumed_at.isoformat() if link.consumed_at else None,
    )

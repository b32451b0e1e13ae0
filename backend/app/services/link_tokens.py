"""
Accident link token issuer and validator.

A dispatch operator issues a link for a reporter's contact identity; the
reporter opens the public accident form with it. Validation is a pure
read so page reloads never burn a token. Consumption is a separate,
atomic operation owned by whoever enforces single use.
"""
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import InvalidToken, ValidationError
from app.core.logging import get_logger
from app.db.models import AccidentLink, LinkStatus
from app.services.audit import AuditService
from app.services.db_utils import with_db_retry
from app.services.messaging import MessagingTransport, PhoneNumberValidator, WhatsAppLinkBuilder

logger = get_logger(__name__)

_REJECTION_MESSAGES = {
    "unknown": "Invalid or expired link",
    LinkStatus.CONSUMED: "This link has already been used",
    LinkStatus.EXPIRED: "This link has expired",
}


@dataclass
class IssuedLink:
    link: AccidentLink
    form_url: str
    wa_link: str


def build_form_url(token: str) -> str:
    return f"{settings.PUBLIC_FORM_URL}?token={token}"


def compose_link_message(name: str, form_url: str) -> str:
    return (
        f"Hello {name}, please use this secure link to report your accident "
        f"and share your location: {form_url}"
    )


class LinkTokenService:
    """Issue, validate and consume accident link tokens."""

    def __init__(
        self,
        db: Session,
        messaging: Optional[MessagingTransport] = None,
        phone_validator: Optional[PhoneNumberValidator] = None,
    ):
        self.db = db
        self.messaging = messaging or WhatsAppLinkBuilder()
        self.phone_validator = phone_validator or PhoneNumberValidator()
        self.audit = AuditService(db)

    @with_db_retry()
    def issue(
        self,
        name: str,
        phone: str,
        email: Optional[str] = None,
        issued_by: Optional[str] = None,
    ) -> IssuedLink:
        """Mint a token bound to the identity and compose the reporter's deep link."""
        name = (name or "").strip()
        if not name:
            raise ValidationError("name is required", field="name")
        phone = self.phone_validator.validate(phone, field="phone")

        link = AccidentLink(
            token=secrets.token_urlsafe(24),
            name=name,
            phone=phone,
            email=(email or "").strip() or None,
            created_by=issued_by,
            expires_at=datetime.utcnow() + timedelta(hours=settings.LINK_EXPIRATION_HOURS),
        )
        self.db.add(link)
        self.db.flush()

        form_url = build_form_url(link.token)
        wa_link = self.messaging.build_link(phone, compose_link_message(name, form_url))

        self.audit.log_link_event(
            "link.issued",
            issued_by,
            str(link.link_id),
            {"name": name, "phone": phone, "expires_at": link.expires_at.isoformat()},
            commit=False,
        )
        self.db.commit()
        self.db.refresh(link)

        logger.info(f"Accident link issued: {link.link_id}")
        return IssuedLink(link=link, form_url=form_url, wa_link=wa_link)

    def _lookup(self, token: Optional[str]) -> Optional[AccidentLink]:
        if not token:
            return None
        return self.db.query(AccidentLink).filter(AccidentLink.token == token).first()

    def validate(self, token: Optional[str]) -> AccidentLink:
        """
        Return the link bound to ``token`` or raise ``InvalidToken``.

        Never mutates the link, so repeated form loads see the same result.
        """
        link = self._lookup(token)
        if link is None:
            raise InvalidToken(_REJECTION_MESSAGES["unknown"], reason="unknown")

        effective = link.effective_status()
        if effective != LinkStatus.VALID:
            raise InvalidToken(_REJECTION_MESSAGES[effective], reason=effective.value)
        return link

    @with_db_retry()
    def consume(self, token: Optional[str], actor_id: Optional[str] = None) -> AccidentLink:
        """Atomically move a valid link to ``consumed``. Only one caller can win."""
        link = self.claim(token, actor_id)
        self.db.commit()
        self.db.refresh(link)

        logger.info(f"Accident link consumed: {link.link_id}")
        return link

    def claim(self, token: Optional[str], actor_id: Optional[str] = None) -> AccidentLink:
        """
        Mark the link consumed inside the caller's transaction.

        The conditional update matches only a valid, unexpired link, so of
        two concurrent claims exactly one succeeds. The loser's transaction
        is rolled back and ``InvalidToken`` raised. The winner's change
        becomes durable with the caller's commit.
        """
        now = datetime.utcnow()
        updated = (
            self.db.query(AccidentLink)
            .filter(
                AccidentLink.token == token,
                AccidentLink.status == LinkStatus.VALID,
                or_(AccidentLink.expires_at.is_(None), AccidentLink.expires_at > now),
            )
            .update(
                {AccidentLink.status: LinkStatus.CONSUMED, AccidentLink.consumed_at: now},
                synchronize_session=False,
            )
        )
        if updated != 1:
            self.db.rollback()
            self._reject(token, actor_id)

        link = self._lookup(token)
        self.audit.log_link_event("link.consumed", actor_id, str(link.link_id), commit=False)
        return link

    def _reject(self, token: Optional[str], actor_id: Optional[str]) -> None:
        """Audit a lost consumption and raise with the precise reason."""
        link = self._lookup(token)
        if link is None:
            raise InvalidToken(_REJECTION_MESSAGES["unknown"], reason="unknown")

        effective = link.effective_status()
        if effective == LinkStatus.VALID:
            # Matched nothing yet reads valid: expired between the two reads
            effective = LinkStatus.EXPIRED
        self.audit.log_link_event(
            "link.rejected",
            actor_id,
            str(link.link_id),
            {"reason": effective.value},
        )
        raise InvalidToken(_REJECTION_MESSAGES[effective], reason=effective.value)

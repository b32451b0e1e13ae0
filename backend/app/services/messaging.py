"""
Messaging deep-link transport.

Notifications are WhatsApp ``wa.me`` links: the system composes and
returns the URL, the operator's device opens it. Delivery and read
receipts are outside this service.
"""
import re
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import quote

from app.core.config import settings
from app.core.errors import ValidationError

_NON_DIGITS = re.compile(r"\D")

# Characters encodeURIComponent leaves untouched
_URI_COMPONENT_SAFE = "-_.!~*'()"


def normalize_phone(raw: Optional[str], country_code: Optional[str] = None) -> str:
    """
    Reduce a phone number to the canonical digits-only address.

    ``"071 234 5678"`` becomes ``"0712345678"``. When a country code is
    configured a leading trunk ``0`` is replaced by it, so the same
    number becomes ``"27712345678"`` with ``country_code="27"``.
    """
    digits = _NON_DIGITS.sub("", raw or "")
    if not digits:
        raise ValidationError("Phone number must contain digits", field="phone")

    if country_code is None:
        country_code = settings.DEFAULT_COUNTRY_CODE
    country_code = _NON_DIGITS.sub("", country_code or "")
    if country_code and digits.startswith("0") and not digits.startswith("00"):
        digits = country_code + digits[1:]

    return digits


class PhoneNumberValidator:
    """Business-rule check of a phone number's format (regional by configuration)."""

    def __init__(self, pattern: Optional[str] = None, enabled: Optional[bool] = None):
        self.pattern = re.compile(pattern or settings.PHONE_NUMBER_PATTERN)
        self.enabled = settings.PHONE_VALIDATION_ENABLED if enabled is None else enabled

    def validate(self, raw: Optional[str], field: str = "phone") -> str:
        """Return the trimmed number or raise ``ValidationError``."""
        value = (raw or "").strip()
        if not value:
            raise ValidationError(f"{field} is required", field=field)
        if not _NON_DIGITS.sub("", value):
            raise ValidationError(f"{field} must contain digits", field=field)
        if self.enabled and not self.pattern.match(value):
            raise ValidationError(f"{field} is not a valid phone number", field=field)
        return value


class MessagingTransport(ABC):
    """Builds a URL that opens a messaging app pre-filled with recipient and text."""

    @abstractmethod
    def build_link(self, address: str, message: str) -> str:
        pass


class WhatsAppLinkBuilder(MessagingTransport):
    """``https://wa.me/<digits>?text=<message>`` links."""

    def __init__(self, base_url: Optional[str] = None, country_code: Optional[str] = None):
        self.base_url = (base_url or settings.WHATSAPP_BASE_URL).rstrip("/")
        self.country_code = country_code

    def build_link(self, address: str, message: str) -> str:
        number = normalize_phone(address, self.country_code)
        return f"{self.base_url}/{number}?text={quote(message, safe=_URI_COMPONENT_SAFE)}"


def get_messaging_transport() -> MessagingTransport:
    """Dependency returning the configured deep-link transport."""
    return WhatsAppLinkBuilder()

"""
Application logging. Reporter contact details and link tokens are
masked in every emitted line.
"""
import logging
import re

from app.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Dict reprs and JSON alike
_QUOTED_VALUE = r"""(['"](?:{key})['"]:\s*)['"][^'"]*['"]"""

MASK_PATTERNS = [
    (re.compile(_QUOTED_VALUE.format(key="e?mail"), re.IGNORECASE), r"\1'***@***'"),
    (re.compile(_QUOTED_VALUE.format(key="(?:client_)?phone|notification_address"), re.IGNORECASE), r"\1'***'"),
    (re.compile(_QUOTED_VALUE.format(key="token|wa_link|form_url"), re.IGNORECASE), r"\1'***'"),
    (re.compile(r"token=[A-Za-z0-9_\-]+"), "token=***"),
]


class MaskingFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for pattern, replacement in MASK_PATTERNS:
            message = pattern.sub(replacement, message)
        return message


def setup_logging() -> logging.Logger:
    """Configure the ``towdesk`` logger once."""
    root = logging.getLogger("towdesk")
    level = logging.DEBUG if settings.DEBUG else logging.INFO
    root.setLevel(level)

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(level)
        handler.setFormatter(MaskingFormatter(LOG_FORMAT))
        root.addHandler(handler)

    return root


logger = setup_logging()


def get_logger(name: str) -> logging.Logger:
    """Module logger under ``towdesk``, e.g. ``towdesk.services.intake``."""
    return logger.getChild(name.replace("app.", "", 1))

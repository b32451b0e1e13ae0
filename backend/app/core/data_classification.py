"""
Sensitivity levels for accident workflow data, and masking of reporter
contact details and link credentials before anything reaches a log or
the audit trail.
"""

from enum import Enum
from typing import Any
import re


class DataClassification(Enum):
    PUBLIC = "public"
    INTERNAL = "internal"
    CONFIDENTIAL = "confidential"  # Reporter contact details and whereabouts
    RESTRICTED = "restricted"  # Anything that grants access to the public form


_RANK = {level: rank for rank, level in enumerate(DataClassification)}

FIELD_CLASSIFICATIONS: dict[str, DataClassification] = {
    "email": DataClassification.CONFIDENTIAL,
    "phone": DataClassification.CONFIDENTIAL,
    "client_phone": DataClassification.CONFIDENTIAL,
    "client_email": DataClassification.CONFIDENTIAL,
    "address": DataClassification.CONFIDENTIAL,
    "latitude": DataClassification.CONFIDENTIAL,
    "longitude": DataClassification.CONFIDENTIAL,
    "token": DataClassification.RESTRICTED,
    "form_url": DataClassification.RESTRICTED,
    "wa_link": DataClassification.RESTRICTED,
    "status": DataClassification.PUBLIC,
}

# Free text typed by reporters or operators
FREE_TEXT_FIELDS = frozenset({"description", "notes", "name"})

EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_PATTERN = re.compile(r"\+?\d[\d\s.-]{8,}\d")


def get_field_classification(field_name: str) -> DataClassification:
    """Unlisted fields are internal."""
    return FIELD_CLASSIFICATIONS.get(field_name.lower(), DataClassification.INTERNAL)


def mask_value(value: str, classification: DataClassification) -> str:
    if classification == DataClassification.RESTRICTED:
        return "*" * min(len(value), 8)
    if classification == DataClassification.CONFIDENTIAL:
        if len(value) <= 4:
            return "*" * len(value)
        return f"{value[0]}{'*' * (len(value) - 2)}{value[-1]}"
    return value


def detect_and_mask_pii(text: str) -> str:
    """Mask emails (domain kept) and phone numbers (last 4 digits kept) in free text."""
    text = EMAIL_PATTERN.sub(lambda m: f"{m.group()[0]}***@{m.group().rsplit('@', 1)[1]}", text)
    return PHONE_PATTERN.sub(lambda m: f"***{re.sub(r'[^0-9]', '', m.group())[-4:]}", text)


def sanitize_for_logging(data: dict[str, Any]) -> dict[str, Any]:
    """Copy of ``data`` safe to log: classified fields masked, free text scrubbed."""
    sanitized: dict[str, Any] = {}
    for key, value in data.items():
        classification = get_field_classification(key)
        if isinstance(value, dict):
            sanitized[key] = sanitize_for_logging(value)
        elif isinstance(value, list):
            sanitized[key] = [sanitize_for_logging(v) if isinstance(v, dict) else v for v in value]
        elif isinstance(value, (int, float)) and classification == DataClassification.CONFIDENTIAL:
            sanitized[key] = "***"
        elif not isinstance(value, str):
            sanitized[key] = value
        elif _RANK[classification] >= _RANK[DataClassification.CONFIDENTIAL]:
            sanitized[key] = mask_value(value, classification)
        elif key.lower() in FREE_TEXT_FIELDS:
            sanitized[key] = detect_and_mask_pii(value)
        else:
            sanitized[key] = value
    return sanitized


def classify_request_body(body: dict[str, Any]) -> DataClassification:
    """Highest classification of any key in ``body``, nested dicts included."""
    highest = DataClassification.PUBLIC
    for key, value in body.items():
        level = get_field_classification(key)
        if isinstance(value, dict):
            nested = classify_request_body(value)
            level = nested if _RANK[nested] > _RANK[level] else level
        if _RANK[level] > _RANK[highest]:
            highest = level
    return highest

"""
Tests for operator authentication and masking of reporter data.
"""

import logging
from datetime import timedelta

import pytest
from fastapi import HTTPException

from app.core.data_classification import (
    DataClassification,
    classify_request_body,
    detect_and_mask_pii,
    get_field_classification,
    mask_value,
    sanitize_for_logging,
)
from app.core.logging import MaskingFormatter
from app.core.security import create_access_token, decode_access_token


class TestOperatorTokens:
    """Test bearer token verification."""

    def test_round_trip(self):
        """Test a minted token decodes to the operator."""
        operator = decode_access_token(create_access_token("operator-7", "operator"))
        assert operator.subject == "operator-7"
        assert operator.role == "operator"

    def test_expired_token(self):
        """Test an expired token is a 401."""
        token = create_access_token("operator-7", "operator", expires_delta=timedelta(seconds=-5))
        with pytest.raises(HTTPException) as exc:
            decode_access_token(token)
        assert exc.value.status_code == 401

    def test_garbage_token(self):
        """Test a malformed token is a 401."""
        with pytest.raises(HTTPException) as exc:
            decode_access_token("not.a.jwt")
        assert exc.value.status_code == 401


class TestDataClassification:
    """Test field sensitivity levels."""

    def test_contact_fields_confidential(self):
        """Test reporter contact fields are confidential."""
        assert get_field_classification("client_phone") == DataClassification.CONFIDENTIAL
        assert get_field_classification("Address") == DataClassification.CONFIDENTIAL

    def test_link_credentials_restricted(self):
        """Test tokens and deep links are restricted."""
        assert get_field_classification("token") == DataClassification.RESTRICTED
        assert get_field_classification("wa_link") == DataClassification.RESTRICTED

    def test_unknown_field_internal(self):
        """Test unknown fields default to internal."""
        assert get_field_classification("vehicle_make") == DataClassification.INTERNAL

    def test_classify_request_body(self):
        """Test the highest level in a body wins, nested included."""
        body = {"status": "pending", "reporter": {"phone": "0712345678"}}
        assert classify_request_body(body) == DataClassification.CONFIDENTIAL
        assert classify_request_body({"status": "pending"}) == DataClassification.PUBLIC


class TestMasking:
    """Test masking of values and free text."""

    def test_mask_confidential(self):
        """Test confidential values keep their first and last character."""
        assert mask_value("0712345678", DataClassification.CONFIDENTIAL) == "0********8"

    def test_mask_restricted(self):
        """Test restricted values are fully hidden."""
        assert mask_value("Zx81kQ_token_value", DataClassification.RESTRICTED) == "********"

    def test_free_text_email_and_phone(self):
        """Test contact details typed into free text are masked."""
        masked = detect_and_mask_pii("Call 071 234 5678 or mail john.doe@example.com")
        assert "071 234" not in masked
        assert "***5678" in masked
        assert "john.doe" not in masked
        assert "@example.com" in masked


class TestSanitizeForLogging:
    """Test audit detail sanitization."""

    def test_sanitize_link_issue_details(self):
        """Test issue details keep the name but hide phone and token."""
        sanitized = sanitize_for_logging(
            {"name": "Thandi Mokoena", "phone": "+27821234567", "token": "abcdef123456"}
        )
        assert sanitized["name"] == "Thandi Mokoena"
        assert "+27821234567" not in str(sanitized)
        assert "abcdef123456" not in str(sanitized)

    def test_sanitize_coordinates(self):
        """Test numeric coordinates are hidden."""
        sanitized = sanitize_for_logging({"latitude": -33.9, "longitude": 18.4, "attachments": 2})
        assert sanitized == {"latitude": "***", "longitude": "***", "attachments": 2}

    def test_sanitize_free_text_notes(self):
        """Test phone numbers inside notes are masked."""
        sanitized = sanitize_for_logging({"notes": "Driver reachable on 082 123 4567"})
        assert "082 123" not in sanitized["notes"]

    def test_sanitize_preserves_structure(self):
        """Test nested lists and dicts are kept."""
        sanitized = sanitize_for_logging({"items": [{"email": "a@b.com", "id": 1}, {"id": 2}]})
        assert [item["id"] for item in sanitized["items"]] == [1, 2]
        assert sanitized["items"][0]["email"] != "a@b.com"


class TestMaskingFormatter:
    """Test log line masking."""

    def test_masks_token_in_message(self):
        """Test tokens in key=value form are masked."""
        formatter = MaskingFormatter("%(message)s")
        record = logging.LogRecord("towdesk", logging.INFO, __file__, 1, "opened token=abc123XYZ", None, None)
        assert "abc123XYZ" not in formatter.format(record)

    def test_masks_phone_in_dict_repr(self):
        """Test phone values in logged dicts are masked."""
        formatter = MaskingFormatter("%(message)s")
        record = logging.LogRecord(
            "towdesk", logging.INFO, __file__, 1, "details={'phone': '+27821234567'}", None, None
        )
        assert "+27821234567" not in formatter.format(record)

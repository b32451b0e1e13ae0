"""
Tests for database retry handling.
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.core.errors import NotFound
from app.services.db_utils import DatabaseOperationError, with_db_retry


class FlakyRepository:
    def __init__(self, db, failures: int, error=None):
        self.db = db
        self.failures = failures
        self.calls = 0
        self.error = error or OperationalError("SELECT 1", {}, Exception("database is locked"))

    @with_db_retry(max_retries=2, retry_delay=0)
    def save(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "saved"


class TestWithDbRetry:
    """Test the retry decorator."""

    def test_recovers_from_transient_errors(self, db):
        """Test a locked database is retried until it succeeds."""
        repo = FlakyRepository(db, failures=2)
        assert repo.save() == "saved"
        assert repo.calls == 3

    def test_gives_up_after_retries(self, db):
        """Test persistent failures surface as DatabaseOperationError."""
        repo = FlakyRepository(db, failures=10)
        with pytest.raises(DatabaseOperationError) as exc:
            repo.save()
        assert repo.calls == 3
        assert isinstance(exc.value.original_error, OperationalError)

    def test_integrity_errors_not_retried(self, db):
        """Test non-transient database errors propagate at once."""
        repo = FlakyRepository(db, failures=1, error=IntegrityError("INSERT", {}, Exception("unique")))
        with pytest.raises(IntegrityError):
            repo.save()
        assert repo.calls == 1

    def test_domain_errors_not_retried(self, db):
        """Test workflow errors propagate at once."""
        repo = FlakyRepository(db, failures=1, error=NotFound("AccidentReport", "x"))
        with pytest.raises(NotFound):
            repo.save()
        assert repo.calls == 1

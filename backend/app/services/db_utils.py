"""
Retry of database work that failed for transient reasons.
"""
import time
from functools import wraps
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class DatabaseOperationError(Exception):
    """The database stayed unreachable through every retry."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(message)


def _find_session(args: tuple, kwargs: dict) -> Optional[Session]:
    """A ``db`` argument, a positional session, or a service's ``self.db``."""
    candidates = [kwargs.get("db"), *args]
    for candidate in candidates:
        if isinstance(candidate, Session):
            return candidate
        owned = getattr(candidate, "db", None)
        if isinstance(owned, Session):
            return owned
    return None


def with_db_retry(
    max_retries: int = 3,
    retry_delay: float = 0.5,
    exponential_backoff: bool = True,
    rollback_on_error: bool = True,
):
    """
    Retry the wrapped call on ``OperationalError`` (lost connection,
    locked SQLite file). Domain errors and integrity errors are raised on
    the first attempt.

    The session is rolled back between attempts, so the wrapped call
    must be safe to run again from the start.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            attempts = max_retries + 1
            delay = retry_delay
            attempt = 1
            while True:
                try:
                    return func(*args, **kwargs)
                except OperationalError as e:
                    db = _find_session(args, kwargs) if rollback_on_error else None
                    if db is not None:
                        db.rollback()
                    if attempt >= attempts:
                        logger.error(f"{func.__qualname__} failed after {attempts} attempts: {e}")
                        raise DatabaseOperationError(
                            f"Database operation failed after {attempts} attempts",
                            original_error=e,
                        )
                    logger.warning(
                        f"{func.__qualname__} failed (attempt {attempt}/{attempts}), "
                        f"retrying in {delay:.1f}s: {e}"
                    )
                    time.sleep(delay)
                    if exponential_backoff:
                        delay *= 2
                    attempt += 1
        return wrapper
    return decorator

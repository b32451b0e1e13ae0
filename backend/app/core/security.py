"""
Operator authentication for the dispatch dashboard.

Tokens are minted by the external login service; this module only
verifies them. ``create_access_token`` exists for tests and tooling.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.config import settings

bearer_scheme = HTTPBearer()


@dataclass(frozen=True)
class Operator:
    """Verified caller of an operator endpoint."""

    subject: str
    role: str


def create_access_token(subject: str, role: str, expires_delta: Optional[timedelta] = None) -> str:
    expires_at = datetime.utcnow() + (expires_delta or timedelta(hours=settings.JWT_EXPIRATION_HOURS))
    claims = {"sub": subject, "role": role, "exp": expires_at}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_access_token(token: str) -> Operator:
    """Verify signature and expiry, and return the caller."""
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise _unauthorized("Invalid or expired token")

    subject = claims.get("sub")
    if not subject:
        raise _unauthorized("Invalid token payload")
    return Operator(subject=subject, role=claims.get("role") or "")


def require_role(allowed_roles: Iterable[str]):
    """Dependency factory admitting only callers whose role is listed."""
    allowed = frozenset(allowed_roles)

    async def role_checker(
        credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    ) -> Operator:
        operator = decode_access_token(credentials.credentials)
        if operator.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{operator.role}' may not use the dispatch dashboard",
            )
        return operator
    return role_checker


require_operator = require_role(settings.OPERATOR_ROLES)

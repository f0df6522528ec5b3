"""
DevFocus - API Dependencies
===========================

Shared dependencies for FastAPI endpoints.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from devfocus.core.assistant import Assistant, get_assistant
from devfocus.core.config import settings
from devfocus.core.database import get_db
from devfocus.core.exceptions import AuthError
from devfocus.core.mailer import Mailer, get_mailer
from devfocus.core.models import User


# ==========================================================================
# Security
# ==========================================================================

security = HTTPBearer(auto_error=False)

BEARER_HEADERS = {"WWW-Authenticate": "Bearer"}


# ==========================================================================
# Token Utilities
# ==========================================================================

def create_access_token(
    user_id: UUID,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a new access token.

    Args:
        user_id: User's UUID
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    now = datetime.now(timezone.utc)

    payload = {
        "sub": str(user_id),
        "exp": now + expires_delta,
        "iat": now,
        "type": "access",
        "jti": secrets.token_hex(16),  # Unique token identifier
    }

    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    """
    Decode and validate a JWT token.

    Raises:
        AuthError: If token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
    except JWTError as e:
        raise AuthError("Invalid or expired token", headers=BEARER_HEADERS) from e


# ==========================================================================
# User Dependencies
# ==========================================================================

async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Get the current authenticated user.

    Args:
        credentials: Bearer token from Authorization header
        db: Database session

    Returns:
        Current user object

    Raises:
        AuthError: If not authenticated or user not found
    """
    if credentials is None:
        raise AuthError("Not authenticated", headers=BEARER_HEADERS)

    payload = decode_token(credentials.credentials)

    if payload.get("type") != "access":
        raise AuthError("Invalid token type", headers=BEARER_HEADERS)

    user_id_str = payload.get("sub")
    if user_id_str is None:
        raise AuthError("Invalid token payload", headers=BEARER_HEADERS)

    try:
        user_id = UUID(user_id_str)
    except ValueError as e:
        raise AuthError("Invalid user ID in token", headers=BEARER_HEADERS) from e

    user = await db.get(User, user_id)

    if user is None:
        raise AuthError("User not found", headers=BEARER_HEADERS)

    if not user.is_verified:
        raise AuthError("Please verify your email before continuing", status_code=403)

    return user


# ==========================================================================
# Type Aliases for Dependency Injection
# ==========================================================================

# Use these in endpoint signatures for cleaner code
CurrentUser = Annotated[User, Depends(get_current_user)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
MailerDep = Annotated[Mailer, Depends(get_mailer)]
AssistantDep = Annotated[Assistant, Depends(get_assistant)]

"""
Bearer token handling for the field service workspace routes.

Access tokens are HS256 JWTs (PyJWT) whose ``sub`` claim is the numeric user
id.  Every failure is reported as ``ValueError`` with a client-safe message;
the API layer turns those into 401 responses.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops.core.config import settings
from fieldops.models.user import User, UserStatus

TOKEN_TYPE_ACCESS = "access"
_REQUIRED_CLAIMS = ["exp", "iat", "sub"]


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

def create_access_token(
    user_id: int,
    *,
    issued_at: Optional[datetime] = None,
) -> tuple[str, datetime]:
    """Sign an access token for ``user_id``.

    Returns:
        Tuple of (token, expires_at).  The lifetime comes from
        ``settings.access_token_ttl_minutes``.
    """
    issued = issued_at or datetime.now(timezone.utc)
    expires_at = issued + timedelta(minutes=settings.access_token_ttl_minutes)
    claims = {
        "sub": str(user_id),
        "type": TOKEN_TYPE_ACCESS,
        "iat": issued,
        "exp": expires_at,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm), expires_at


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify the signature, expiry and type of ``token`` and return its claims."""
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": _REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError:
        raise ValueError("Access token has expired.")
    except jwt.MissingRequiredClaimError as exc:
        raise ValueError(f"Access token is missing the '{exc.claim}' claim.")
    except jwt.InvalidTokenError:
        raise ValueError("Access token is invalid.")

    if claims.get("type") != TOKEN_TYPE_ACCESS:
        raise ValueError("Token is not an access token.")
    return claims


def user_id_from_claims(claims: dict[str, Any]) -> int:
    subject = str(claims.get("sub", "")).strip()
    if not subject.isdigit():
        raise ValueError("Access token subject is not a user id.")
    return int(subject)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_current_user(db: AsyncSession, token: str) -> User:
    """Resolve the active user a bearer token was issued to.

    Raises:
        ValueError: If the token fails verification, or the user is unknown
            or not active.
    """
    user_id = user_id_from_claims(decode_access_token(token))

    user = await get_user_by_id(db, user_id)
    if user is None:
        raise ValueError("No user matches this access token.")
    if user.status != UserStatus.ACTIVE.value:
        raise ValueError(f"User account is {user.status}.")
    return user

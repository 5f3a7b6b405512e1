"""
Security utilities and authentication dependencies.

Bearer tokens are JWTs issued by the identity provider (signed with the
shared secret). The `sub` claim is the provider's user id; the local User row
is created on first sight and its profile refreshed from the token claims.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import UnauthorizedError
from app.models.models import User

logger = logging.getLogger(__name__)

# Bearer token extractor
bearer_scheme = HTTPBearer(auto_error=False)


# --- JWT Utilities ---

def create_access_token(
    external_id: str,
    email: str = "",
    name: str = "",
    picture: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token for an identity.

    Args:
        external_id: The identity provider's user id
        email: Email claim
        name: Display name claim
        picture: Avatar URL claim
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(
            minutes=settings.access_token_expire_minutes
        )

    payload = {
        "sub": external_id,
        "email": email,
        "name": name,
        "exp": expire,
        "iat": datetime.utcnow(),
        "type": "access",
    }
    if picture:
        payload["picture"] = picture
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def verify_token(token: str) -> Optional[dict]:
    """
    Verify and decode a JWT token.

    Args:
        token: The JWT token string

    Returns:
        Decoded payload dict if valid, None if invalid/expired
    """
    try:
        return jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
        )
    except JWTError:
        return None


async def get_or_create_user(db: AsyncSession, claims: dict) -> User:
    """Local user for verified token claims, refreshing profile fields."""
    external_id = claims["sub"]
    result = await db.execute(select(User).where(User.external_id == external_id))
    user = result.scalar_one_or_none()

    email = claims.get("email") or ""
    name = claims.get("name") or ""
    picture = claims.get("picture")

    if user is None:
        user = User(external_id=external_id, email=email, name=name, picture=picture)
        db.add(user)
        await db.commit()
        logger.info(f"[AUTH] Created user {user.id} for identity {external_id}")
        return user

    changed = False
    for attr, value in (("email", email), ("name", name), ("picture", picture)):
        if value and getattr(user, attr) != value:
            setattr(user, attr, value)
            changed = True
    if changed:
        user.updated_at = datetime.utcnow()
        await db.commit()
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Dependency to get the current authenticated user.

    Every failure is reported as a bare UnauthorizedError; the reason only
    goes to the server log.
    """
    if not credentials:
        raise UnauthorizedError("missing bearer token")

    claims = verify_token(credentials.credentials)
    if claims is None:
        logger.warning("[AUTH] Rejected invalid or expired token")
        raise UnauthorizedError("invalid or expired token")

    if not claims.get("sub"):
        raise UnauthorizedError("token has no subject")

    user = await get_or_create_user(db, claims)
    if not user.is_active:
        raise UnauthorizedError("user is disabled")

    return user

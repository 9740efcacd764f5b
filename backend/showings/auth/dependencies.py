"""FastAPI authentication dependencies for route protection."""

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from showings.auth.jwt import decode_token
from showings.database import get_db
from showings.models.park import Lot, ManagerAssignment
from showings.models.showing import Showing
from showings.models.user import User

# Strict bearer: raises 403 automatically if no token provided
_bearer_scheme = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Extract and validate the Bearer token, then return the authenticated user.

    Raises:
        HTTPException 401: If the token is invalid, expired, wrong type, or user not found.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_token(credentials.credentials)
    except JWTError:
        raise credentials_exception from None

    # Only accept access tokens, not refresh tokens
    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
            headers={"WWW-Authenticate": "Bearer"},
        )

    sub: str | None = payload.get("sub")
    if sub is None:
        raise credentials_exception

    try:
        user_id = uuid.UUID(sub)
    except ValueError:
        raise credentials_exception from None

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise credentials_exception

    return user


async def get_current_active_user(
    user: User = Depends(get_current_user),
) -> User:
    """Return the current user only if their account is active.

    Raises:
        HTTPException 403: If the user account is inactive.
    """
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )
    return user


async def require_admin(
    user: User = Depends(get_current_active_user),
) -> User:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


async def can_manage_park(db: AsyncSession, user: User, park_id: uuid.UUID) -> bool:
    """Admins manage every park; managers only the parks they are assigned to."""
    if user.is_admin:
        return True
    result = await db.execute(
        select(ManagerAssignment.id).where(
            ManagerAssignment.user_id == user.id,
            ManagerAssignment.park_id == park_id,
        )
    )
    return result.first() is not None


async def ensure_can_manage_showing(db: AsyncSession, user: User, showing: Showing) -> None:
    """Raise 403 unless ``user`` owns the showing or manages its park.

    Raises:
        HTTPException 403: The user has no authority over the showing.
    """
    if user.is_admin or showing.manager_id == user.id:
        return
    park_id = (await db.execute(select(Lot.park_id).where(Lot.id == showing.lot_id))).scalar_one()
    if await can_manage_park(db, user, park_id):
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Not allowed to manage this showing",
    )

"""Auth API router: token refresh and the current user's profile.

Access tokens are issued out of band (``scripts/seed_data.py`` prints demo ones);
this router only rotates them.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from showings.auth.dependencies import get_current_active_user
from showings.auth.jwt import create_token_pair, decode_token
from showings.database import get_db
from showings.models.user import User
from showings.schemas.auth import RefreshRequest, TokenResponse, UserResponse

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def _invalid(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, db: AsyncSession = Depends(get_db)) -> TokenResponse:
    """Exchange a valid refresh token for a new token pair."""
    try:
        payload = decode_token(body.refresh_token)
    except JWTError:
        raise _invalid("Invalid or expired refresh token") from None

    if payload.get("type") != "refresh":
        raise _invalid("Invalid token type")

    try:
        user_id = uuid.UUID(payload.get("sub") or "")
    except ValueError:
        raise _invalid("Invalid token payload") from None

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise _invalid("User not found or inactive")

    return TokenResponse(**create_token_pair(str(user.id)))


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_active_user)) -> UserResponse:
    """Return the currently authenticated user's profile."""
    return UserResponse.model_validate(current_user)

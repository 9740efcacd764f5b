"""JWT access and refresh tokens for manager and admin sessions."""

from datetime import datetime, timedelta, timezone

from jose import jwt

from showings.config import settings


def _encode(data: dict, token_type: str, lifetime: timedelta) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    to_encode.update({"exp": now + lifetime, "iat": now, "type": token_type})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a short-lived access token.

    Args:
        data: Payload data. Must include ``sub`` (user UUID as string).
        expires_delta: Custom expiration duration. Defaults to
            ``settings.jwt_access_token_expire_minutes`` minutes.
    """
    lifetime = expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    return _encode(data, "access", lifetime)


def create_refresh_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a long-lived refresh token (``settings.jwt_refresh_token_expire_days``)."""
    lifetime = expires_delta or timedelta(days=settings.jwt_refresh_token_expire_days)
    return _encode(data, "refresh", lifetime)


def decode_token(token: str) -> dict:
    """Decode and verify a JWT.

    Raises:
        jose.JWTError: If the token is invalid, expired, or malformed.
    """
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])


def create_token_pair(user_id: str) -> dict[str, str]:
    payload = {"sub": user_id}
    return {
        "access_token": create_access_token(payload),
        "refresh_token": create_refresh_token(payload),
        "token_type": "bearer",
    }

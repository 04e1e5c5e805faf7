"""
Authentication utilities: access/refresh token issuing and verification
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

logger = logging.getLogger(__name__)

# JWT configuration
ALGORITHM = "HS256"
CLERK_ALGORITHM = "RS256"

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def new_session_id() -> str:
    return f"sess_{uuid.uuid4().hex}"


def create_access_token(user_id: str, session_id: str, settings, expires_in: Optional[timedelta] = None) -> str:
    """Create an HS256 access token signed with JWT_SECRET"""
    if not settings.jwt_secret:
        raise ValueError("JWT_SECRET is not set. Cannot create access token.")

    now = _now()
    payload = {
        "sub": user_id,
        "sid": session_id,
        "typ": ACCESS_TOKEN_TYPE,
        "iat": now,
        "exp": now + (expires_in if expires_in is not None else settings.access_token_ttl),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)


def create_refresh_token(user_id: str, session_id: str, settings, expires_in: Optional[timedelta] = None) -> str:
    """Create a refresh token signed with REFRESH_TOKEN_SECRET"""
    if not settings.refresh_token_secret:
        raise ValueError("REFRESH_TOKEN_SECRET is not set. Cannot create refresh token.")

    now = _now()
    payload = {
        "sub": user_id,
        "sid": session_id,
        "typ": REFRESH_TOKEN_TYPE,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + (expires_in if expires_in is not None else settings.refresh_token_ttl),
    }
    return jwt.encode(payload, settings.refresh_token_secret, algorithm=ALGORITHM)


def create_expired_token(user_id: str, settings, expired_seconds_ago: int = 1) -> str:
    """
    Create an expired access token for testing purposes.

    Args:
        user_id: User ID to include in token
        settings: Application settings holding JWT_SECRET
        expired_seconds_ago: How many seconds ago the token should have expired (default: 1)

    Returns:
        Expired JWT token string
    """
    return create_access_token(
        user_id,
        new_session_id(),
        settings,
        expires_in=timedelta(seconds=-expired_seconds_ago),
    )


def _decode(token: str, key, algorithm: str) -> Optional[dict]:
    try:
        return jwt.decode(token, key, algorithms=[algorithm], options={"require": ["exp", "sub"]})
    except jwt.ExpiredSignatureError:
        logger.debug("Access token expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Access token rejected: {e}")
    return None


def decode_access_token(token: str, settings) -> Optional[dict]:
    """
    Verify an access token. Returns its claims, or None if invalid.

    Without CLERK_JWT_KEY every token is verified against JWT_SECRET (HS256).
    With it, identity-provider session tokens are verified as RS256 against
    that key, and HS256 tokens are only accepted when they are access tokens
    issued here (typ=access, e.g. from /api/auth/refresh). Refresh tokens are
    never accepted.
    """
    if settings.clerk_jwt_key:
        try:
            algorithm = jwt.get_unverified_header(token).get("alg")
        except jwt.InvalidTokenError as e:
            logger.debug(f"Access token rejected: {e}")
            return None

        if algorithm == ALGORITHM:
            payload = _decode(token, settings.jwt_secret, ALGORITHM)
            if payload is None or payload.get("typ") != ACCESS_TOKEN_TYPE:
                return None
            return payload
        payload = _decode(token, settings.clerk_jwt_key, CLERK_ALGORITHM)
    else:
        payload = _decode(token, settings.jwt_secret, ALGORITHM)

    if payload is None or payload.get("typ") == REFRESH_TOKEN_TYPE:
        return None
    return payload


def decode_refresh_token(token: str, settings) -> Optional[dict]:
    """Verify a refresh token. Returns its claims, or None if invalid."""
    try:
        payload = jwt.decode(
            token,
            settings.refresh_token_secret,
            algorithms=[ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except jwt.InvalidTokenError as e:
        logger.debug(f"Refresh token rejected: {e}")
        return None

    if payload.get("typ") != REFRESH_TOKEN_TYPE:
        return None
    return payload

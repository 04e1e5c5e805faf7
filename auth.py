"""
Request authentication gate and dependencies
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Header, Request

from auth_utils import decode_access_token
from utils.errors import UnauthorizedError
from utils.logging_utils import log_auth_event

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "
AURORA_IDENTITY_SOURCE = "aurora-identity"
CLERK_SOURCE = "clerk"


@dataclass
class AuthContext:
    """Caller identity attached to the request once the gate passes."""

    user_id: str
    session_id: Optional[str] = None
    claims: dict = field(default_factory=dict)
    source: str = CLERK_SOURCE


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization: Bearer <token>`` header, else None."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


def verify_token(token: str, settings, source: Optional[str] = None) -> Optional[AuthContext]:
    """Verify a session token and build the caller's AuthContext, or None if invalid."""
    payload = decode_access_token(token, settings)
    if not payload:
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None

    return AuthContext(
        user_id=str(user_id),
        session_id=payload.get("sid"),
        claims=payload,
        source=AURORA_IDENTITY_SOURCE if source == AURORA_IDENTITY_SOURCE else CLERK_SOURCE,
    )


def get_auth_context(request: Request) -> Optional[AuthContext]:
    return getattr(request.state, "auth", None)


async def require_auth(
    request: Request,
    authorization: Optional[str] = Header(None, alias="Authorization"),
    x_auth_source: Optional[str] = Header(None, alias="X-Auth-Source"),
) -> AuthContext:
    """
    Dependency for protected routes.

    Rejects with 401 when the Authorization header is missing, is not of the
    form ``Bearer <token>``, or carries a token that fails verification.
    """
    token = extract_bearer_token(authorization)
    if not token:
        raise UnauthorizedError("Missing or invalid authorization header")

    settings = request.app.state.settings
    context = verify_token(token, settings, source=x_auth_source)
    if context is None:
        log_auth_event("verify_token", None, False, path=request.url.path)
        raise UnauthorizedError("Invalid or expired token")

    request.state.auth = context
    return context


async def optional_auth(
    request: Request,
    authorization: Optional[str] = Header(None, alias="Authorization"),
    x_auth_source: Optional[str] = Header(None, alias="X-Auth-Source"),
) -> Optional[AuthContext]:
    """
    Optional auth: attaches the caller's identity if a valid token is present,
    but never rejects the request.
    """
    token = extract_bearer_token(authorization)
    if not token:
        return None

    context = verify_token(token, request.app.state.settings, source=x_auth_source)
    if context is not None:
        request.state.auth = context
    return context

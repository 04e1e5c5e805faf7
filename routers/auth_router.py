"""
Token refresh and session introspection routes
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from auth import AuthContext, optional_auth
from auth_utils import create_access_token, create_refresh_token, decode_refresh_token
from utils.errors import UNAUTHORIZED
from utils.logging_utils import log_auth_event
from utils.responses import error_response, success_response

logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix="/api/auth", tags=["auth"])


class RefreshRequest(BaseModel):
    refresh_token: str = Field(alias="refreshToken")


@auth_router.post("/refresh")
async def refresh_tokens(payload: RefreshRequest, request: Request):
    """Exchange a refresh token for a new access token; the refresh token is rotated."""
    settings = request.app.state.settings

    claims = decode_refresh_token(payload.refresh_token, settings)
    if not claims:
        log_auth_event("refresh", None, False)
        return error_response(UNAUTHORIZED, status=401, message="Invalid or expired refresh token")

    user_id = claims["sub"]
    session_id = claims.get("sid")
    access_token = create_access_token(user_id, session_id, settings)
    refresh_token = create_refresh_token(user_id, session_id, settings)
    log_auth_event("refresh", user_id, True, session_id=session_id)

    return success_response({
        "accessToken": access_token,
        "refreshToken": refresh_token,
        "tokenType": "Bearer",
        "expiresIn": int(settings.access_token_ttl.total_seconds()),
    })


@auth_router.get("/session")
async def get_session(auth: Optional[AuthContext] = Depends(optional_auth)):
    """Describe the caller's session; anonymous callers are not rejected."""
    if auth is None:
        return success_response({"authenticated": False})

    return success_response({
        "authenticated": True,
        "userId": auth.user_id,
        "sessionId": auth.session_id,
        "source": auth.source,
    })

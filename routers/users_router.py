"""
User resource routes. The whole group sits behind the bearer-token gate.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from auth import get_auth_context, require_auth
from models.user import UserCreate, UserUpdate
from services.user_service import profile_defaults
from utils.errors import INTERNAL_ERROR, NOT_FOUND, UNAUTHORIZED
from utils.responses import error_response, success_response

logger = logging.getLogger(__name__)

users_router = APIRouter(
    prefix="/api/users",
    tags=["users"],
    dependencies=[Depends(require_auth)],
)


def get_user_store(request: Request):
    return request.app.state.user_store


def _unauthenticated():
    return error_response(UNAUTHORIZED, status=401, message="User not authenticated")


def _not_found():
    return error_response(NOT_FOUND, status=404, message="User not found")


async def _provision_user(store, auth, payload: Optional[UserUpdate] = None):
    """Create the caller's record on first use, from the submitted fields or the token claims."""
    email, name = profile_defaults(auth.claims)
    fields = payload.model_dump(exclude_unset=True) if payload is not None else {}
    user = await store.create_user(UserCreate(
        id=auth.user_id,
        email=fields.get("email") or email,
        name=fields.get("name") or name,
        metadata=fields.get("metadata"),
    ))
    logger.info(f"Provisioned user record for {auth.user_id}")
    return user


@users_router.get("/me")
async def get_current_user(request: Request, store=Depends(get_user_store)):
    """Get current authenticated user"""
    auth = get_auth_context(request)
    if auth is None or not auth.user_id:
        return _unauthenticated()

    try:
        user = await store.get_user_by_id(auth.user_id)
        if user is None:
            user = await _provision_user(store, auth)
    except Exception:
        logger.exception(f"Get current user error (user={auth.user_id})")
        return error_response(INTERNAL_ERROR, status=500, message="Failed to fetch user")

    return success_response(user.to_response())


@users_router.patch("/me")
async def update_profile(payload: UserUpdate, request: Request, store=Depends(get_user_store)):
    """Update user profile"""
    auth = get_auth_context(request)
    if auth is None or not auth.user_id:
        return _unauthenticated()

    try:
        user = await store.update_user(auth.user_id, payload)
        if user is None:
            user = await _provision_user(store, auth, payload)
    except Exception:
        logger.exception(f"Update profile error (user={auth.user_id})")
        return error_response(INTERNAL_ERROR, status=500, message="Failed to update profile")

    return success_response(user.to_response(), message="Profile updated successfully")


# Must stay below /me so "me" is never captured as an id
@users_router.get("/{user_id}")
async def get_user_by_id(user_id: str, store=Depends(get_user_store)):
    """Get user by ID"""
    try:
        user = await store.get_user_by_id(user_id)
    except Exception:
        logger.exception(f"Get user by ID error (id={user_id})")
        return error_response(INTERNAL_ERROR, status=500, message="Failed to fetch user")

    if user is None:
        return _not_found()
    return success_response(user.to_response())

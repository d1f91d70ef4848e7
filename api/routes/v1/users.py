"""
api/routes/v1/users.py -- Read-only user endpoints behind the authorization gate.

Routes:
  GET /api/v1/users        -- list public profiles (requires session)
  GET /api/v1/users/{id}   -- one public profile (requires session)

Creating, updating and deleting users is not exposed here; accounts come
into existence only through sign-up.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import UserDetailResponse, UserPublic
from auth.dependencies import get_auth_service, require_session
from auth.exceptions import UserNotFound

# Auth policy: every route in this module requires a session. The dependency
# is attached at router level so a new route cannot forget it.
router = APIRouter(dependencies=[Depends(require_session)])


@router.get("/users", response_model=list[UserPublic])
def list_users(request: Request) -> list[UserPublic]:
    store = get_auth_service(request).store
    return [UserPublic.from_user(u) for u in store.list_users()]


@router.get("/users/{user_id}", response_model=UserDetailResponse)
def get_user(request: Request, user_id: str) -> UserDetailResponse:
    """Return one user's public profile plus the caller's resolved id."""
    store = get_auth_service(request).store
    try:
        user = store.find_by_id(user_id)
    except UserNotFound as exc:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        ) from exc
    return UserDetailResponse(user=UserPublic.from_user(user), requested_by=request.state.user_id)

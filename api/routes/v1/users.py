"""
api/routes/v1/users.py -- Account management REST endpoints.

Routes:
  POST   /users                                  -- register (public)
  GET    /users                                  -- list all users (admin only)
  GET    /users/filter?username=&email=          -- contains-search (admin only)
  GET    /users/{username}                       -- one user (admin or self)
  DELETE /users/{username}                       -- delete (admin only)
  GET    /users/{username}/authorities           -- authority names (admin or self)
  POST   /users/{username}/authorities           -- grant authority (admin only)
  DELETE /users/{username}/authorities/{name}    -- revoke authority (admin only)

Business rules live in users.service.UserService. Its errors (NotFound,
InvalidInput, BadRequest) propagate to the handler registered in api/main.py,
so the handlers here stay a thin mapping between HTTP and the service.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.models import AuthorityAssign, MessageResponse, UserCreate, UserResponse
from auth.dependencies import get_current_user, is_admin, require_admin
from auth.models import User
from users.service import UserService

# Auth policy:
# - POST   /users:                             public -- self-registration
# - GET    /users, /users/filter:              requires admin (require_admin)
# - GET    /users/{username}:                  requires auth; admin or the user themselves
# - GET    /users/{username}/authorities:      requires auth; admin or the user themselves
# - DELETE /users/{username}:                  requires admin
# - POST   /users/{username}/authorities:      requires admin
# - DELETE /users/{username}/authorities/...:  requires admin
router = APIRouter()


def _service(request: Request) -> UserService:
    return request.app.state.user_service


def _require_self_or_admin(current_user: User, username: str) -> None:
    if current_user.username != username and not is_admin(current_user):
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "You may only view your own account."},
        )


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(request: Request, body: UserCreate) -> UserResponse:
    """Register a new account. It starts with the default authority only."""
    dto = _service(request).create_user(body.to_input_dto())
    return UserResponse.from_dto(dto)


# ---------------------------------------------------------------------------
# Admin endpoints
# ---------------------------------------------------------------------------


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request, current_user: User = Depends(require_admin)) -> list[UserResponse]:
    """List all accounts ordered by username."""
    return [UserResponse.from_dto(d) for d in _service(request).list_users()]


# Declared before /users/{username} so "filter" is not captured as a username.
@router.get("/users/filter", response_model=list[UserResponse])
def filter_users(
    request: Request,
    username: Optional[str] = Query(default=None, max_length=64),
    email: Optional[str] = Query(default=None, max_length=255),
    current_user: User = Depends(require_admin),
) -> list[UserResponse]:
    """Case-insensitive contains-search on username and/or email."""
    return [UserResponse.from_dto(d) for d in _service(request).filter_users(username=username, email=email)]


@router.delete("/users/{username}", response_model=MessageResponse)
def delete_user(request: Request, username: str, current_user: User = Depends(require_admin)) -> MessageResponse:
    """Delete an account and its authorities. The protected account is refused."""
    return MessageResponse(message=_service(request).delete_user(username))


@router.post("/users/{username}/authorities", response_model=UserResponse)
def assign_authority(
    request: Request,
    username: str,
    body: AuthorityAssign,
    current_user: User = Depends(require_admin),
) -> UserResponse:
    """Grant an authority; the name is stored upper-cased."""
    return UserResponse.from_dto(_service(request).assign_authority(username, body.authority))


@router.delete("/users/{username}/authorities/{authority}", response_model=MessageResponse)
def remove_authority(
    request: Request,
    username: str,
    authority: str,
    current_user: User = Depends(require_admin),
) -> MessageResponse:
    """Revoke an authority. Refused when the user is its last holder."""
    return MessageResponse(message=_service(request).remove_authority(username, authority))


# ---------------------------------------------------------------------------
# Authenticated endpoints (admin or self)
# ---------------------------------------------------------------------------


@router.get("/users/{username}", response_model=UserResponse)
def get_user(request: Request, username: str, current_user: User = Depends(get_current_user)) -> UserResponse:
    _require_self_or_admin(current_user, username)
    return UserResponse.from_dto(_service(request).get_user(username))


@router.get("/users/{username}/authorities", response_model=list[str])
def get_user_authorities(
    request: Request,
    username: str,
    current_user: User = Depends(get_current_user),
) -> list[str]:
    _require_self_or_admin(current_user, username)
    return sorted(_service(request).get_user_authorities(username))

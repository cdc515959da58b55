"""
api/routes/v1/users.py -- User administration: listing, assignment, roles.

Routes:
  GET    /users                 -- list users (management/admin)
  POST   /users/{user_id}/assign -- assign to unit + division (management/admin)
  DELETE /users/{user_id}/assign -- clear assignment (management/admin)
  PUT    /users/{user_id}/role   -- change role (admin only)

Assignment state per user is either Unassigned (both references None) or
Assigned(unit, division) with the division owned by the unit. assign()
validates everything before writing, then writes both references in one
statement, so a failed assign leaves the previous state untouched.

Role changes take effect for authorization immediately (every request
re-reads the user). The caller's own token still carries the old role claim,
so requireReLogin tells the client to log in again when they changed
themselves.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import (
    AssignRequest,
    PublicUser,
    RoleChangeRequest,
    RoleChangeResponse,
    UserListResponse,
    UserResponse,
)
from auth.dependencies import require_admin, require_management
from auth.models import User
from auth.store import UserStore
from org.store import OrgStore

logger = logging.getLogger("credvault.api.users")

router = APIRouter()


def _get_user_or_404(user_store: UserStore, user_id: int) -> User:
    user = user_store.get_by_id(user_id)
    if user is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    return user


def _reload(user_store: UserStore, user_id: int) -> User:
    user = user_store.get_by_id(user_id)
    if user is None:
        raise HTTPException(
            status_code=500,
            detail={"code": "internal_error", "message": "User not found after write."},
        )
    return user


@router.get("/users", response_model=UserListResponse)
def list_users(
    request: Request,
    current_user: User = Depends(require_management),
) -> UserListResponse:
    user_store: UserStore = request.app.state.user_store
    return UserListResponse(items=[PublicUser.from_user(u) for u in user_store.list_users()])


@router.post("/users/{user_id}/assign", response_model=UserResponse)
def assign_user(
    request: Request,
    user_id: int,
    body: AssignRequest,
    current_user: User = Depends(require_management),
) -> UserResponse:
    """Assign a user to a unit and one of that unit's divisions.

    404 if the unit or the user does not exist; 400 invalid_reference if the
    division is not owned by the unit.
    """
    user_store: UserStore = request.app.state.user_store
    org_store: OrgStore = request.app.state.org_store

    unit = org_store.get_unit(body.unit_id)
    if unit is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Organizational unit not found."},
        )
    if unit.division(body.division_id) is None:
        raise HTTPException(
            status_code=400,
            detail={
                "code": "invalid_reference",
                "message": "divisionId does not belong to the specified unit.",
            },
        )
    _get_user_or_404(user_store, user_id)

    user_store.set_assignment(user_id, unit_id=unit.id, division_id=body.division_id)
    logger.info(
        "User id=%d assigned user id=%d to unit id=%d division id=%d",
        current_user.id,
        user_id,
        unit.id,
        body.division_id,
    )
    return UserResponse(message="User assigned", user=PublicUser.from_user(_reload(user_store, user_id)))


@router.delete("/users/{user_id}/assign", response_model=UserResponse)
def unassign_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(require_management),
) -> UserResponse:
    """Clear both assignment references. Calling it on an unassigned user is a no-op."""
    user_store: UserStore = request.app.state.user_store
    _get_user_or_404(user_store, user_id)

    user_store.clear_assignment(user_id)
    logger.info("User id=%d unassigned user id=%d", current_user.id, user_id)
    return UserResponse(message="User unassigned", user=PublicUser.from_user(_reload(user_store, user_id)))


@router.put("/users/{user_id}/role", response_model=RoleChangeResponse)
def change_role(
    request: Request,
    user_id: int,
    body: RoleChangeRequest,
    current_user: User = Depends(require_admin),
) -> RoleChangeResponse:
    """Set a user's role. Admin only. Unknown role values are rejected with 400."""
    user_store: UserStore = request.app.state.user_store
    target = _get_user_or_404(user_store, user_id)

    user_store.update_role(user_id, body.role.value)
    logger.info(
        "User id=%d changed role of user id=%d: %s -> %s",
        current_user.id,
        user_id,
        target.role,
        body.role.value,
    )
    return RoleChangeResponse(
        message="Role updated",
        user=PublicUser.from_user(_reload(user_store, user_id)),
        require_re_login=target.id == current_user.id,
    )

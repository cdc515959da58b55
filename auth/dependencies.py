"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and authorization.

Authentication uses a single method: the Authorization: Bearer <token> header.

get_current_user() verifies the token, then re-fetches the user from the
store. The live record is what every rule in auth/policy.py sees -- the role
claim in the token is never trusted beyond proving who the caller is.

The require_* helpers wrap get_current_user() and raise HTTP 403 when the
live role (or division assignment) does not permit the operation. They run
before the route body touches the org store, so a caller without permission
learns nothing about whether the target exists.

Layer rule: may import from fastapi (Depends/HTTPException/Request) because
this module is part of the FastAPI dependency injection system. No imports
from api/ or org/.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from auth.models import User
from auth.policy import can_access_division, can_change_roles, can_manage_users, can_update_credentials


def _unauthorized(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={"code": code, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _forbidden(message: str) -> HTTPException:
    return HTTPException(status_code=403, detail={"code": "forbidden", "message": message})


def _bearer_token(request: Request) -> str:
    """Extract the raw token from the Authorization header or raise 401."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise _unauthorized("missing_token", "No Authorization header provided.")
    scheme, _, token = auth_header.partition(" ")
    token = token.strip()
    if scheme != "Bearer" or not token or " " in token:
        raise _unauthorized("malformed_token", "Malformed Authorization header. Use: Bearer <token>")
    return token


def get_current_user(request: Request) -> User:
    """Require authentication. Returns the CURRENT user record from the store.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    token = _bearer_token(request)
    claims = request.app.state.tokens.verify(token)
    if claims is None:
        raise _unauthorized("invalid_token", "Invalid or expired token.")
    user = request.app.state.user_store.get_by_id(claims["user_id"])
    if user is None:
        raise _unauthorized("unknown_user", "Unknown user.")
    return user


def require_division_access(division_id: int, user: User = Depends(get_current_user)) -> User:
    """Read/add credentials on the division named by the {division_id} path param."""
    if not can_access_division(user, division_id):
        raise _forbidden("Not allowed for this division.")
    return user


def require_credential_editor(user: User = Depends(get_current_user)) -> User:
    if not can_update_credentials(user):
        raise _forbidden("Permission denied: management or admin required.")
    return user


def require_management(user: User = Depends(get_current_user)) -> User:
    """Require the management or admin role."""
    if not can_manage_users(user):
        raise _forbidden("Management or admin required.")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    """Require the admin role."""
    if not can_change_roles(user):
        raise _forbidden("Admin access required.")
    return user

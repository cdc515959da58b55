"""
api/routes/v1/auth.py -- Registration, login and identity endpoints.

Routes:
  POST /api/v1/register   -- create a normal-role account; returns token + user
  POST /api/v1/login      -- password login; returns token + user
  GET  /api/v1/me         -- live public projection of the caller (requires auth)

Security:
  POST /login and POST /register are rate-limited per client IP.
  authenticate_user() provides timing equalization -- use it, never inline.
  Cache-Control: no-store on every response that carries a token.
  The same generic error is returned for an unknown email and a wrong
  password so the endpoint does not reveal which emails are registered.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter, login_rate_limit
from api.models import AuthResponse, LoginRequest, MeResponse, PublicUser, RegisterRequest
from auth.dependencies import get_current_user
from auth.models import ROLE_NORMAL, User
from auth.store import UserStore
from auth.tokens import SessionTokens, authenticate_user, hash_password
from core.config import get_settings

logger = logging.getLogger("credvault.api.auth")

# Auth policy:
# - POST /api/v1/register: public -- new accounts always start as role "normal", unassigned
# - POST /api/v1/login:    public
# - GET  /api/v1/me:       requires auth (get_current_user)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/register", response_model=AuthResponse, status_code=201)
@limiter.limit(login_rate_limit)
def register(request: Request, response: Response, body: RegisterRequest) -> AuthResponse:
    """Create an account with role "normal" and no assignment, then sign it in."""
    if not get_settings().self_registration_enabled:
        raise HTTPException(
            status_code=403,
            detail={"code": "registration_disabled", "message": "Self-registration is disabled."},
        )

    user_store: UserStore = request.app.state.user_store
    tokens: SessionTokens = request.app.state.tokens

    if user_store.get_by_email(body.email) is not None:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "Email already registered."},
        )

    new_user = User(
        name=body.name,
        email=body.email,
        role=ROLE_NORMAL,
        hashed_password=hash_password(body.password),
    )
    try:
        user_id = user_store.create_user(new_user)
    except IntegrityError as exc:
        # A concurrent registration won the race between the check and the insert.
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "Email already registered."},
        ) from exc

    created = user_store.get_by_id(user_id)
    logger.info("Registered user id=%d", user_id)
    response.headers["Cache-Control"] = "no-store"
    return AuthResponse(message="Registered", token=tokens.issue(created), user=PublicUser.from_user(created))


@router.post("/login", response_model=AuthResponse)
@limiter.limit(login_rate_limit)
def login(request: Request, response: Response, body: LoginRequest) -> AuthResponse:
    """Authenticate with email and password and return a fresh session token.

    A fresh token is the only way for a client to pick up a changed role in
    its token claims after PUT /users/{id}/role.
    """
    user_store: UserStore = request.app.state.user_store
    tokens: SessionTokens = request.app.state.tokens

    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        logger.warning("Failed login attempt from %s", request.client.host if request.client else "unknown")
        raise HTTPException(
            status_code=401,
            detail={"code": "bad_credentials", "message": "Invalid email or password."},
            headers={"Cache-Control": "no-store"},
        )

    response.headers["Cache-Control"] = "no-store"
    return AuthResponse(message="Login successful", token=tokens.issue(user), user=PublicUser.from_user(user))


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/me", response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return the caller's CURRENT record (role and assignment as stored now)."""
    return MeResponse(user=PublicUser.from_user(current_user))

"""
tests/conftest.py -- Shared test fixtures for CredVault integration tests.

This module provides:
  - _make_test_stores(): creates an isolated SQLite database for both stores
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - ApiEnv: the TestClient plus helpers to create users/units and auth headers
  - api_env: module-scoped ApiEnv fixture

Design: each test module gets its own SQLite file under pytest's tmp dir.
TestClient runs sync route handlers in a thread pool, so a file-backed DB
keeps every worker thread on the same schema. Tests inside a module share
state, so every helper generates unique emails and unit names.

Environment variables must be set before any app import: get_settings() is
cached on first call. Tests that need a different value afterwards
monkeypatch the cached Settings object (see test_rate_limit.py).
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

# CRITICAL: configure before any api/auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("SEED_SAMPLE_DATA", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import ROLE_NORMAL, User
from auth.store import UserStore
from auth.tokens import SessionTokens, hash_password
from core.config import get_settings
from org.models import OrganizationalUnit
from org.store import OrgStore

DEFAULT_PASSWORD = "correct-horse-battery"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_dir: Path) -> tuple[UserStore, OrgStore]:
    """Create both stores on one fresh SQLite file, as the API does in production."""
    db_url = f"sqlite:///{db_dir / 'credvault_test.db'}"
    return UserStore(db_url), OrgStore(db_url)


def _patch_lifespan(user_store: UserStore, org_store: OrgStore, tokens: SessionTokens):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.org_store = org_store
        app.state.tokens = tokens
        yield

    return test_lifespan


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}@example.com"


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@dataclass
class ApiEnv:
    client: TestClient
    user_store: UserStore
    org_store: OrgStore
    tokens: SessionTokens

    def make_user(
        self,
        role: str = ROLE_NORMAL,
        unit_id: int | None = None,
        division_id: int | None = None,
        password: str = DEFAULT_PASSWORD,
    ) -> tuple[User, str]:
        """Insert a user directly into the store and return (user, bearer token)."""
        uid = self.user_store.create_user(
            User(
                name=f"{role.title()} Tester",
                email=unique_email(role),
                role=role,
                hashed_password=hash_password(password),
                unit_id=unit_id,
                division_id=division_id,
            )
        )
        user = self.user_store.get_by_id(uid)
        return user, self.tokens.issue(user)

    def make_unit(self, *division_names: str) -> OrganizationalUnit:
        names = division_names or ("Alpha Division", "Beta Division")
        return self.org_store.create_unit(f"Unit {uuid.uuid4().hex[:8]}", names)


# ---------------------------------------------------------------------------
# Module-scoped fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_env(tmp_path_factory: pytest.TempPathFactory) -> Generator[ApiEnv, None, None]:
    """Yield an ApiEnv wired to an isolated database.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers, dependencies and exception handlers.
    """
    user_store, org_store = _make_test_stores(tmp_path_factory.mktemp("db"))
    tokens = SessionTokens(get_settings().secret_key, expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(user_store, org_store, tokens)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiEnv(client=client, user_store=user_store, org_store=org_store, tokens=tokens)

    org_store.close()
    user_store.close()

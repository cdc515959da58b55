"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in org/models.py -- dataclasses own domain shape; stores and routes do the work.

Layer rule: no imports from api/, core/, or org/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLE_NORMAL = "normal"
ROLE_MANAGEMENT = "management"
ROLE_ADMIN = "admin"

ROLES: tuple[str, ...] = (ROLE_NORMAL, ROLE_MANAGEMENT, ROLE_ADMIN)


@dataclass
class User:
    """A registered CredVault account.

    unit_id and division_id are always set together or both None. The store
    writes them in one statement so a partial assignment cannot be persisted.

    id is None before the record is written to the database.
    """

    name: str
    email: str
    role: str = ROLE_NORMAL  # "normal" | "management" | "admin"
    id: int | None = None
    hashed_password: str | None = None
    unit_id: int | None = None
    division_id: int | None = None
    created_at: str | None = None

    @property
    def is_assigned(self) -> bool:
        return self.division_id is not None

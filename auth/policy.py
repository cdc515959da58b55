"""
auth/policy.py -- Role and ownership rules for CredVault operations.

Every rule takes the LIVE user record fetched from the store for the current
request, never the role claim embedded in the session token. A user demoted
mid-session loses access on their very next request even though their token
still says otherwise.

  normal      -- read + add credentials for their own division only
  management  -- read + add + update credentials for any division;
                 list users, assign and unassign
  admin       -- everything management can do, plus role changes

Layer rule: pure functions, no FastAPI or store imports.
"""

from __future__ import annotations

from auth.models import ROLE_ADMIN, ROLE_MANAGEMENT, User

_ELEVATED_ROLES = frozenset({ROLE_MANAGEMENT, ROLE_ADMIN})


def is_elevated(user: User) -> bool:
    return user.role in _ELEVATED_ROLES


def can_access_division(user: User, division_id: int) -> bool:
    """Read/add credentials for a division.

    Management and admin may act on any division. A normal user may act only
    on the division they are assigned to; an unassigned normal user on none.
    """
    if is_elevated(user):
        return True
    return user.division_id is not None and user.division_id == division_id


def can_update_credentials(user: User) -> bool:
    """Normal users cannot edit credentials, not even in their own division."""
    return is_elevated(user)


def can_manage_users(user: User) -> bool:
    """List users, assign and unassign."""
    return is_elevated(user)


def can_change_roles(user: User) -> bool:
    return user.role == ROLE_ADMIN

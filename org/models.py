"""
org/models.py -- Domain dataclasses for the organizational hierarchy.

Pure data containers. All persistence logic lives in org/store.py.

OrganizationalUnit -> Division -> Credential is an ownership chain: a division
never exists outside its unit, a credential never outside its division.
Divisions are stored in their own table with a unit_id foreign key, which
makes division ids globally unique and lets the store find a division's unit
without scanning every unit.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Credential:
    """A stored username/secret pair for a third-party system.

    password is kept in plaintext and returned to authorized readers as-is.
    """

    division_id: int
    system: str
    username: str
    password: str
    id: Optional[int] = None


@dataclass
class Division:
    """A sub-grouping of a unit and the owner of a credential repository.

    Credentials are not held on the division; OrgStore.list_credentials()
    fetches them on demand so secrets never travel with the structure view.
    """

    unit_id: int
    name: str
    id: Optional[int] = None


@dataclass
class OrganizationalUnit:
    name: str
    id: Optional[int] = None
    divisions: list[Division] = field(default_factory=list)

    def division(self, division_id: int) -> Optional[Division]:
        """Return the owned division with this id, or None."""
        for div in self.divisions:
            if div.id == division_id:
                return div
        return None

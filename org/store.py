"""
org/store.py -- SQLAlchemy-backed persistence layer for the organizational hierarchy.

Uses SQLAlchemy Core (not ORM) so the dataclasses in org/models.py remain the
authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change, not a rewrite.

Pattern: Repository + Data Mapper. OrgStore is the repository; the _row_to_*
functions are the mappers. Route handlers never touch SQL directly.

Schema:
  org_units   (id, name)
  divisions   (id, unit_id -> org_units.id, name)
  credentials (id, division_id -> divisions.id, system, username, password)

Ordering: divisions and credentials are returned in insertion order (by id).
Adding a credential is a single INSERT, so concurrent adds to the same
division cannot overwrite each other.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = OrgStore("sqlite:///./credvault.db")
    unit = store.create_unit("News Management", ["IT Division", "Finance Division"])
    cred = store.add_credential(unit.divisions[0].id, "Jira", "svc-jira", "hunter2")
    store.update_credential(unit.divisions[0].id, cred.id, password="s3cret")
    store.close()
"""

import logging
from typing import Optional

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Engine

from org.models import Credential, Division, OrganizationalUnit

logger = logging.getLogger("credvault.org")

_SAMPLE_UNIT = "News Management"
_SAMPLE_DIVISIONS = ("IT Division", "Finance Division")

_CREDENTIAL_FIELDS = frozenset({"system", "username", "password"})

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_units = Table(
    "org_units",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
)

_divisions = Table(
    "divisions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("unit_id", Integer, ForeignKey("org_units.id"), nullable=False, index=True),
    Column("name", String(255), nullable=False),
)

_credentials = Table(
    "credentials",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("division_id", Integer, ForeignKey("divisions.id"), nullable=False, index=True),
    Column("system", String(255), nullable=False),
    Column("username", String(255), nullable=False),
    Column("password", Text, nullable=False),  # plaintext
)


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _configure_sqlite(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Both PRAGMAs are per-connection in SQLite, so they are applied on every
    new pooled connection.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OrgStore:
    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _configure_sqlite)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    def create_unit(self, name: str, division_names: list[str] | tuple[str, ...] = ()) -> OrganizationalUnit:
        """Create a unit and its divisions in one transaction."""
        with self.engine.begin() as conn:
            unit_id = conn.execute(_units.insert().values(name=name)).inserted_primary_key[0]
            for div_name in division_names:
                conn.execute(_divisions.insert().values(unit_id=unit_id, name=div_name))
        return self.get_unit(unit_id)

    def add_division(self, unit_id: int, name: str) -> Optional[Division]:
        """Append a division to an existing unit. Returns None if the unit does not exist."""
        if self.get_unit(unit_id) is None:
            return None
        with self.engine.connect() as conn:
            div_id = conn.execute(_divisions.insert().values(unit_id=unit_id, name=name)).inserted_primary_key[0]
            conn.commit()
        return Division(id=div_id, unit_id=unit_id, name=name)

    def has_units(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_units)).scalar()
        return (result or 0) > 0

    def seed_sample_data(self) -> Optional[OrganizationalUnit]:
        """Create the sample unit and divisions when the hierarchy is empty.

        Returns the created unit, or None if any unit already exists. The ids
        are logged so an operator can assign users straight away.
        """
        if self.has_units():
            return None
        unit = self.create_unit(_SAMPLE_UNIT, _SAMPLE_DIVISIONS)
        logger.info("Seeded sample unit %r (id=%d)", unit.name, unit.id)
        for div in unit.divisions:
            logger.info("  division %r (id=%d)", div.name, div.id)
        return unit

    # ------------------------------------------------------------------
    # Hierarchy queries
    # ------------------------------------------------------------------

    def list_units(self) -> list[OrganizationalUnit]:
        """Return every unit with its divisions (ids and names only, no credentials)."""
        with self.engine.connect() as conn:
            unit_rows = conn.execute(_units.select().order_by(_units.c.id)).fetchall()
            div_rows = conn.execute(_divisions.select().order_by(_divisions.c.id)).fetchall()
        units = {row.id: _row_to_unit(row) for row in unit_rows}
        for row in div_rows:
            units[row.unit_id].divisions.append(_row_to_division(row))
        return list(units.values())

    def get_unit(self, unit_id: int) -> Optional[OrganizationalUnit]:
        """Fetch a unit with its divisions. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_units.select().where(_units.c.id == unit_id)).fetchone()
            if row is None:
                return None
            div_rows = conn.execute(
                _divisions.select().where(_divisions.c.unit_id == unit_id).order_by(_divisions.c.id)
            ).fetchall()
        unit = _row_to_unit(row)
        unit.divisions = [_row_to_division(r) for r in div_rows]
        return unit

    def get_division(self, division_id: int) -> Optional[Division]:
        """Fetch a division (credentials are fetched separately). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_divisions.select().where(_divisions.c.id == division_id)).fetchone()
        return _row_to_division(row) if row is not None else None

    def find_unit_for_division(self, division_id: int) -> Optional[OrganizationalUnit]:
        """Return the unit that owns division_id, or None if no such division."""
        division = self.get_division(division_id)
        if division is None:
            return None
        return self.get_unit(division.unit_id)

    def get_division_in_unit(self, unit_id: int, division_id: int) -> Optional[Division]:
        """Return the division only if it belongs to unit_id."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _divisions.select().where((_divisions.c.id == division_id) & (_divisions.c.unit_id == unit_id))
            ).fetchone()
        return _row_to_division(row) if row is not None else None

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def list_credentials(self, division_id: int) -> list[Credential]:
        """Return a division's credentials in insertion order."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _credentials.select().where(_credentials.c.division_id == division_id).order_by(_credentials.c.id)
            ).fetchall()
        return [_row_to_credential(r) for r in rows]

    def add_credential(self, division_id: int, system: str, username: str, password: str) -> Credential:
        """Append a credential to a division and return it with its new id.

        Raises sqlalchemy.exc.IntegrityError if division_id does not exist
        (foreign key). Routes check the division first and answer 404.
        """
        with self.engine.connect() as conn:
            cred_id = conn.execute(
                _credentials.insert().values(
                    division_id=division_id,
                    system=system,
                    username=username,
                    password=password,
                )
            ).inserted_primary_key[0]
            conn.commit()
        return Credential(id=cred_id, division_id=division_id, system=system, username=username, password=password)

    def get_credential(self, division_id: int, credential_id: int) -> Optional[Credential]:
        """Fetch a credential only if it belongs to division_id."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _credentials.select().where(
                    (_credentials.c.id == credential_id) & (_credentials.c.division_id == division_id)
                )
            ).fetchone()
        return _row_to_credential(row) if row is not None else None

    def update_credential(self, division_id: int, credential_id: int, **fields) -> Optional[Credential]:
        """Replace only the supplied fields of a credential (partial update).

        Accepts any subset of: system, username, password. Fields passed as
        None are treated as not supplied. Unknown keys raise ValueError.

        Returns the updated credential, or None if it does not exist in
        division_id.
        """
        unknown = set(fields) - _CREDENTIAL_FIELDS
        if unknown:
            raise ValueError(f"Unknown credential fields: {unknown!r}")
        values = {k: v for k, v in fields.items() if v is not None}
        if values:
            with self.engine.connect() as conn:
                conn.execute(
                    _credentials.update()
                    .where((_credentials.c.id == credential_id) & (_credentials.c.division_id == division_id))
                    .values(**values)
                )
                conn.commit()
        return self.get_credential(division_id, credential_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_unit(row) -> OrganizationalUnit:
    return OrganizationalUnit(id=row.id, name=row.name)


def _row_to_division(row) -> Division:
    return Division(id=row.id, unit_id=row.unit_id, name=row.name)


def _row_to_credential(row) -> Credential:
    return Credential(
        id=row.id,
        division_id=row.division_id,
        system=row.system,
        username=row.username,
        password=row.password,
    )

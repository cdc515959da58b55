#!/usr/bin/env python3
"""
CredVault -- provisioning CLI.

Organizational units and divisions are not created over HTTP, and the first
admin cannot promote themselves. Both happen out of band with this script,
against the same database the API uses.

Usage:
  python main.py seed
  python main.py create-unit "News Management" --division "IT Division" --division "Finance Division"
  python main.py add-division 1 "Legal Division"
  python main.py list-units
  python main.py list-users
  python main.py set-role alice@example.com admin
  python main.py --db sqlite:///./other.db list-units

Environment variables:
  DATABASE_URL  Database to operate on (default: same as the API, see core/config.py).
"""

import argparse
import logging
from typing import Optional

from auth.models import ROLES
from auth.store import UserStore
from core.config import get_settings
from org.store import OrgStore

logger = logging.getLogger("credvault.cli")


def _cmd_seed(args: argparse.Namespace, users: UserStore, org: OrgStore) -> int:
    unit = org.seed_sample_data()
    if unit is None:
        print("  Hierarchy already has units -- nothing seeded.")
        return 0
    _print_unit(unit)
    return 0


def _cmd_create_unit(args: argparse.Namespace, users: UserStore, org: OrgStore) -> int:
    unit = org.create_unit(args.name, args.division or [])
    logger.info("Created unit id=%d with %d division(s)", unit.id, len(unit.divisions))
    _print_unit(unit)
    return 0


def _cmd_add_division(args: argparse.Namespace, users: UserStore, org: OrgStore) -> int:
    division = org.add_division(args.unit_id, args.name)
    if division is None:
        print(f"  [!] Unit {args.unit_id} does not exist.")
        return 1
    print(f"  division {division.id}: {division.name} (unit {division.unit_id})")
    return 0


def _cmd_list_units(args: argparse.Namespace, users: UserStore, org: OrgStore) -> int:
    units = org.list_units()
    if not units:
        print("  No units. Run 'python main.py seed' or 'create-unit'.")
    for unit in units:
        _print_unit(unit)
    return 0


def _cmd_list_users(args: argparse.Namespace, users: UserStore, org: OrgStore) -> int:
    for user in users.list_users():
        where = f"unit {user.unit_id} / division {user.division_id}" if user.is_assigned else "unassigned"
        print(f"  {user.id:>4}  {user.email:<32} {user.role:<10} {where}")
    return 0


def _cmd_set_role(args: argparse.Namespace, users: UserStore, org: OrgStore) -> int:
    user = users.get_by_email(args.email)
    if user is None:
        print(f"  [!] No user with email '{args.email}'.")
        return 1
    users.update_role(user.id, args.role)
    logger.info("Role of user id=%d set to %s via CLI", user.id, args.role)
    print(f"  {user.email}: {user.role} -> {args.role} (log in again to refresh the token)")
    return 0


def _print_unit(unit) -> None:
    print(f"  unit {unit.id}: {unit.name}")
    for div in unit.divisions:
        print(f"    division {div.id}: {div.name}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="credvault",
        description="Provision organizational units, divisions and user roles for CredVault.",
    )
    parser.add_argument("--db", metavar="URL", help="SQLAlchemy database URL (default: DATABASE_URL)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("seed", help="Create the sample unit and divisions if the hierarchy is empty")
    p.set_defaults(func=_cmd_seed)

    p = sub.add_parser("create-unit", help="Create an organizational unit with its divisions")
    p.add_argument("name")
    p.add_argument("--division", action="append", metavar="NAME", help="Division name (repeatable)")
    p.set_defaults(func=_cmd_create_unit)

    p = sub.add_parser("add-division", help="Append a division to an existing unit")
    p.add_argument("unit_id", type=int)
    p.add_argument("name")
    p.set_defaults(func=_cmd_add_division)

    p = sub.add_parser("list-units", help="Show units and divisions with their ids")
    p.set_defaults(func=_cmd_list_units)

    p = sub.add_parser("list-users", help="Show users, roles and assignments")
    p.set_defaults(func=_cmd_list_users)

    p = sub.add_parser("set-role", help="Change a user's role (e.g. bootstrap the first admin)")
    p.add_argument("email")
    p.add_argument("role", choices=ROLES)
    p.set_defaults(func=_cmd_set_role)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)-5s %(name)s %(message)s")
    args = build_parser().parse_args(argv)
    db_url = args.db or get_settings().database_url

    users = UserStore(db_url)
    org = OrgStore(db_url)
    try:
        return args.func(args, users, org)
    finally:
        org.close()
        users.close()


if __name__ == "__main__":
    raise SystemExit(main())

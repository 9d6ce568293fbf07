#!/usr/bin/env python3
"""
Backend template -- account administration from the command line.

Talks to the credential store directly through UserService, so the same
business rules apply as over HTTP (unique usernames/emails, protected account,
last-holder authority check).

Usage:
  python main.py create-user alice alice@example.com
  python main.py create-user alice alice@example.com --password s3cret
  python main.py list-users
  python main.py grant alice ROLE_ADMIN
  python main.py revoke alice ROLE_ADMIN
  python main.py delete-user alice
  python main.py list-users --db sqlite:///other.db

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the credential store (default: auth/backendtemplate.db)
  SECRET_KEY    Required unless DEBUG=true (see core/config.py)
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.store import UserStore
from users.dto import UserInputDto
from users.exceptions import UserServiceError
from users.service import UserService


def _print_users(service: UserService) -> None:
    for dto in service.list_users():
        print(f"  {dto.username:<24} {dto.email:<32} {', '.join(sorted(dto.authorities))}")


def _run(args: argparse.Namespace, service: UserService) -> None:
    if args.command == "create-user":
        password: Optional[str] = args.password or getpass.getpass("Password: ")
        dto = service.create_user(UserInputDto(username=args.username, password=password, email=args.email))
        print(f"  Created {dto.username} ({', '.join(sorted(dto.authorities))})")
    elif args.command == "list-users":
        _print_users(service)
    elif args.command == "grant":
        dto = service.assign_authority(args.username, args.authority)
        print(f"  {dto.username}: {', '.join(sorted(dto.authorities))}")
    elif args.command == "revoke":
        print(f"  {service.remove_authority(args.username, args.authority)}")
    elif args.command == "delete-user":
        print(f"  {service.delete_user(args.username)}")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="backend-template",
        description="Manage user accounts and authorities.",
    )
    parser.add_argument(
        "--db",
        metavar="URL",
        default=None,
        help="SQLAlchemy database URL (default: DATABASE_URL setting)",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    create = sub.add_parser("create-user", help="Register a new account with ROLE_USER")
    create.add_argument("username")
    create.add_argument("email")
    create.add_argument("--password", default=None, help="Password (prompted when omitted)")

    sub.add_parser("list-users", help="List all accounts")

    grant = sub.add_parser("grant", help="Assign an authority to a user")
    grant.add_argument("username")
    grant.add_argument("authority")

    revoke = sub.add_parser("revoke", help="Remove an authority from a user")
    revoke.add_argument("username")
    revoke.add_argument("authority")

    delete = sub.add_parser("delete-user", help="Delete an account")
    delete.add_argument("username")

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        return

    store = UserStore(args.db)
    try:
        _run(args, UserService(store))
    except UserServiceError as exc:
        print(f"  [!] {exc.message}")
        sys.exit(1)
    finally:
        store.close()


if __name__ == "__main__":
    main()

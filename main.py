#!/usr/bin/env python3
"""
CareShop -- administrative command line.

Works on the same document store as the API server (DATA_DIR or
DATABASE_URL from the environment / .env), so run it on the server host.

Usage:
  python main.py create-user --email admin@example.com --role admin
  python main.py create-user --email ann@example.com --name Ann
  python main.py purge-sessions

create-user is the only way besides the first-run bootstrap to create an
admin: POST /api/register refuses role=admin. The password is prompted for
twice and never accepted on the command line (it would land in shell
history and the process list).

Environment variables:
  SECRET_KEY    Required unless DEBUG=true. Keys the email hash in log lines.
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.credentials import hash_password
from auth.models import ROLES
from auth.sessions import SessionManager
from auth.store import UserStore
from core.config import get_settings
from core.errors import ServiceError
from storage.documents import DocumentStore, create_document_store


def _open_store(args: argparse.Namespace) -> DocumentStore:
    settings = get_settings()
    if args.data_dir:
        return create_document_store(args.data_dir)
    return create_document_store(settings.data_dir, settings.database_url)


def _prompt_password() -> Optional[str]:
    password = getpass.getpass("Password: ")
    if not password:
        print("  [!] Password must not be empty.")
        return None
    if password != getpass.getpass("Repeat password: "):
        print("  [!] Passwords do not match.")
        return None
    return password


def _create_user(args: argparse.Namespace) -> int:
    password = _prompt_password()
    if password is None:
        return 1
    documents = _open_store(args)
    try:
        user = UserStore(documents).create_user(args.name, args.email, hash_password(password), args.role)
    except ServiceError as e:
        print(f"  [!] {e.message}")
        return 1
    finally:
        documents.close()
    print(f"  Created {user.role} {user.email} (id {user.id}).")
    return 0


def _purge_sessions(args: argparse.Namespace) -> int:
    documents = _open_store(args)
    try:
        sessions = SessionManager(
            documents,
            UserStore(documents),
            lifetime_seconds=get_settings().session_lifetime_seconds,
        )
        removed = sessions.purge_expired()
    except ServiceError as e:
        print(f"  [!] {e}")
        return 1
    finally:
        documents.close()
    print(f"  Removed {removed} expired session(s).")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="careshop",
        description="CareShop API administration.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-user --email admin@example.com --role admin
  python main.py purge-sessions
  python main.py --data-dir /srv/careshop/data purge-sessions
        """,
    )
    parser.add_argument(
        "--data-dir",
        metavar="PATH",
        default=None,
        help="JSON document directory (overrides DATA_DIR and DATABASE_URL)",
    )
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    create = commands.add_parser("create-user", help="Create a user of any role (prompts for the password)")
    create.add_argument("--email", required=True, help="Login email (stored lower-cased)")
    create.add_argument("--name", default="", help="Display name (default: Gebruiker)")
    create.add_argument(
        "--role",
        choices=sorted(ROLES),
        default="client",
        help="Account role (default: client)",
    )
    create.set_defaults(handler=_create_user)

    purge = commands.add_parser("purge-sessions", help="Delete every expired session")
    purge.set_defaults(handler=_purge_sessions)

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 2
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
SessionWard -- administrative command line.

Usage:
  python main.py create-user admin@example.com --name "Admin"
  python main.py list-tokens --email admin@example.com
  python main.py revoke-all --email admin@example.com
  python main.py revoke-all --user-id 3f2c...
  python main.py serve --host 0.0.0.0 --port 8000

Environment variables:
  DATABASE_URL        SQLAlchemy URL of the store (default: sqlite:///sessionward.db)
  JWT_SECRET          Access-token signing secret (required unless DEBUG=true)
  JWT_REFRESH_SECRET  Refresh-token signing secret (required unless DEBUG=true)
"""

import argparse
import getpass
import sys
from datetime import datetime, timezone
from typing import Optional

from api.models import UserCreate
from auth.errors import Conflict
from auth.models import User
from auth.passwords import hash_password
from auth.store import RefreshTokenStore, UserStore
from core.config import get_settings


def _resolve_user_id(users: UserStore, user_id: Optional[str], email: Optional[str]) -> Optional[str]:
    """Return the id for --user-id or --email, printing a message if unknown."""
    if user_id:
        if users.get_by_id(user_id) is None:
            print(f"  [!] No user with id '{user_id}'.")
            return None
        return user_id
    user = users.get_by_email(email or "")
    if user is None:
        print(f"  [!] No user with email '{email}'.")
        return None
    return user.id


def _cmd_create_user(args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    try:
        # Same policy as POST /users.
        body = UserCreate(email=args.email, name=args.name, password=password)
    except ValueError as e:
        print(f"  [!] {e}")
        return 1

    users = UserStore(get_settings().database_url)
    try:
        uid = users.create_user(User(email=body.email, name=body.name, hashed_password=hash_password(body.password)))
        # Report the address as stored (normalized), not as typed.
        email = users.get_by_id(uid).email
    except Conflict as e:
        print(f"  [!] {e}")
        return 1
    finally:
        users.close()
    print(f"  Created user {email} ({uid}).")
    return 0


def _cmd_revoke_all(args: argparse.Namespace) -> int:
    db_url = get_settings().database_url
    users = UserStore(db_url)
    tokens = RefreshTokenStore(db_url)
    try:
        uid = _resolve_user_id(users, args.user_id, args.email)
        if uid is None:
            return 1
        count = tokens.revoke_all_for_user(uid)
    finally:
        users.close()
        tokens.close()
    print(f"  Revoked {count} refresh token(s) for user {uid}.")
    return 0


def _cmd_list_tokens(args: argparse.Namespace) -> int:
    db_url = get_settings().database_url
    users = UserStore(db_url)
    tokens = RefreshTokenStore(db_url)
    try:
        uid = _resolve_user_id(users, args.user_id, args.email)
        if uid is None:
            return 1
        records = tokens.list_for_user(uid)
    finally:
        users.close()
        tokens.close()

    if not records:
        print("  No refresh tokens recorded.")
        return 0
    now = datetime.now(timezone.utc)
    print(f"  {'ID':>6}  {'STATE':<8}  {'EXPIRES (UTC)':<20}  HASH")
    for record in records:
        print(
            f"  {record.id:>6}  {record.state(now).value:<8}  "
            f"{record.expires_at.strftime('%Y-%m-%d %H:%M:%S'):<20}  {record.token_hash[:16]}..."
        )
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _add_user_selector(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--user-id", metavar="ID", help="Select the user by id")
    group.add_argument("--email", metavar="EMAIL", help="Select the user by email")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="sessionward",
        description="Administer SessionWard users and refresh-token sessions.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-user admin@example.com --name "Admin"
  python main.py list-tokens --email admin@example.com
  python main.py revoke-all --email admin@example.com
  DEBUG=true python main.py serve --reload
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p_create = sub.add_parser("create-user", help="Create a user account")
    p_create.add_argument("email", help="Login email for the new account")
    p_create.add_argument("--name", default=None, help="Display name")
    p_create.add_argument(
        "--password",
        default=None,
        help="Password (prompted for when omitted; avoid passing it on a shared shell)",
    )
    p_create.set_defaults(func=_cmd_create_user)

    p_revoke = sub.add_parser("revoke-all", help="Revoke every refresh token of a user")
    _add_user_selector(p_revoke)
    p_revoke.set_defaults(func=_cmd_revoke_all)

    p_list = sub.add_parser("list-tokens", help="List the refresh-token records of a user")
    _add_user_selector(p_list)
    p_list.set_defaults(func=_cmd_list_tokens)

    p_serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    p_serve.set_defaults(func=_cmd_serve)

    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

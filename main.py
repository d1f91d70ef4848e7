#!/usr/bin/env python3
"""
passgate -- account registration, sign-in and session authorization service.

Usage:
  python main.py serve [--host 127.0.0.1] [--port 8000] [--reload]
  python main.py create-user --email a@x.com --name "A"
  python main.py check-mail

Environment variables (see core/config.py for the full list):
  SECRET_KEY      Session signing key, at least 32 characters. Required unless DEBUG=true.
  DATABASE_URL    SQLAlchemy URL for the user store (default: sqlite:///./passgate.db).
  MAIL_TRANSPORT  console (default), smtp or gateway, plus that transport's settings.
"""

import argparse
import asyncio
import getpass
import sys

from auth.exceptions import AuthError
from auth.store import UserStore
from core.config import get_settings


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


async def _create_user(email: str, name: str, password: str) -> int:
    """Sign a user up outside HTTP. The welcome email goes out before exit."""
    from api.main import build_auth_service, build_dispatcher

    settings = get_settings()
    store = UserStore(settings.database_url)
    dispatcher = build_dispatcher(settings)
    dispatcher.start()
    try:
        service = build_auth_service(settings, store, dispatcher)
        try:
            result = await asyncio.to_thread(service.sign_up, email, password, name)
        except AuthError as exc:
            print(f"  [!] {exc.public_message}", file=sys.stderr)
            return 1
        print(f"  Created user {result.user.email} (id {result.user.id}).")
        return 0
    finally:
        await dispatcher.stop()
        store.close()


def _create_user_cmd(args: argparse.Namespace) -> int:
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        print("  [!] Passwords do not match.", file=sys.stderr)
        return 1
    return asyncio.run(_create_user(args.email, args.name, password))


def _check_mail(args: argparse.Namespace) -> int:
    from api.main import build_dispatcher

    settings = get_settings()
    ready = asyncio.run(build_dispatcher(settings).probe())
    print(f"  Mail transport '{settings.mail_transport}': {'ready' if ready else 'NOT ready'}")
    return 0 if ready else 1


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="passgate",
        description="Account registration, sign-in and session authorization service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --reload
  python main.py create-user --email a@x.com --name "A"
  MAIL_TRANSPORT=smtp SMTP_HOST=smtp.example.com python main.py check-mail
        """,
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development)")
    serve.set_defaults(func=_serve)

    create = sub.add_parser("create-user", help="Register an account; the password is prompted for")
    create.add_argument("--email", required=True, help="Login email address")
    create.add_argument("--name", required=True, help="Display name")
    create.set_defaults(func=_create_user_cmd)

    check = sub.add_parser("check-mail", help="Run the mail transport readiness probe once")
    check.set_defaults(func=_check_mail)

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        return 2
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

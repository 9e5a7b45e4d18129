"""CLI for the bike shop: run the server, manage the database and users."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys

from pydantic import ValidationError

from bikeshop.config import Settings, load_settings


async def cmd_init_db(settings: Settings, args) -> None:
    """Create tables and the default admin."""
    from bikeshop.context import build_context
    from bikeshop.main import prepare, shutdown

    ctx = build_context(settings)
    try:
        await prepare(ctx)
    finally:
        await shutdown(ctx)
    print(f"Database ready at {settings.database.path}")


async def cmd_create_user(settings: Settings, args) -> None:
    from bikeshop.db import crud
    from bikeshop.db.engine import Database
    from bikeshop.models.enums import Role
    from bikeshop.services.auth import hash_password

    password = args.password
    if not password:
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match")
            sys.exit(1)

    if len(password) < 6:
        print("Password must be at least 6 characters")
        sys.exit(1)

    database = Database(settings.database.path)
    try:
        await database.create_all()
        async with database.session_factory() as db:
            if await crud.get_user_by_email(db, args.email) is not None:
                print(f"User {args.email} already exists")
                sys.exit(1)
            user = await crud.create_user(
                db, args.email, hash_password(password),
                name=args.name, role=Role(args.role),
            )
    finally:
        await database.dispose()

    print(f"User created: {user.email} (id={user.id}, role={Role(user.role).value})")


async def cmd_seed(settings: Settings, args) -> None:
    from bikeshop.db.engine import Database
    from bikeshop.services.bootstrap import seed_sample_data

    database = Database(settings.database.path)
    try:
        await database.create_all()
        async with database.session_factory() as db:
            await seed_sample_data(db)
    finally:
        await database.dispose()
    print("Sample brands and services created")


def cmd_serve(settings: Settings, args) -> None:
    import uvicorn

    from bikeshop.main import create_app

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        create_app(settings),
        host=args.host or settings.server.host,
        port=args.port or settings.server.port,
        workers=1,
        timeout_graceful_shutdown=settings.server.shutdown_grace_seconds,
        log_level="debug" if settings.debug else "info",
    )


def main():
    parser = argparse.ArgumentParser(description="Bike shop CLI")
    parser.add_argument("--config", default=None, help="Path to config.yaml (or set BIKESHOP_CONFIG)")
    subparsers = parser.add_subparsers(dest="command")

    # serve
    sv = subparsers.add_parser("serve", help="Run the web server")
    sv.add_argument("--host", default="", help="Bind address (defaults to server.host)")
    sv.add_argument("--port", type=int, default=0, help="Port (defaults to server.port)")

    # init-db
    subparsers.add_parser("init-db", help="Create tables and the default admin")

    # create-user
    cu = subparsers.add_parser("create-user", help="Create a user")
    cu.add_argument("--email", required=True, help="Login email")
    cu.add_argument("--password", default="", help="Password (prompted if not given)")
    cu.add_argument("--role", default="customer", choices=["customer", "technician", "admin"])
    cu.add_argument("--name", default="", help="Display name")

    # seed
    subparsers.add_parser("seed", help="Insert demo brands and services")

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        settings = load_settings(args.config)
    except ValidationError as exc:
        print(f"Invalid configuration:\n{exc}", file=sys.stderr)
        sys.exit(2)

    if args.command == "serve":
        cmd_serve(settings, args)
    elif args.command == "init-db":
        asyncio.run(cmd_init_db(settings, args))
    elif args.command == "create-user":
        asyncio.run(cmd_create_user(settings, args))
    elif args.command == "seed":
        asyncio.run(cmd_seed(settings, args))


if __name__ == "__main__":
    main()

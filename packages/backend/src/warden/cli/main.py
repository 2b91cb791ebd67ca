"""Warden CLI — run the server and do the out-of-band admin chores.

Usage:
    warden serve                          # HTTP API (uvicorn)
    warden init-db                        # Create missing tables
    warden create-app "billing"           # Register a relying party, prints its id
    warden set-admin 42                   # Grant admin
    warden set-admin 42 --revoke          # Revoke admin
    warden telegram-bot                   # Run the confirmation bot standalone

Configuration comes from WARDEN_* env vars, same as the server.
"""

from __future__ import annotations

import asyncio
import secrets
import sys
from typing import Optional

import click

from warden import __version__
from warden.config import Settings
from warden.db.engine import init_models
from warden.errors import StoreUnavailableError, UserNotFoundError
from warden.log import configure_logging


def _run(coro):
    """Run an async coroutine from a synchronous Click handler."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="warden")
@click.pass_context
def main(ctx: click.Context):
    """Warden — single sign-on identity provider."""
    ctx.obj = Settings()
    configure_logging(ctx.obj.environment)


# ---------------------------------------------------------------------------
# warden serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", help="Bind address (default: WARDEN_HOST)")
@click.option("--port", type=int, help="Port (default: WARDEN_PORT)")
@click.pass_obj
def serve(settings: Settings, host: Optional[str], port: Optional[int]):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run(
        "warden.main:app",
        host=host or settings.host,
        port=port or settings.port,
    )


# ---------------------------------------------------------------------------
# warden init-db
# ---------------------------------------------------------------------------


@main.command("init-db")
@click.pass_obj
def init_db(settings: Settings):
    """Create any missing tables."""
    try:
        _run(_init_db_impl(settings))
    except StoreUnavailableError as e:
        click.secho(f"Error: database unavailable ({e})", fg="red", err=True)
        sys.exit(1)
    click.secho("Database ready", fg="green")


async def _init_db_impl(settings: Settings):
    from warden.main import build_storage

    engine, _ = build_storage(settings)
    try:
        await init_models(engine)
    finally:
        await engine.dispose()


# ---------------------------------------------------------------------------
# warden create-app
# ---------------------------------------------------------------------------


@main.command("create-app")
@click.argument("name")
@click.option("--secret", help="Signing secret (generated if omitted)")
@click.pass_obj
def create_app(settings: Settings, name: str, secret: Optional[str]):
    """Register an app that tokens can be issued for.

    NAME must be unique. The app id is printed; the secret is printed only
    when it was generated here.
    """
    generated = secret is None
    secret = secret or secrets.token_urlsafe(32)
    try:
        app_id = _run(_create_app_impl(settings, name, secret))
    except ValueError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)
    except StoreUnavailableError as e:
        click.secho(f"Error: database unavailable ({e})", fg="red", err=True)
        sys.exit(1)

    click.secho(f"App #{app_id} created: {name}", fg="green")
    if generated:
        click.echo(f"Secret (shown once): {secret}")


async def _create_app_impl(settings: Settings, name: str, secret: str) -> int:
    from warden.main import build_storage

    engine, storage = build_storage(settings)
    try:
        await init_models(engine)
        return await storage.create_app(name, secret)
    finally:
        await engine.dispose()


# ---------------------------------------------------------------------------
# warden set-admin
# ---------------------------------------------------------------------------


@main.command("set-admin")
@click.argument("user_id", type=int)
@click.option("--revoke", is_flag=True, help="Remove admin instead of granting it")
@click.pass_obj
def set_admin(settings: Settings, user_id: int, revoke: bool):
    """Grant (or revoke) admin for USER_ID."""
    try:
        _run(_set_admin_impl(settings, user_id, not revoke))
    except UserNotFoundError:
        click.secho(f"Error: user {user_id} not found", fg="red", err=True)
        sys.exit(1)
    except StoreUnavailableError as e:
        click.secho(f"Error: database unavailable ({e})", fg="red", err=True)
        sys.exit(1)

    verb = "revoked from" if revoke else "granted to"
    click.secho(f"Admin {verb} user {user_id}", fg="green")


async def _set_admin_impl(settings: Settings, user_id: int, is_admin: bool):
    from warden.main import build_storage

    engine, storage = build_storage(settings)
    try:
        await storage.set_admin(user_id, is_admin)
    finally:
        await engine.dispose()


# ---------------------------------------------------------------------------
# warden telegram-bot
# ---------------------------------------------------------------------------


@main.command("telegram-bot")
@click.pass_obj
def telegram_bot(settings: Settings):
    """Run the Telegram confirmation bot until interrupted."""
    if not settings.telegram_bot_token:
        click.secho("Error: WARDEN_TELEGRAM_BOT_TOKEN is not set", fg="red", err=True)
        sys.exit(1)
    try:
        _run(_telegram_bot_impl(settings))
    except KeyboardInterrupt:
        click.echo("Stopped")


async def _telegram_bot_impl(settings: Settings):
    from warden.main import build_confirmation_engine, build_storage, build_telegram_bot

    engine, storage = build_storage(settings)
    bot = build_telegram_bot(settings, build_confirmation_engine(settings, storage))
    try:
        await bot.run_loop()
    finally:
        await bot.aclose()
        await engine.dispose()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()

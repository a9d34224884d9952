"""User management commands."""

import asyncio
import secrets

import typer
from rich.panel import Panel

from nimbus.app.core.services.database import (
    DbManageService,
    SqlStateStore,
    StoreError,
)
from nimbus.app.runtime.context import get_config

from .console import console

users_app = typer.Typer(help="👤 User management commands", no_args_is_help=True)


@users_app.command()
def create(
    name: str = typer.Argument(..., help="Display name of the user"),
) -> None:
    """Create a user and print its API key.

    The key is shown once; only the store keeps it afterwards.
    """
    config = get_config()
    service = DbManageService(config.database)
    api_key = secrets.token_hex(32)
    try:
        service.create_all()
        store = SqlStateStore(service.engine)
        user = asyncio.run(store.create_user(name, api_key))
    except StoreError as e:
        console.handle_error(f"Could not create user '{name}'", details=str(e))
        return
    finally:
        service.dispose()

    console.ok(f"Created user '{user.name}' ({user.id})")
    console.print(Panel(api_key, title="API key", border_style="green"))

"""Database management commands."""

import typer

from nimbus.app.core.services.database import DbManageService
from nimbus.app.runtime.context import get_config

from .console import console

db_app = typer.Typer(help="🗄️  State store commands", no_args_is_help=True)


@db_app.command()
def init() -> None:
    """Create every table of the state store."""
    config = get_config()
    service = DbManageService(config.database)
    try:
        service.create_all()
        if not service.health_check():
            console.handle_error(
                "Database is not reachable", details=config.database.connection_string
            )
    finally:
        service.dispose()
    console.ok(f"State store ready at {config.database.connection_string}")

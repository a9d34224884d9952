"""Nimbus command line.

Command Groups:
- serve: Run the HTTP API
- db: State store management
- users: User management
"""

import typer

from .db_commands import db_app
from .server_commands import serve
from .users_commands import users_app

app = typer.Typer(
    help="☁️  Nimbus - deploy service manifests to Kubernetes",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command()(serve)
app.add_typer(db_app, name="db")
app.add_typer(users_app, name="users")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()

"""API server command."""

import typer
import uvicorn

from nimbus.app.runtime.context import get_config

from .console import console


def serve(
    host: str = typer.Option(None, "--host", help="Bind address (default: app.host)"),
    port: int = typer.Option(None, "--port", "-p", help="Bind port (default: app.port)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """🚀 Run the Nimbus API."""
    config = get_config()
    host = host or config.app.host
    port = port or config.app.port
    console.info(f"Serving Nimbus on http://{host}:{port} ({config.app.environment})")
    uvicorn.run(
        "nimbus.app.api.http.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=config.app.log_level.lower(),
    )

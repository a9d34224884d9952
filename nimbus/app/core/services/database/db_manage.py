"""Database engine and table creation."""

from loguru import logger
from sqlalchemy import Engine, text
from sqlalchemy.exc import IntegrityError, ProgrammingError
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from nimbus.app.entities.loader import get_metadata
from nimbus.app.runtime.config.config_data import DatabaseConfig


def build_engine(config: DatabaseConfig) -> Engine:
    """Create the shared engine for a database URL.

    SQLite connections are used from worker threads, and an in-memory SQLite
    database must be a single shared connection to survive across sessions.
    """
    url = config.connection_string
    if not url.startswith("sqlite"):
        return create_engine(url, echo=config.echo, pool_pre_ping=True)
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            echo=config.echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, echo=config.echo, connect_args={"check_same_thread": False})


class DbManageService:
    def __init__(self, config: DatabaseConfig) -> None:
        self._engine = build_engine(config)

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_all(self) -> None:
        """Create all database tables."""
        get_metadata()  # Ensure all tables are imported and registered

        try:
            SQLModel.metadata.create_all(self._engine)
            logger.info("Database initialized with tables.")
        except (ProgrammingError, IntegrityError) as e:
            # Several workers racing to create the same tables
            error_msg = str(e).lower()
            if "already exists" in error_msg or "duplicate key" in error_msg:
                logger.debug(
                    f"Tables already exist or partially created, skipping: {type(e).__name__}"
                )
            else:
                raise

    def health_check(self) -> bool:
        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            return False

    def dispose(self) -> None:
        self._engine.dispose()

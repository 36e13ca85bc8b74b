"""Database configuration and session management."""

import logging
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from charavault.config import DatabaseConfig

logger = logging.getLogger(__name__)

# Base class for all models
Base = declarative_base()


class Database:
    """
    Owns the engine and session factory for one database.

    Constructed once at startup and handed to whatever needs sessions; there
    is no process-wide engine.
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.is_sqlite = config.url.startswith("sqlite")

        connect_args = {}
        if self.is_sqlite:
            connect_args = {
                "check_same_thread": False,  # Needed for SQLite
                "timeout": config.busy_timeout_seconds,
            }
            self._ensure_sqlite_dir(config.url)

        self.engine: Engine = create_engine(config.url, connect_args=connect_args, echo=config.echo)
        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

        if self.is_sqlite:
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

    @staticmethod
    def _ensure_sqlite_dir(url: str) -> None:
        path = url.split(":///", 1)[-1]
        if path and path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)

    def init(self) -> None:
        """
        Create all tables if they don't exist.

        Should be called on application startup.
        """
        # Import all models so they're registered with Base
        from charavault.models import project  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

        if self.is_sqlite and ":memory:" not in self.config.url:
            # WAL lets readers proceed during a scan's writes
            with self.engine.connect() as conn:
                conn.execute(text("PRAGMA journal_mode=WAL"))
                conn.execute(text("PRAGMA synchronous=NORMAL"))
                conn.commit()

        logger.info(f"Database initialized at: {self.engine.url.render_as_string(hide_password=True)}")

    def session(self) -> Session:
        return self.session_factory()

    def sessions(self) -> Iterator[Session]:
        """
        Yield a session and close it afterwards.

        Usage in FastAPI endpoints goes through ``charavault.api.deps.get_db``.
        """
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    def dispose(self) -> None:
        self.engine.dispose()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()

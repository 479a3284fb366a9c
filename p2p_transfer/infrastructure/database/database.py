"""
Database initialization and session management.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from structlog import get_logger

from .models import Base

logger = get_logger(__name__)


class Database:
    """
    Database manager.

    Handles SQLite connection and session lifecycle.
    """

    def __init__(self, db_path: Path | str = ":memory:", echo: bool = False):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file.
                   Use ":memory:" for in-memory database.
            echo: Log every SQL statement.
        """
        self.db_path = str(db_path)
        self.echo = echo
        self.engine: Engine | None = None
        self.SessionLocal: sessionmaker[Session] | None = None
        self._initialize()

    def _initialize(self) -> None:
        """Create engine, tables and session factory."""
        connect_args: dict[str, Any] = {
            "check_same_thread": False,
            "timeout": 15,
        }

        if self.db_path == ":memory:":
            logger.warning("db_path is not configured. Using :memory: instead.")
            url = "sqlite://"
        else:
            url = f"sqlite:///{self.db_path}"

        self.engine = create_engine(
            url,
            connect_args=connect_args,
            echo=self.echo,
            poolclass=StaticPool,
        )

        Base.metadata.create_all(self.engine)

        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )

        logger.info(f"Database initialized at {self.db_path}")

    def get_session(self) -> Session:
        """
        Get a new database session.

        Returns:
            SQLAlchemy Session object
        """
        if not self.SessionLocal:
            raise RuntimeError("Database not properly initialized")
        return self.SessionLocal()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Session committed on success and rolled back on any error."""
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        """Close database connection."""
        if self.engine:
            self.engine.dispose()
            logger.info("Database connection closed")

    def clear_all(self) -> None:
        """Drop and recreate every table."""
        if self.engine:
            Base.metadata.drop_all(self.engine)
            Base.metadata.create_all(self.engine)
        logger.warning("All database data cleared")


def create_database(db_path: Path | str = ":memory:", echo: bool = False) -> Database:
    """Create and return a Database instance."""
    return Database(db_path, echo=echo)

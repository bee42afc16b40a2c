"""Database manager for selection persistence.

Owns the SQLAlchemy engine: schema creation, session scopes, health checks
and disposal.  One instance is created when the application is built and
closed when it shuts down.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from budget_basket.persistence.tables import Base

logger = structlog.get_logger(__name__)


class DatabaseManager:
    """Manages the database connection pool and schema initialization."""

    def __init__(self, db_url: str, echo: bool = False) -> None:
        """
        Args:
            db_url: SQLAlchemy URL (e.g. ``sqlite:///./budget_basket.db``)
            echo: Enable SQL logging if True
        """
        url = make_url(db_url)
        connect_args: dict[str, object] = {}
        if url.get_backend_name() == "sqlite":
            # Sessions are used from worker threads
            connect_args["check_same_thread"] = False

        self.engine = create_engine(
            db_url,
            pool_pre_ping=True,
            echo=echo,
            connect_args=connect_args,
        )
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        logger.info("database_manager_initialized", backend=url.get_backend_name())

    def init_db(self) -> None:
        """Create all tables that do not exist yet."""
        try:
            Base.metadata.create_all(self.engine)
            tables = inspect(self.engine).get_table_names()
            logger.info("database_schema_initialized", tables=tables)
        except Exception as exc:
            logger.error("database_schema_failed", error=str(exc))
            raise

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Transactional scope: commit on success, roll back on error."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def health_check(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as exc:
            logger.warning("database_health_check_failed", error=str(exc))
            return False

    def close(self) -> None:
        """Dispose of the connection pool."""
        self.engine.dispose()
        logger.info("database_closed")

"""Database session management."""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import Engine, create_engine
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from db.models import Base


class Database:
    """Engine and session factory for one database URL.

    Constructed once at process start and passed to the ledger and cursor
    store, so tests can run against an isolated in-memory database.
    """

    def __init__(self, db_url: str):
        """Initialize database connection pool.

        Args:
            db_url: SQLAlchemy database URL
        """
        self.db_url = db_url

        if db_url.startswith("sqlite"):
            # One shared connection so in-memory databases survive across sessions
            self.engine: Engine = create_engine(
                db_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=False,
            )
        else:
            self.engine = create_engine(
                db_url,
                pool_size=10,
                max_overflow=20,
                pool_pre_ping=True,  # Verify connections before using
                echo=False,
            )

        self._session_factory = sessionmaker(
            bind=self.engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def insert(self, table):
        """Dialect-specific INSERT supporting ``ON CONFLICT`` clauses."""
        if self.dialect == "postgresql":
            return pg_insert(table)
        if self.dialect == "sqlite":
            return sqlite_insert(table)
        raise RuntimeError(f"Unsupported database dialect: {self.dialect}")

    def create_all(self) -> None:
        """Create the ledger tables. Used by tests; production schemas are managed elsewhere."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Get a database session with context manager.

        Commits on success, rolls back on error.

        Example:
            with database.session() as session:
                session.add(row)
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()

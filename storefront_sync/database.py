"""
Engine and session management.

One ``DatabaseManager`` per process owns the engine and a thread-scoped
session registry. Work happens inside ``session_scope()``, which commits on
success and rolls back and re-raises on any error.
"""

import os
import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, scoped_session, Session
from sqlalchemy.pool import StaticPool

from .models import Base

logger = logging.getLogger(__name__)


def _masked(url: str) -> str:
    if '@' not in url:
        return url
    return url.split('://')[0] + '://***@' + url.split('@')[-1]


class DatabaseManager:
    """Owns the engine and hands out transactional sessions."""

    def __init__(self, database_url: Optional[str] = None, echo: bool = False,
                 pool_size: int = 10, max_overflow: int = 20, pool_recycle: int = 3600):
        self.database_url = database_url or os.getenv('DATABASE_URL') or 'sqlite:///storefront.db'
        self.echo = echo
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.pool_recycle = pool_recycle
        self.engine = None
        self._scoped_session = None

    @classmethod
    def from_config(cls, source) -> 'DatabaseManager':
        """Build a manager from a config class or a Flask config mapping."""
        get = source.get if hasattr(source, 'get') else lambda key, default=None: getattr(source, key, default)
        return cls(
            database_url=get('DATABASE_URL'),
            echo=get('DATABASE_ECHO', False),
            pool_size=get('DATABASE_POOL_SIZE', 10),
            max_overflow=get('DATABASE_MAX_OVERFLOW', 20),
            pool_recycle=get('DATABASE_POOL_RECYCLE', 3600),
        )

    @property
    def is_initialized(self) -> bool:
        return self.engine is not None

    def _sqlite_engine(self):
        if ':memory:' not in self.database_url:
            db_dir = os.path.dirname(self.database_url.replace('sqlite:///', ''))
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)

        # StaticPool keeps one connection, so an in-memory database survives across sessions
        engine = create_engine(
            self.database_url,
            echo=self.echo,
            poolclass=StaticPool,
            connect_args={'check_same_thread': False, 'timeout': 30},
        )

        @event.listens_for(engine, "connect")
        def enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    def initialize(self, create_tables: bool = False) -> None:
        """Create the engine, check connectivity and optionally create tables."""
        try:
            if self.database_url.startswith('sqlite'):
                self.engine = self._sqlite_engine()
            else:
                self.engine = create_engine(
                    self.database_url,
                    echo=self.echo,
                    pool_size=self.pool_size,
                    max_overflow=self.max_overflow,
                    pool_pre_ping=True,
                    pool_recycle=self.pool_recycle,
                )

            self._scoped_session = scoped_session(
                sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
            )
            self.ping()

            if create_tables:
                self.create_tables()
            logger.info(f"Database ready: {_masked(self.database_url)}")
        except Exception as e:
            logger.error(f"Failed to initialize database {_masked(self.database_url)}: {e}")
            raise

    def ping(self) -> None:
        """Run ``SELECT 1``; raises if the database is unreachable."""
        with self.session_scope() as session:
            if session.execute(text("SELECT 1")).scalar() != 1:
                raise RuntimeError("Database connectivity check returned an unexpected result")

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)
        logger.info("Catalog tables created")

    def get_session(self) -> Session:
        if not self._scoped_session:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._scoped_session()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Provide a transactional scope around a series of operations."""
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        finally:
            session.close()

    def remove_session(self) -> None:
        """Discard the current thread's scoped session."""
        if self._scoped_session:
            self._scoped_session.remove()

    def close(self) -> None:
        self.remove_session()
        if self.engine:
            self.engine.dispose()
        logger.info("Database connections closed")

    def health_check(self) -> dict:
        try:
            self.ping()
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {'status': 'unhealthy', 'error': str(e)}
        return {
            'status': 'healthy',
            'database_url': self.database_url.split('@')[-1],
            'connection_test': True,
        }

"""
Database Connection Management for the Business Name Availability System

This module provides:
- An explicitly constructed session provider injected into the importer,
  the availability resolver and the API
- Unit of Work pattern for explicit transaction boundaries
- Connection pooling with proper configuration
- Health checks and connection validation with retry logic
- Environment-based configuration

Uses SQLAlchemy 2.0 style with proper typing support.
"""

import os
import logging
from typing import Generator, Optional, Callable, Any
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy import create_engine, event, text, Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import SQLAlchemyError, OperationalError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)

from registry_db.models import Base

logger = logging.getLogger(__name__)


# ============================================
# CONFIGURATION
# ============================================

@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    host: str = "localhost"
    port: int = 5432
    database: str = "namecheck_database"
    user: str = "namecheck_user"
    password: str = "namecheck_password"
    url: Optional[str] = None
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800
    echo: bool = False

    @classmethod
    def from_env(cls) -> 'DatabaseSettings':
        """Create settings from environment variables."""
        return cls(
            host=os.getenv("DB_HOST", "localhost"),
            port=int(os.getenv("DB_PORT", "5432")),
            database=os.getenv("DB_NAME", "namecheck_database"),
            user=os.getenv("DB_USER", "namecheck_user"),
            password=os.getenv("DB_PASSWORD", "namecheck_password"),
            url=os.getenv("DATABASE_URL") or None,
            pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
            max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "10")),
            pool_timeout=int(os.getenv("DB_POOL_TIMEOUT", "30")),
            pool_recycle=int(os.getenv("DB_POOL_RECYCLE", "1800")),
            echo=os.getenv("DB_ECHO", "false").lower() == "true"
        )

    @classmethod
    def from_config(cls, db_config: Any) -> 'DatabaseSettings':
        """Create settings from the `database` config section.

        Environment variables still win over config.yaml so deployments
        can inject credentials without editing the file.
        """
        return cls(
            host=os.getenv("DB_HOST", db_config.host),
            port=int(os.getenv("DB_PORT", str(db_config.port))),
            database=os.getenv("DB_NAME", db_config.name),
            user=os.getenv("DB_USER", db_config.user),
            password=os.getenv("DB_PASSWORD", db_config.password),
            url=os.getenv("DATABASE_URL") or db_config.url,
            echo=os.getenv("DB_ECHO", "false").lower() == "true"
        )

    @property
    def is_sqlite(self) -> bool:
        return self.get_url().startswith("sqlite")

    def get_url(self) -> str:
        """Build database URL."""
        if self.url:
            return self.url
        return (
            f"postgresql+psycopg2://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )

    def get_pool_settings(self) -> dict:
        """Connection pool settings (not applicable to SQLite)."""
        if self.is_sqlite:
            return {}
        return {
            "pool_size": self.pool_size,
            "max_overflow": self.max_overflow,
            "pool_timeout": self.pool_timeout,
            "pool_recycle": self.pool_recycle,
            "pool_pre_ping": True,
        }


# ============================================
# RETRY LOGIC
# ============================================

def create_retry_decorator(
    max_attempts: int = 3,
    min_wait: float = 1,
    max_wait: float = 10
) -> Callable:
    """
    Create a retry decorator for database operations.

    Only OperationalError (lost connection, lock timeout, ...) is retried;
    the last error is re-raised once the attempts are used up.

    Args:
        max_attempts: Maximum number of retry attempts
        min_wait: Minimum wait time between retries (seconds)
        max_wait: Maximum wait time between retries (seconds)

    Returns:
        Retry decorator
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(OperationalError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )


# Create default retry decorator
db_retry = create_retry_decorator()


# ============================================
# UNIT OF WORK PATTERN
# ============================================

class UnitOfWork:
    """
    Unit of Work pattern for explicit transaction management.

    Usage:
        with UnitOfWork(session_factory) as uow:
            repo = IngestionRunRepository(uow.session)
            run = repo.start_run(...)
            uow.commit()  # Explicit commit
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._session: Optional[Session] = None

    def __enter__(self) -> 'UnitOfWork':
        self._session = self._session_factory()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self.rollback()
        self.close()

    @property
    def session(self) -> Session:
        """Get the current session."""
        if self._session is None:
            raise RuntimeError("UnitOfWork not started. Use as context manager.")
        return self._session

    def commit(self) -> None:
        """Explicitly commit the transaction."""
        if self._session:
            self._session.commit()

    def rollback(self) -> None:
        """Rollback the transaction."""
        if self._session:
            self._session.rollback()

    def close(self) -> None:
        """Close the session."""
        if self._session:
            self._session.close()
            self._session = None


# ============================================
# DATABASE SESSION PROVIDER
# ============================================

class DatabaseSessionProvider:
    """
    Provides database sessions to the importer, the resolver and the API.

    Usage:
        db_provider = DatabaseSessionProvider(settings)
        db_provider.init()

        with db_provider.session_scope() as session:
            resolver = AvailabilityResolver(session, config)
            verdict = resolver.check_availability("Sunrise Consulting LLC", "LLC")
    """

    def __init__(
        self,
        settings: Optional[DatabaseSettings] = None,
        engine: Optional[Engine] = None
    ):
        """
        Initialize the database session provider.

        Args:
            settings: Database settings (uses env if not provided)
            engine: Pre-created engine (for testing)
        """
        self._settings = settings or DatabaseSettings.from_env()
        self._engine = engine
        self._session_factory: Optional[sessionmaker] = None
        self._initialized = False

    def init(self, echo: Optional[bool] = None) -> None:
        """
        Initialize database engine and session factory.

        Args:
            echo: Override echo setting for SQL logging
        """
        if self._initialized:
            return

        if echo is not None:
            self._settings.echo = echo

        # Create synchronous engine if not provided
        if self._engine is None:
            self._engine = self._create_engine_with_retry()
        else:
            self._setup_event_listeners(self._engine)

        self._session_factory = sessionmaker(
            bind=self._engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False
        )

        self._initialized = True
        logger.info("Database session provider initialized")

    @db_retry
    def _create_engine_with_retry(self) -> Engine:
        """Create database engine with retry logic."""
        engine = create_engine(
            self._settings.get_url(),
            echo=self._settings.echo,
            **self._settings.get_pool_settings()
        )
        self._setup_event_listeners(engine)

        # Verify connection
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        return engine

    def _setup_event_listeners(self, engine: Engine) -> None:
        """Set up SQLAlchemy event listeners for logging and SQLite savepoints."""

        @event.listens_for(engine, "checkout")
        def on_checkout(dbapi_connection, connection_record, connection_proxy):
            logger.debug("Connection checked out from pool")

        if engine.dialect.name == "sqlite":
            # pysqlite's own transaction handling breaks SAVEPOINT; let
            # SQLAlchemy emit BEGIN itself so begin_nested() works.
            @event.listens_for(engine, "connect")
            def on_connect(dbapi_connection, connection_record):
                dbapi_connection.isolation_level = None

            @event.listens_for(engine, "begin")
            def on_begin(conn):
                conn.exec_driver_sql("BEGIN")

    @property
    def engine(self) -> Engine:
        """Get the SQLAlchemy engine."""
        if self._engine is None:
            raise RuntimeError("Database not initialized. Call init() first.")
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        """Get the session factory."""
        if self._session_factory is None:
            raise RuntimeError("Database not initialized. Call init() first.")
        return self._session_factory

    def get_session(self) -> Generator[Session, None, None]:
        """
        FastAPI dependency for getting a database session.

        Usage:
            @app.get("/sync-runs")
            def list_runs(db: Session = Depends(db_provider.get_session)):
                return IngestionRunRepository(db).list_recent()
        """
        if self._session_factory is None:
            self.init()

        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    def get_unit_of_work(self) -> UnitOfWork:
        """
        Get a Unit of Work for explicit transaction management.

        Usage:
            with db_provider.get_unit_of_work() as uow:
                repo = EntityRecordRepository(uow.session, EntityCategory.CORPORATE)
                repo.upsert(record, normalized_name, entity_type)
                uow.commit()
        """
        if self._session_factory is None:
            self.init()
        return UnitOfWork(self._session_factory)

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Context manager for session with auto-commit/rollback.

        Usage:
            with db_provider.session_scope() as session:
                session.add(entity)
                # Auto-commits on exit, rollbacks on exception
        """
        if self._session_factory is None:
            self.init()

        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_tables(self) -> None:
        """Create all database tables."""
        if self._engine is None or not self._initialized:
            self.init()
        Base.metadata.create_all(self._engine)
        logger.info("Database tables created")

    def drop_tables(self) -> None:
        """Drop all database tables. USE WITH CAUTION!"""
        if self._engine is None or not self._initialized:
            self.init()
        Base.metadata.drop_all(self._engine)
        logger.warning("Database tables dropped")

    @db_retry
    def health_check(self) -> bool:
        """
        Check if database connection is healthy with retry.

        Returns:
            True if connection is healthy, False otherwise
        """
        try:
            with self.session_scope() as session:
                session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False

    def close(self) -> None:
        """Close database connections and clean up."""
        if self._engine:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._initialized = False


# ============================================
# PYTEST FIXTURES SUPPORT
# ============================================

def create_test_provider(
    engine: Optional[Engine] = None,
    settings: Optional[DatabaseSettings] = None
) -> DatabaseSessionProvider:
    """
    Create a database provider for testing.

    Args:
        engine: Pre-created engine (e.g., SQLite for unit tests)
        settings: Custom settings for testing

    Returns:
        DatabaseSessionProvider configured for testing
    """
    provider = DatabaseSessionProvider(
        settings=settings,
        engine=engine
    )
    return provider

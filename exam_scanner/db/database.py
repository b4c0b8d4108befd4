"""
==============================================================================
Local Record Store
==============================================================================

SQLAlchemy engine and sessions for the on-device store.

The store is a single SQLite file by default. Every connection switches on
foreign keys, and optionally write-ahead logging and a busy timeout so the
background sync task and request handlers can write to the same file.

    DatabaseManager (singleton) ─▶ Engine ─▶ sessionmaker ─▶ Session
                                                             ├─ get_db()        per request
                                                             └─ session_scope() background work

check_same_thread is off because FastAPI runs sync dependencies in a thread
pool, away from the thread that opened the connection.

==============================================================================
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from exam_scanner.config import Settings, get_settings


logger = logging.getLogger(__name__)

Base = declarative_base()


def _sqlite_pragmas(settings: Settings):
    pragmas = ["PRAGMA foreign_keys=ON"]
    if settings.sqlite_wal and settings.get_database_path() is not None:
        pragmas.append("PRAGMA journal_mode=WAL")
    pragmas.append(f"PRAGMA busy_timeout={settings.sqlite_busy_timeout_ms}")

    def apply(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        for pragma in pragmas:
            cursor.execute(pragma)
        cursor.close()

    return apply


class DatabaseManager:
    """
    Owner of the engine and session factory.

    The engine is built on first use, after settings have been loaded.

    Example:
        >>> with DatabaseManager().session_scope() as session:
        ...     pending = session.query(SyncQueueItem).count()
    """

    _instance: Optional[DatabaseManager] = None

    def __new__(cls) -> DatabaseManager:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        if getattr(self, "_initialized", False):
            return

        self._settings = get_settings()
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None
        self._initialized = True

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    def _create_engine(self) -> Engine:
        settings = self._settings

        if not settings.is_sqlite:
            # Server databases are only used when a station shares a store
            logger.info(f"Opening shared store: {settings.database_url}")
            return create_engine(
                settings.database_url,
                pool_pre_ping=True,
                echo=settings.debug,
            )

        engine = create_engine(
            settings.database_url,
            connect_args={"check_same_thread": False},
            echo=settings.debug,
        )
        event.listen(engine, "connect", _sqlite_pragmas(settings))

        logger.info(
            f"🗄️ Local store: {settings.get_database_path() or 'in-memory'} "
            f"(wal={settings.sqlite_wal}, busy_timeout={settings.sqlite_busy_timeout_ms}ms)"
        )
        return engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                autocommit=False,
                autoflush=False,
                expire_on_commit=False,
            )
        return self._session_factory

    def get_session(self) -> Session:
        """New session; the caller closes it."""
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Commit on success, roll back on error, always close."""
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_tables(self) -> None:
        # Registers the models on Base.metadata
        from exam_scanner.db import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        logger.info("Store tables created/verified")

    def drop_tables(self) -> None:
        """Drop every table, unsynced scans and marks included."""
        Base.metadata.drop_all(bind=self.engine)
        logger.warning("⚠️ All store tables dropped")

    def verify_connection(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Store connection failed: {e}")
            return False

    def store_info(self) -> Dict[str, Any]:
        """File location and size of the local store, for health reporting."""
        path = self._settings.get_database_path()
        info: Dict[str, Any] = {"backend": self.engine.dialect.name, "path": None, "size_bytes": None}
        if path is not None:
            info["path"] = str(path)
            if path.exists():
                info["size_bytes"] = path.stat().st_size
        return info

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            logger.info("Store connections closed")

    def __repr__(self) -> str:
        return f"DatabaseManager(url={self._settings.database_url!r})"


@lru_cache(maxsize=1)
def get_database_manager() -> DatabaseManager:
    return DatabaseManager()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a session closed after the request."""
    session = get_database_manager().get_session()
    try:
        yield session
    finally:
        session.close()

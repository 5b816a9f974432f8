"""
db/session.py

Process-wide database handle: one engine and one session factory, built once
at startup and disposed on shutdown.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db.config import get_bool_env, get_int_env, resolve_database_url


class Database:
    """
    Owns the engine and session factory for the dataset store.

    Construct with an explicit URL (tests, scripts) or via ``from_env`` in the
    API process. Components never reach for a module-level engine; they get
    sessions from the handle they were given.
    """

    def __init__(self, url: str, **engine_kwargs: Any) -> None:
        self._engine: Engine = create_engine(url, **engine_kwargs)
        self._session_factory: sessionmaker[Session] = sessionmaker(
            bind=self._engine,
            class_=Session,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    @classmethod
    def from_env(cls) -> "Database":
        """
        Build the production handle. Only PostgreSQL URLs are accepted.
        """

        database_url = resolve_database_url()
        if not database_url.startswith("postgresql"):
            raise RuntimeError("Only PostgreSQL URLs are supported.")

        return cls(
            database_url,
            echo=get_bool_env("SQL_ECHO", default=False),
            pool_pre_ping=True,
            pool_recycle=get_int_env("DB_POOL_RECYCLE", 1800),
            pool_size=get_int_env("DB_POOL_SIZE", 5),
            max_overflow=get_int_env("DB_MAX_OVERFLOW", 10),
        )

    @property
    def engine(self) -> Engine:
        return self._engine

    def session(self) -> Session:
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Yield a fresh session and ensure it is closed on exit."""
        session = self.session()
        try:
            yield session
        finally:
            session.close()

    def ping(self) -> None:
        """Run SELECT 1. Raises RuntimeError if the database is unreachable."""
        try:
            with self.session_scope() as session:
                session.execute(text("SELECT 1"))
        except Exception as exc:
            raise RuntimeError("Database unavailable.") from exc

    def dispose(self) -> None:
        self._engine.dispose()

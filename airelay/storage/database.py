"""Database session management."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import DatabaseConfig
from ..logging_utils import get_logger
from .models import Base


def _engine_kwargs(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True, "pool_recycle": 1800}
    kwargs: dict = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in url or url in {"sqlite://", "sqlite+pysqlite://"}:
        kwargs["poolclass"] = StaticPool
    return kwargs


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class DatabaseManager:
    """Own the SQLAlchemy engine; callers open and close it explicitly."""

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config
        self._log = get_logger("db")
        self._engine = create_engine(config.url, echo=config.echo, **_engine_kwargs(config.url))
        if self._engine.dialect.name == "sqlite":
            _enable_sqlite_foreign_keys(self._engine)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        self._closed = False
        self._log.info("Database connected at {}", self._engine.url.render_as_string(hide_password=True))

    @property
    def dialect(self) -> str:
        return self._engine.dialect.name

    @contextmanager
    def session(self) -> Iterator[Session]:
        if self._closed:
            raise RuntimeError("DatabaseManager is closed")
        session: Session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        if self._closed:
            return
        self._engine.dispose()
        self._closed = True
        self._log.info("Database connection closed")

"""Database engine and session setup."""

from collections.abc import Callable

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from ...core.config import settings


def build_engine(database_url: str | None = None, echo: bool | None = None) -> Engine:
    """
    Create the engine for the configured database.

    In-memory SQLite shares one connection across sessions. SQLite gets
    explicit BEGIN handling so nested transactions (savepoints) work.
    """
    url = database_url or settings.SQLALCHEMY_DATABASE_URI
    kwargs: dict = {"echo": settings.DATABASE_ECHO if echo is None else echo}
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool

    engine = create_engine(url, **kwargs)

    if is_sqlite:

        @event.listens_for(engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _emit_begin(connection):
            connection.exec_driver_sql("BEGIN")

    return engine


def init_db(engine: Engine) -> None:
    """Create all tables."""
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def session_factory(engine: Engine) -> Callable[[], Session]:
    def factory() -> Session:
        return Session(engine, expire_on_commit=False)

    return factory

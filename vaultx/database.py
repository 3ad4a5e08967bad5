from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import structlog
from fastapi import Request
from sqlalchemy import event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool
from sqlmodel import Field, Session, SQLModel, create_engine

from .config import Settings


log = structlog.get_logger(__name__)

# Bump together with any change to the table definitions in vaultx.models
SCHEMA_VERSION = 1


class SchemaVersion(SQLModel, table=True):
    __tablename__ = "schema_version"

    id: int = Field(default=1, primary_key=True)
    version: int


class SchemaVersionError(RuntimeError):
    pass


class Store:
    """Owns the engine for one application instance."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine = self._create_engine(settings)

    @staticmethod
    def _create_engine(settings: Settings) -> Engine:
        if settings.is_sqlite:
            engine = create_engine(
                settings.database_url,
                echo=settings.sql_echo,
                connect_args={
                    "check_same_thread": False,
                    "timeout": settings.db_busy_timeout_ms / 1000,
                },
                poolclass=NullPool,  # avoid multiple pooled connections holding write locks
            )
            busy_timeout = settings.db_busy_timeout_ms

            @event.listens_for(engine, "connect")
            def _sqlite_pragmas(dbapi_conn, _record):
                cursor = dbapi_conn.cursor()
                cursor.execute("PRAGMA foreign_keys=ON;")
                cursor.execute("PRAGMA journal_mode=WAL;")
                cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout)};")
                cursor.close()

            return engine

        return create_engine(
            settings.database_url,
            echo=settings.sql_echo,
            pool_size=settings.db_pool_size,
            max_overflow=0,
            pool_pre_ping=True,
        )

    def session(self) -> Session:
        return Session(self.engine)

    def init_db(self) -> None:
        if self.settings.is_sqlite:
            _ensure_sqlite_dir(self.settings.database_url)

        # Register every table on SQLModel.metadata before create_all
        from .models import budget, goal, graph, profile, user  # noqa: F401

        with Session(self.engine) as session:
            stored = _stored_version(session)
            if stored is not None and stored != SCHEMA_VERSION:
                log.error("schema_version_mismatch", stored=stored, expected=SCHEMA_VERSION)
                raise SchemaVersionError(
                    f"Database schema version {stored} does not match application version {SCHEMA_VERSION}"
                )

        SQLModel.metadata.create_all(self.engine)

        with Session(self.engine) as session:
            if _stored_version(session) is None:
                session.add(SchemaVersion(id=1, version=SCHEMA_VERSION))
                session.commit()
                log.info("schema_stamped", version=SCHEMA_VERSION)

    def dispose(self) -> None:
        self.engine.dispose()


def _ensure_sqlite_dir(url: str) -> None:
    # sqlite:///relative/path.db or sqlite:////absolute/path.db
    path = url.split(":///", 1)[-1]
    if path and path != ":memory:" and not path.startswith("file:"):
        Path(path).parent.mkdir(parents=True, exist_ok=True)


def _stored_version(session: Session) -> Optional[int]:
    if not inspect(session.connection()).has_table(SchemaVersion.__tablename__):
        return None
    row = session.get(SchemaVersion, 1)
    return row.version if row else None


@contextmanager
def atomic(session: Session) -> Iterator[Session]:
    """Commit everything written inside the block, or nothing."""
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


def get_session(request: Request) -> Iterator[Session]:
    store: Store = request.app.state.store
    with store.session() as session:
        yield session

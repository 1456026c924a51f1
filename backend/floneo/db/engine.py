from sqlmodel import create_engine
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from floneo.core.config import settings


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def enable_sqlite_foreign_keys(target: Engine, wal: bool = False) -> None:
    """Turn on FK enforcement (needed for ON DELETE CASCADE) for every new connection."""

    @event.listens_for(target, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if wal:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()


def build_engine(url: str | None = None) -> Engine:
    url = url or settings.database_url
    if not _is_sqlite(url):
        return create_engine(url, echo=False, pool_pre_ping=True)

    if url == f"sqlite:///{settings.database_path}":
        # Ensure the data directory exists before SQLite tries to open the file.
        settings.ensure_dirs()

    # check_same_thread=False lets the threadpool that runs sync handlers share
    # the file. NullPool closes connections immediately instead of hoarding them.
    sqlite_engine = create_engine(
        url,
        echo=False,
        connect_args={"check_same_thread": False, "timeout": 5.0},
        poolclass=NullPool,
    )
    enable_sqlite_foreign_keys(sqlite_engine, wal=True)
    return sqlite_engine


engine = build_engine()

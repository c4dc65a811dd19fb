"""Engine and session setup for the alert store."""

from typing import Optional

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config.logging import get_logger
from ..config.settings import get_settings

logger = get_logger(__name__)

Base = declarative_base()

# The background service and a foreground CLI check share one database file.
# A writer that finds the file locked waits this long before giving up.
SQLITE_BUSY_TIMEOUT_SECONDS = 30

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def is_sqlite(database_url: str) -> bool:
    return make_url(database_url).get_backend_name() == "sqlite"


def is_in_memory(database_url: str) -> bool:
    url = make_url(database_url)
    return is_sqlite(database_url) and url.database in (None, "", ":memory:")


def _configure_sqlite_connection(dbapi_connection, connection_record):
    """
    Per-connection SQLite setup.

    WAL lets a checking pass read while another process writes, and the busy
    timeout makes competing writers queue instead of failing immediately.
    """
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_SECONDS * 1000}")
    finally:
        cursor.close()


def create_engine_from_url(
    database_url: str, echo: bool = False, pool_pre_ping: bool = True
) -> Engine:
    """
    Create the engine for the alert store.

    Args:
        database_url: SQLAlchemy URL; SQLite files get WAL and a busy timeout
        echo: Log every SQL statement
        pool_pre_ping: Test pooled connections before handing them out

    Returns:
        Configured Engine
    """
    sqlite = is_sqlite(database_url)
    logger.info(
        "Creating database engine",
        backend=make_url(database_url).get_backend_name(),
        echo_sql=echo,
    )

    engine_kwargs = {"echo": echo, "pool_pre_ping": pool_pre_ping}
    if sqlite:
        engine_kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": SQLITE_BUSY_TIMEOUT_SECONDS,
        }
        if is_in_memory(database_url):
            # One shared connection, otherwise every session sees an empty database
            engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **engine_kwargs)

    if sqlite:
        event.listen(engine, "connect", _configure_sqlite_connection)

    return engine


def get_engine() -> Engine:
    """Process-wide engine built from settings on first use."""
    global _engine

    if _engine is None:
        settings = get_settings()
        _engine = create_engine_from_url(
            settings.get_database_url(),
            echo=settings.database_echo_sql,
            pool_pre_ping=settings.database_pool_pre_ping,
        )

    return _engine


def get_session_factory() -> sessionmaker:
    """Process-wide session factory bound to `get_engine()`."""
    global _SessionLocal

    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=get_engine(),
            expire_on_commit=False,
        )

    return _SessionLocal


def create_tables(engine: Optional[Engine] = None) -> None:
    """Create the alert and notification message tables if they are missing."""
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine or get_engine())
    logger.info("Database tables ready", tables=sorted(Base.metadata.tables))

"""Engine, sessions and schema setup for the feedback database."""

import logging
from contextlib import contextmanager
from typing import Generator, List, Optional

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from ..config import Config, get_config

logger = logging.getLogger(__name__)

Base = declarative_base()

# Built lazily from the config on first use
_engine: Optional[Engine] = None
_SessionLocal = None


def engine_options(config: Config) -> dict:
    """Keyword arguments for create_engine.

    SQLite keeps its default pool settings: recycling an in-memory
    connection would drop the database with it.
    """
    options = {"echo": config.DB_ECHO}
    if make_url(config.DATABASE_URL).get_backend_name() != "sqlite":
        options["pool_pre_ping"] = True
        options["pool_recycle"] = config.DB_POOL_RECYCLE_SECONDS
    return options


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        config = get_config()
        _engine = create_engine(config.DATABASE_URL, **engine_options(config))
    return _engine


def get_db() -> Session:
    """Open a session; the caller closes it (Flask does so on teardown)."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autoflush=False, bind=get_engine())
    return _SessionLocal()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Session for scripts: commits on success, rolls back on error."""
    session = get_db()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _load_models() -> None:
    # Registers the tables on Base.metadata
    from . import feedback, report_run  # noqa: F401


def check_connection() -> None:
    """Run a trivial query, raising if the database is unreachable."""
    with get_engine().connect() as conn:
        conn.execute(text("SELECT 1"))


def pending_tables() -> List[str]:
    """Names of the tables the models define that the database lacks."""
    _load_models()
    existing = set(inspect(get_engine()).get_table_names())
    return [name for name in Base.metadata.tables if name not in existing]


def init_db() -> List[str]:
    """Create missing tables and return their names."""
    created = pending_tables()
    Base.metadata.create_all(bind=get_engine())
    if created:
        logger.info(f"Created tables: {', '.join(created)}")
    return created


def close_db() -> None:
    """Dispose of the engine so the next use reconnects with fresh config."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
        _engine = None
    _SessionLocal = None

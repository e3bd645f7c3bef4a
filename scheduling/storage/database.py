import logging
import time
from typing import Optional

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from scheduling.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def create_db_engine(url: Optional[str] = None, **kwargs) -> Engine:
    """Create an engine for ``url`` (defaults to DATABASE_URL)."""
    db_url = url or settings.database.url
    options = {
        "echo": settings.database.echo,
        "pool_pre_ping": settings.database.pool_pre_ping,
    }
    if db_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    options.update(kwargs)

    engine = create_engine(db_url, **options)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_foreign_keys(engine)
    _install_slow_query_logging(engine, settings.database.slow_query_threshold_sec)
    logger.info("Database engine created for %s", engine.url.render_as_string(hide_password=True))
    return engine


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _install_slow_query_logging(engine: Engine, threshold: float) -> None:
    @event.listens_for(engine, "before_cursor_execute")
    def before_cursor_execute(conn, _cursor, statement, _parameters, context, _executemany):
        conn.info.setdefault("query_start_time", []).append(time.time())

    @event.listens_for(engine, "after_cursor_execute")
    def after_cursor_execute(conn, _cursor, statement, _parameters, context, _executemany):
        total = time.time() - conn.info["query_start_time"].pop(-1)
        if total > threshold:
            logger.warning("Slow query (%.2fs): %s...", total, statement[:200])


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create all tables."""
    from scheduling.storage import models  # noqa: F401  registers mappers

    Base.metadata.create_all(engine)
    logger.info("Database tables ensured")

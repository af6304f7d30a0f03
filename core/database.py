from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from core.config import settings
from core.base import Base


def build_engine(url: str, **kwargs):
    """Create an engine with pool options suited to the backend."""
    if url.startswith("sqlite"):
        sqlite_engine = create_engine(
            url, connect_args={"check_same_thread": False}, **kwargs
        )

        # pysqlite needs explicit BEGIN for SAVEPOINT support, and only
        # enforces foreign keys when asked to
        @event.listens_for(sqlite_engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(sqlite_engine, "begin")
        def _on_begin(conn):
            conn.exec_driver_sql("BEGIN")

        return sqlite_engine

    return create_engine(
        url,
        pool_size=20,
        max_overflow=30,
        pool_timeout=30,
        pool_recycle=3600,
        pool_pre_ping=True,
        echo=False,
        **kwargs,
    )


# Database engine configuration
engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Dependency that provides a database session."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def create_all(bind=None) -> None:
    """Create every registered table (tests and local bootstrap)."""
    import models  # noqa: F401  registers all models on Base.metadata

    Base.metadata.create_all(bind=bind or engine)

"""Database initialization and session management."""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from stratalens.config import settings
from stratalens.database.models import Base
from pathlib import Path


def _ensure_sqlite_dir(url: str) -> None:
    """Ensure the parent directory for a file-based SQLite URL exists.

    Avoids sqlite3.OperationalError: unable to open database file when the
    directory has not been created yet.
    """
    if not url.startswith("sqlite:"):
        return
    parts = url.split("///", 1)
    db_path = parts[1] if len(parts) == 2 else url.replace("sqlite://", "")
    if db_path in ("", ":memory:"):
        return
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)


def get_engine(database_url: str | None = None):
    """Get SQLAlchemy engine."""
    url = database_url or settings.database_url
    _ensure_sqlite_dir(url)
    return create_engine(url, echo=False)


def init_db(database_url: str | None = None):
    """Initialize database tables and return the engine."""
    engine = get_engine(database_url)
    Base.metadata.create_all(bind=engine)
    return engine


def get_session_factory(database_url: str | None = None):
    """Get session factory (tables are created on first use)."""
    engine = init_db(database_url)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)

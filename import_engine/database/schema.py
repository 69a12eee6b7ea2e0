"""Database schema initialization."""

from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from import_engine.database.models import Base


def init_database(db_path: Path, echo: bool = False):
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
        echo: Whether to echo SQL queries (for debugging)

    Returns:
        SQLAlchemy engine
    """
    # Ensure parent directory exists
    db_path.parent.mkdir(parents=True, exist_ok=True)

    # Fan-out workers share the engine across threads
    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=echo,
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    # Create all tables
    Base.metadata.create_all(engine)

    return engine


def get_session_factory(engine):
    """
    Get session factory for database operations.

    Args:
        engine: SQLAlchemy engine

    Returns:
        Session factory
    """
    return sessionmaker(bind=engine, expire_on_commit=False)

"""Shared session handling for the SQLAlchemy-backed stores."""

from contextlib import contextmanager

from sqlalchemy.orm import Session


class BaseStore:
    """Wraps a session factory so every store opens sessions the same way."""

    def __init__(self, session_factory):
        """
        Initialize store.

        Args:
            session_factory: sessionmaker bound to the engine (see schema.get_session_factory)
        """
        self.Session = session_factory

    @contextmanager
    def _get_session(self, commit: bool = True):
        """
        Context manager for database sessions.

        Args:
            commit: Whether to commit on successful exit (default: True)
        """
        session: Session = self.Session()
        try:
            yield session
            if commit:
                session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

"""Base repository class with common functionality."""

from contextlib import contextmanager
from typing import Iterator, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ...config.logging import get_logger
from ...exceptions import PersistenceError
from ..database import get_session_factory

logger = get_logger(__name__)


class BaseRepository:
    """Base repository class providing common session management."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory or get_session_factory()

    @contextmanager
    def session_scope(self, operation: str) -> Iterator[Session]:
        """
        Open a session for one unit of work and commit it on success.

        Storage and (de)serialisation failures surface as PersistenceError.
        """
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except (SQLAlchemyError, ValidationError) as e:
            session.rollback()
            logger.error(
                "Repository operation failed",
                operation=operation,
                error=str(e),
                exc_info=True,
            )
            raise PersistenceError(operation, str(e)) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

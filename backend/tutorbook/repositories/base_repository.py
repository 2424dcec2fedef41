# backend/tutorbook/repositories/base_repository.py
"""
Base Repository Pattern for the tutorbook scheduling core.

Provides the foundation for all repository classes with:
- Common CRUD operations
- Type safety with generics
- Translation of SQLAlchemy failures into RepositoryException

Repositories never commit: transaction boundaries belong to the services.
"""

import logging
from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import ConstraintViolation, RepositoryException
from ..database.session_utils import get_dialect_name

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)

_DEADLOCK_SQLSTATE = "40P01"


def constraint_name_from(exc: IntegrityError, known: tuple[str, ...] = ()) -> Optional[str]:
    """
    Name of the constraint behind an IntegrityError.

    psycopg exposes it on ``orig.diag``; SQLite only has the message text
    (trigger RAISE messages carry the constraint name), so fall back to
    matching against ``known`` names.
    """
    orig = getattr(exc, "orig", None)
    diag = getattr(orig, "diag", None)
    if diag is not None:
        name = getattr(diag, "constraint_name", None)
        if name:
            return str(name)
    text = str(orig if orig is not None else exc)
    for candidate in known:
        if candidate in text:
            return candidate
    return None


def is_deadlock(exc: BaseException) -> bool:
    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode == _DEADLOCK_SQLSTATE:
        return True
    return "deadlock detected" in str(exc).lower()


class BaseRepository(Generic[T]):
    """
    Concrete base repository implementation with common data access patterns.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    # Constraint names subclasses want recognised in SQLite error text
    known_constraints: tuple[str, ...] = ()

    def __init__(self, db: Session, model: Type[T]):
        """
        Initialize repository with database session and model.

        Args:
            db: SQLAlchemy session (managed by service layer)
            model: SQLAlchemy model class
        """
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @property
    def dialect_name(self) -> str:
        return get_dialect_name(self.db)

    def get_by_id(self, id: str) -> Optional[T]:
        """Retrieve an entity by its primary key."""
        try:
            return self.db.get(self.model, id)
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} by id {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {str(e)}") from e

    def create(self, **kwargs: Any) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by service layer.
        """
        entity = self.model(**kwargs)
        self.db.add(entity)
        self.flush()
        return entity

    def flush(self) -> None:
        """
        Flush pending ORM changes, translating store rejections.

        Raises:
            ConstraintViolation: a CHECK/UNIQUE/EXCLUDE constraint or trigger rejected the write
            RepositoryException: any other database failure (deadlocks included)
        """
        try:
            self.db.flush()
        except IntegrityError as exc:
            name = constraint_name_from(exc, self.known_constraints)
            self.logger.warning(
                "Integrity error flushing %s (constraint=%s)", self.model.__name__, name
            )
            raise ConstraintViolation(name, f"Integrity constraint violated: {exc.orig}") from exc
        except OperationalError as exc:
            if is_deadlock(exc):
                self.logger.warning("Deadlock flushing %s", self.model.__name__)
            else:
                self.logger.error(f"Error flushing {self.model.__name__}: {str(exc)}")
            raise RepositoryException(f"Failed to write {self.model.__name__}: {str(exc)}") from exc
        except SQLAlchemyError as exc:
            self.logger.error(f"Error flushing {self.model.__name__}: {str(exc)}")
            raise RepositoryException(f"Failed to write {self.model.__name__}: {str(exc)}") from exc

    def count(self, **kwargs: Any) -> int:
        """Count entities matching given criteria."""
        try:
            return self.db.query(self.model).filter_by(**kwargs).count()
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting records: {str(e)}")
            raise RepositoryException(f"Failed to count records: {str(e)}") from e

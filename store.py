"""Row-oriented CRUD access to the persistence service.

:class:`RowStore` is the only component that touches the ORM. Callers name a
collection (``students``, ``hafalan_progress``, ``tilawah_progress``,
``progress_entries``) and exchange plain dictionaries, which keeps the
progress logic independent of how rows are actually stored.

Database failures are translated into :class:`FetchError` for reads and
:class:`WriteError` for writes, after the session has been rolled back.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Type

from sqlalchemy.exc import SQLAlchemyError

from app_logging import DBTimer, get_logger
from models import TABLES, db, utcnow

_logger = get_logger("hafalan.store")

Row = Dict[str, Any]


class StoreError(Exception):
    """Base class for persistence failures."""

    def __init__(self, message: str, table: Optional[str] = None,
                 operation: Optional[str] = None) -> None:
        super().__init__(message)
        self.table = table
        self.operation = operation


class FetchError(StoreError):
    """A read against the persistence service failed."""


class WriteError(StoreError):
    """A create, update or delete against the persistence service failed."""


class RowStore:
    """Dictionary-in, dictionary-out access to the four collections."""

    def select(self, table: str, order_by: Optional[str] = None,
               descending: bool = False, **equals: Any) -> List[Row]:
        """Return every row of ``table`` whose columns equal ``equals``."""
        model = self._model(table)
        with self._guard(table, "select", FetchError):
            query = model.query.filter_by(**equals)
            if order_by:
                column = getattr(model, order_by)
                query = query.order_by(column.desc() if descending else column.asc())
            return [obj.to_row() for obj in query.all()]

    def select_one(self, table: str, **equals: Any) -> Optional[Row]:
        model = self._model(table)
        with self._guard(table, "select", FetchError):
            obj = model.query.filter_by(**equals).first()
            return obj.to_row() if obj is not None else None

    def insert(self, table: str, values: Mapping[str, Any]) -> Row:
        model = self._model(table)
        with self._guard(table, "insert", WriteError):
            obj = model(**values)
            db.session.add(obj)
            db.session.commit()
            return obj.to_row()

    def update(self, table: str, row_id: str, values: Mapping[str, Any]) -> Optional[Row]:
        """Update the row with primary key ``row_id``; ``None`` if it does not exist."""
        model = self._model(table)
        with self._guard(table, "update", WriteError):
            obj = db.session.get(model, row_id)
            if obj is None:
                return None
            self._assign(obj, values)
            db.session.commit()
            return obj.to_row()

    def upsert(self, table: str, values: Mapping[str, Any], on: str = "student_id") -> Row:
        """Insert ``values`` or update the existing row sharing the ``on`` column."""
        model = self._model(table)
        with self._guard(table, "upsert", WriteError):
            obj = model.query.filter_by(**{on: values[on]}).first()
            if obj is None:
                obj = model(**values)
                db.session.add(obj)
            else:
                self._assign(obj, values)
            db.session.commit()
            return obj.to_row()

    def delete(self, table: str, **equals: Any) -> int:
        """Delete matching rows and return how many were removed."""
        if not equals:
            raise ValueError("delete requires at least one column to match on")
        model = self._model(table)
        with self._guard(table, "delete", WriteError):
            count = model.query.filter_by(**equals).delete()
            db.session.commit()
            return count

    def delete_together(self, deletes: Sequence[Tuple[str, Mapping[str, Any]]]) -> List[int]:
        """Run several deletes in one transaction; nothing is removed if one fails.

        ``deletes`` is a sequence of ``(table, equals)`` pairs. Returns the
        number of rows removed by each, in order.
        """
        if not deletes or any(not equals for _, equals in deletes):
            raise ValueError("every delete requires at least one column to match on")
        models = [(table, self._model(table), equals) for table, equals in deletes]
        tables = ", ".join(table for table, _, _ in models)
        with self._guard(tables, "delete", WriteError):
            counts = [model.query.filter_by(**equals).delete() for _, model, equals in models]
            db.session.commit()
            return counts

    @staticmethod
    def _model(table: str) -> Type[db.Model]:
        try:
            return TABLES[table]
        except KeyError:
            raise KeyError(f"unknown table {table!r}") from None

    @staticmethod
    def _assign(obj: Any, values: Mapping[str, Any]) -> None:
        for key, value in values.items():
            setattr(obj, key, value)
        if hasattr(obj, "updated_at") and "updated_at" not in values:
            obj.updated_at = utcnow()

    @contextmanager
    def _guard(self, table: str, operation: str,
               error_cls: Type[StoreError]) -> Iterator[None]:
        try:
            with DBTimer():
                yield
        except (SQLAlchemyError, OverflowError) as exc:
            # OverflowError comes straight from the DB-API for out-of-range integers.
            db.session.rollback()
            _logger.error(
                "store operation failed",
                extra={"table": table, "operation": operation, "error": str(exc)},
            )
            raise error_cls(f"{operation} on {table} failed", table=table,
                            operation=operation) from exc


__all__ = ["FetchError", "Row", "RowStore", "StoreError", "WriteError"]

"""
Data Access - the single gateway between page services and the data store.

Wraps a SQLAlchemy session bound to the store's tables and exposes a small
table-oriented API (select / count / get / insert / update / delete /
upsert) returning plain dict records. Writes are committed immediately
unless grouped with transaction(); committed rows are published to the
change feed so open views can merge them.
"""

import logging
import operator
from contextlib import contextmanager
from datetime import datetime, date
from typing import Any, Dict, Iterable, List, Optional, Union

from dateutil import parser as date_parser
from sqlalchemy import Boolean, Date, DateTime, Float, Integer, Numeric
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from database.models import TABLES
from services.change_feed import ChangeFeed, INSERT, UPDATE, DELETE
from services.errors import DataAccessError, NotFoundError

logger = logging.getLogger(__name__)

FilterSpec = Union[Dict[str, Any], Iterable['Filter'], None]

_COMPARATORS = {
    'eq': operator.eq,
    'neq': operator.ne,
    'gt': operator.gt,
    'gte': operator.ge,
    'lt': operator.lt,
    'lte': operator.le,
}


class Filter:
    """A single column predicate, e.g. Filter('status', 'in', ['open', 'analysis'])."""

    OPS = ('eq', 'neq', 'gt', 'gte', 'lt', 'lte', 'in', 'is_null', 'not_null', 'ilike')

    def __init__(self, column: str, op: str = 'eq', value: Any = None):
        if op not in self.OPS:
            raise DataAccessError(f"Unsupported filter operator '{op}'")
        self.column = column
        self.op = op
        self.value = value

    def __repr__(self):
        return f"Filter({self.column!r}, {self.op!r}, {self.value!r})"


def _backend_message(error: Exception) -> str:
    orig = getattr(error, 'orig', None)
    return str(orig) if orig is not None else str(error)


class DataAccess:
    """Table-oriented access to the store for one unit of work (one request)."""

    def __init__(self, session: Session, change_feed: Optional[ChangeFeed] = None):
        self.session = session
        self.change_feed = change_feed
        self._depth = 0
        self._pending_events = []

    # =========================================================================
    # SCHEMA HELPERS
    # =========================================================================

    def _model(self, table: str):
        model = TABLES.get(table)
        if model is None:
            raise DataAccessError(f"Unknown table '{table}'")
        return model

    def _column(self, model, name: str):
        column = model.__table__.c.get(name)
        if column is None:
            raise DataAccessError(f"Unknown column '{name}' on {model.__tablename__}")
        return column

    def _coerce(self, column, value):
        """Convert JSON-ish input (strings) to the column's Python type."""
        if value is None:
            return None
        column_type = column.type
        try:
            if isinstance(column_type, DateTime):
                if isinstance(value, str):
                    return date_parser.parse(value) if value else None
                if isinstance(value, date) and not isinstance(value, datetime):
                    return datetime(value.year, value.month, value.day)
            elif isinstance(column_type, Date):
                if isinstance(value, str):
                    return date_parser.parse(value).date() if value else None
                if isinstance(value, datetime):
                    return value.date()
            elif isinstance(column_type, Boolean):
                if isinstance(value, str):
                    if value == '':
                        return None
                    return value.strip().lower() in ('true', '1', 'yes', 'on')
            elif isinstance(column_type, Integer):
                if isinstance(value, str):
                    return int(value) if value.strip() else None
            elif isinstance(column_type, (Float, Numeric)):
                if isinstance(value, str):
                    return float(value) if value.strip() else None
        except (ValueError, OverflowError) as e:
            raise DataAccessError(f"Invalid value for {column.name}: {value!r} ({e})")
        return value

    def _values(self, model, values: Dict[str, Any]) -> Dict[str, Any]:
        return {key: self._coerce(self._column(model, key), value) for key, value in values.items()}

    def _conditions(self, model, filters: FilterSpec) -> List:
        if not filters:
            return []
        if isinstance(filters, dict):
            filters = [
                Filter(name, 'is_null') if value is None
                else Filter(name, 'in', list(value)) if isinstance(value, (list, tuple, set))
                else Filter(name, 'eq', value)
                for name, value in filters.items()
            ]

        conditions = []
        for item in filters:
            col = self._column(model, item.column)
            column = getattr(model, col.key)
            if item.op == 'is_null':
                conditions.append(column.is_(None))
            elif item.op == 'not_null':
                conditions.append(column.isnot(None))
            elif item.op == 'in':
                conditions.append(column.in_([self._coerce(col, v) for v in item.value]))
            elif item.op == 'ilike':
                conditions.append(column.ilike(item.value))
            else:
                conditions.append(_COMPARATORS[item.op](column, self._coerce(col, item.value)))
        return conditions

    def _relationship(self, model, name: str):
        relationships = model.__mapper__.relationships
        if name not in relationships:
            raise DataAccessError(f"Unknown relation '{name}' on {model.__tablename__}")
        return getattr(model, name)

    def _serialize(self, obj, joins: Optional[List[str]] = None) -> Dict:
        record = obj.to_dict()
        for name in joins or []:
            related = getattr(obj, name)
            if related is None:
                record[name] = None
            elif isinstance(related, (list, tuple)):
                record[name] = [item.to_dict() for item in related]
            else:
                record[name] = related.to_dict()
        return record

    # =========================================================================
    # READS
    # =========================================================================

    def select(self, table: str, filters: FilterSpec = None,
               order_by: Union[str, List[str], None] = None, descending: bool = False,
               joins: Optional[List[str]] = None, limit: Optional[int] = None,
               offset: Optional[int] = None) -> List[Dict]:
        """
        Parameterized read.

        Args:
            table: Table name
            filters: Mapping column -> value or a sequence of Filter
            order_by: Column name(s); a leading '-' sorts that column descending
            descending: Sort every order_by column descending
            joins: Relationship names embedded in each record
            limit: Maximum number of rows
            offset: Rows to skip

        Returns:
            List of record dicts
        """
        model = self._model(table)
        try:
            # other sessions may have changed these rows
            query = self.session.query(model).populate_existing().filter(*self._conditions(model, filters))
            for name in joins or []:
                query = query.options(selectinload(self._relationship(model, name)))

            if isinstance(order_by, str):
                order_by = [order_by]
            for name in order_by or []:
                desc = descending or name.startswith('-')
                column = getattr(model, self._column(model, name.lstrip('-')).key)
                query = query.order_by(column.desc() if desc else column.asc())

            if offset:
                query = query.offset(offset)
            if limit is not None:
                query = query.limit(limit)

            return [self._serialize(obj, joins) for obj in query.all()]
        except SQLAlchemyError as e:
            self._fail(f"Error loading {table}", e)

    def count(self, table: str, filters: FilterSpec = None) -> int:
        model = self._model(table)
        try:
            return self.session.query(model).filter(*self._conditions(model, filters)).count()
        except SQLAlchemyError as e:
            self._fail(f"Error counting {table}", e)

    def get(self, table: str, record_id: str, joins: Optional[List[str]] = None) -> Optional[Dict]:
        """Single record by id, or None."""
        if not record_id:
            return None
        rows = self.select(table, {'id': record_id}, joins=joins, limit=1)
        return rows[0] if rows else None

    def get_or_404(self, table: str, record_id: str, joins: Optional[List[str]] = None) -> Dict:
        record = self.get(table, record_id, joins=joins)
        if record is None:
            raise NotFoundError(f"{table} record {record_id} not found")
        return record

    # =========================================================================
    # WRITES
    # =========================================================================

    def insert(self, table: str, values: Union[Dict, List[Dict]]) -> List[Dict]:
        """
        Insert one or more rows.

        Returns:
            The inserted records, including store-generated id, number and timestamps
        """
        model = self._model(table)
        rows = [values] if isinstance(values, dict) else list(values)
        try:
            objects = [model(**self._values(model, row)) for row in rows]
            self.session.add_all(objects)
            self.session.flush()
            records = [obj.to_dict() for obj in objects]
        except SQLAlchemyError as e:
            self._fail(f"Error inserting into {table}", e)

        for record in records:
            self._queue_event(table, INSERT, new=record)
        self._commit_if_autonomous()
        logger.info(f"Inserted {len(records)} row(s) into {table}")
        return records

    def insert_one(self, table: str, values: Dict) -> Dict:
        return self.insert(table, values)[0]

    def update(self, table: str, values: Dict, filters: FilterSpec) -> List[Dict]:
        """
        Update every row matching the filters.

        Returns:
            The updated records
        """
        model = self._model(table)
        if not filters:
            raise DataAccessError(f"Refusing to update every row of {table}")
        try:
            changes = self._values(model, values)
            objects = self.session.query(model).filter(*self._conditions(model, filters)).all()
            previous = [obj.to_dict() for obj in objects]
            for obj in objects:
                for key, value in changes.items():
                    setattr(obj, self._column(model, key).key, value)
            self.session.flush()
            records = [obj.to_dict() for obj in objects]
        except SQLAlchemyError as e:
            self._fail(f"Error updating {table}", e)

        for old, new in zip(previous, records):
            self._queue_event(table, UPDATE, new=new, old=old)
        self._commit_if_autonomous()
        logger.info(f"Updated {len(records)} row(s) in {table}")
        return records

    def update_one(self, table: str, record_id: str, values: Dict) -> Dict:
        """Update a single record by id; raises NotFoundError when it does not exist."""
        records = self.update(table, values, {'id': record_id})
        if not records:
            raise NotFoundError(f"{table} record {record_id} not found")
        return records[0]

    def delete(self, table: str, filters: FilterSpec) -> List[Dict]:
        """
        Delete every row matching the filters.

        Returns:
            The deleted records
        """
        model = self._model(table)
        if not filters:
            raise DataAccessError(f"Refusing to delete every row of {table}")
        try:
            objects = self.session.query(model).filter(*self._conditions(model, filters)).all()
            records = [obj.to_dict() for obj in objects]
            ids = [record['id'] for record in records]
            for obj in objects:
                self.session.expunge(obj)
            if ids:
                self.session.query(model).filter(model.id.in_(ids)).delete(synchronize_session=False)
                self.session.flush()
        except SQLAlchemyError as e:
            self._fail(f"Error deleting from {table}", e)

        for record in records:
            self._queue_event(table, DELETE, old=record)
        self._commit_if_autonomous()
        logger.info(f"Deleted {len(records)} row(s) from {table}")
        return records

    def upsert(self, table: str, values: Dict, conflict_column: str) -> Dict:
        """
        Insert or return existing.

        When a row with the same conflict_column value exists it is returned
        unchanged; otherwise the row is inserted.
        """
        model = self._model(table)
        self._column(model, conflict_column)
        key = values.get(conflict_column)
        if key not in (None, ''):
            existing = self.select(table, {conflict_column: key}, limit=1)
            if existing:
                logger.debug(f"Upsert on {table}.{conflict_column}={key} returned existing row")
                return existing[0]
        return self.insert_one(table, values)

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    @contextmanager
    def transaction(self):
        """
        Group several writes into one commit.

        On any exception everything written inside the block is rolled back
        and no change events are published. Nested blocks join the outer one.
        """
        self._depth += 1
        try:
            yield self
        except Exception:
            self._depth -= 1
            if self._depth == 0:
                self._rollback()
            raise
        self._depth -= 1
        if self._depth == 0:
            self._commit()

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def _queue_event(self, table: str, event_type: str, new: Optional[Dict] = None,
                     old: Optional[Dict] = None):
        self._pending_events.append((table, event_type, new, old))

    def _commit_if_autonomous(self):
        if self._depth == 0:
            self._commit()

    def _commit(self):
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self._rollback()
            logger.error(f"Commit failed: {_backend_message(e)}")
            raise DataAccessError(f"Error saving changes: {_backend_message(e)}")

        events, self._pending_events = self._pending_events, []
        if self.change_feed is not None:
            for table, event_type, new, old in events:
                self.change_feed.emit(table, event_type, new=new, old=old)

    def _rollback(self):
        self._pending_events = []
        try:
            self.session.rollback()
        except SQLAlchemyError as e:
            logger.error(f"Rollback failed: {_backend_message(e)}")

    def _fail(self, context: str, error: SQLAlchemyError):
        message = _backend_message(error)
        logger.error(f"{context}: {message}")
        if self._depth == 0:
            self._rollback()
        raise DataAccessError(f"{context}: {message}")

    def close(self):
        self._pending_events = []
        self.session.close()

"""
View state helpers shared by every page.

Pages fetch rows, keep them as local list state, filter / sort them for
display and merge change events pushed by the feed. Kanban boards turn a
card drop into exactly one update call.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from services.change_feed import ChangeEvent, ChangeFeed, INSERT, UPDATE, DELETE, Subscription
from services.errors import NotFoundError
from validators import ValidationError

logger = logging.getLogger(__name__)

KeySpec = Union[str, Callable[[Dict], Any]]


def resolve_path(record: Optional[Dict], path: str) -> Any:
    """Read a dotted path ('customer.name') from a record with embedded relations."""
    value = record
    for part in path.split('.'):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _key_func(key: KeySpec) -> Callable[[Dict], Any]:
    return key if callable(key) else (lambda record: resolve_path(record, key))


def search_filter(records: Iterable[Dict], term: Optional[str], fields: Sequence[str]) -> List[Dict]:
    """
    Case-insensitive substring search over the given fields.

    Args:
        records: Records to filter
        term: Search text; empty or blank returns every record
        fields: Field names, dotted paths reach joined records

    Returns:
        Matching records in their original order
    """
    records = list(records)
    needle = (term or '').strip().lower()
    if not needle:
        return records

    def matches(record):
        for field in fields:
            value = resolve_path(record, field)
            if value is not None and needle in str(value).lower():
                return True
        return False

    return [record for record in records if matches(record)]


def _sortable(value: Any) -> Any:
    return value.lower() if isinstance(value, str) else value


def sort_records(records: Iterable[Dict], sort_by: KeySpec, descending: bool = False) -> List[Dict]:
    """Stable sort by a field, dotted path or key function; missing values go last."""
    key = _key_func(sort_by)
    records = list(records)
    present = [record for record in records if key(record) is not None]
    missing = [record for record in records if key(record) is None]
    present.sort(key=lambda record: _sortable(key(record)), reverse=descending)
    return present + missing


def count_by(records: Iterable[Dict], key: KeySpec) -> Dict[Any, int]:
    """Aggregate counts per key value, for dashboard cards."""
    key = _key_func(key)
    counts: Dict[Any, int] = {}
    for record in records:
        value = key(record)
        counts[value] = counts.get(value, 0) + 1
    return counts


def matches_equals(record: Dict, equals: Optional[Dict[str, Any]]) -> bool:
    """Equality match as the data store applies a mapping filter (None = IS NULL, list = IN)."""
    for name, expected in (equals or {}).items():
        value = record.get(name)
        if isinstance(expected, (list, tuple, set)):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


class ListView:
    """Local list state for one page, kept in sync with reads and pushed changes."""

    def __init__(self, data_access, table: str, filters: Optional[Dict[str, Any]] = None,
                 order_by: Union[str, List[str], None] = 'created_at', descending: bool = True,
                 joins: Optional[List[str]] = None, search_fields: Sequence[str] = (),
                 limit: Optional[int] = None):
        self.data_access = data_access
        self.table = table
        self.filters = dict(filters or {})
        self.order_by = order_by
        self.descending = descending
        self.joins = joins
        self.search_fields = list(search_fields)
        self.limit = limit
        self.records: List[Dict] = []

    def load(self) -> List[Dict]:
        """Replace the local state with a fresh read."""
        self.records = self.data_access.select(
            self.table, self.filters, order_by=self.order_by, descending=self.descending,
            joins=self.joins, limit=self.limit
        )
        return self.records

    def _index(self, record_id: Optional[str]) -> Optional[int]:
        for index, record in enumerate(self.records):
            if record.get('id') == record_id:
                return index
        return None

    def get(self, record_id: str) -> Optional[Dict]:
        index = self._index(record_id)
        return self.records[index] if index is not None else None

    def visible(self, term: Optional[str] = None, **equals) -> List[Dict]:
        """Records matching the equality filters and the search term."""
        records = [record for record in self.records if matches_equals(record, equals)]
        return search_filter(records, term, self.search_fields)

    def upsert_local(self, record: Dict) -> Dict:
        """
        Apply an optimistic local write.

        A record whose id is already present replaces the existing entry
        (keeping embedded relations the new version lacks); otherwise it is
        added at the head of a newest-first list or the tail of any other.
        """
        index = self._index(record.get('id'))
        if index is not None:
            merged = {**self.records[index], **record}
            self.records[index] = merged
            return merged
        if self.descending:
            self.records.insert(0, dict(record))
        else:
            self.records.append(dict(record))
        return record

    def remove_local(self, record_id: str) -> bool:
        index = self._index(record_id)
        if index is None:
            return False
        del self.records[index]
        return True

    def apply_change(self, event: ChangeEvent) -> bool:
        """
        Merge a pushed change into the local state.

        Returns:
            True when the local state changed
        """
        if event.table != self.table:
            return False

        if event.event_type == INSERT:
            if not matches_equals(event.new, self.filters):
                return False
            self.upsert_local(event.new)
            return True

        if event.event_type == UPDATE:
            if self._index(event.record_id) is None:
                return False
            if not matches_equals(event.new, self.filters):
                return self.remove_local(event.record_id)
            self.upsert_local(event.new)
            return True

        if event.event_type == DELETE:
            return self.remove_local(event.record_id)

        return False

    def watch(self, feed: ChangeFeed, maxsize: Optional[int] = None) -> Subscription:
        """Start a subscription feeding apply_change; drain it to merge."""
        return feed.subscribe(self.table, self.apply_change, maxsize=maxsize).start()


class KanbanBoard:
    """
    Cards grouped by column; a drop becomes one update call.

    Args:
        data_access: DataAccess used for the write
        table: Table holding the cards
        columns: Ordered column ids
        column_of: Record -> column id (default: the status field)
        column_update: (destination, record) -> values written on a drop
            (default: {'status': destination})
    """

    def __init__(self, data_access, table: str, columns: Sequence[str],
                 column_of: Optional[Callable[[Dict], str]] = None,
                 column_update: Optional[Callable[[str, Optional[Dict]], Dict]] = None):
        self.data_access = data_access
        self.table = table
        self.columns = list(columns)
        self.column_of = column_of or (lambda record: record.get('status'))
        self.column_update = column_update or (lambda destination, record: {'status': destination})

    def group(self, records: Iterable[Dict]) -> Dict[str, List[Dict]]:
        """Cards per column; records in no known column are left out."""
        board = {column: [] for column in self.columns}
        for record in records:
            column = self.column_of(record)
            if column in board:
                board[column].append(record)
        return board

    def move(self, record_id: str, destination: str, current: Optional[str] = None) -> Optional[Dict]:
        """
        Move a card to a column.

        Args:
            record_id: Card record id
            destination: Destination column id
            current: Column the card is in, when the caller already knows it

        Returns:
            The updated record, or None when the card was already in that column

        Raises:
            ValidationError: Unknown destination column
            NotFoundError: The card does not exist
        """
        if destination not in self.columns:
            raise ValidationError(f"Unknown column: {destination}", 'status')

        record = None
        if current is None:
            record = self.data_access.get(self.table, record_id)
            if record is None:
                raise NotFoundError(f"{self.table} record {record_id} not found")
            current = self.column_of(record)

        if current == destination:
            logger.debug(f"{self.table}:{record_id} already in {destination}, no update")
            return None

        updated = self.data_access.update_one(self.table, record_id, self.column_update(destination, record))
        logger.info(f"Moved {self.table}:{record_id} from {current} to {destination}")
        return updated

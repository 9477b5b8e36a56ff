"""
Change Feed - push notifications of row changes to interested views.

Writes committed through DataAccess are published here as ChangeEvents.
Views subscribe per table; every subscription owns a bounded FIFO queue
that is drained explicitly on the caller's thread, so list state is only
ever touched by its owner.
"""

import itertools
import logging
import threading
from collections import deque
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

INSERT = 'INSERT'
UPDATE = 'UPDATE'
DELETE = 'DELETE'
EVENT_TYPES = (INSERT, UPDATE, DELETE)

DEFAULT_QUEUE_SIZE = 1000


class ChangeEvent:
    """One committed row change."""

    def __init__(self, table: str, event_type: str, new: Optional[Dict] = None,
                 old: Optional[Dict] = None, sequence: int = 0):
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown change event type: {event_type}")
        self.table = table
        self.event_type = event_type
        self.new = new
        self.old = old
        self.sequence = sequence

    @property
    def record(self) -> Optional[Dict]:
        """The row the event is about: the new version, or the old one for deletes."""
        return self.new if self.new is not None else self.old

    @property
    def record_id(self) -> Optional[str]:
        record = self.record
        return record.get('id') if record else None

    def to_dict(self) -> Dict:
        return {
            'table': self.table,
            'event_type': self.event_type,
            'new': self.new,
            'old': self.old,
            'sequence': self.sequence,
        }

    def __repr__(self):
        return f"<ChangeEvent #{self.sequence} {self.event_type} {self.table}:{self.record_id}>"


class Subscription:
    """
    A table subscription with explicit lifecycle.

    Events arriving while the subscription is active are queued; when the
    queue is full the oldest event is dropped and counted in `dropped`.
    """

    def __init__(self, feed: 'ChangeFeed', table: str, callback: Callable[[ChangeEvent], None],
                 maxsize: int = DEFAULT_QUEUE_SIZE):
        if maxsize < 1:
            raise ValueError("Subscription queue size must be at least 1")
        self.feed = feed
        self.table = table
        self.callback = callback
        self.maxsize = maxsize
        self.dropped = 0
        self._queue = deque()
        self._lock = threading.Lock()
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self) -> 'Subscription':
        if not self._active:
            self._active = True
            self.feed._register(self)
            logger.debug(f"Subscription started on {self.table}")
        return self

    def stop(self):
        """Unregister and discard anything still queued."""
        if self._active:
            self._active = False
            self.feed._unregister(self)
            logger.debug(f"Subscription stopped on {self.table}")
        with self._lock:
            self._queue.clear()

    def offer(self, event: ChangeEvent) -> bool:
        """Queue an event; returns False when the subscription is not active."""
        if not self._active:
            return False
        with self._lock:
            if len(self._queue) >= self.maxsize:
                self._queue.popleft()
                self.dropped += 1
                logger.warning(f"Subscription queue full on {self.table}, dropped oldest event")
            self._queue.append(event)
        return True

    def pending(self) -> int:
        with self._lock:
            return len(self._queue)

    def drain(self) -> int:
        """
        Deliver queued events to the callback in arrival order.

        Returns:
            Number of events delivered
        """
        delivered = 0
        while self._active:
            with self._lock:
                if not self._queue:
                    break
                event = self._queue.popleft()
            try:
                self.callback(event)
            except Exception as e:
                logger.error(f"Change handler failed for {event!r}: {e}")
            delivered += 1
        return delivered

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False


class ChangeFeed:
    """Fan-out of committed changes to table subscriptions."""

    def __init__(self, default_queue_size: int = DEFAULT_QUEUE_SIZE):
        self.default_queue_size = default_queue_size
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._lock = threading.Lock()
        self._sequence = itertools.count(1)

    def subscribe(self, table: str, callback: Callable[[ChangeEvent], None],
                  maxsize: Optional[int] = None) -> Subscription:
        """Create a (not yet started) subscription on a table."""
        return Subscription(self, table, callback, maxsize or self.default_queue_size)

    def publish(self, event: ChangeEvent) -> int:
        """
        Deliver an event to every active subscription on its table.

        Returns:
            Number of subscriptions that queued the event
        """
        with self._lock:
            subscriptions = list(self._subscriptions.get(event.table, []))
        queued = sum(1 for subscription in subscriptions if subscription.offer(event))
        logger.debug(f"Published {event!r} to {queued} subscription(s)")
        return queued

    def emit(self, table: str, event_type: str, new: Optional[Dict] = None,
             old: Optional[Dict] = None) -> ChangeEvent:
        """Build the next sequenced event for a row change and publish it."""
        event = ChangeEvent(table, event_type, new=new, old=old, sequence=next(self._sequence))
        self.publish(event)
        return event

    def subscription_count(self, table: Optional[str] = None) -> int:
        with self._lock:
            if table:
                return len(self._subscriptions.get(table, []))
            return sum(len(subs) for subs in self._subscriptions.values())

    def _register(self, subscription: Subscription):
        with self._lock:
            self._subscriptions.setdefault(subscription.table, []).append(subscription)

    def _unregister(self, subscription: Subscription):
        with self._lock:
            subs = self._subscriptions.get(subscription.table, [])
            if subscription in subs:
                subs.remove(subscription)

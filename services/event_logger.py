"""
Activity Logger - audit trail of what happened to each record.

Page services record creations, updates, status changes, archiving,
emails and external syncs here. Logging is best effort: a failure to
write the trail is reported as a warning and never breaks the operation
being logged.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Any

from services.data_access import Filter
from services.errors import DataAccessError

logger = logging.getLogger(__name__)

# Event types recorded by the pages
EVENT_TYPES = {
    'CREATED': 'Record was created',
    'UPDATED': 'Record was updated',
    'DELETED': 'Record was deleted',
    'ARCHIVED': 'Record was archived',
    'STATUS_CHANGED': 'Status was changed',
    'EMAIL_SENT': 'Email was sent',
    'SYNCED': 'Record was synced with an external system',
}

# Entity types
ENTITY_TYPES = [
    'customer', 'lead', 'offer', 'sales_order', 'work_order', 'service_work_order',
    'shipping_order', 'purchase_order', 'serial', 'rma', 'stock_movement',
    'pick_list', 'partner', 'marketing_content'
]


class ActivityLogger:
    """Writes activity_logs entries through the data access layer."""

    def __init__(self, data_access):
        self.data_access = data_access

    def log(self, entity_type: str, entity_id: Optional[str], event_type: str,
            description: str = None, metadata: Dict = None) -> Optional[Dict]:
        """
        Log an event.

        Args:
            entity_type: Type of entity (lead, sales_order, etc.)
            entity_id: ID of the entity
            event_type: Type of event (CREATED, UPDATED, etc.)
            description: Human-readable description of the event
            metadata: Additional data about the event

        Returns:
            The created entry as a dict, or None on failure
        """
        if event_type not in EVENT_TYPES:
            logger.warning(f"Unknown activity event type: {event_type}")
        try:
            entry = self.data_access.insert_one('activity_logs', {
                'timestamp': datetime.utcnow(),
                'entity_type': entity_type,
                'entity_id': entity_id,
                'event_type': event_type,
                'description': description or EVENT_TYPES.get(event_type, event_type),
                'details': metadata or {},
            })
            logger.debug(f"Activity logged: {event_type} on {entity_type}:{entity_id}")
            return entry
        except DataAccessError as e:
            logger.warning(f"Failed to log activity: {e}")
            return None

    def log_create(self, entity_type: str, entity_id: str, label: str = None) -> Optional[Dict]:
        """Log a creation event."""
        return self.log(entity_type, entity_id, 'CREATED',
                        f"{entity_type.replace('_', ' ').capitalize()} {label or entity_id} created")

    def log_update(self, entity_type: str, entity_id: str, changes: Dict = None) -> Optional[Dict]:
        """Log an update event with the changed field names."""
        return self.log(entity_type, entity_id, 'UPDATED',
                        f"{entity_type.replace('_', ' ').capitalize()} was updated",
                        {'fields': sorted(changes)} if changes else None)

    def log_status_change(self, entity_type: str, entity_id: str,
                          old_status: str, new_status: str) -> Optional[Dict]:
        """Log a status change event."""
        return self.log(
            entity_type, entity_id, 'STATUS_CHANGED',
            f"{entity_type.replace('_', ' ').capitalize()} status changed from '{old_status}' to '{new_status}'",
            {'old_status': old_status, 'new_status': new_status}
        )

    def history(self, entity_type: str, entity_id: str, limit: int = 50) -> List[Dict]:
        """Event history for one record, newest first."""
        return self.data_access.select(
            'activity_logs', {'entity_type': entity_type, 'entity_id': entity_id},
            order_by='timestamp', descending=True, limit=limit
        )

    def recent(self, hours: int = 24, limit: int = 100) -> List[Dict]:
        """Recent events across all records."""
        since = datetime.utcnow() - timedelta(hours=hours)
        return self.data_access.select(
            'activity_logs', [Filter('timestamp', 'gte', since)],
            order_by='timestamp', descending=True, limit=limit
        )

    def summary(self, hours: int = 24) -> Dict[str, Any]:
        """Counts of recent events by type and entity."""
        events = self.recent(hours=hours, limit=1000)
        by_type: Dict[str, int] = {}
        by_entity: Dict[str, int] = {}
        for event in events:
            by_type[event['event_type']] = by_type.get(event['event_type'], 0) + 1
            by_entity[event['entity_type']] = by_entity.get(event['entity_type'], 0) + 1
        return {
            'period_hours': hours,
            'total_events': len(events),
            'event_type_counts': by_type,
            'entity_type_counts': by_entity,
        }

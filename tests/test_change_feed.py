"""
Tests for the change feed and its subscriptions
"""
import pytest
from services.change_feed import ChangeEvent, ChangeFeed


@pytest.mark.unit
class TestChangeEvent:
    """Tests for change events"""

    def test_record_is_new_version_or_old_for_deletes(self):
        """Test record/record_id pick the relevant row version"""
        update = ChangeEvent('leads', 'UPDATE', new={'id': 'a', 'v': 2}, old={'id': 'a', 'v': 1})
        delete = ChangeEvent('leads', 'DELETE', old={'id': 'b'})
        assert update.record['v'] == 2
        assert delete.record_id == 'b'

    def test_unknown_event_type_rejected(self):
        """Test only INSERT, UPDATE and DELETE are accepted"""
        with pytest.raises(ValueError):
            ChangeEvent('leads', 'TRUNCATE')


@pytest.mark.unit
class TestSubscriptions:
    """Tests for subscription lifecycle and queueing"""

    def test_events_queue_until_drained(self, change_feed):
        """Test events are delivered in arrival order on drain"""
        received = []
        subscription = change_feed.subscribe('leads', received.append).start()

        change_feed.emit('leads', 'INSERT', new={'id': '1'})
        change_feed.emit('leads', 'UPDATE', new={'id': '1'})

        assert received == []
        assert subscription.pending() == 2
        assert subscription.drain() == 2
        assert [event.event_type for event in received] == ['INSERT', 'UPDATE']
        assert received[0].sequence < received[1].sequence

    def test_only_subscribed_table_is_delivered(self, change_feed):
        """Test events of other tables are not queued"""
        subscription = change_feed.subscribe('leads', lambda event: None).start()
        change_feed.emit('offers', 'INSERT', new={'id': '1'})
        assert subscription.pending() == 0

    def test_not_started_or_stopped_subscription_gets_nothing(self, change_feed):
        """Test inactive subscriptions queue nothing and stop clears the queue"""
        subscription = change_feed.subscribe('leads', lambda event: None)
        assert change_feed.emit('leads', 'INSERT', new={'id': '1'}) is not None
        assert subscription.pending() == 0

        subscription.start()
        change_feed.emit('leads', 'INSERT', new={'id': '2'})
        subscription.stop()
        assert subscription.pending() == 0
        assert change_feed.subscription_count('leads') == 0

    def test_full_queue_drops_oldest(self):
        """Test a bounded queue keeps the newest events"""
        feed = ChangeFeed(default_queue_size=2)
        received = []
        subscription = feed.subscribe('leads', received.append).start()

        for index in range(3):
            feed.emit('leads', 'INSERT', new={'id': str(index)})

        assert subscription.dropped == 1
        subscription.drain()
        assert [event.record_id for event in received] == ['1', '2']

    def test_failing_handler_does_not_stop_drain(self, change_feed):
        """Test a handler error is logged and the next event is delivered"""
        received = []

        def handler(event):
            if event.record_id == 'bad':
                raise RuntimeError("boom")
            received.append(event)

        subscription = change_feed.subscribe('leads', handler).start()
        change_feed.emit('leads', 'INSERT', new={'id': 'bad'})
        change_feed.emit('leads', 'INSERT', new={'id': 'good'})

        assert subscription.drain() == 2
        assert [event.record_id for event in received] == ['good']

    def test_context_manager_lifecycle(self, change_feed):
        """Test the subscription is active only inside the with block"""
        with change_feed.subscribe('leads', lambda event: None) as subscription:
            assert subscription.is_active
            assert change_feed.subscription_count() == 1
        assert not subscription.is_active
        assert change_feed.subscription_count() == 0

    def test_invalid_queue_size(self, change_feed):
        """Test a queue must hold at least one event"""
        from services.change_feed import Subscription
        with pytest.raises(ValueError):
            Subscription(change_feed, 'leads', lambda event: None, maxsize=0)

"""
Tests for production and service work orders
"""
import pytest
from services.event_logger import ActivityLogger
from services.orders import OrderService
from services.work_orders import ServiceOrderService, WorkOrderService
from validators import ValidationError


@pytest.fixture
def work_orders(make_service):
    return make_service(WorkOrderService)


@pytest.fixture
def service_orders(make_service):
    return make_service(ServiceOrderService)


@pytest.fixture
def odpel_order(make_service, customer, bom):
    return make_service(OrderService).create_order({
        'customer_id': customer['id'], 'order_type': 'odpel', 'bom_id': bom['id'],
    })


@pytest.mark.unit
class TestWorkOrderBoard:
    """Tests for the production board and legacy statuses"""

    def test_legacy_statuses_are_grouped_in_canonical_columns(self, work_orders, data_access):
        """Test planned / completato / in_lavorazione cards land on the canonical columns"""
        data_access.insert('work_orders', [
            {'title': 'A', 'status': 'planned'},
            {'title': 'B', 'status': 'completato'},
            {'title': 'C', 'status': 'in_lavorazione'},
            {'title': 'D', 'status': 'testing'},
        ])
        board = work_orders.board_view()
        assert [wo['title'] for wo in board['to_do']] == ['A']
        assert [wo['title'] for wo in board['completed']] == ['B']
        assert [wo['title'] for wo in board['in_progress']] == ['C']
        assert [wo['title'] for wo in board['testing']] == ['D']

    def test_status_counts_normalize(self, work_orders, data_access):
        """Test counts are per canonical status"""
        data_access.insert('work_orders', [
            {'title': 'A', 'status': 'planned'},
            {'title': 'B', 'status': 'to_do'},
            {'title': 'C', 'status': 'in_corso'},
            {'title': 'D', 'status': 'completed', 'archived': True},
        ])
        assert work_orders.status_counts() == {'to_do': 2, 'in_progress': 1, 'testing': 0, 'completed': 0}
        assert work_orders.status_counts(show_archived=True)['completed'] == 1

    def test_list_filters_on_normalized_status(self, work_orders, data_access):
        """Test the status filter matches legacy values"""
        data_access.insert('work_orders', [{'title': 'A', 'status': 'planned'}, {'title': 'B', 'status': 'testing'}])
        assert [wo['title'] for wo in work_orders.list_work_orders(status='to_do')] == ['A']

    def test_same_column_move_does_not_write(self, work_orders, data_access, change_feed):
        """Test a legacy 'planned' card dropped on to_do is not rewritten"""
        work_order = data_access.insert_one('work_orders', {'title': 'A', 'status': 'planned'})
        subscription = change_feed.subscribe('work_orders', lambda event: None).start()

        assert work_orders.move(work_order['id'], 'to_do') is None
        assert subscription.pending() == 0
        assert data_access.get('work_orders', work_order['id'])['status'] == 'planned'

    def test_move_updates_status_and_parent_order(self, work_orders, data_access, odpel_order):
        """Test a move writes the status and re-syncs the sales order"""
        work_order = odpel_order['dependents']['work_order']

        moved = work_orders.move(work_order['id'], 'in_progress')

        assert moved['status'] == 'in_progress'
        assert data_access.get('sales_orders', odpel_order['order']['id'])['status'] == 'in_lavorazione'
        history = ActivityLogger(data_access).history('work_order', work_order['id'])
        assert history[0]['event_type'] == 'STATUS_CHANGED'

    def test_move_to_unknown_column(self, work_orders, data_access):
        """Test unknown columns are rejected"""
        work_order = data_access.insert_one('work_orders', {'title': 'A'})
        with pytest.raises(ValidationError):
            work_orders.move(work_order['id'], 'archived')


@pytest.mark.unit
class TestWorkOrderChanges:
    """Tests for create, update and delete"""

    def test_create_requires_title(self, work_orders):
        """Test a blank title is rejected"""
        with pytest.raises(ValidationError):
            work_orders.create_work_order({'title': '  '})

    def test_create_with_service_order(self, work_orders, bom):
        """Test the optional linked service order points at the new work order"""
        result = work_orders.create_work_order({
            'title': 'Zapper 3000 x2', 'bom_id': bom['id'], 'create_service_order': True, 'location': 'Ercolano',
        })
        work_order = result['work_order']
        assert work_order['status'] == 'to_do'
        assert work_order['number'].startswith('WO-')
        assert result['service_order']['production_work_order_id'] == work_order['id']
        assert result['service_order']['location'] == 'Ercolano'

    def test_create_without_service_order(self, work_orders):
        """Test no service order by default"""
        assert 'service_order' not in work_orders.create_work_order({'title': 'A'})

    def test_update_status_syncs_parent(self, work_orders, data_access, odpel_order):
        """Test completing both dependents completes the sales order"""
        work_order = odpel_order['dependents']['work_order']
        service_order = odpel_order['dependents']['service_order']
        data_access.update_one('service_work_orders', service_order['id'], {'status': 'completed'})

        work_orders.update_work_order(work_order['id'], {'status': 'completed'})

        assert data_access.get('sales_orders', odpel_order['order']['id'])['status'] == 'completato'

    def test_delete_unlinks_service_orders(self, work_orders, data_access, odpel_order):
        """Test the service order survives with no production link"""
        work_order = odpel_order['dependents']['work_order']
        service_order = odpel_order['dependents']['service_order']

        work_orders.delete_work_order(work_order['id'])

        assert data_access.get('work_orders', work_order['id']) is None
        assert data_access.get('service_work_orders', service_order['id'])['production_work_order_id'] is None

    def test_archive(self, work_orders, data_access):
        """Test archived work orders leave the default list"""
        work_order = data_access.insert_one('work_orders', {'title': 'A'})
        work_orders.archive_work_order(work_order['id'])
        assert work_orders.list_work_orders() == []


@pytest.mark.unit
class TestServiceOrders:
    """Tests for service work orders"""

    def test_change_status_accepts_legacy_values(self, service_orders, odpel_order, data_access):
        """Test a legacy status is stored and counted as its canonical value"""
        service_order = odpel_order['dependents']['service_order']
        updated = service_orders.change_status(service_order['id'], 'in_corso')
        assert updated['status'] == 'in_corso'
        assert service_orders.status_counts()['in_progress'] == 1
        assert data_access.get('sales_orders', odpel_order['order']['id'])['status'] == 'in_lavorazione'

    def test_change_status_rejects_unknown(self, service_orders, odpel_order):
        """Test unknown statuses are rejected"""
        with pytest.raises(ValidationError):
            service_orders.change_status(odpel_order['dependents']['service_order']['id'], 'testing')

    def test_change_to_same_status_is_noop(self, service_orders, odpel_order, change_feed):
        """Test setting the current status writes nothing"""
        service_order = odpel_order['dependents']['service_order']
        subscription = change_feed.subscribe('service_work_orders', lambda event: None).start()
        service_orders.change_status(service_order['id'], 'to_do')
        assert subscription.pending() == 0

    def test_create_and_search(self, service_orders, customer):
        """Test creation and search over location and customer name"""
        created = service_orders.create_service_order({
            'title': 'Manutenzione', 'customer_id': customer['id'], 'location': 'Torre del Greco',
        })
        assert created['number'].startswith('SWO-')
        assert [o['id'] for o in service_orders.list_service_orders(search='torre')] == [created['id']]
        assert [o['id'] for o in service_orders.list_service_orders(search='rossi')] == [created['id']]

    def test_board_move(self, service_orders, customer):
        """Test moving a service card across columns"""
        created = service_orders.create_service_order({'title': 'Manutenzione', 'customer_id': customer['id']})
        assert service_orders.move(created['id'], 'completed')['status'] == 'completed'
        assert service_orders.move(created['id'], 'completed') is None

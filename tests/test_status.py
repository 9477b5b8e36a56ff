"""
Tests for the status vocabulary and derived-status rules
"""
import pytest
from services.status import (
    calculate_order_status,
    normalize_status,
    serial_status_for_result,
    status_counts,
    WORK_ORDER_STATUSES
)


@pytest.mark.unit
class TestNormalizeStatus:
    """Tests for legacy work order status normalization"""

    @pytest.mark.parametrize('legacy,canonical', [
        ('planned', 'to_do'),
        ('completato', 'completed'),
        ('in_lavorazione', 'in_progress'),
        ('in_corso', 'in_progress'),
    ])
    def test_legacy_values_map_to_canonical(self, legacy, canonical):
        """Test every legacy value maps to its board column"""
        assert normalize_status(legacy) == canonical

    def test_canonical_and_unknown_values_pass_through(self):
        """Test canonical, unknown and empty values are returned unchanged"""
        assert normalize_status('testing') == 'testing'
        assert normalize_status('sospeso') == 'sospeso'
        assert normalize_status(None) is None


@pytest.mark.unit
class TestCalculateOrderStatus:
    """Tests for the sales order status derived from linked orders"""

    def test_no_linked_orders_is_commissioned(self):
        """Test an order without dependents stays commissioned"""
        assert calculate_order_status() == 'commissionato'

    def test_all_completed_is_completed(self):
        """Test every linked order completed (legacy spellings included) completes the order"""
        status = calculate_order_status(
            work_orders=[{'status': 'completed'}, {'status': 'completato'}],
            shipping_orders=[{'status': 'consegnato'}],
        )
        assert status == 'completato'

    def test_any_in_progress_is_in_progress(self):
        """Test one started order moves the sales order to in progress"""
        status = calculate_order_status(
            work_orders=[{'status': 'to_do'}],
            service_orders=[{'status': 'in_lavorazione'}],
        )
        assert status == 'in_lavorazione'

    def test_testing_counts_as_in_progress(self):
        """Test a work order in testing is in progress"""
        assert calculate_order_status(work_orders=[{'status': 'testing'}]) == 'in_lavorazione'

    def test_partly_completed_is_in_progress(self):
        """Test one completed and one waiting order give in progress"""
        status = calculate_order_status(
            work_orders=[{'status': 'completed'}],
            service_orders=[{'status': 'to_do'}],
        )
        assert status == 'in_lavorazione'

    def test_all_waiting_is_commissioned(self):
        """Test orders not yet started keep the sales order commissioned"""
        status = calculate_order_status(
            work_orders=[{'status': 'planned'}],
            shipping_orders=[{'status': 'da_preparare'}],
        )
        assert status == 'commissionato'


@pytest.mark.unit
class TestSerialStatus:
    """Tests for the serial status set by a test result"""

    def test_results(self):
        """Test PASS approves, FAIL rejects and anything else keeps testing"""
        assert serial_status_for_result('PASS') == 'approved'
        assert serial_status_for_result(' pass ') == 'approved'
        assert serial_status_for_result('FAIL') == 'rejected'
        assert serial_status_for_result('RETEST') == 'in_test'
        assert serial_status_for_result(None) == 'in_test'


@pytest.mark.unit
class TestStatusCounts:
    """Tests for per-status counting"""

    def test_every_listed_status_is_present(self):
        """Test statuses without records are counted as zero"""
        counts = status_counts([{'status': 'to_do'}], WORK_ORDER_STATUSES)
        assert counts == {'to_do': 1, 'in_progress': 0, 'testing': 0, 'completed': 0}

    def test_normalized_counting(self):
        """Test legacy values are counted in their canonical column"""
        records = [{'status': 'planned'}, {'status': 'to_do'}, {'status': 'completato'}]
        counts = status_counts(records, WORK_ORDER_STATUSES, normalize=True)
        assert counts['to_do'] == 2
        assert counts['completed'] == 1
        assert 'planned' not in counts

    def test_unknown_values_are_counted(self):
        """Test values outside the list still appear"""
        counts = status_counts([{'status': 'sospeso'}], WORK_ORDER_STATUSES)
        assert counts['sospeso'] == 1

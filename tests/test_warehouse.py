"""
Tests for the warehouse pages: shipping orders, stock movements and picking lists
"""
import pytest
from datetime import date, timedelta
from services.movements import MovementService, string_similarity
from services.orders import OrderService
from services.picking import PickingService, is_overdue, item_status_for_quantity
from services.shipping import ShippingService, item_total
from validators import ValidationError


@pytest.fixture
def shipping(make_service):
    return make_service(ShippingService)


@pytest.fixture
def movements(make_service):
    return make_service(MovementService)


@pytest.fixture
def picking(make_service):
    return make_service(PickingService)


@pytest.mark.unit
class TestShipping:
    """Tests for shipping orders"""

    def test_create_with_items(self, shipping, customer):
        """Test items get their line totals"""
        order = shipping.create_shipping_order({
            'customer_id': customer['id'],
            'shipping_address': 'Via Toledo 10, Napoli',
            'items': [{'quantity': 2, 'unit_price': 12.5}, {'quantity': 3, 'unit_price': 0.1}],
        })
        assert order['status'] == 'da_preparare'
        assert [item['total_price'] for item in order['items']] == [25.0, 0.3]

    def test_change_status_stamps_date(self, shipping, customer):
        """Test shipping stamps shipped_date"""
        order = shipping.create_shipping_order({'customer_id': customer['id']})
        shipped = shipping.change_status(order['id'], 'spedito')
        assert shipped['status'] == 'spedito'
        assert shipped['shipped_date'] is not None
        assert shipped['delivered_date'] is None

    def test_change_status_rejects_unknown(self, shipping, customer):
        """Test unknown statuses are rejected"""
        order = shipping.create_shipping_order({'customer_id': customer['id']})
        with pytest.raises(ValidationError):
            shipping.change_status(order['id'], 'perso')

    def test_delivery_completes_sales_order(self, shipping, make_service, data_access, customer):
        """Test delivering the only dependent completes the sales order"""
        created = make_service(OrderService).create_order({'customer_id': customer['id'], 'order_type': 'ods'})
        shipping_order = created['dependents']['shipping_order']

        shipping.change_status(shipping_order['id'], 'consegnato')

        assert data_access.get('sales_orders', created['order']['id'])['status'] == 'completato'

    def test_add_and_remove_items(self, shipping, customer):
        """Test item management on an existing order"""
        order = shipping.create_shipping_order({'customer_id': customer['id']})
        item = shipping.add_item(order['id'], {'quantity': 4, 'unit_price': 2.5})
        assert item['total_price'] == 10.0
        assert shipping.remove_item(order['id'], item['id'])['id'] == item['id']
        with pytest.raises(ValidationError):
            shipping.remove_item(order['id'], item['id'])

    def test_negative_quantity_rejected(self, shipping, customer):
        """Test item quantities cannot be negative"""
        order = shipping.create_shipping_order({'customer_id': customer['id']})
        with pytest.raises(ValidationError):
            shipping.add_item(order['id'], {'quantity': -1})

    def test_update_cannot_change_status(self, shipping, customer):
        """Test status only changes through change_status"""
        order = shipping.create_shipping_order({'customer_id': customer['id']})
        updated = shipping.update_shipping_order(order['id'], {'status': 'spedito', 'notes': 'Fragile'})
        assert updated['status'] == 'da_preparare'
        assert updated['notes'] == 'Fragile'

    def test_item_total(self):
        """Test rounding of line totals"""
        assert item_total(3, 0.1) == 0.3
        assert item_total(None, 5) == 0


@pytest.mark.unit
class TestSimilarity:
    """Tests for material name similarity"""

    def test_similarity_uses_edit_distance(self):
        """Test unrelated names score 1 - edits / longest length"""
        assert string_similarity('kitten', 'sitting') == pytest.approx(1 - 3 / 7)
        assert string_similarity('Pannello', 'Staffa') < 0.6

    def test_string_similarity(self):
        """Test identical, contained and different names"""
        assert string_similarity('Cavo 6mm', ' cavo 6MM ') == 1.0
        assert string_similarity('Cavo', 'Cavo 6mm') == 0.5
        assert string_similarity('', 'Cavo') == 0.0
        assert string_similarity('Inverter 3kW', 'Inverter 5kW') == pytest.approx(1 - 1 / 12)


@pytest.mark.unit
class TestMovements:
    """Tests for stock movements and their confirmation"""

    def test_create_requires_type_description_and_quantity(self, movements):
        """Test manual movements are validated"""
        with pytest.raises(ValidationError):
            movements.create_movement({'movement_type': 'trasferimento', 'item_description': 'X', 'quantity': 1})
        with pytest.raises(ValidationError):
            movements.create_movement({'movement_type': 'carico', 'item_description': ' ', 'quantity': 1})
        with pytest.raises(ValidationError):
            movements.create_movement({'movement_type': 'carico', 'item_description': 'X', 'quantity': -2})

    def test_confirm_creates_material(self, movements, data_access):
        """Test confirming a load of an unknown item creates the material with that stock"""
        movement = movements.create_movement({'movement_type': 'carico', 'item_description': 'Pannello 400W',
                                              'quantity': 10})
        result = movements.confirm_movement(movement['id'], confirmed_by='magazzino')

        assert result['material_created'] is True
        assert result['material']['current_stock'] == 10
        assert result['material']['code'] == 'MAT-0001'
        assert result['movement']['status'] == 'confermato'
        assert result['movement']['material_id'] == result['material']['id']

    def test_confirm_adjusts_existing_material(self, movements, data_access):
        """Test an unload of a known item lowers its stock, ignoring case and spaces"""
        material = data_access.insert_one('materials', {'name': 'Pannello 400W', 'current_stock': 25})
        movement = movements.create_movement({'movement_type': 'scarico', 'item_description': ' pannello 400w ',
                                              'quantity': 5})

        result = movements.confirm_movement(movement['id'])

        assert result['material_created'] is False
        assert data_access.get('materials', material['id'])['current_stock'] == 20

    def test_confirm_twice_rejected(self, movements):
        """Test only proposed movements can be confirmed"""
        movement = movements.create_movement({'movement_type': 'carico', 'item_description': 'Cavo', 'quantity': 1})
        movements.confirm_movement(movement['id'])
        with pytest.raises(ValidationError):
            movements.confirm_movement(movement['id'])
        with pytest.raises(ValidationError):
            movements.cancel_movement(movement['id'])

    def test_similar_materials(self, movements, data_access):
        """Test similar active materials are listed most similar first"""
        data_access.insert('materials', [
            {'name': 'Inverter 5kW'},
            {'name': 'Inverter 3kW'},
            {'name': 'Staffa tetto'},
            {'name': 'Inverter 3kW vecchio', 'active': False},
        ])
        matches = movements.similar_materials('Inverter 3kW')
        assert [m['name'] for m in matches] == ['Inverter 3kW', 'Inverter 5kW']
        assert matches[0]['similarity'] == 1.0
        assert movements.similar_materials('Inverter 3kW', threshold=0.95)[0]['name'] == 'Inverter 3kW'

    def test_resolve_use_existing(self, movements, data_access):
        """Test use_existing renames the movement and loads the material"""
        material = data_access.insert_one('materials', {'name': 'Inverter 3kW', 'current_stock': 1})
        movement = movements.create_movement({'movement_type': 'carico', 'item_description': 'Inverter 3 kW',
                                              'quantity': 2})

        result = movements.resolve_similar(movement['id'], 'use_existing', material['id'])

        assert result['movement']['item_description'] == 'Inverter 3kW'
        assert data_access.get('materials', material['id'])['current_stock'] == 3

    def test_resolve_update_existing(self, movements, data_access):
        """Test update_existing renames the material"""
        material = data_access.insert_one('materials', {'name': 'Inverter 3kW'})
        movement = movements.create_movement({'movement_type': 'carico', 'item_description': 'Inverter 3kW Huawei',
                                              'quantity': 1})
        movements.resolve_similar(movement['id'], 'update_existing', material['id'])
        assert data_access.get('materials', material['id'])['name'] == 'Inverter 3kW Huawei'

    def test_resolve_unknown_action(self, movements):
        """Test unknown actions are rejected"""
        with pytest.raises(ValidationError):
            movements.resolve_similar('any', 'merge')

    def test_cancel_exclude_and_stats(self, movements):
        """Test status changes and counts"""
        first = movements.create_movement({'movement_type': 'carico', 'item_description': 'A', 'quantity': 1})
        second = movements.create_movement({'movement_type': 'scarico', 'item_description': 'B', 'quantity': 1})
        assert movements.cancel_movement(first['id'])['status'] == 'annullato'
        assert movements.exclude_movement(second['id'])['status'] == 'escluso'
        stats = movements.stats()
        assert stats['by_status']['annullato'] == 1
        assert stats['by_type'] == {'carico': 1, 'scarico': 1}


@pytest.mark.unit
class TestPicking:
    """Tests for picking lists"""

    def _create(self, picking, **overrides):
        data = {
            'order_reference': 'SO-2025-0001',
            'customer_name': 'Rossi Impianti',
            'priority': 'high',
            'items': [
                {'item_code': 'PAN-400', 'item_name': 'Pannello 400W', 'quantity_requested': 4},
                {'item_code': 'CAV-6', 'item_name': 'Cavo 6mm', 'quantity_requested': 50},
            ],
        }
        data.update(overrides)
        return picking.create_pick_list(data)

    def test_create(self, picking):
        """Test a new list starts pending with its item count"""
        pick_list = self._create(picking)
        assert pick_list['pick_list_number'].startswith('PL-')
        assert pick_list['status'] == 'pending'
        assert pick_list['total_items'] == 2
        assert all(item['status'] == 'pending' for item in pick_list['items'])

    def test_invalid_priority(self, picking):
        """Test unknown priorities are rejected"""
        with pytest.raises(ValidationError):
            self._create(picking, priority='asap')

    def test_progress_and_completion(self, picking):
        """Test partial, full and unavailable picks drive progress and status"""
        pick_list = self._create(picking)
        panels, cable = pick_list['items']

        result = picking.record_pick(pick_list['id'], panels['id'], 2, picked_by='Gennaro')
        assert result['item']['status'] == 'partial'
        assert result['pick_list']['status'] == 'in_progress'
        assert result['pick_list']['progress'] == 0

        result = picking.record_pick(pick_list['id'], panels['id'], 4)
        assert result['item']['status'] == 'picked'
        assert result['pick_list']['progress'] == 50

        result = picking.mark_unavailable(pick_list['id'], cable['id'], notes='Esaurito')
        assert result['pick_list']['status'] == 'completed'
        assert result['pick_list']['completed_date'] is not None

    def test_reset_pick_reopens_list(self, picking):
        """Test a completed list goes back to pending when its only pick is reset"""
        pick_list = self._create(picking)
        panels, cable = pick_list['items']
        picking.record_pick(pick_list['id'], panels['id'], 4)
        picking.mark_unavailable(pick_list['id'], cable['id'])

        result = picking.record_pick(pick_list['id'], panels['id'], 0)

        assert result['item']['status'] == 'pending'
        assert result['pick_list']['status'] == 'pending'
        assert result['pick_list']['completed_date'] is None

    def test_item_must_belong_to_list(self, picking):
        """Test picks on items of other lists are rejected"""
        first = self._create(picking)
        second = self._create(picking)
        with pytest.raises(ValidationError):
            picking.record_pick(first['id'], second['items'][0]['id'], 1)

    def test_cancel(self, picking):
        """Test completed lists cannot be cancelled"""
        pick_list = self._create(picking, items=[{'item_name': 'X', 'quantity_requested': 1}])
        picking.record_pick(pick_list['id'], pick_list['items'][0]['id'], 1)
        with pytest.raises(ValidationError):
            picking.cancel_pick_list(pick_list['id'])

        other = self._create(picking)
        assert picking.cancel_pick_list(other['id'])['status'] == 'cancelled'

    def test_overdue(self, picking):
        """Test overdue lists are flagged"""
        yesterday = date.today() - timedelta(days=1)
        pick_list = self._create(picking, due_date=yesterday.isoformat())
        assert picking.get_pick_list(pick_list['id'])['overdue'] is True
        assert picking.stats()['overdue'] == 1
        assert is_overdue({'due_date': yesterday.isoformat(), 'status': 'completed'}) is False

    def test_item_status_for_quantity(self):
        """Test the item status for a picked quantity"""
        assert item_status_for_quantity(0, 5) == 'pending'
        assert item_status_for_quantity(3, 5) == 'partial'
        assert item_status_for_quantity(5, 5) == 'picked'

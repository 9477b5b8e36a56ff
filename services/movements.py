"""
Stock movements page - proposed loads / unloads and their confirmation.

Confirming a movement links it to a material: an active material with the
same name (case and surrounding whitespace ignored) has its stock adjusted,
otherwise a new material is created. Before confirming, the page can look
for similarly named materials to avoid duplicates.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from rapidfuzz.distance import Levenshtein

from services.base import PageService
from services.status import MOVEMENT_STATUSES, MOVEMENT_TYPES, status_counts
from services.views import search_filter
from validators import ValidationError, raise_if_invalid, validate_number_range

logger = logging.getLogger(__name__)

MOVEMENT_SEARCH_FIELDS = ['item_description', 'notes', 'warehouse']
SIMILAR_ACTIONS = ('use_existing', 'update_existing', 'create_new')


def string_similarity(str1: Optional[str], str2: Optional[str]) -> float:
    """
    Similarity between 0 and 1 (1 = identical), case-insensitive.

    When one string contains the other the ratio of their lengths is used,
    otherwise 1 - edit distance / longest length.
    """
    s1 = (str1 or '').strip().lower()
    s2 = (str2 or '').strip().lower()
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    if s1 in s2 or s2 in s1:
        return min(len(s1), len(s2)) / max(len(s1), len(s2))
    return 1 - Levenshtein.distance(s1, s2) / max(len(s1), len(s2))


def normalize_name(name: Optional[str]) -> str:
    return (name or '').strip().lower()


class MovementService(PageService):
    """Stock movement management."""

    table = 'stock_movements'
    entity_type = 'stock_movement'

    def list_movements(self, movement_type: Optional[str] = None, status: Optional[str] = None,
                       search: Optional[str] = None) -> List[Dict]:
        filters = {}
        if movement_type and movement_type != 'all':
            filters['movement_type'] = movement_type
        if status and status != 'all':
            filters['status'] = status
        movements = self.data_access.select(self.table, filters, order_by=['-movement_date', '-created_at'],
                                            joins=['material', 'supplier', 'customer'])
        return search_filter(movements, search, MOVEMENT_SEARCH_FIELDS)

    def create_movement(self, data: Dict) -> Dict:
        """Record a manual movement proposal."""
        if data.get('movement_type') not in MOVEMENT_TYPES:
            raise ValidationError(f"Movement type must be one of: {', '.join(MOVEMENT_TYPES)}", 'movement_type')
        if not (data.get('item_description') or '').strip():
            raise ValidationError("Item description is required", 'item_description')
        raise_if_invalid(validate_number_range(data.get('quantity'), min_value=0), 'quantity')

        payload = self._payload(data)
        payload.update({'status': 'proposto', 'origin_type': data.get('origin_type') or 'manuale'})
        movement = self.data_access.insert_one(self.table, payload)
        self.activity.log_create(self.entity_type, movement['id'], movement['item_description'])
        return movement

    def _active_materials(self) -> List[Dict]:
        return self.data_access.select('materials', {'active': True}, order_by='name')

    def similar_materials(self, description: str, threshold: float = 0.6) -> List[Dict]:
        """Active materials whose name resembles the description, most similar first."""
        matches = []
        for material in self._active_materials():
            similarity = string_similarity(description, material.get('name'))
            if similarity >= threshold:
                matches.append({
                    'id': material['id'],
                    'code': material.get('code'),
                    'name': material.get('name'),
                    'current_stock': material.get('current_stock'),
                    'similarity': round(similarity, 4),
                })
        matches.sort(key=lambda match: match['similarity'], reverse=True)
        return matches

    def resolve_similar(self, movement_id: str, action: str, material_id: Optional[str] = None) -> Dict:
        """
        Apply the user's choice for a similar material, then confirm.

        use_existing renames the movement to the material's name,
        update_existing renames the material to the movement's description,
        create_new confirms as is.
        """
        if action not in SIMILAR_ACTIONS:
            raise ValidationError(f"Unknown action: {action}", 'action')
        movement = self._get(movement_id)

        if action != 'create_new':
            material = self._get(material_id, table='materials')
            if action == 'use_existing':
                self.data_access.update_one(self.table, movement_id, {'item_description': material['name']})
            else:
                self.data_access.update_one('materials', material['id'], {'name': movement['item_description']})
        return self.confirm_movement(movement_id)

    def confirm_movement(self, movement_id: str, confirmed_by: Optional[str] = None) -> Dict:
        """
        Confirm a proposed movement and apply it to the material stock.

        Returns:
            Dict with the confirmed movement, the material and whether it was created
        """
        movement = self._get(movement_id)
        if movement.get('status') != 'proposto':
            raise ValidationError(f"Only proposed movements can be confirmed (status: {movement.get('status')})",
                                  'status')

        quantity = float(movement.get('quantity') or 0)
        is_load = movement.get('movement_type') == 'carico'
        wanted = normalize_name(movement.get('item_description'))

        with self.data_access.transaction():
            match = next((m for m in self._active_materials() if normalize_name(m.get('name')) == wanted), None)
            if match:
                change = quantity if is_load else -quantity
                material = self.data_access.update_one('materials', match['id'], {
                    'current_stock': float(match.get('current_stock') or 0) + change,
                })
            else:
                material = self.data_access.insert_one('materials', {
                    'name': movement['item_description'],
                    'material_type': 'component',
                    'unit': movement.get('unit') or 'pcs',
                    'supplier_id': movement.get('supplier_id'),
                    'current_stock': quantity if is_load else 0,
                    'active': True,
                })
            confirmed = self.data_access.update_one(self.table, movement_id, {
                'status': 'confermato',
                'confirmed_at': datetime.utcnow(),
                'confirmed_by': confirmed_by,
                'material_id': material['id'],
            })

        logger.info(f"Movement {movement_id} confirmed on material {material.get('code')}")
        self.activity.log_status_change(self.entity_type, movement_id, 'proposto', 'confermato')
        return {'movement': confirmed, 'material': material, 'material_created': match is None}

    def _set_status(self, movement_id: str, status: str) -> Dict:
        movement = self._get(movement_id)
        if movement.get('status') == 'confermato':
            raise ValidationError("A confirmed movement cannot be changed", 'status')
        updated = self.data_access.update_one(self.table, movement_id, {'status': status})
        self.activity.log_status_change(self.entity_type, movement_id, movement.get('status'), status)
        return updated

    def cancel_movement(self, movement_id: str) -> Dict:
        return self._set_status(movement_id, 'annullato')

    def exclude_movement(self, movement_id: str) -> Dict:
        return self._set_status(movement_id, 'escluso')

    def stats(self) -> Dict:
        movements = self.data_access.select(self.table)
        return {
            'total': len(movements),
            'by_status': status_counts(movements, MOVEMENT_STATUSES),
            'by_type': status_counts(movements, MOVEMENT_TYPES, key='movement_type'),
        }

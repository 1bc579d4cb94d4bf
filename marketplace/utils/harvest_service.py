"""
HarvestService owns the harvest market lifecycle.

Reservation and sale are dedicated operations because they carry the
buyer and the sale transaction with them; every other status change goes
through ``update_status`` and the transition table.
"""

import logging

from django.db.models import ProtectedError

from ..constants import MarketStatus
from ..exceptions import OperationForbidden, StateConflict, ValidationFailed, translate_database_errors
from ..state_machines import (
    HARVEST_PROTECTED_FIELDS,
    HARVEST_SELLABLE,
    HARVEST_TRANSITIONS,
    check_transition,
    harvest_can_be_sold,
    harvest_holds_buyer,
    harvest_is_available,
)
from .service_base import StoreBackedService, parse_amount, reject_fields, require_fields

logger = logging.getLogger(__name__)

STATUS_COUPLED_FIELDS = ('market_status', 'buyer_id', 'transaction_id')
EDITABLE_FIELDS = (
    'farmer_id', 'crop_type', 'variety', 'quantity', 'unit_of_measure', 'quality_grade',
    'harvest_date', 'storage_location', 'expected_price', 'blockchain_hash',
)


def _same_id(left, right):
    return left is not None and right is not None and str(left) == str(right)


class HarvestService(StoreBackedService):
    entity = 'Harvest'

    def get_harvest(self, harvest_id):
        return self._get(harvest_id)

    @translate_database_errors('[HARVEST_SERVICE]')
    def create_harvest(self, **fields):
        require_fields(fields, ('farmer_id', 'crop_type', 'quantity', 'harvest_date', 'expected_price'), 'Harvest')
        unknown = sorted(set(fields) - set(EDITABLE_FIELDS) - set(STATUS_COUPLED_FIELDS))
        if unknown:
            raise ValidationFailed(f"Unknown harvest fields: {', '.join(unknown)}", details={'fields': unknown})

        fields['quantity'] = parse_amount(fields['quantity'], 'quantity', allow_zero=True)
        fields['expected_price'] = parse_amount(fields['expected_price'], 'expected_price', allow_zero=True)

        status = fields.get('market_status') or MarketStatus.AVAILABLE
        if status not in MarketStatus.values:
            raise ValidationFailed(f"Unknown market status: {status}")
        if status == MarketStatus.SOLD and not fields.get('buyer_id'):
            raise ValidationFailed('A harvest created as SOLD requires a buyer')
        if not harvest_holds_buyer(status) and (fields.get('buyer_id') or fields.get('transaction_id')):
            raise ValidationFailed(f"A {status} harvest cannot carry a buyer or transaction")
        fields['market_status'] = status

        harvest = self.store.create(**fields)
        logger.info(f"[HARVEST_SERVICE] Created harvest {harvest.id} for farmer {harvest.farmer_id}")
        return harvest

    @translate_database_errors('[HARVEST_SERVICE]')
    def reserve(self, harvest_id, buyer_id=None):
        harvest = self._get(harvest_id)
        if not harvest_is_available(harvest.market_status):
            raise StateConflict(
                f"Harvest cannot be reserved (current status: {harvest.market_status})"
            )

        affected, rows = self.store.update_status(
            harvest_id,
            MarketStatus.RESERVED,
            extra={'buyer_id': buyer_id},
            expected_status=MarketStatus.AVAILABLE,
        )
        reserved = self._single_row(affected, rows, harvest_id)
        logger.info(f"[HARVEST_SERVICE] Reserved harvest {harvest_id} for buyer {buyer_id}")
        return reserved

    @translate_database_errors('[HARVEST_SERVICE]')
    def sell(self, harvest_id, buyer_id, transaction_id=None):
        """
        Mark the harvest SOLD to ``buyer_id``.

        Repeating a sale that already went through with the same
        ``transaction_id`` returns the harvest unchanged.
        """
        harvest = self._get(harvest_id)
        if harvest.market_status == MarketStatus.SOLD and _same_id(harvest.transaction_id, transaction_id):
            logger.info(f"[HARVEST_SERVICE] Harvest {harvest_id} already sold under {transaction_id}")
            return harvest
        if not harvest_can_be_sold(harvest.market_status):
            raise StateConflict(
                f"Harvest is not available for sale (current status: {harvest.market_status})"
            )
        if not buyer_id:
            raise ValidationFailed('Buyer ID is required to sell a harvest')

        affected, rows = self.store.update_status(
            harvest_id,
            MarketStatus.SOLD,
            extra={'buyer_id': buyer_id, 'transaction_id': transaction_id},
            expected_status=tuple(HARVEST_SELLABLE),
        )
        if not affected:
            current = self.store.find_by_id(harvest_id)
            if (current is not None and current.market_status == MarketStatus.SOLD
                    and _same_id(current.transaction_id, transaction_id)):
                return current
        sold = self._single_row(affected, rows, harvest_id, 'Harvest was sold or withdrawn concurrently')
        logger.info(f"[HARVEST_SERVICE] Sold harvest {harvest_id} to buyer {buyer_id} (transaction {transaction_id})")
        return sold

    @translate_database_errors('[HARVEST_SERVICE]')
    def release(self, harvest_id):
        """Return a reserved harvest to the market."""
        harvest = self._get(harvest_id)
        if harvest.market_status != MarketStatus.RESERVED:
            raise StateConflict(f"Only a reserved harvest can be released (current status: {harvest.market_status})")

        affected, rows = self.store.update_status(
            harvest_id,
            MarketStatus.AVAILABLE,
            extra={'buyer_id': None, 'transaction_id': None},
            expected_status=MarketStatus.RESERVED,
        )
        released = self._single_row(affected, rows, harvest_id)
        logger.info(f"[HARVEST_SERVICE] Released reservation on harvest {harvest_id}")
        return released

    @translate_database_errors('[HARVEST_SERVICE]')
    def update_status(self, harvest_id, status):
        if status not in MarketStatus.values:
            raise ValidationFailed(f"Unknown market status: {status}")
        if status == MarketStatus.RESERVED:
            raise ValidationFailed('Use the reserve operation to reserve a harvest')
        if status == MarketStatus.SOLD:
            raise ValidationFailed('Use the sell operation to sell a harvest')

        harvest = self._get(harvest_id)
        check_transition(HARVEST_TRANSITIONS, harvest.market_status, status, entity='Harvest')

        extra = {}
        if not harvest_holds_buyer(status):
            extra = {'buyer_id': None, 'transaction_id': None}
        affected, rows = self.store.update_status(
            harvest_id, status, extra=extra, expected_status=harvest.market_status,
        )
        updated = self._single_row(affected, rows, harvest_id)
        logger.info(f"[HARVEST_SERVICE] Harvest {harvest_id}: {harvest.market_status} -> {status}")
        return updated

    @translate_database_errors('[HARVEST_SERVICE]')
    def update_harvest(self, harvest_id, fields):
        harvest = self._get(harvest_id)
        fields = dict(fields)
        reject_fields(fields, STATUS_COUPLED_FIELDS,
                      'Market status, buyer and transaction change only through reserve, sell, release or status')
        unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationFailed(f"Unknown harvest fields: {', '.join(unknown)}", details={'fields': unknown})

        if harvest.market_status == MarketStatus.SOLD:
            locked = sorted(set(fields) & set(HARVEST_PROTECTED_FIELDS))
            if locked:
                raise OperationForbidden(
                    f"Cannot modify {', '.join(locked)} of a sold harvest",
                    details={'fields': locked},
                )

        if 'quantity' in fields:
            fields['quantity'] = parse_amount(fields['quantity'], 'quantity', allow_zero=True)
        if 'expected_price' in fields:
            fields['expected_price'] = parse_amount(fields['expected_price'], 'expected_price', allow_zero=True)

        affected, rows = self.store.update(harvest_id, fields, expected_status=harvest.market_status)
        return self._single_row(affected, rows, harvest_id)

    @translate_database_errors('[HARVEST_SERVICE]')
    def delete_harvest(self, harvest_id):
        harvest = self._get(harvest_id)
        if harvest.market_status == MarketStatus.SOLD:
            raise OperationForbidden('Cannot delete a harvest that has been sold')
        try:
            deleted = self.store.delete(harvest_id)
        except ProtectedError:
            raise OperationForbidden('Cannot delete a harvest that has tokens issued against it')
        if not deleted:
            raise StateConflict(f"Harvest {harvest_id} could not be deleted")
        logger.info(f"[HARVEST_SERVICE] Deleted harvest {harvest_id}")
        return True

    def list_farmer_harvests(self, farmer_id, filters=None, pagination=None):
        return self.store.find_by_owner(farmer_id, filters, pagination)

    def list_available_harvests(self, filters=None, pagination=None):
        return self.store.find_available(filters, pagination)

    def search_harvests(self, criteria=None, pagination=None):
        return self.store.search(criteria, pagination)

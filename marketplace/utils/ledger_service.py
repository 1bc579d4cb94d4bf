"""
LedgerService is the only writer of Transaction rows.

Lifecycle services call ``record()`` for the value movements their
transitions imply (disbursements, repayments, token issuance and
redemption). ``record_harvest_sale()`` closes the loop with the harvest
lifecycle: the SALE row is written first and the harvest is then sold
against it.
"""

import logging

from django.utils import timezone

from ..conf import get_setting
from ..constants import TransactionStatus, TransactionType
from ..exceptions import OperationForbidden, StateConflict, ValidationFailed, translate_database_errors
from ..state_machines import (
    TRANSACTION_PROTECTED_FIELDS,
    TRANSACTION_TRANSITIONS,
    TRANSACTION_UNDELETABLE,
    check_transition,
)
from .service_base import StoreBackedService, parse_amount, reject_fields, require_fields

logger = logging.getLogger(__name__)

DRAFT_FIELDS = (
    'farmer_id', 'buyer_id', 'harvest_id', 'transaction_type', 'amount', 'currency',
    'payment_method', 'transaction_date', 'status', 'reference', 'notes', 'metadata',
)
EDITABLE_FIELDS = (
    'buyer_id', 'harvest_id', 'amount', 'currency', 'payment_method',
    'transaction_date', 'reference', 'notes', 'metadata',
)


class LedgerService(StoreBackedService):
    """Creates and maintains ledger entries."""

    entity = 'Transaction'

    def __init__(self, transaction_store, harvest_service):
        super().__init__(transaction_store)
        self.harvest_service = harvest_service

    # ── recording ────────────────────────────────────────────────────────────

    @translate_database_errors('[LEDGER]')
    def record(self, draft=None, **fields):
        """
        Persist a transaction draft, filling currency, status and date.

        SALE transactions must reference an existing harvest.
        """
        data = dict(draft or {}, **fields)
        unknown = sorted(set(data) - set(DRAFT_FIELDS))
        if unknown:
            raise ValidationFailed(
                f"Unknown transaction fields: {', '.join(unknown)}",
                details={'fields': unknown},
            )
        require_fields(data, ('farmer_id', 'transaction_type'), 'Transaction')
        if data['transaction_type'] not in TransactionType.values:
            raise ValidationFailed(f"Unknown transaction type: {data['transaction_type']}")

        data['amount'] = parse_amount(data.get('amount'))

        if data['transaction_type'] == TransactionType.SALE and not data.get('harvest_id'):
            raise ValidationFailed('Harvest ID is required for sale transactions')
        if data.get('harvest_id'):
            self.harvest_service.get_harvest(data['harvest_id'])

        if not data.get('currency'):
            data['currency'] = get_setting('DEFAULT_CURRENCY')
        if not data.get('status'):
            data['status'] = TransactionStatus.PENDING
        if not data.get('transaction_date'):
            data['transaction_date'] = timezone.now()
        if data.get('metadata') is None:
            data['metadata'] = {}

        transaction = self.store.create(**data)
        logger.info(
            f"[LEDGER] Recorded {transaction.transaction_type} {transaction.id} "
            f"for farmer {transaction.farmer_id}: {transaction.amount} {transaction.currency}"
        )
        return transaction

    @translate_database_errors('[LEDGER]')
    def record_harvest_sale(self, harvest_id, buyer_id, payment_method, amount, currency=None, notes=None):
        """
        Record a SALE transaction and sell the harvest against it.

        If selling fails after the transaction was written, the transaction
        stays PENDING with no compensating write and the error propagates.
        """
        harvest = self.harvest_service.get_harvest(harvest_id)
        if not buyer_id:
            raise ValidationFailed('Buyer ID is required for a harvest sale')

        transaction = self.record(
            farmer_id=harvest.farmer_id,
            buyer_id=buyer_id,
            harvest_id=harvest.id,
            transaction_type=TransactionType.SALE,
            amount=amount,
            currency=currency,
            payment_method=payment_method,
            status=TransactionStatus.PENDING,
            notes=notes or f"Payment for harvest: {harvest.crop_type}",
            metadata={
                'harvestId': str(harvest.id),
                'cropType': harvest.crop_type,
                'quantity': str(harvest.quantity),
            },
        )

        try:
            sold = self.harvest_service.sell(harvest.id, buyer_id, transaction.id)
        except Exception as e:
            logger.error(
                f"[LEDGER] Sale transaction {transaction.id} left PENDING: "
                f"selling harvest {harvest.id} failed: {str(e)}"
            )
            raise

        transaction.harvest = sold
        return transaction

    # ── queries ──────────────────────────────────────────────────────────────

    def get_transaction(self, transaction_id):
        return self._get(transaction_id)

    def list_farmer_transactions(self, farmer_id, filters=None, pagination=None):
        return self.store.find_by_owner(farmer_id, filters, pagination)

    def list_buyer_transactions(self, buyer_id, filters=None, pagination=None):
        return self.store.find_by_buyer(buyer_id, filters, pagination)

    def list_harvest_transactions(self, harvest_id, pagination=None):
        self.harvest_service.get_harvest(harvest_id)
        return self.store.find_by_harvest(harvest_id, pagination)

    def search(self, criteria=None, pagination=None):
        return self.store.search(criteria, pagination)

    # ── maintenance ──────────────────────────────────────────────────────────

    @translate_database_errors('[LEDGER]')
    def update_transaction(self, transaction_id, fields):
        """Edit descriptive fields; core fields freeze once COMPLETED."""
        transaction = self._get(transaction_id)
        fields = dict(fields)
        reject_fields(fields, ('status',), 'Use the status operation to change a transaction status')
        unknown = sorted(set(fields) - set(EDITABLE_FIELDS) - set(TRANSACTION_PROTECTED_FIELDS))
        if unknown:
            raise ValidationFailed(
                f"Fields cannot be updated: {', '.join(unknown)}",
                details={'fields': unknown},
            )

        if transaction.status == TransactionStatus.COMPLETED:
            locked = sorted(set(fields) & set(TRANSACTION_PROTECTED_FIELDS))
            if locked:
                raise OperationForbidden(
                    f"Cannot modify {', '.join(locked)} of a completed transaction",
                    details={'fields': locked},
                )
        elif set(fields) - set(EDITABLE_FIELDS):
            bad = sorted(set(fields) - set(EDITABLE_FIELDS))
            raise ValidationFailed(f"Fields cannot be updated: {', '.join(bad)}", details={'fields': bad})

        if 'amount' in fields:
            fields['amount'] = parse_amount(fields['amount'])
        if 'harvest_id' in fields:
            if fields['harvest_id']:
                self.harvest_service.get_harvest(fields['harvest_id'])
            elif transaction.transaction_type == TransactionType.SALE:
                raise ValidationFailed('Harvest ID is required for sale transactions')

        affected, rows = self.store.update(transaction_id, fields, expected_status=transaction.status)
        return self._single_row(affected, rows, transaction_id)

    @translate_database_errors('[LEDGER]')
    def update_status(self, transaction_id, status):
        if status not in TransactionStatus.values:
            raise ValidationFailed(f"Unknown transaction status: {status}")
        transaction = self._get(transaction_id)
        check_transition(TRANSACTION_TRANSITIONS, transaction.status, status, entity='Transaction')

        affected, rows = self.store.update_status(transaction_id, status, expected_status=transaction.status)
        updated = self._single_row(affected, rows, transaction_id)
        logger.info(f"[LEDGER] Transaction {transaction_id}: {transaction.status} -> {status}")
        return updated

    @translate_database_errors('[LEDGER]')
    def delete_transaction(self, transaction_id):
        transaction = self._get(transaction_id)
        if transaction.status in TRANSACTION_UNDELETABLE:
            raise OperationForbidden(f"Cannot delete a {transaction.status} transaction")
        if not self.store.delete(transaction_id):
            raise StateConflict(f"Transaction {transaction_id} could not be deleted")
        logger.info(f"[LEDGER] Deleted transaction {transaction_id}")
        return True

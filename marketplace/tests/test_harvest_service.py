from decimal import Decimal
import uuid

from django.test import TestCase
from django.utils import timezone

from marketplace.constants import MarketStatus
from marketplace.exceptions import (
    OperationForbidden,
    ResourceNotFound,
    StateConflict,
    ValidationFailed,
)
from marketplace.models import Harvest, Token
from marketplace.stores import HarvestStore, Pagination
from marketplace.utils import build_services

from .helpers import StaticMintingClient, make_harvest, make_token


class HarvestServiceTests(TestCase):
    def setUp(self):
        self.service = build_services(minting_client=StaticMintingClient()).harvests
        self.buyer_id = uuid.uuid4()

    def test_create_defaults_to_available(self):
        harvest = self.service.create_harvest(
            farmer_id=uuid.uuid4(),
            crop_type='  Sorghum ',
            quantity='150.5',
            harvest_date=timezone.now().date(),
            expected_price='2.10',
        )
        self.assertEqual(harvest.market_status, MarketStatus.AVAILABLE)
        self.assertEqual(harvest.crop_type, 'Sorghum')
        self.assertEqual(harvest.quantity, Decimal('150.50'))
        self.assertEqual(harvest.total_value, Decimal('316.05'))

    def test_create_rejects_buyer_on_available_harvest(self):
        with self.assertRaises(ValidationFailed):
            self.service.create_harvest(
                farmer_id=uuid.uuid4(),
                crop_type='Maize',
                quantity='10',
                harvest_date=timezone.now().date(),
                expected_price='1',
                buyer_id=self.buyer_id,
            )

    def test_get_unknown_harvest(self):
        with self.assertRaises(ResourceNotFound):
            self.service.get_harvest(uuid.uuid4())
        with self.assertRaises(ResourceNotFound):
            self.service.get_harvest('not-a-uuid')

    def test_reserve_and_release(self):
        harvest = make_harvest()
        reserved = self.service.reserve(harvest.id, self.buyer_id)
        self.assertEqual(reserved.market_status, MarketStatus.RESERVED)
        self.assertEqual(reserved.buyer_id, self.buyer_id)

        with self.assertRaises(StateConflict):
            self.service.reserve(harvest.id, uuid.uuid4())

        released = self.service.release(harvest.id)
        self.assertEqual(released.market_status, MarketStatus.AVAILABLE)
        self.assertIsNone(released.buyer_id)

    def test_sell_reserved_harvest(self):
        harvest = make_harvest(market_status=MarketStatus.RESERVED, buyer_id=self.buyer_id)
        transaction_id = uuid.uuid4()
        sold = self.service.sell(harvest.id, self.buyer_id, transaction_id)
        self.assertEqual(sold.market_status, MarketStatus.SOLD)
        self.assertEqual(sold.transaction_id, transaction_id)

    def test_sell_is_idempotent_for_same_transaction(self):
        harvest = make_harvest()
        transaction_id = uuid.uuid4()
        first = self.service.sell(harvest.id, self.buyer_id, transaction_id)
        again = self.service.sell(harvest.id, self.buyer_id, str(transaction_id))
        self.assertEqual(again.market_status, MarketStatus.SOLD)
        self.assertEqual(again.updated_at, first.updated_at)

    def test_sell_twice_with_another_transaction_conflicts(self):
        harvest = make_harvest()
        self.service.sell(harvest.id, self.buyer_id, uuid.uuid4())
        with self.assertRaises(StateConflict):
            self.service.sell(harvest.id, uuid.uuid4(), uuid.uuid4())

    def test_sell_requires_buyer(self):
        harvest = make_harvest()
        with self.assertRaises(ValidationFailed):
            self.service.sell(harvest.id, None, uuid.uuid4())
        harvest.refresh_from_db()
        self.assertEqual(harvest.market_status, MarketStatus.AVAILABLE)

    def test_sold_harvest_cannot_return_to_market(self):
        harvest = make_harvest()
        self.service.sell(harvest.id, self.buyer_id, uuid.uuid4())
        with self.assertRaises(StateConflict):
            self.service.update_status(harvest.id, MarketStatus.AVAILABLE)
        harvest.refresh_from_db()
        self.assertEqual(harvest.market_status, MarketStatus.SOLD)

    def test_update_status_rejects_buyer_states(self):
        harvest = make_harvest()
        with self.assertRaises(ValidationFailed):
            self.service.update_status(harvest.id, MarketStatus.SOLD)
        with self.assertRaises(ValidationFailed):
            self.service.update_status(harvest.id, MarketStatus.RESERVED)
        with self.assertRaises(ValidationFailed):
            self.service.update_status(harvest.id, 'WITHDRAWN')

    def test_cancelling_reservation_clears_buyer(self):
        harvest = make_harvest(market_status=MarketStatus.RESERVED, buyer_id=self.buyer_id)
        cancelled = self.service.update_status(harvest.id, MarketStatus.CANCELLED)
        self.assertEqual(cancelled.market_status, MarketStatus.CANCELLED)
        self.assertIsNone(cancelled.buyer_id)

    def test_sold_harvest_protects_core_fields(self):
        harvest = make_harvest()
        self.service.sell(harvest.id, self.buyer_id, uuid.uuid4())
        with self.assertRaises(OperationForbidden):
            self.service.update_harvest(harvest.id, {'quantity': '99'})
        updated = self.service.update_harvest(harvest.id, {'storage_location': 'Silo 4'})
        self.assertEqual(updated.storage_location, 'Silo 4')

    def test_update_rejects_status_fields(self):
        harvest = make_harvest()
        with self.assertRaises(ValidationFailed):
            self.service.update_harvest(harvest.id, {'market_status': MarketStatus.SOLD})

    def test_delete_sold_harvest_is_forbidden(self):
        harvest = make_harvest()
        self.service.sell(harvest.id, self.buyer_id, uuid.uuid4())
        with self.assertRaises(OperationForbidden):
            self.service.delete_harvest(harvest.id)
        self.assertTrue(Harvest.objects.filter(pk=harvest.id).exists())

    def test_delete_harvest_with_redeemed_token_is_forbidden(self):
        services = build_services(minting_client=StaticMintingClient())
        harvest = make_harvest()
        token = make_token(harvest)
        services.tokens.redeem(token.id, '20')

        with self.assertRaises(OperationForbidden):
            services.harvests.delete_harvest(harvest.id)

        self.assertTrue(Harvest.objects.filter(pk=harvest.id).exists())
        token.refresh_from_db()
        self.assertEqual(token.redemption_amount, Decimal('20.00'))
        self.assertEqual(Token.objects.filter(harvest=harvest).count(), 1)

    def test_delete_available_harvest(self):
        harvest = make_harvest()
        self.assertTrue(self.service.delete_harvest(harvest.id))
        self.assertFalse(Harvest.objects.filter(pk=harvest.id).exists())


class HarvestStoreTests(TestCase):
    def setUp(self):
        self.store = HarvestStore()
        self.farmer_id = uuid.uuid4()
        make_harvest(farmer_id=self.farmer_id, crop_type='Maize', quantity=Decimal('10'))
        make_harvest(farmer_id=self.farmer_id, crop_type='Beans', quantity=Decimal('30'))
        make_harvest(farmer_id=self.farmer_id, crop_type='Rice', market_status=MarketStatus.SOLD, buyer_id=uuid.uuid4())
        make_harvest(crop_type='Maize')

    def test_find_by_owner_paginates(self):
        page = self.store.find_by_owner(self.farmer_id, pagination=Pagination(page=1, limit=2))
        self.assertEqual(page.total, 3)
        self.assertEqual(len(page.rows), 2)
        self.assertEqual(page.pages, 2)

    def test_find_available(self):
        page = self.store.find_available({'crop_type': 'maize'})
        self.assertEqual(page.total, 2)

    def test_search_sorted_ascending(self):
        page = self.store.search(
            {'farmer_id': self.farmer_id, 'market_status': [MarketStatus.AVAILABLE]},
            Pagination(sort_by='quantity', sort_order='asc'),
        )
        self.assertEqual([h.crop_type for h in page.rows], ['Maize', 'Beans'])

    def test_invalid_criteria(self):
        with self.assertRaises(ValidationFailed):
            self.store.search({'market_status': 'BOGUS'})
        with self.assertRaises(ValidationFailed):
            self.store.search(pagination=Pagination(sort_by='buyer_id'))

    def test_pagination_bounds(self):
        with self.assertRaises(ValidationFailed):
            Pagination(limit=101)
        with self.assertRaises(ValidationFailed):
            Pagination(page=0)

    def test_conditional_update_misses_on_status_change(self):
        harvest = make_harvest()
        affected, rows = self.store.update_status(
            harvest.id, MarketStatus.SOLD, expected_status=MarketStatus.RESERVED,
        )
        self.assertEqual(affected, 0)
        self.assertEqual(rows, [])
        harvest.refresh_from_db()
        self.assertEqual(harvest.market_status, MarketStatus.AVAILABLE)

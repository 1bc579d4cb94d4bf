from datetime import timedelta
from decimal import Decimal
from unittest import mock
import uuid

import requests
from django.test import TestCase
from django.utils import timezone

from marketplace.constants import (
    BlockchainStatus,
    Currency,
    PaymentMethod,
    TokenStatus,
    TransactionType,
)
from marketplace.exceptions import (
    MintingError,
    OperationForbidden,
    ResourceNotFound,
    StateConflict,
    ValidationFailed,
)
from marketplace.models import Token, Transaction
from marketplace.stores import HarvestStore, TokenStore
from marketplace.utils import build_services
from marketplace.utils.harvest_service import HarvestService
from marketplace.utils.minting_service import HttpMintingClient, SimulatedMintingClient
from marketplace.utils.token_service import TokenService

from .helpers import (
    ExplodingMintingClient,
    FailingLedger,
    RefusingMintingClient,
    StaticMintingClient,
    make_harvest,
    make_token,
)


class TokenLifecycleTests(TestCase):
    def setUp(self):
        self.tokens = build_services(minting_client=StaticMintingClient()).tokens
        self.harvest = make_harvest()

    def test_create_defaults(self):
        token = self.tokens.create_token(harvest_id=self.harvest.id, token_amount='12.5')
        self.assertEqual(token.status, TokenStatus.PENDING)
        self.assertEqual(token.blockchain_status, BlockchainStatus.UNMINTED)
        self.assertEqual(token.farmer_id, self.harvest.farmer_id)
        self.assertEqual(token.token_amount, Decimal('12.50'))
        self.assertEqual(token.expiry_date, token.earned_date + timedelta(days=365))

    def test_create_requires_existing_harvest(self):
        with self.assertRaises(ResourceNotFound):
            self.tokens.create_token(harvest_id=uuid.uuid4(), token_amount='5')

    def test_create_rejects_bad_amount_and_status(self):
        with self.assertRaises(ValidationFailed):
            self.tokens.create_token(harvest_id=self.harvest.id, token_amount='0')
        with self.assertRaises(ValidationFailed):
            self.tokens.create_token(harvest_id=self.harvest.id, token_amount='5', status=TokenStatus.REDEEMED)

    def test_model_rejects_inconsistent_redemption_fields(self):
        with self.assertRaises(ValidationFailed):
            Token.objects.create(
                harvest=self.harvest, farmer_id=self.harvest.farmer_id,
                token_amount=Decimal('5'), status=TokenStatus.REDEEMED,
            )
        with self.assertRaises(ValidationFailed):
            Token.objects.create(
                harvest=self.harvest, farmer_id=self.harvest.farmer_id,
                token_amount=Decimal('5'), status=TokenStatus.ACTIVE,
                redemption_amount=Decimal('5'),
            )

    def test_status_changes(self):
        token = make_token(self.harvest, status=TokenStatus.PENDING)
        active = self.tokens.update_status(token.id, TokenStatus.ACTIVE)
        self.assertEqual(active.status, TokenStatus.ACTIVE)
        with self.assertRaises(ValidationFailed):
            self.tokens.update_status(token.id, TokenStatus.REDEEMED)
        self.tokens.update_status(token.id, TokenStatus.REVOKED)
        with self.assertRaises(StateConflict):
            self.tokens.update_status(token.id, TokenStatus.ACTIVE)

    def test_update_and_delete_rules(self):
        token = make_token(self.harvest, status=TokenStatus.PENDING)
        updated = self.tokens.update_token(token.id, {'token_amount': '30'})
        self.assertEqual(updated.token_amount, Decimal('30.00'))
        with self.assertRaises(ValidationFailed):
            self.tokens.update_token(token.id, {'blockchain_status': BlockchainStatus.MINTED})

        expired = make_token(self.harvest, status=TokenStatus.EXPIRED)
        with self.assertRaises(OperationForbidden):
            self.tokens.update_token(expired.id, {'token_amount': '1'})
        with self.assertRaises(OperationForbidden):
            self.tokens.delete_token(expired.id)

        self.assertTrue(self.tokens.delete_token(token.id))

    def test_list_harvest_tokens(self):
        make_token(self.harvest)
        make_token(self.harvest)
        make_token()
        self.assertEqual(self.tokens.list_harvest_tokens(self.harvest.id).total, 2)
        self.assertEqual(self.tokens.list_farmer_tokens(self.harvest.farmer_id).total, 2)


class TokenMintingTests(TestCase):
    def setUp(self):
        self.harvest = make_harvest()

    def _service(self, client):
        return build_services(minting_client=client).tokens

    def test_mint_success_records_issuance(self):
        client = StaticMintingClient()
        token = make_token(self.harvest, status=TokenStatus.PENDING)

        minted = self._service(client).mint(token.id, timeout=3)

        self.assertEqual(client.calls, [(token.id, 3)])
        self.assertEqual(minted.blockchain_status, BlockchainStatus.MINTED)
        self.assertEqual(minted.blockchain_tx_id, '0xabc123')
        self.assertEqual(minted.onchain_token_id, '42')
        self.assertEqual(minted.contract_address, '0xcontract')
        self.assertEqual(minted.status, TokenStatus.PENDING)

        issuance = Transaction.objects.get(transaction_type=TransactionType.TOKEN_ISSUANCE)
        self.assertEqual(issuance.currency, Currency.TOKEN)
        self.assertEqual(issuance.payment_method, PaymentMethod.BLOCKCHAIN)
        self.assertEqual(issuance.amount, Decimal('25.00'))
        self.assertEqual(issuance.reference, f"TOKEN-{token.id}")

    def test_mint_failure_marks_failed_and_reraises(self):
        error = MintingError('Minting request timed out after 5s')
        token = make_token(self.harvest, status=TokenStatus.PENDING)

        with self.assertRaises(MintingError) as ctx:
            self._service(ExplodingMintingClient(error)).mint(token.id)

        self.assertIs(ctx.exception, error)
        token.refresh_from_db()
        self.assertEqual(token.blockchain_status, BlockchainStatus.FAILED)
        self.assertEqual(token.status, TokenStatus.PENDING)
        self.assertFalse(Transaction.objects.exists())

    def test_unexpected_client_error_surfaces_unchanged(self):
        token = make_token(self.harvest)
        with self.assertRaises(RuntimeError):
            self._service(ExplodingMintingClient(RuntimeError('socket closed'))).mint(token.id)
        token.refresh_from_db()
        self.assertEqual(token.blockchain_status, BlockchainStatus.FAILED)

    def test_refused_mint_marks_failed(self):
        token = make_token(self.harvest)
        with self.assertRaises(MintingError):
            self._service(RefusingMintingClient()).mint(token.id)
        token.refresh_from_db()
        self.assertEqual(token.blockchain_status, BlockchainStatus.FAILED)

    def test_failed_mint_needs_explicit_retry(self):
        token = make_token(self.harvest, blockchain_status=BlockchainStatus.FAILED)
        service = self._service(StaticMintingClient())
        with self.assertRaises(StateConflict):
            service.mint(token.id)

        reset = service.retry_minting(token.id)
        self.assertEqual(reset.blockchain_status, BlockchainStatus.UNMINTED)
        minted = service.mint(token.id)
        self.assertEqual(minted.blockchain_status, BlockchainStatus.MINTED)

    def test_retry_requires_failed_mint(self):
        token = make_token(self.harvest)
        with self.assertRaises(StateConflict):
            self._service(StaticMintingClient()).retry_minting(token.id)

    def test_cannot_mint_revoked_token(self):
        token = make_token(self.harvest, status=TokenStatus.REVOKED)
        with self.assertRaises(StateConflict):
            self._service(StaticMintingClient()).mint(token.id)

    def test_issuance_failure_keeps_minted_state(self):
        tokens = TokenService(TokenStore(), HarvestService(HarvestStore()), FailingLedger(), StaticMintingClient())
        token = make_token(self.harvest)
        minted = tokens.mint(token.id)
        self.assertEqual(minted.blockchain_status, BlockchainStatus.MINTED)
        self.assertEqual(len(minted.side_effect_warnings), 1)

    def test_manual_chain_update_records_issuance_once(self):
        service = self._service(StaticMintingClient())
        token = make_token(self.harvest)
        service.update_blockchain_status(token.id, BlockchainStatus.MINTED, blockchain_tx_id='0xfeed')
        service.update_blockchain_status(token.id, BlockchainStatus.MINTED)
        self.assertEqual(Transaction.objects.filter(transaction_type=TransactionType.TOKEN_ISSUANCE).count(), 1)
        token.refresh_from_db()
        self.assertEqual(token.blockchain_tx_id, '0xfeed')


class TokenRedemptionTests(TestCase):
    def setUp(self):
        self.tokens = build_services(minting_client=StaticMintingClient()).tokens
        self.harvest = make_harvest()

    def test_redeem_active_token(self):
        token = make_token(self.harvest)
        redeemed = self.tokens.redeem(token.id, '20')

        self.assertEqual(redeemed.status, TokenStatus.REDEEMED)
        self.assertEqual(redeemed.redemption_amount, Decimal('20.00'))
        self.assertIsNotNone(redeemed.redemption_date)
        self.assertEqual(redeemed.redemption_tx_id, f"TOKEN-REDEMPTION-{token.id}")

        entry = Transaction.objects.get(transaction_type=TransactionType.TOKEN_REDEMPTION)
        self.assertEqual(entry.amount, Decimal('20.00'))
        self.assertEqual(entry.currency, Currency.USD)
        self.assertEqual(entry.harvest_id, self.harvest.id)

    def test_redeem_with_explicit_tx_id(self):
        token = make_token(self.harvest, status=TokenStatus.PENDING)
        redeemed = self.tokens.redeem(token.id, '5', redemption_tx_id='0xredeem')
        self.assertEqual(redeemed.redemption_tx_id, '0xredeem')

    def test_expired_token_is_marked_expired_instead(self):
        token = make_token(self.harvest, expiry_date=timezone.now() - timedelta(days=1))

        with self.assertRaises(StateConflict):
            self.tokens.redeem(token.id, '20')

        token.refresh_from_db()
        self.assertEqual(token.status, TokenStatus.EXPIRED)
        self.assertIsNone(token.redemption_amount)
        self.assertIsNone(token.redemption_date)
        self.assertIsNone(token.redemption_tx_id)
        self.assertFalse(Transaction.objects.exists())

    def test_ledger_failure_does_not_undo_redemption(self):
        ledger = FailingLedger()
        tokens = TokenService(TokenStore(), HarvestService(HarvestStore()), ledger, StaticMintingClient())
        token = make_token(self.harvest)

        redeemed = tokens.redeem(token.id, '20')

        self.assertEqual(len(ledger.attempts), 1)
        self.assertEqual(ledger.attempts[0]['transaction_type'], TransactionType.TOKEN_REDEMPTION)
        self.assertEqual(len(redeemed.side_effect_warnings), 1)
        token.refresh_from_db()
        self.assertEqual(token.status, TokenStatus.REDEEMED)
        self.assertEqual(token.redemption_amount, Decimal('20.00'))
        self.assertEqual(token.redemption_tx_id, f"TOKEN-REDEMPTION-{token.id}")
        self.assertIsNotNone(token.redemption_date)
        self.assertFalse(Transaction.objects.exists())

    def test_redeemed_token_cannot_be_redeemed_again(self):
        token = make_token(self.harvest)
        self.tokens.redeem(token.id, '20')
        with self.assertRaises(StateConflict):
            self.tokens.redeem(token.id, '20')
        self.assertEqual(Transaction.objects.count(), 1)

    def test_redemption_amount_must_be_positive(self):
        token = make_token(self.harvest)
        with self.assertRaises(ValidationFailed):
            self.tokens.redeem(token.id, '-1')


class MintingClientTests(TestCase):
    def setUp(self):
        self.token = make_token()

    def test_simulated_client(self):
        result = SimulatedMintingClient().mint(self.token)
        self.assertTrue(result.success)
        self.assertTrue(result.chain_tx_id.startswith('0x'))
        self.assertEqual(len(result.chain_tx_id), 66)

    def test_http_client_success(self):
        session = mock.Mock()
        session.post.return_value.json.return_value = {
            'success': True,
            'txHash': '0xdeadbeef',
            'tokenId': '7',
            'contractAddress': '0xcafe',
        }
        client = HttpMintingClient(base_url='http://minter.local/', timeout=2, session=session)

        result = client.mint(self.token)

        self.assertEqual(result.chain_tx_id, '0xdeadbeef')
        self.assertEqual(result.onchain_token_id, '7')
        self.assertEqual(result.contract_address, '0xcafe')
        args, kwargs = session.post.call_args
        self.assertEqual(args[0], 'http://minter.local/mint')
        self.assertEqual(kwargs['timeout'], 2)
        self.assertEqual(kwargs['json']['tokenId'], str(self.token.id))

    def test_http_client_timeout(self):
        session = mock.Mock()
        session.post.side_effect = requests.Timeout('read timed out')
        client = HttpMintingClient(base_url='http://minter.local', timeout=1, session=session)
        with self.assertRaises(MintingError):
            client.mint(self.token)

    def test_http_client_reported_failure(self):
        session = mock.Mock()
        session.post.return_value.json.return_value = {'success': False, 'error': 'nonce too low'}
        client = HttpMintingClient(base_url='http://minter.local', session=session)
        with self.assertRaises(MintingError) as ctx:
            client.mint(self.token)
        self.assertEqual(ctx.exception.message, 'nonce too low')

    def test_http_client_requires_url(self):
        client = HttpMintingClient(base_url='', session=mock.Mock())
        with self.assertRaises(MintingError):
            client.mint(self.token)

"""
TokenService owns the token lifecycle and its on-chain sub-state.

``status`` and ``blockchain_status`` move independently. Minting drives the
chain state through the configured minting client; redemption drives the
token status and doubles as lazy expiry detection.
"""

from datetime import timedelta
import logging

from django.utils import timezone

from ..conf import get_setting
from ..constants import (
    BlockchainStatus,
    Currency,
    PaymentMethod,
    TokenStatus,
    TokenType,
    TransactionType,
)
from ..exceptions import (
    MintingError,
    OperationForbidden,
    StateConflict,
    ValidationFailed,
    translate_database_errors,
)
from ..state_machines import (
    BLOCKCHAIN_TRANSITIONS,
    TOKEN_LOCKED_FOR_EDIT,
    TOKEN_MINTABLE,
    TOKEN_REDEEMABLE,
    TOKEN_TRANSITIONS,
    check_transition,
    token_is_expired,
    token_is_redeemable,
)
from .service_base import StoreBackedService, parse_amount, reject_fields, require_fields
from .side_effects import attach_warnings, run_best_effort

logger = logging.getLogger(__name__)

STATUS_COUPLED_FIELDS = (
    'status', 'blockchain_status', 'blockchain_tx_id', 'contract_address', 'onchain_token_id',
    'redemption_amount', 'redemption_date', 'redemption_tx_id', 'last_updated',
)
EDITABLE_FIELDS = ('token_amount', 'token_type', 'earned_date', 'expiry_date', 'metadata')


class TokenService(StoreBackedService):
    entity = 'Token'

    def __init__(self, token_store, harvest_service, ledger_service, minting_client):
        super().__init__(token_store)
        self.harvest_service = harvest_service
        self.ledger = ledger_service
        self.minting_client = minting_client

    def get_token(self, token_id):
        return self._get(token_id)

    @translate_database_errors('[TOKEN_SERVICE]')
    def create_token(self, **fields):
        """
        Issue a PENDING, UNMINTED token against an existing harvest.

        The farmer defaults to the harvest's farmer and the expiry to
        ``TOKEN_DEFAULT_VALIDITY_DAYS`` after the earned date.
        """
        require_fields(fields, ('harvest_id', 'token_amount'), 'Token')
        status = fields.pop('status', None) or TokenStatus.PENDING
        if status not in (TokenStatus.PENDING, TokenStatus.ACTIVE):
            raise ValidationFailed('New tokens start PENDING or ACTIVE')
        reject_fields(fields, STATUS_COUPLED_FIELDS, 'Chain and redemption fields are set by the token lifecycle')
        unknown = sorted(set(fields) - set(EDITABLE_FIELDS) - {'harvest_id', 'farmer_id'})
        if unknown:
            raise ValidationFailed(f"Unknown token fields: {', '.join(unknown)}", details={'fields': unknown})

        harvest = self.harvest_service.get_harvest(fields['harvest_id'])
        fields['farmer_id'] = fields.get('farmer_id') or harvest.farmer_id
        fields['token_amount'] = parse_amount(fields['token_amount'], 'token_amount')
        fields['token_type'] = fields.get('token_type') or TokenType.HARVEST
        if fields['token_type'] not in TokenType.values:
            raise ValidationFailed(f"Unknown token type: {fields['token_type']}")
        fields['earned_date'] = fields.get('earned_date') or timezone.now()
        if 'expiry_date' not in fields:
            validity_days = get_setting('TOKEN_DEFAULT_VALIDITY_DAYS')
            if validity_days:
                fields['expiry_date'] = fields['earned_date'] + timedelta(days=validity_days)

        token = self.store.create(
            status=status,
            blockchain_status=BlockchainStatus.UNMINTED,
            **fields,
        )
        logger.info(f"[TOKEN_SERVICE] Created token {token.id} ({token.token_amount}) for harvest {harvest.id}")
        return token

    @translate_database_errors('[TOKEN_SERVICE]')
    def update_token(self, token_id, fields):
        token = self._get(token_id)
        if token.status in TOKEN_LOCKED_FOR_EDIT:
            raise OperationForbidden(f"Cannot update token details after it has been {token.status}")

        fields = dict(fields)
        reject_fields(fields, STATUS_COUPLED_FIELDS, 'Status, chain and redemption fields change only through the token lifecycle')
        unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationFailed(f"Unknown token fields: {', '.join(unknown)}", details={'fields': unknown})
        if 'token_amount' in fields:
            fields['token_amount'] = parse_amount(fields['token_amount'], 'token_amount')
        if fields.get('token_type') is not None and fields['token_type'] not in TokenType.values:
            raise ValidationFailed(f"Unknown token type: {fields['token_type']}")

        fields['last_updated'] = timezone.now()
        affected, rows = self.store.update(token_id, fields, expected_status=token.status)
        return self._single_row(affected, rows, token_id)

    @translate_database_errors('[TOKEN_SERVICE]')
    def delete_token(self, token_id):
        token = self._get(token_id)
        if token.status != TokenStatus.PENDING:
            raise OperationForbidden(f"Cannot delete token in {token.status} status")
        if not self.store.delete(token_id):
            raise StateConflict(f"Token {token_id} could not be deleted")
        logger.info(f"[TOKEN_SERVICE] Deleted token {token_id}")
        return True

    @translate_database_errors('[TOKEN_SERVICE]')
    def update_status(self, token_id, status):
        if status not in TokenStatus.values:
            raise ValidationFailed(f"Unknown token status: {status}")
        if status == TokenStatus.REDEEMED:
            raise ValidationFailed('Use the redeem operation to redeem a token')

        token = self._get(token_id)
        check_transition(TOKEN_TRANSITIONS, token.status, status, entity='Token')
        affected, rows = self.store.update_status(
            token_id, status, extra={'last_updated': timezone.now()}, expected_status=token.status,
        )
        updated = self._single_row(affected, rows, token_id)
        logger.info(f"[TOKEN_SERVICE] Token {token_id}: {token.status} -> {status}")
        return updated

    # ── blockchain ───────────────────────────────────────────────────────────

    @translate_database_errors('[TOKEN_SERVICE]')
    def update_blockchain_status(self, token_id, blockchain_status, blockchain_tx_id=None,
                                 contract_address=None, onchain_token_id=None):
        """
        Record chain progress for a token. Only existence is checked.

        The first arrival at MINTED records a TOKEN_ISSUANCE transaction.
        """
        if blockchain_status not in BlockchainStatus.values:
            raise ValidationFailed(f"Unknown blockchain status: {blockchain_status}")
        token = self._get(token_id)

        affected, rows = self.store.update_blockchain_info(
            token_id,
            blockchain_status,
            info={
                'blockchain_tx_id': blockchain_tx_id,
                'contract_address': contract_address,
                'onchain_token_id': onchain_token_id,
            },
        )
        updated = self._single_row(affected, rows, token_id)
        logger.info(f"[TOKEN_SERVICE] Token {token_id} chain state: {token.blockchain_status} -> {blockchain_status}")

        issuance = None
        if blockchain_status == BlockchainStatus.MINTED and token.blockchain_status != BlockchainStatus.MINTED:
            issuance = run_best_effort(
                f"Recording issuance for token {token_id}",
                self.ledger.record,
                farmer_id=token.farmer_id,
                harvest_id=token.harvest_id,
                transaction_type=TransactionType.TOKEN_ISSUANCE,
                amount=token.token_amount,
                currency=Currency.TOKEN,
                payment_method=PaymentMethod.BLOCKCHAIN,
                notes=f"Token minted for harvest {token.harvest_id}",
                reference=f"TOKEN-{token.id}",
                metadata={
                    'tokenId': str(token.id),
                    'harvestId': str(token.harvest_id),
                    'blockchainTxId': blockchain_tx_id,
                    'tokenType': token.token_type,
                },
            )
        return attach_warnings(updated, issuance)

    @translate_database_errors('[TOKEN_SERVICE]')
    def mint(self, token_id, timeout=None):
        """
        Mint the token through the minting client.

        The chain state goes UNMINTED -> PENDING_MINTING -> MINTED. Any
        failure, a timeout included, leaves it FAILED and re-raises the
        original error; only ``retry_minting`` resets it.
        """
        token = self._get(token_id)
        if token.status not in TOKEN_MINTABLE or token.blockchain_status != BlockchainStatus.UNMINTED:
            raise StateConflict(
                f"Token cannot be minted (status: {token.status}, blockchain status: {token.blockchain_status})"
            )

        affected, rows = self.store.update_blockchain_info(
            token_id,
            BlockchainStatus.PENDING_MINTING,
            expected_blockchain_status=BlockchainStatus.UNMINTED,
        )
        pending = self._single_row(affected, rows, token_id, 'Token minting already started')

        timeout = timeout or get_setting('MINTING_TIMEOUT_SECONDS')
        try:
            result = self.minting_client.mint(pending, timeout=timeout)
            if not result.success:
                raise MintingError('Minting service reported failure')
            minted = self.update_blockchain_status(
                token_id,
                BlockchainStatus.MINTED,
                blockchain_tx_id=result.chain_tx_id,
                contract_address=result.contract_address,
                onchain_token_id=result.onchain_token_id,
            )
        except Exception as e:
            logger.error(f"[TOKEN_SERVICE] Minting token {token_id} failed: {str(e)}")
            run_best_effort(
                f"Marking token {token_id} mint as failed",
                self.store.update_blockchain_info,
                token_id,
                BlockchainStatus.FAILED,
            )
            raise

        logger.info(f"[TOKEN_SERVICE] Minted token {token_id}: {minted.blockchain_tx_id}")
        return minted

    @translate_database_errors('[TOKEN_SERVICE]')
    def retry_minting(self, token_id):
        """Reset a FAILED mint so ``mint`` may be attempted again."""
        token = self._get(token_id)
        check_transition(
            BLOCKCHAIN_TRANSITIONS, token.blockchain_status, BlockchainStatus.UNMINTED, entity='Token minting',
        )
        affected, rows = self.store.update_blockchain_info(
            token_id,
            BlockchainStatus.UNMINTED,
            expected_blockchain_status=BlockchainStatus.FAILED,
        )
        reset = self._single_row(affected, rows, token_id)
        logger.info(f"[TOKEN_SERVICE] Token {token_id} reset for another mint attempt")
        return reset

    # ── redemption ───────────────────────────────────────────────────────────

    @translate_database_errors('[TOKEN_SERVICE]')
    def redeem(self, token_id, redemption_amount, redemption_date=None, redemption_tx_id=None, notes=None):
        """
        Redeem a PENDING or ACTIVE token.

        A token found past its expiry date is marked EXPIRED instead and the
        call fails with a conflict.
        """
        redemption_amount = parse_amount(redemption_amount, 'redemption_amount')
        token = self._get(token_id)
        if not token_is_redeemable(token.status):
            raise StateConflict(f"Cannot redeem token in {token.status} status")

        now = timezone.now()
        if token_is_expired(token.expiry_date, now):
            self.store.update_status(
                token_id,
                TokenStatus.EXPIRED,
                extra={'last_updated': now},
                expected_status=tuple(TOKEN_REDEEMABLE),
            )
            logger.info(f"[TOKEN_SERVICE] Token {token_id} expired on {token.expiry_date}; redemption refused")
            raise StateConflict('Cannot redeem expired token')

        redemption_date = redemption_date or now
        redemption_tx_id = redemption_tx_id or f"TOKEN-REDEMPTION-{token.id}"
        affected, rows = self.store.record_redemption(
            token_id,
            redemption_amount,
            redemption_date,
            redemption_tx_id,
            expected_status=token.status,
        )
        redeemed = self._single_row(affected, rows, token_id, 'Token was redeemed or expired concurrently')
        logger.info(f"[TOKEN_SERVICE] Redeemed token {token_id} for {redemption_amount}")

        ledger_entry = run_best_effort(
            f"Recording redemption for token {token_id}",
            self.ledger.record,
            farmer_id=token.farmer_id,
            harvest_id=token.harvest_id,
            transaction_type=TransactionType.TOKEN_REDEMPTION,
            amount=redemption_amount,
            currency=Currency.USD,
            payment_method=PaymentMethod.BLOCKCHAIN,
            transaction_date=redemption_date,
            notes=notes or f"Token redemption for harvest {token.harvest_id}",
            reference=f"TOKEN-REDEMPTION-{token.id}",
            metadata={
                'tokenId': str(token.id),
                'harvestId': str(token.harvest_id),
                'redemptionTxId': redemption_tx_id,
                'tokenType': token.token_type,
            },
        )
        return attach_warnings(redeemed, ledger_entry)

    @translate_database_errors('[TOKEN_SERVICE]')
    def check_and_update_expired_tokens(self, now=None):
        """
        Mark every live token past its expiry date EXPIRED, one at a time.
        Returns the number of tokens actually moved.
        """
        now = now or timezone.now()
        candidates = self.store.get_expired_tokens(now)
        updated_count = 0

        for token in candidates:
            result = run_best_effort(
                f"Expiring token {token.id}",
                self.store.update_status,
                token.id,
                TokenStatus.EXPIRED,
                extra={'last_updated': now},
                expected_status=tuple(TOKEN_REDEEMABLE),
            )
            if result.ok and result.value[0]:
                updated_count += 1

        logger.info(f"[TOKEN_SERVICE] Expiry sweep: {updated_count} of {len(candidates)} tokens updated")
        return updated_count

    def list_farmer_tokens(self, farmer_id, filters=None, pagination=None):
        return self.store.find_by_owner(farmer_id, filters, pagination)

    def list_harvest_tokens(self, harvest_id, pagination=None):
        self.harvest_service.get_harvest(harvest_id)
        return self.store.find_by_harvest(harvest_id, pagination)

    def search_tokens(self, criteria=None, pagination=None):
        return self.store.search(criteria, pagination)

"""
Fixtures and collaborator fakes shared by the marketplace test suites.
"""

from datetime import timedelta
from decimal import Decimal
import uuid

from django.utils import timezone

from marketplace.constants import LoanStatus, LoanType, MarketStatus, TokenStatus
from marketplace.exceptions import InternalError, MintingError
from marketplace.models import Harvest, Loan, Token
from marketplace.utils.minting_service import MintingClient, MintResult


def make_harvest(**overrides):
    fields = {
        'farmer_id': uuid.uuid4(),
        'crop_type': 'Maize',
        'quantity': Decimal('150.50'),
        'harvest_date': timezone.now().date(),
        'expected_price': Decimal('1.20'),
        'market_status': MarketStatus.AVAILABLE,
    }
    fields.update(overrides)
    return Harvest.objects.create(**fields)


def make_loan(**overrides):
    now = timezone.now()
    fields = {
        'farmer_id': uuid.uuid4(),
        'amount': Decimal('1000.00'),
        'interest_rate': Decimal('5.00'),
        'duration_months': 12,
        'loan_type': LoanType.SEEDS,
        'status': LoanStatus.ACTIVE,
        'issued_date': now - timedelta(days=30),
        'due_date': now + timedelta(days=335),
    }
    fields.update(overrides)
    return Loan.objects.create(**fields)


def make_token(harvest=None, **overrides):
    harvest = harvest or make_harvest()
    fields = {
        'harvest': harvest,
        'farmer_id': harvest.farmer_id,
        'token_amount': Decimal('25.00'),
        'status': TokenStatus.ACTIVE,
        'expiry_date': timezone.now() + timedelta(days=30),
    }
    fields.update(overrides)
    return Token.objects.create(**fields)


class StaticMintingClient(MintingClient):
    """Always mints successfully with fixed chain identifiers."""

    def __init__(self, chain_tx_id='0xabc123', onchain_token_id='42', contract_address='0xcontract'):
        self.result = MintResult(
            success=True,
            chain_tx_id=chain_tx_id,
            onchain_token_id=onchain_token_id,
            contract_address=contract_address,
        )
        self.calls = []

    def mint(self, token, timeout=None):
        self.calls.append((token.id, timeout))
        return self.result


class ExplodingMintingClient(MintingClient):
    def __init__(self, error=None):
        self.error = error or MintingError('Minting request timed out after 5s')

    def mint(self, token, timeout=None):
        raise self.error


class RefusingMintingClient(MintingClient):
    def mint(self, token, timeout=None):
        return MintResult(success=False)


class FailingLedger:
    """Ledger stand-in whose every write fails."""

    def __init__(self):
        self.attempts = []

    def record(self, draft=None, **fields):
        self.attempts.append(dict(draft or {}, **fields))
        raise InternalError('Ledger is unavailable')

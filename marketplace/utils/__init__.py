"""
Explicit construction of the marketplace services.

    from marketplace.utils import build_services

    services = build_services()
    services.loans.record_payment(loan_id, '400.00')

Tests pass their own minting client (or stores) instead of patching
module globals.
"""

from dataclasses import dataclass

from ..stores import HarvestStore, LoanStore, TokenStore, TransactionStore
from .harvest_service import HarvestService
from .ledger_service import LedgerService
from .loan_service import LoanService
from .minting_service import get_minting_client
from .token_service import TokenService


@dataclass
class MarketplaceServices:
    harvests: HarvestService
    ledger: LedgerService
    loans: LoanService
    tokens: TokenService


def build_services(minting_client=None, harvest_store=None, loan_store=None,
                   token_store=None, transaction_store=None):
    harvests = HarvestService(harvest_store or HarvestStore())
    ledger = LedgerService(transaction_store or TransactionStore(), harvests)
    loans = LoanService(loan_store or LoanStore(), ledger)
    tokens = TokenService(
        token_store or TokenStore(),
        harvests,
        ledger,
        minting_client or get_minting_client(),
    )
    return MarketplaceServices(harvests=harvests, ledger=ledger, loans=loans, tokens=tokens)

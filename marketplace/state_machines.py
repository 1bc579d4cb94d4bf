"""
Transition tables and status predicates for the marketplace entities.

Every legal edge lives in a table below so the set of allowed moves can be
enumerated and tested without touching the database. Services call
check_transition() before writing and never compare statuses ad hoc.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, FrozenSet, Tuple

from .constants import (
    BlockchainStatus,
    LoanStatus,
    MarketStatus,
    TokenStatus,
    TransactionStatus,
)
from .exceptions import StateConflict, ValidationFailed


@dataclass(frozen=True)
class TransitionRule:
    """An allowed edge, optionally requiring fields on the request."""

    target: str
    requires: Tuple[str, ...] = field(default_factory=tuple)


def _rules(*targets, requires=None):
    requires = requires or {}
    return {t: TransitionRule(t, tuple(requires.get(t, ()))) for t in targets}


# ══════════════════════════════════════════════════════════════════════════════
# TABLES
# ══════════════════════════════════════════════════════════════════════════════

HARVEST_TRANSITIONS: Dict[str, Dict[str, TransitionRule]] = {
    MarketStatus.AVAILABLE: _rules(
        MarketStatus.RESERVED,
        MarketStatus.SOLD,
        MarketStatus.PROCESSING,
        MarketStatus.REJECTED,
        MarketStatus.EXPIRED,
        MarketStatus.CANCELLED,
    ),
    MarketStatus.RESERVED: _rules(
        MarketStatus.SOLD,
        MarketStatus.AVAILABLE,
        MarketStatus.CANCELLED,
    ),
    MarketStatus.PROCESSING: _rules(MarketStatus.AVAILABLE, MarketStatus.REJECTED),
    MarketStatus.SOLD: {},
    MarketStatus.REJECTED: {},
    MarketStatus.EXPIRED: {},
    MarketStatus.CANCELLED: {},
}

LOAN_TRANSITIONS: Dict[str, Dict[str, TransitionRule]] = {
    LoanStatus.PENDING: _rules(
        LoanStatus.APPROVED,
        LoanStatus.REJECTED,
        LoanStatus.CANCELLED,
        requires={LoanStatus.REJECTED: ('rejection_reason',)},
    ),
    LoanStatus.APPROVED: _rules(LoanStatus.ACTIVE),
    LoanStatus.ACTIVE: _rules(LoanStatus.OVERDUE, LoanStatus.REPAID, LoanStatus.DEFAULTED),
    LoanStatus.OVERDUE: _rules(LoanStatus.REPAID, LoanStatus.DEFAULTED, LoanStatus.ACTIVE),
    # Administrative recovery only.
    LoanStatus.DEFAULTED: _rules(LoanStatus.ACTIVE, LoanStatus.RESTRUCTURED),
    LoanStatus.RESTRUCTURED: _rules(LoanStatus.ACTIVE, LoanStatus.REPAID, LoanStatus.DEFAULTED),
    # Ratchet: staying in place is the only legal request.
    LoanStatus.REPAID: _rules(LoanStatus.REPAID),
    LoanStatus.REJECTED: {},
    LoanStatus.CANCELLED: {},
}

TOKEN_TRANSITIONS: Dict[str, Dict[str, TransitionRule]] = {
    TokenStatus.PENDING: _rules(
        TokenStatus.ACTIVE,
        TokenStatus.REDEEMED,
        TokenStatus.EXPIRED,
        TokenStatus.REVOKED,
    ),
    TokenStatus.ACTIVE: _rules(TokenStatus.REDEEMED, TokenStatus.EXPIRED, TokenStatus.REVOKED),
    TokenStatus.REDEEMED: {},
    TokenStatus.EXPIRED: {},
    TokenStatus.REVOKED: {},
}

BLOCKCHAIN_TRANSITIONS: Dict[str, Dict[str, TransitionRule]] = {
    BlockchainStatus.UNMINTED: _rules(BlockchainStatus.PENDING_MINTING, BlockchainStatus.FAILED),
    BlockchainStatus.PENDING_MINTING: _rules(BlockchainStatus.MINTED, BlockchainStatus.FAILED),
    BlockchainStatus.MINTED: _rules(BlockchainStatus.TRANSFER_PENDING, BlockchainStatus.FAILED),
    BlockchainStatus.TRANSFER_PENDING: _rules(BlockchainStatus.TRANSFER_COMPLETE, BlockchainStatus.FAILED),
    BlockchainStatus.TRANSFER_COMPLETE: {},
    # A failed attempt is only reset by an explicit retry.
    BlockchainStatus.FAILED: _rules(BlockchainStatus.UNMINTED),
}

TRANSACTION_TRANSITIONS: Dict[str, Dict[str, TransitionRule]] = {
    TransactionStatus.PENDING: _rules(
        TransactionStatus.PROCESSING,
        TransactionStatus.COMPLETED,
        TransactionStatus.FAILED,
        TransactionStatus.CANCELLED,
    ),
    TransactionStatus.PROCESSING: _rules(
        TransactionStatus.COMPLETED,
        TransactionStatus.FAILED,
        TransactionStatus.CANCELLED,
    ),
    TransactionStatus.COMPLETED: _rules(TransactionStatus.REFUNDED),
    TransactionStatus.FAILED: _rules(TransactionStatus.PENDING, TransactionStatus.CANCELLED),
    TransactionStatus.CANCELLED: {},
    TransactionStatus.REFUNDED: {},
}


# ══════════════════════════════════════════════════════════════════════════════
# STATUS SETS
# ══════════════════════════════════════════════════════════════════════════════

HARVEST_SELLABLE: FrozenSet[str] = frozenset({MarketStatus.AVAILABLE, MarketStatus.RESERVED})
HARVEST_BUYER_STATES: FrozenSet[str] = frozenset({MarketStatus.RESERVED, MarketStatus.SOLD})
HARVEST_PROTECTED_FIELDS: Tuple[str, ...] = ('farmer_id', 'crop_type', 'quantity', 'harvest_date')

LOAN_PAYABLE: FrozenSet[str] = frozenset({LoanStatus.ACTIVE, LoanStatus.OVERDUE})
LOAN_DELETABLE: FrozenSet[str] = frozenset({LoanStatus.PENDING, LoanStatus.REJECTED, LoanStatus.CANCELLED})
LOAN_LOCKED_FOR_EDIT: FrozenSet[str] = frozenset({
    LoanStatus.APPROVED, LoanStatus.ACTIVE, LoanStatus.REPAID, LoanStatus.DEFAULTED,
})
LOAN_TERMINAL: FrozenSet[str] = frozenset({
    LoanStatus.REPAID, LoanStatus.DEFAULTED, LoanStatus.REJECTED, LoanStatus.CANCELLED,
})

TOKEN_REDEEMABLE: FrozenSet[str] = frozenset({TokenStatus.PENDING, TokenStatus.ACTIVE})
TOKEN_MINTABLE: FrozenSet[str] = frozenset({TokenStatus.PENDING, TokenStatus.ACTIVE})
TOKEN_LOCKED_FOR_EDIT: FrozenSet[str] = frozenset({TokenStatus.REDEEMED, TokenStatus.EXPIRED})
TOKEN_SWEEP_EXCLUDED: FrozenSet[str] = frozenset({TokenStatus.REDEEMED, TokenStatus.EXPIRED, TokenStatus.REVOKED})

TRANSACTION_PROTECTED_FIELDS: Tuple[str, ...] = (
    'farmer_id', 'buyer_id', 'harvest', 'harvest_id', 'transaction_type',
    'amount', 'currency', 'transaction_date',
)
TRANSACTION_UNDELETABLE: FrozenSet[str] = frozenset({TransactionStatus.COMPLETED, TransactionStatus.REFUNDED})


# ══════════════════════════════════════════════════════════════════════════════
# PREDICATES
# ══════════════════════════════════════════════════════════════════════════════

def allowed_targets(table, current):
    """Return the set of statuses reachable from ``current`` in one step."""
    return frozenset(table.get(current, {}).keys())


def can_transition(table, current, target):
    return target in table.get(current, {})


def check_transition(table, current, target, entity='Resource', provided=None):
    """
    Validate ``current -> target`` against ``table``.

    Raises StateConflict for an edge the table does not contain and
    ValidationFailed when the rule requires fields missing from ``provided``.
    Returns the matching TransitionRule.
    """
    rule = table.get(current, {}).get(target)
    if rule is None:
        raise StateConflict(
            f"{entity} cannot move from {current} to {target}",
            details={'current_status': current, 'requested_status': target},
        )
    provided = provided or {}
    missing = [name for name in rule.requires if not provided.get(name)]
    if missing:
        raise ValidationFailed(
            f"{entity} transition to {target} requires: {', '.join(missing)}",
            details={'missing_fields': missing},
        )
    return rule


def harvest_is_available(status):
    return status == MarketStatus.AVAILABLE


def harvest_can_be_sold(status):
    return status in HARVEST_SELLABLE


def harvest_holds_buyer(status):
    return status in HARVEST_BUYER_STATES


def loan_accepts_payments(status):
    return status in LOAN_PAYABLE


def loan_is_deletable(status):
    return status in LOAN_DELETABLE


def token_is_redeemable(status):
    return status in TOKEN_REDEEMABLE


def token_is_expired(expiry_date, now):
    return expiry_date is not None and expiry_date < now


def check_redemption_fields(status, redemption_amount, redemption_date, redemption_tx_id):
    """
    Redemption fields are all set exactly when the token is REDEEMED.
    """
    values = (redemption_amount, redemption_date, redemption_tx_id)
    if status == TokenStatus.REDEEMED:
        if any(v is None or v == '' for v in values):
            raise ValidationFailed(
                'A redeemed token requires redemption amount, date and transaction id'
            )
        if Decimal(str(redemption_amount)) <= 0:
            raise ValidationFailed('Redemption amount must be greater than zero')
    elif any(v not in (None, '') for v in values):
        raise ValidationFailed(
            f"Redemption fields can only be set on a REDEEMED token (status is {status})"
        )

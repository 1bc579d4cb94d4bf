"""
Entity stores: the only code that writes the marketplace tables.

Every write is a single queryset statement. Passing ``expected_status`` turns
an update into ``UPDATE ... WHERE id = %s AND status IN (...)`` so that two
callers racing on the same row cannot both win; the loser sees zero affected
rows and the service reports a conflict.
"""

from dataclasses import dataclass, field
from typing import List, Optional
import datetime
import logging
import math

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import F
from django.http import QueryDict
from django.utils import timezone

from .constants import LoanStatus, MarketStatus, TokenStatus
from .exceptions import ValidationFailed
from .filters import HarvestFilter, LoanFilter, TokenFilter, TransactionFilter
from .models import Harvest, Loan, Token, Transaction
from .state_machines import LOAN_PAYABLE, TOKEN_SWEEP_EXCLUDED

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


@dataclass
class Pagination:
    page: int = 1
    limit: int = 10
    sort_by: Optional[str] = None
    sort_order: str = 'desc'

    def __post_init__(self):
        if self.page < 1:
            raise ValidationFailed('Page must be 1 or greater')
        if self.limit < 1 or self.limit > MAX_PAGE_SIZE:
            raise ValidationFailed(f'Limit must be between 1 and {MAX_PAGE_SIZE}')
        if self.sort_order not in ('asc', 'desc'):
            raise ValidationFailed("Sort order must be 'asc' or 'desc'")

    @property
    def offset(self):
        return (self.page - 1) * self.limit


@dataclass
class PageResult:
    rows: List = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    @property
    def pages(self):
        return math.ceil(self.total / self.limit) if self.limit else 0


def _as_query_dict(criteria):
    """Flatten plain criteria into the QueryDict shape FilterSets expect."""
    data = QueryDict(mutable=True)
    for key, value in criteria.items():
        if value is None:
            continue
        values = value if isinstance(value, (list, tuple, set, frozenset)) else [value]
        data.setlist(key, [_stringify(v) for v in values])
    return data


def _stringify(value):
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    return str(value)


def _as_tuple(expected):
    if isinstance(expected, (list, tuple, set, frozenset)):
        return tuple(expected)
    return (expected,)


class EntityStore:
    """Shared find/search/create/update/delete for one model."""

    model = None
    filterset_class = None
    owner_field = 'farmer_id'
    status_field = 'status'
    default_sort = 'created_at'
    sortable_fields = ('created_at', 'updated_at')

    def find_by_id(self, pk):
        try:
            return self.model.objects.get(pk=pk)
        except (self.model.DoesNotExist, DjangoValidationError, ValueError):
            return None

    def find_by_owner(self, owner_id, filters=None, pagination=None):
        criteria = dict(filters or {})
        criteria[self.owner_field] = owner_id
        return self.search(criteria, pagination)

    def search(self, criteria=None, pagination=None):
        pagination = pagination or Pagination()
        queryset = self.model.objects.all()
        if criteria:
            filterset = self.filterset_class(data=_as_query_dict(criteria), queryset=queryset)
            if not filterset.is_valid():
                raise ValidationFailed(
                    'Invalid search criteria',
                    details={name: [str(e) for e in errors] for name, errors in filterset.errors.items()},
                )
            queryset = filterset.qs
        queryset = queryset.order_by(self._ordering(pagination))
        total = queryset.count()
        rows = list(queryset[pagination.offset:pagination.offset + pagination.limit])
        return PageResult(rows=rows, total=total, page=pagination.page, limit=pagination.limit)

    def create(self, **fields):
        instance = self.model(**fields)
        instance.save()
        logger.debug(f"[STORE] Created {self.model.__name__} {instance.pk}")
        return instance

    def update(self, pk, fields, expected_status=None, status_field=None):
        """
        Apply ``fields`` to one row and return ``(affected, rows)``.

        With ``expected_status`` the row is only touched while its status
        (or ``status_field``) is still one of the expected values.
        """
        queryset = self.model.objects.filter(pk=pk)
        if expected_status is not None:
            lookup = f"{status_field or self.status_field}__in"
            queryset = queryset.filter(**{lookup: _as_tuple(expected_status)})
        values = dict(fields)
        values['updated_at'] = timezone.now()
        affected = queryset.update(**values)
        rows = list(self.model.objects.filter(pk=pk)) if affected else []
        return affected, rows

    def update_status(self, pk, status, extra=None, expected_status=None):
        fields = dict(extra or {})
        fields[self.status_field] = status
        return self.update(pk, fields, expected_status=expected_status)

    def delete(self, pk):
        _, per_model = self.model.objects.filter(pk=pk).delete()
        return per_model.get(self.model._meta.label, 0)

    def _ordering(self, pagination):
        sort_by = pagination.sort_by or self.default_sort
        if sort_by not in self.sortable_fields:
            raise ValidationFailed(
                f"Cannot sort by '{sort_by}'",
                details={'sortable_fields': list(self.sortable_fields)},
            )
        return sort_by if pagination.sort_order == 'asc' else f"-{sort_by}"


class HarvestStore(EntityStore):
    model = Harvest
    filterset_class = HarvestFilter
    status_field = 'market_status'
    sortable_fields = (
        'created_at', 'updated_at', 'harvest_date', 'quantity', 'expected_price', 'crop_type',
    )

    def find_available(self, filters=None, pagination=None):
        criteria = dict(filters or {})
        criteria['market_status'] = MarketStatus.AVAILABLE
        return self.search(criteria, pagination)


class LoanStore(EntityStore):
    model = Loan
    filterset_class = LoanFilter
    default_sort = 'issued_date'
    sortable_fields = (
        'created_at', 'updated_at', 'issued_date', 'due_date', 'amount', 'remaining_balance',
    )

    def get_overdue_loans(self, now):
        return list(
            Loan.objects.filter(status=LoanStatus.ACTIVE, due_date__lt=now).order_by('due_date')
        )

    def record_payment(self, pk, amount, payment_date):
        """
        Add ``amount`` to amount_paid and subtract it from remaining_balance
        in one statement, only while the loan accepts payments.
        """
        affected = Loan.objects.filter(pk=pk, status__in=tuple(LOAN_PAYABLE)).update(
            amount_paid=F('amount_paid') + amount,
            remaining_balance=F('remaining_balance') - amount,
            last_payment_date=payment_date,
            updated_at=timezone.now(),
        )
        rows = list(Loan.objects.filter(pk=pk)) if affected else []
        return affected, rows


class TokenStore(EntityStore):
    model = Token
    filterset_class = TokenFilter
    default_sort = 'earned_date'
    sortable_fields = (
        'created_at', 'updated_at', 'earned_date', 'expiry_date', 'token_amount',
    )

    def find_by_harvest(self, harvest_id, pagination=None):
        return self.search({'harvest': harvest_id}, pagination)

    def get_expired_tokens(self, now):
        return list(
            Token.objects.exclude(status__in=tuple(TOKEN_SWEEP_EXCLUDED))
            .filter(expiry_date__lt=now)
            .order_by('expiry_date')
        )

    def update_blockchain_info(self, pk, blockchain_status, info=None, expected_blockchain_status=None):
        fields = {k: v for k, v in (info or {}).items() if v is not None}
        fields['blockchain_status'] = blockchain_status
        fields['last_updated'] = timezone.now()
        return self.update(
            pk, fields,
            expected_status=expected_blockchain_status,
            status_field='blockchain_status',
        )

    def record_redemption(self, pk, redemption_amount, redemption_date, redemption_tx_id, expected_status):
        return self.update_status(
            pk,
            TokenStatus.REDEEMED,
            extra={
                'redemption_amount': redemption_amount,
                'redemption_date': redemption_date,
                'redemption_tx_id': redemption_tx_id,
                'last_updated': timezone.now(),
            },
            expected_status=expected_status,
        )


class TransactionStore(EntityStore):
    model = Transaction
    filterset_class = TransactionFilter
    default_sort = 'transaction_date'
    sortable_fields = (
        'created_at', 'updated_at', 'transaction_date', 'amount',
    )

    def find_by_buyer(self, buyer_id, filters=None, pagination=None):
        criteria = dict(filters or {})
        criteria['buyer_id'] = buyer_id
        return self.search(criteria, pagination)

    def find_by_harvest(self, harvest_id, pagination=None):
        return self.search({'harvest': harvest_id}, pagination)

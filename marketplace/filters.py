"""
FilterSets for the four marketplace entities.

The stores run search criteria through these, and the REST viewsets use the
same classes through DjangoFilterBackend so both paths accept identical
query parameters.
"""

import django_filters
from django.db.models import Q
from django.utils import timezone

from .constants import (
    BlockchainStatus,
    Currency,
    LoanStatus,
    LoanType,
    MarketStatus,
    PaymentMethod,
    QualityGrade,
    TokenStatus,
    TokenType,
    TransactionStatus,
    TransactionType,
    UnitOfMeasure,
)
from .models import Harvest, Loan, Token, Transaction


class HarvestFilter(django_filters.FilterSet):
    farmer_id = django_filters.UUIDFilter()
    buyer_id = django_filters.UUIDFilter()
    crop_type = django_filters.CharFilter(lookup_expr='icontains')
    variety = django_filters.CharFilter(lookup_expr='icontains')
    market_status = django_filters.MultipleChoiceFilter(choices=MarketStatus.choices)
    quality_grade = django_filters.ChoiceFilter(choices=QualityGrade.choices)
    unit_of_measure = django_filters.ChoiceFilter(choices=UnitOfMeasure.choices)
    min_quantity = django_filters.NumberFilter(field_name='quantity', lookup_expr='gte')
    max_quantity = django_filters.NumberFilter(field_name='quantity', lookup_expr='lte')
    min_price = django_filters.NumberFilter(field_name='expected_price', lookup_expr='gte')
    max_price = django_filters.NumberFilter(field_name='expected_price', lookup_expr='lte')
    harvest_date_from = django_filters.DateFilter(field_name='harvest_date', lookup_expr='gte')
    harvest_date_to = django_filters.DateFilter(field_name='harvest_date', lookup_expr='lte')
    storage_location = django_filters.CharFilter(lookup_expr='icontains')
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = Harvest
        fields = []

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(crop_type__icontains=value)
            | Q(variety__icontains=value)
            | Q(storage_location__icontains=value)
        )


class LoanFilter(django_filters.FilterSet):
    farmer_id = django_filters.UUIDFilter()
    status = django_filters.MultipleChoiceFilter(choices=LoanStatus.choices)
    loan_type = django_filters.ChoiceFilter(choices=LoanType.choices)
    min_amount = django_filters.NumberFilter(field_name='amount', lookup_expr='gte')
    max_amount = django_filters.NumberFilter(field_name='amount', lookup_expr='lte')
    issued_from = django_filters.IsoDateTimeFilter(field_name='issued_date', lookup_expr='gte')
    issued_to = django_filters.IsoDateTimeFilter(field_name='issued_date', lookup_expr='lte')
    due_from = django_filters.IsoDateTimeFilter(field_name='due_date', lookup_expr='gte')
    due_to = django_filters.IsoDateTimeFilter(field_name='due_date', lookup_expr='lte')
    approved_by = django_filters.UUIDFilter()
    overdue = django_filters.BooleanFilter(method='filter_overdue')

    class Meta:
        model = Loan
        fields = []

    def filter_overdue(self, queryset, name, value):
        past_due = Q(due_date__lt=timezone.now()) & ~Q(status=LoanStatus.REPAID)
        return queryset.filter(past_due) if value else queryset.exclude(past_due)


class TokenFilter(django_filters.FilterSet):
    farmer_id = django_filters.UUIDFilter()
    harvest = django_filters.UUIDFilter(field_name='harvest_id')
    status = django_filters.MultipleChoiceFilter(choices=TokenStatus.choices)
    token_type = django_filters.ChoiceFilter(choices=TokenType.choices)
    blockchain_status = django_filters.MultipleChoiceFilter(choices=BlockchainStatus.choices)
    min_amount = django_filters.NumberFilter(field_name='token_amount', lookup_expr='gte')
    max_amount = django_filters.NumberFilter(field_name='token_amount', lookup_expr='lte')
    expiry_before = django_filters.IsoDateTimeFilter(field_name='expiry_date', lookup_expr='lt')
    expiry_after = django_filters.IsoDateTimeFilter(field_name='expiry_date', lookup_expr='gte')

    class Meta:
        model = Token
        fields = []


class TransactionFilter(django_filters.FilterSet):
    farmer_id = django_filters.UUIDFilter()
    buyer_id = django_filters.UUIDFilter()
    harvest = django_filters.UUIDFilter(field_name='harvest_id')
    transaction_type = django_filters.MultipleChoiceFilter(choices=TransactionType.choices)
    status = django_filters.MultipleChoiceFilter(choices=TransactionStatus.choices)
    currency = django_filters.ChoiceFilter(choices=Currency.choices)
    payment_method = django_filters.ChoiceFilter(choices=PaymentMethod.choices)
    min_amount = django_filters.NumberFilter(field_name='amount', lookup_expr='gte')
    max_amount = django_filters.NumberFilter(field_name='amount', lookup_expr='lte')
    date_from = django_filters.IsoDateTimeFilter(field_name='transaction_date', lookup_expr='gte')
    date_to = django_filters.IsoDateTimeFilter(field_name='transaction_date', lookup_expr='lte')
    reference = django_filters.CharFilter(lookup_expr='icontains')

    class Meta:
        model = Transaction
        fields = []

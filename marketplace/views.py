from rest_framework import filters, status as status_module, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from .constants import MarketStatus
from .filters import HarvestFilter, LoanFilter, TokenFilter, TransactionFilter
from .models import Harvest, Loan, Token, Transaction
from .serializers import (
    BlockchainStatusSerializer,
    HarvestReserveSerializer,
    HarvestSaleSerializer,
    HarvestSerializer,
    HarvestStatusSerializer,
    LoanPaymentSerializer,
    LoanSerializer,
    LoanStatusSerializer,
    TokenMintSerializer,
    TokenRedeemSerializer,
    TokenSerializer,
    TokenStatusSerializer,
    TransactionSerializer,
    TransactionStatusSerializer,
)
from .utils import build_services


def _validated(serializer_class, request):
    serializer = serializer_class(data=request.data)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


class ServiceBackedViewSet(viewsets.ModelViewSet):
    """
    Reads go through the ORM with django-filter; every write is delegated
    to the marketplace services so lifecycle rules apply.
    """
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]

    @property
    def services(self):
        if not hasattr(self, '_services'):
            self._services = build_services()
        return self._services


class HarvestViewSet(ServiceBackedViewSet):
    """ViewSet for harvests with reserve, release, sell and status actions"""
    queryset = Harvest.objects.all()
    serializer_class = HarvestSerializer
    filterset_class = HarvestFilter
    ordering_fields = ['created_at', 'harvest_date', 'quantity', 'expected_price']
    ordering = ['-created_at']

    def perform_create(self, serializer):
        serializer.instance = self.services.harvests.create_harvest(**serializer.validated_data)

    def perform_update(self, serializer):
        serializer.instance = self.services.harvests.update_harvest(
            serializer.instance.id, serializer.validated_data
        )

    def perform_destroy(self, instance):
        self.services.harvests.delete_harvest(instance.id)

    @action(detail=True, methods=['post'])
    def reserve(self, request, pk=None):
        data = _validated(HarvestReserveSerializer, request)
        harvest = self.services.harvests.reserve(pk, data.get('buyer_id'))
        return Response(HarvestSerializer(harvest).data)

    @action(detail=True, methods=['post'])
    def release(self, request, pk=None):
        harvest = self.services.harvests.release(pk)
        return Response(HarvestSerializer(harvest).data)

    @action(detail=True, methods=['post'])
    def sell(self, request, pk=None):
        """Record a sale transaction and mark the harvest sold"""
        data = _validated(HarvestSaleSerializer, request)
        transaction = self.services.ledger.record_harvest_sale(
            pk,
            data['buyer_id'],
            data['payment_method'],
            data['amount'],
            currency=data.get('currency'),
            notes=data.get('notes'),
        )
        return Response(
            {
                'transaction': TransactionSerializer(transaction).data,
                'harvest': HarvestSerializer(transaction.harvest).data,
            },
            status=status_module.HTTP_201_CREATED,
        )

    @action(detail=True, methods=['patch'], url_path='status')
    def update_status(self, request, pk=None):
        data = _validated(HarvestStatusSerializer, request)
        harvest = self.services.harvests.update_status(pk, data['status'])
        return Response(HarvestSerializer(harvest).data)

    @action(detail=False, methods=['get'])
    def available(self, request):
        queryset = self.filter_queryset(self.get_queryset().filter(market_status=MarketStatus.AVAILABLE))
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return Response(self.get_serializer(queryset, many=True).data)


class LoanViewSet(ServiceBackedViewSet):
    """ViewSet for loans with status, payment and overdue-sweep actions"""
    queryset = Loan.objects.all()
    serializer_class = LoanSerializer
    filterset_class = LoanFilter
    ordering_fields = ['issued_date', 'due_date', 'amount', 'remaining_balance']
    ordering = ['-issued_date']

    def perform_create(self, serializer):
        serializer.instance = self.services.loans.create_loan(**serializer.validated_data)

    def perform_update(self, serializer):
        serializer.instance = self.services.loans.update_loan(
            serializer.instance.id, serializer.validated_data
        )

    def perform_destroy(self, instance):
        self.services.loans.delete_loan(instance.id)

    @action(detail=True, methods=['patch'], url_path='status')
    def update_status(self, request, pk=None):
        data = _validated(LoanStatusSerializer, request)
        loan = self.services.loans.update_status(
            pk,
            data['status'],
            approved_by=data.get('approved_by'),
            approved_date=data.get('approved_date'),
            disbursed_date=data.get('disbursed_date'),
            rejection_reason=data.get('rejection_reason'),
        )
        return Response(LoanSerializer(loan).data)

    @action(detail=True, methods=['post'])
    def payments(self, request, pk=None):
        data = _validated(LoanPaymentSerializer, request)
        loan = self.services.loans.record_payment(
            pk, data['amount'], payment_date=data.get('payment_date'), notes=data.get('notes'),
        )
        return Response(LoanSerializer(loan).data, status=status_module.HTTP_201_CREATED)

    @action(detail=False, methods=['post'], url_path='check-overdue', permission_classes=[IsAdminUser])
    def check_overdue(self, request):
        updated_count = self.services.loans.check_and_update_overdue_loans()
        return Response({'updated_count': updated_count})


class TokenViewSet(ServiceBackedViewSet):
    """ViewSet for tokens with minting, redemption and expiry actions"""
    queryset = Token.objects.all()
    serializer_class = TokenSerializer
    filterset_class = TokenFilter
    ordering_fields = ['earned_date', 'expiry_date', 'token_amount']
    ordering = ['-earned_date']

    def perform_create(self, serializer):
        serializer.instance = self.services.tokens.create_token(**serializer.validated_data)

    def perform_update(self, serializer):
        serializer.instance = self.services.tokens.update_token(
            serializer.instance.id, serializer.validated_data
        )

    def perform_destroy(self, instance):
        self.services.tokens.delete_token(instance.id)

    @action(detail=True, methods=['post'])
    def mint(self, request, pk=None):
        data = _validated(TokenMintSerializer, request)
        token = self.services.tokens.mint(pk, timeout=data.get('timeout'))
        return Response(TokenSerializer(token).data)

    @action(detail=True, methods=['post'], url_path='retry-mint')
    def retry_mint(self, request, pk=None):
        token = self.services.tokens.retry_minting(pk)
        return Response(TokenSerializer(token).data)

    @action(detail=True, methods=['post'])
    def redeem(self, request, pk=None):
        data = _validated(TokenRedeemSerializer, request)
        token = self.services.tokens.redeem(
            pk,
            data['redemption_amount'],
            redemption_date=data.get('redemption_date'),
            redemption_tx_id=data.get('redemption_tx_id') or None,
            notes=data.get('notes'),
        )
        return Response(TokenSerializer(token).data)

    @action(detail=True, methods=['patch'], url_path='blockchain-status')
    def blockchain_status(self, request, pk=None):
        data = _validated(BlockchainStatusSerializer, request)
        token = self.services.tokens.update_blockchain_status(
            pk,
            data['blockchain_status'],
            blockchain_tx_id=data.get('blockchain_tx_id') or None,
            contract_address=data.get('contract_address') or None,
            onchain_token_id=data.get('onchain_token_id') or None,
        )
        return Response(TokenSerializer(token).data)

    @action(detail=True, methods=['patch'], url_path='status')
    def update_status(self, request, pk=None):
        data = _validated(TokenStatusSerializer, request)
        token = self.services.tokens.update_status(pk, data['status'])
        return Response(TokenSerializer(token).data)

    @action(detail=False, methods=['post'], url_path='check-expired', permission_classes=[IsAdminUser])
    def check_expired(self, request):
        updated_count = self.services.tokens.check_and_update_expired_tokens()
        return Response({'updated_count': updated_count})


class TransactionViewSet(ServiceBackedViewSet):
    """ViewSet for ledger entries"""
    queryset = Transaction.objects.all()
    serializer_class = TransactionSerializer
    filterset_class = TransactionFilter
    ordering_fields = ['transaction_date', 'amount']
    ordering = ['-transaction_date']

    def perform_create(self, serializer):
        serializer.instance = self.services.ledger.record(serializer.validated_data)

    def perform_update(self, serializer):
        serializer.instance = self.services.ledger.update_transaction(
            serializer.instance.id, serializer.validated_data
        )

    def perform_destroy(self, instance):
        self.services.ledger.delete_transaction(instance.id)

    @action(detail=True, methods=['patch'], url_path='status')
    def update_status(self, request, pk=None):
        data = _validated(TransactionStatusSerializer, request)
        transaction = self.services.ledger.update_status(pk, data['status'])
        return Response(TransactionSerializer(transaction).data)

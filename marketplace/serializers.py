from decimal import Decimal

from rest_framework import serializers

from .constants import (
    BlockchainStatus,
    Currency,
    LoanStatus,
    MarketStatus,
    PaymentMethod,
    TokenStatus,
    TransactionStatus,
)
from .models import Harvest, Loan, Token, Transaction

POSITIVE = Decimal('0.01')


class MarketplaceModelSerializer(serializers.ModelSerializer):
    """Adds the side-effect warnings a service attached to the instance."""
    warnings = serializers.SerializerMethodField()

    def get_warnings(self, obj):
        return getattr(obj, 'side_effect_warnings', [])


class HarvestSerializer(MarketplaceModelSerializer):
    """Serializer for harvests. Market status moves only through the lifecycle actions."""
    total_value = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = Harvest
        fields = '__all__'
        read_only_fields = ('id', 'market_status', 'buyer_id', 'transaction_id', 'created_at', 'updated_at')


class LoanSerializer(MarketplaceModelSerializer):
    """Serializer for loans with derived repayment figures."""
    total_repayment_amount = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    monthly_payment = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = Loan
        fields = '__all__'
        read_only_fields = (
            'id', 'status', 'approved_by', 'approved_date', 'rejection_reason', 'disbursed_date',
            'last_payment_date', 'amount_paid', 'remaining_balance', 'created_at', 'updated_at',
        )
        extra_kwargs = {
            'due_date': {'required': False},
            'issued_date': {'required': False},
        }


class TokenSerializer(MarketplaceModelSerializer):
    harvest_id = serializers.UUIDField()
    farmer_id = serializers.UUIDField(required=False)

    class Meta:
        model = Token
        exclude = ('harvest',)
        read_only_fields = (
            'id', 'status', 'blockchain_status', 'blockchain_tx_id', 'contract_address',
            'onchain_token_id', 'redemption_amount', 'redemption_date', 'redemption_tx_id',
            'last_updated', 'created_at', 'updated_at',
        )


class TransactionSerializer(MarketplaceModelSerializer):
    harvest_id = serializers.UUIDField(required=False, allow_null=True)

    class Meta:
        model = Transaction
        exclude = ('harvest',)
        read_only_fields = ('id', 'status', 'created_at', 'updated_at')


# ══════════════════════════════════════════════════════════════════════════════
# ACTION PAYLOADS
# ══════════════════════════════════════════════════════════════════════════════

class HarvestReserveSerializer(serializers.Serializer):
    buyer_id = serializers.UUIDField(required=False, allow_null=True)


class HarvestSaleSerializer(serializers.Serializer):
    buyer_id = serializers.UUIDField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=POSITIVE)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    currency = serializers.ChoiceField(choices=Currency.choices, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class HarvestStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=MarketStatus.choices)


class LoanStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=LoanStatus.choices)
    approved_by = serializers.UUIDField(required=False, allow_null=True)
    approved_date = serializers.DateTimeField(required=False, allow_null=True)
    disbursed_date = serializers.DateTimeField(required=False, allow_null=True)
    rejection_reason = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class LoanPaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=POSITIVE)
    payment_date = serializers.DateTimeField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class TokenStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TokenStatus.choices)


class TokenMintSerializer(serializers.Serializer):
    timeout = serializers.FloatField(required=False, min_value=0.1, max_value=120)


class TokenRedeemSerializer(serializers.Serializer):
    redemption_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=POSITIVE)
    redemption_date = serializers.DateTimeField(required=False, allow_null=True)
    redemption_tx_id = serializers.CharField(required=False, allow_blank=True, max_length=255)
    notes = serializers.CharField(required=False, allow_blank=True)


class BlockchainStatusSerializer(serializers.Serializer):
    blockchain_status = serializers.ChoiceField(choices=BlockchainStatus.choices)
    blockchain_tx_id = serializers.CharField(required=False, allow_blank=True, max_length=255)
    contract_address = serializers.CharField(required=False, allow_blank=True, max_length=255)
    onchain_token_id = serializers.CharField(required=False, allow_blank=True, max_length=255)


class TransactionStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TransactionStatus.choices)

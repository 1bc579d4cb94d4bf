from django.contrib import admin

from .models import Harvest, Loan, Token, Transaction

# Status fields are owned by the lifecycle services; the admin shows them read-only.


@admin.register(Harvest)
class HarvestAdmin(admin.ModelAdmin):
    list_display = ('id', 'farmer_id', 'crop_type', 'quantity', 'unit_of_measure', 'expected_price', 'market_status', 'harvest_date')
    search_fields = ('crop_type', 'variety', 'storage_location', 'farmer_id')
    list_filter = ('market_status', 'quality_grade', 'unit_of_measure', 'harvest_date')
    readonly_fields = ('market_status', 'buyer_id', 'transaction_id', 'created_at', 'updated_at')


@admin.register(Loan)
class LoanAdmin(admin.ModelAdmin):
    list_display = ('id', 'farmer_id', 'loan_type', 'amount', 'amount_paid', 'remaining_balance', 'status', 'due_date')
    search_fields = ('farmer_id', 'notes', 'collateral')
    list_filter = ('status', 'loan_type', 'repayment_frequency', 'issued_date')
    readonly_fields = (
        'status', 'approved_by', 'approved_date', 'disbursed_date', 'rejection_reason',
        'amount_paid', 'remaining_balance', 'last_payment_date', 'created_at', 'updated_at',
    )


@admin.register(Token)
class TokenAdmin(admin.ModelAdmin):
    list_display = ('id', 'farmer_id', 'harvest', 'token_amount', 'token_type', 'status', 'blockchain_status', 'expiry_date')
    search_fields = ('farmer_id', 'blockchain_tx_id', 'redemption_tx_id')
    list_filter = ('status', 'blockchain_status', 'token_type')
    readonly_fields = (
        'status', 'blockchain_status', 'blockchain_tx_id', 'contract_address', 'onchain_token_id',
        'redemption_amount', 'redemption_date', 'redemption_tx_id', 'last_updated', 'created_at', 'updated_at',
    )


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ('id', 'transaction_type', 'farmer_id', 'buyer_id', 'amount', 'currency', 'status', 'transaction_date')
    search_fields = ('reference', 'notes', 'farmer_id', 'buyer_id')
    list_filter = ('transaction_type', 'status', 'currency', 'payment_method', 'transaction_date')
    readonly_fields = ('status', 'created_at', 'updated_at')

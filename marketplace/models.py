from django.db import models
from django.core.validators import MinValueValidator
from django.utils import timezone
import uuid
from decimal import Decimal, ROUND_HALF_UP

from .constants import (
    BlockchainStatus,
    Currency,
    LoanStatus,
    LoanType,
    MarketStatus,
    PaymentMethod,
    QualityGrade,
    RepaymentFrequency,
    TokenStatus,
    TokenType,
    TransactionStatus,
    TransactionType,
    UnitOfMeasure,
)
from .exceptions import ValidationFailed
from .state_machines import check_redemption_fields

CENT = Decimal('0.01')


def quantize_amount(value):
    """Round a monetary/quantity value to two decimal places."""
    if value is None:
        return None
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


class Harvest(models.Model):
    """A produce lot offered on the marketplace by a farmer"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    farmer_id = models.UUIDField(db_index=True, help_text="Farmer who owns the harvest")
    crop_type = models.CharField(max_length=100, db_index=True)
    variety = models.CharField(max_length=100, blank=True, null=True)
    quantity = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0'))])
    unit_of_measure = models.CharField(max_length=20, choices=UnitOfMeasure.choices, default=UnitOfMeasure.KILOGRAM)
    quality_grade = models.CharField(max_length=20, choices=QualityGrade.choices, default=QualityGrade.A)
    harvest_date = models.DateField(db_index=True)
    storage_location = models.CharField(max_length=255, blank=True, null=True)
    expected_price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0'))], help_text="Expected price per unit")
    market_status = models.CharField(max_length=20, choices=MarketStatus.choices, default=MarketStatus.AVAILABLE, db_index=True)
    # Set only while RESERVED or SOLD
    buyer_id = models.UUIDField(blank=True, null=True)
    transaction_id = models.UUIDField(blank=True, null=True, help_text="Sale transaction that sold this harvest")
    blockchain_hash = models.CharField(max_length=255, blank=True, null=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['farmer_id', 'market_status'], name='harvest_farmer_status_idx'),
        ]

    def __str__(self):
        return f"{self.crop_type} ({self.quantity} {self.unit_of_measure}) - {self.market_status}"

    @property
    def total_value(self):
        """Expected value of the whole lot"""
        return quantize_amount(self.quantity * self.expected_price)

    def save(self, *args, **kwargs):
        if self.crop_type:
            self.crop_type = self.crop_type.strip()
        if self.quantity is not None:
            self.quantity = quantize_amount(self.quantity)
        super().save(*args, **kwargs)


class Loan(models.Model):
    """Credit extended to a farmer"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    farmer_id = models.UUIDField(db_index=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(CENT)], help_text="Principal amount")
    interest_rate = models.DecimalField(max_digits=5, decimal_places=2, validators=[MinValueValidator(Decimal('0'))], help_text="Interest rate in percent")
    duration_months = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    repayment_frequency = models.CharField(max_length=20, choices=RepaymentFrequency.choices, default=RepaymentFrequency.MONTHLY)
    loan_type = models.CharField(max_length=20, choices=LoanType.choices, default=LoanType.OTHER, db_index=True)
    status = models.CharField(max_length=20, choices=LoanStatus.choices, default=LoanStatus.PENDING, db_index=True)
    issued_date = models.DateTimeField(default=timezone.now, db_index=True)
    due_date = models.DateTimeField(db_index=True)
    # Approval / rejection
    approved_by = models.UUIDField(blank=True, null=True)
    approved_date = models.DateTimeField(blank=True, null=True)
    rejection_reason = models.TextField(blank=True, null=True)
    disbursed_date = models.DateTimeField(blank=True, null=True)
    collateral = models.TextField(blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    # Repayment accounting
    last_payment_date = models.DateTimeField(blank=True, null=True)
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    remaining_balance = models.DecimalField(max_digits=12, decimal_places=2)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-issued_date']

    def __str__(self):
        return f"Loan {self.id} - {self.loan_type} {self.amount} ({self.status})"

    @property
    def total_repayment_amount(self):
        """Principal plus simple interest"""
        return quantize_amount(self.amount * (1 + self.interest_rate / Decimal('100')))

    @property
    def monthly_payment(self):
        if not self.duration_months:
            return Decimal('0.00')
        return quantize_amount(self.total_repayment_amount / self.duration_months)

    def save(self, *args, **kwargs):
        self.amount = quantize_amount(self.amount)
        if self.remaining_balance is None and self.amount is not None:
            self.remaining_balance = self.amount - (self.amount_paid or Decimal('0.00'))
        super().save(*args, **kwargs)


class Token(models.Model):
    """Value-transfer certificate earned against a harvest"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    harvest = models.ForeignKey(Harvest, on_delete=models.PROTECT, related_name='tokens')
    farmer_id = models.UUIDField(db_index=True)
    token_amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(CENT)])
    token_type = models.CharField(max_length=20, choices=TokenType.choices, default=TokenType.HARVEST)
    earned_date = models.DateTimeField(default=timezone.now, db_index=True)
    expiry_date = models.DateTimeField(blank=True, null=True)
    status = models.CharField(max_length=20, choices=TokenStatus.choices, default=TokenStatus.PENDING, db_index=True)
    # Chain sub-state, independent of status
    blockchain_status = models.CharField(max_length=20, choices=BlockchainStatus.choices, default=BlockchainStatus.UNMINTED, db_index=True)
    blockchain_tx_id = models.CharField(max_length=255, blank=True, null=True)
    contract_address = models.CharField(max_length=255, blank=True, null=True)
    onchain_token_id = models.CharField(max_length=255, blank=True, null=True)
    metadata = models.JSONField(default=dict, blank=True)
    # Written once, on redemption
    redemption_amount = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    redemption_date = models.DateTimeField(blank=True, null=True)
    redemption_tx_id = models.CharField(max_length=255, blank=True, null=True)
    last_updated = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-earned_date']

    def __str__(self):
        return f"Token {self.id} - {self.token_amount} ({self.status}/{self.blockchain_status})"

    def save(self, *args, **kwargs):
        if self.token_amount is not None:
            if Decimal(str(self.token_amount)) <= 0:
                raise ValidationFailed('Token amount must be greater than zero')
            self.token_amount = quantize_amount(self.token_amount)
        check_redemption_fields(
            self.status, self.redemption_amount, self.redemption_date, self.redemption_tx_id
        )
        self.last_updated = timezone.now()
        super().save(*args, **kwargs)


class Transaction(models.Model):
    """A monetary or value movement recorded by the ledger"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    farmer_id = models.UUIDField(db_index=True)
    buyer_id = models.UUIDField(blank=True, null=True, db_index=True)
    harvest = models.ForeignKey(Harvest, on_delete=models.SET_NULL, blank=True, null=True, related_name='transactions')
    transaction_type = models.CharField(max_length=20, choices=TransactionType.choices, db_index=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(CENT)])
    currency = models.CharField(max_length=10, choices=Currency.choices, default=Currency.USD)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    transaction_date = models.DateTimeField(default=timezone.now, db_index=True)
    status = models.CharField(max_length=20, choices=TransactionStatus.choices, default=TransactionStatus.PENDING, db_index=True)
    reference = models.CharField(max_length=255, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-transaction_date']

    def __str__(self):
        return f"{self.transaction_type} {self.amount} {self.currency} ({self.status})"

    def save(self, *args, **kwargs):
        if self.transaction_type == TransactionType.SALE and not self.harvest_id:
            raise ValidationFailed('Harvest ID is required for sale transactions')
        self.amount = quantize_amount(self.amount)
        super().save(*args, **kwargs)

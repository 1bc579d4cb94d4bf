"""
Status, type and unit vocabularies shared by the marketplace models,
state machines and services.
"""

from django.db import models


# ══════════════════════════════════════════════════════════════════════════════
# HARVEST
# ══════════════════════════════════════════════════════════════════════════════

class MarketStatus(models.TextChoices):
    AVAILABLE = 'AVAILABLE', 'Available'
    RESERVED = 'RESERVED', 'Reserved'
    SOLD = 'SOLD', 'Sold'
    PROCESSING = 'PROCESSING', 'Processing'
    REJECTED = 'REJECTED', 'Rejected'
    EXPIRED = 'EXPIRED', 'Expired'
    CANCELLED = 'CANCELLED', 'Cancelled'


class QualityGrade(models.TextChoices):
    PREMIUM = 'PREMIUM', 'Premium'
    A = 'A', 'Grade A'
    B = 'B', 'Grade B'
    C = 'C', 'Grade C'
    ORGANIC = 'ORGANIC', 'Organic'
    EXPORT = 'EXPORT', 'Export'
    PROCESSING = 'PROCESSING', 'Processing'


class UnitOfMeasure(models.TextChoices):
    KILOGRAM = 'kg', 'Kilograms'
    TON = 'ton', 'Tons'
    METRIC_TON = 'metric_ton', 'Metric Tons'
    POUND = 'lb', 'Pounds'
    LITER = 'liter', 'Liters'
    BUSHEL = 'bushel', 'Bushels'


# ══════════════════════════════════════════════════════════════════════════════
# LOAN
# ══════════════════════════════════════════════════════════════════════════════

class LoanStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending'
    APPROVED = 'APPROVED', 'Approved'
    REJECTED = 'REJECTED', 'Rejected'
    ACTIVE = 'ACTIVE', 'Active'
    OVERDUE = 'OVERDUE', 'Overdue'
    REPAID = 'REPAID', 'Repaid'
    DEFAULTED = 'DEFAULTED', 'Defaulted'
    RESTRUCTURED = 'RESTRUCTURED', 'Restructured'
    CANCELLED = 'CANCELLED', 'Cancelled'


class LoanType(models.TextChoices):
    EQUIPMENT = 'EQUIPMENT', 'Equipment'
    SEEDS = 'SEEDS', 'Seeds'
    FERTILIZER = 'FERTILIZER', 'Fertilizer'
    SEASONAL = 'SEASONAL', 'Seasonal'
    INFRASTRUCTURE = 'INFRASTRUCTURE', 'Infrastructure'
    EMERGENCY = 'EMERGENCY', 'Emergency'
    OTHER = 'OTHER', 'Other'


class RepaymentFrequency(models.TextChoices):
    MONTHLY = 'MONTHLY', 'Monthly'
    QUARTERLY = 'QUARTERLY', 'Quarterly'
    BIANNUALLY = 'BIANNUALLY', 'Biannually'
    ANNUALLY = 'ANNUALLY', 'Annually'
    LUMP_SUM = 'LUMP_SUM', 'Lump Sum'
    CUSTOM = 'CUSTOM', 'Custom'


# ══════════════════════════════════════════════════════════════════════════════
# TOKEN
# ══════════════════════════════════════════════════════════════════════════════

class TokenStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending'
    ACTIVE = 'ACTIVE', 'Active'
    REDEEMED = 'REDEEMED', 'Redeemed'
    EXPIRED = 'EXPIRED', 'Expired'
    REVOKED = 'REVOKED', 'Revoked'


class TokenType(models.TextChoices):
    HARVEST = 'HARVEST', 'Harvest'
    REWARD = 'REWARD', 'Reward'
    LOYALTY = 'LOYALTY', 'Loyalty'
    PROMOTIONAL = 'PROMOTIONAL', 'Promotional'


class BlockchainStatus(models.TextChoices):
    UNMINTED = 'UNMINTED', 'Unminted'
    PENDING_MINTING = 'PENDING_MINTING', 'Pending Minting'
    MINTED = 'MINTED', 'Minted'
    TRANSFER_PENDING = 'TRANSFER_PENDING', 'Transfer Pending'
    TRANSFER_COMPLETE = 'TRANSFER_COMPLETE', 'Transfer Complete'
    FAILED = 'FAILED', 'Failed'


# ══════════════════════════════════════════════════════════════════════════════
# TRANSACTION
# ══════════════════════════════════════════════════════════════════════════════

class TransactionType(models.TextChoices):
    DEPOSIT = 'DEPOSIT', 'Deposit'
    WITHDRAWAL = 'WITHDRAWAL', 'Withdrawal'
    PAYMENT = 'PAYMENT', 'Payment'
    REFUND = 'REFUND', 'Refund'
    FEE = 'FEE', 'Fee'
    TRANSFER = 'TRANSFER', 'Transfer'
    INTEREST = 'INTEREST', 'Interest'
    ADJUSTMENT = 'ADJUSTMENT', 'Adjustment'
    HARVEST_SALE = 'HARVEST_SALE', 'Harvest Sale'
    LOAN_DISBURSEMENT = 'LOAN_DISBURSEMENT', 'Loan Disbursement'
    LOAN_PAYMENT = 'LOAN_PAYMENT', 'Loan Payment'
    TOKEN_ISSUANCE = 'TOKEN_ISSUANCE', 'Token Issuance'
    TOKEN_REDEMPTION = 'TOKEN_REDEMPTION', 'Token Redemption'
    TOKEN_TRANSFER = 'TOKEN_TRANSFER', 'Token Transfer'
    SALE = 'SALE', 'Sale'


class TransactionStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending'
    PROCESSING = 'PROCESSING', 'Processing'
    COMPLETED = 'COMPLETED', 'Completed'
    FAILED = 'FAILED', 'Failed'
    CANCELLED = 'CANCELLED', 'Cancelled'
    REFUNDED = 'REFUNDED', 'Refunded'


class PaymentMethod(models.TextChoices):
    CASH = 'CASH', 'Cash'
    BANK_TRANSFER = 'BANK_TRANSFER', 'Bank Transfer'
    MOBILE_MONEY = 'MOBILE_MONEY', 'Mobile Money'
    CARD = 'CARD', 'Card'
    CHECK = 'CHECK', 'Check'
    CREDIT = 'CREDIT', 'Credit'
    BLOCKCHAIN = 'BLOCKCHAIN', 'Blockchain'
    OTHER = 'OTHER', 'Other'


class Currency(models.TextChoices):
    USD = 'USD', 'US Dollar'
    EUR = 'EUR', 'Euro'
    GBP = 'GBP', 'British Pound'
    INR = 'INR', 'Indian Rupee'
    KES = 'KES', 'Kenyan Shilling'
    NGN = 'NGN', 'Nigerian Naira'
    ZAR = 'ZAR', 'South African Rand'
    TOKEN = 'TOKEN', 'Token'
    ETH = 'ETH', 'Ether'
    MATIC = 'MATIC', 'Matic'

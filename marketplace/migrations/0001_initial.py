import decimal
import uuid

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Harvest',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('farmer_id', models.UUIDField(db_index=True, help_text='Farmer who owns the harvest')),
                ('crop_type', models.CharField(db_index=True, max_length=100)),
                ('variety', models.CharField(blank=True, max_length=100, null=True)),
                ('quantity', models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0'))])),
                ('unit_of_measure', models.CharField(choices=[('kg', 'Kilograms'), ('ton', 'Tons'), ('metric_ton', 'Metric Tons'), ('lb', 'Pounds'), ('liter', 'Liters'), ('bushel', 'Bushels')], default='kg', max_length=20)),
                ('quality_grade', models.CharField(choices=[('PREMIUM', 'Premium'), ('A', 'Grade A'), ('B', 'Grade B'), ('C', 'Grade C'), ('ORGANIC', 'Organic'), ('EXPORT', 'Export'), ('PROCESSING', 'Processing')], default='A', max_length=20)),
                ('harvest_date', models.DateField(db_index=True)),
                ('storage_location', models.CharField(blank=True, max_length=255, null=True)),
                ('expected_price', models.DecimalField(decimal_places=2, help_text='Expected price per unit', max_digits=10, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0'))])),
                ('market_status', models.CharField(choices=[('AVAILABLE', 'Available'), ('RESERVED', 'Reserved'), ('SOLD', 'Sold'), ('PROCESSING', 'Processing'), ('REJECTED', 'Rejected'), ('EXPIRED', 'Expired'), ('CANCELLED', 'Cancelled')], db_index=True, default='AVAILABLE', max_length=20)),
                ('buyer_id', models.UUIDField(blank=True, null=True)),
                ('transaction_id', models.UUIDField(blank=True, help_text='Sale transaction that sold this harvest', null=True)),
                ('blockchain_hash', models.CharField(blank=True, max_length=255, null=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['farmer_id', 'market_status'], name='harvest_farmer_status_idx')],
            },
        ),
        migrations.CreateModel(
            name='Loan',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('farmer_id', models.UUIDField(db_index=True)),
                ('amount', models.DecimalField(decimal_places=2, help_text='Principal amount', max_digits=12, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0.01'))])),
                ('interest_rate', models.DecimalField(decimal_places=2, help_text='Interest rate in percent', max_digits=5, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0'))])),
                ('duration_months', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('repayment_frequency', models.CharField(choices=[('MONTHLY', 'Monthly'), ('QUARTERLY', 'Quarterly'), ('BIANNUALLY', 'Biannually'), ('ANNUALLY', 'Annually'), ('LUMP_SUM', 'Lump Sum'), ('CUSTOM', 'Custom')], default='MONTHLY', max_length=20)),
                ('loan_type', models.CharField(choices=[('EQUIPMENT', 'Equipment'), ('SEEDS', 'Seeds'), ('FERTILIZER', 'Fertilizer'), ('SEASONAL', 'Seasonal'), ('INFRASTRUCTURE', 'Infrastructure'), ('EMERGENCY', 'Emergency'), ('OTHER', 'Other')], db_index=True, default='OTHER', max_length=20)),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('APPROVED', 'Approved'), ('REJECTED', 'Rejected'), ('ACTIVE', 'Active'), ('OVERDUE', 'Overdue'), ('REPAID', 'Repaid'), ('DEFAULTED', 'Defaulted'), ('RESTRUCTURED', 'Restructured'), ('CANCELLED', 'Cancelled')], db_index=True, default='PENDING', max_length=20)),
                ('issued_date', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('due_date', models.DateTimeField(db_index=True)),
                ('approved_by', models.UUIDField(blank=True, null=True)),
                ('approved_date', models.DateTimeField(blank=True, null=True)),
                ('rejection_reason', models.TextField(blank=True, null=True)),
                ('disbursed_date', models.DateTimeField(blank=True, null=True)),
                ('collateral', models.TextField(blank=True, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('last_payment_date', models.DateTimeField(blank=True, null=True)),
                ('amount_paid', models.DecimalField(decimal_places=2, default=decimal.Decimal('0.00'), max_digits=12)),
                ('remaining_balance', models.DecimalField(decimal_places=2, max_digits=12)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['-issued_date'],
            },
        ),
        migrations.CreateModel(
            name='Token',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('farmer_id', models.UUIDField(db_index=True)),
                ('token_amount', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0.01'))])),
                ('token_type', models.CharField(choices=[('HARVEST', 'Harvest'), ('REWARD', 'Reward'), ('LOYALTY', 'Loyalty'), ('PROMOTIONAL', 'Promotional')], default='HARVEST', max_length=20)),
                ('earned_date', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('expiry_date', models.DateTimeField(blank=True, null=True)),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('ACTIVE', 'Active'), ('REDEEMED', 'Redeemed'), ('EXPIRED', 'Expired'), ('REVOKED', 'Revoked')], db_index=True, default='PENDING', max_length=20)),
                ('blockchain_status', models.CharField(choices=[('UNMINTED', 'Unminted'), ('PENDING_MINTING', 'Pending Minting'), ('MINTED', 'Minted'), ('TRANSFER_PENDING', 'Transfer Pending'), ('TRANSFER_COMPLETE', 'Transfer Complete'), ('FAILED', 'Failed')], db_index=True, default='UNMINTED', max_length=20)),
                ('blockchain_tx_id', models.CharField(blank=True, max_length=255, null=True)),
                ('contract_address', models.CharField(blank=True, max_length=255, null=True)),
                ('onchain_token_id', models.CharField(blank=True, max_length=255, null=True)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('redemption_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('redemption_date', models.DateTimeField(blank=True, null=True)),
                ('redemption_tx_id', models.CharField(blank=True, max_length=255, null=True)),
                ('last_updated', models.DateTimeField(default=django.utils.timezone.now)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('harvest', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='tokens', to='marketplace.harvest')),
            ],
            options={
                'ordering': ['-earned_date'],
            },
        ),
        migrations.CreateModel(
            name='Transaction',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('farmer_id', models.UUIDField(db_index=True)),
                ('buyer_id', models.UUIDField(blank=True, db_index=True, null=True)),
                ('transaction_type', models.CharField(choices=[('DEPOSIT', 'Deposit'), ('WITHDRAWAL', 'Withdrawal'), ('PAYMENT', 'Payment'), ('REFUND', 'Refund'), ('FEE', 'Fee'), ('TRANSFER', 'Transfer'), ('INTEREST', 'Interest'), ('ADJUSTMENT', 'Adjustment'), ('HARVEST_SALE', 'Harvest Sale'), ('LOAN_DISBURSEMENT', 'Loan Disbursement'), ('LOAN_PAYMENT', 'Loan Payment'), ('TOKEN_ISSUANCE', 'Token Issuance'), ('TOKEN_REDEMPTION', 'Token Redemption'), ('TOKEN_TRANSFER', 'Token Transfer'), ('SALE', 'Sale')], db_index=True, max_length=20)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0.01'))])),
                ('currency', models.CharField(choices=[('USD', 'US Dollar'), ('EUR', 'Euro'), ('GBP', 'British Pound'), ('INR', 'Indian Rupee'), ('KES', 'Kenyan Shilling'), ('NGN', 'Nigerian Naira'), ('ZAR', 'South African Rand'), ('TOKEN', 'Token'), ('ETH', 'Ether'), ('MATIC', 'Matic')], default='USD', max_length=10)),
                ('payment_method', models.CharField(choices=[('CASH', 'Cash'), ('BANK_TRANSFER', 'Bank Transfer'), ('MOBILE_MONEY', 'Mobile Money'), ('CARD', 'Card'), ('CHECK', 'Check'), ('CREDIT', 'Credit'), ('BLOCKCHAIN', 'Blockchain'), ('OTHER', 'Other')], default='CASH', max_length=20)),
                ('transaction_date', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('PROCESSING', 'Processing'), ('COMPLETED', 'Completed'), ('FAILED', 'Failed'), ('CANCELLED', 'Cancelled'), ('REFUNDED', 'Refunded')], db_index=True, default='PENDING', max_length=20)),
                ('reference', models.CharField(blank=True, max_length=255, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('harvest', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='transactions', to='marketplace.harvest')),
            ],
            options={
                'ordering': ['-transaction_date'],
            },
        ),
    ]

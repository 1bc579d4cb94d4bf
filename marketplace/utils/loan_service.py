"""
LoanService owns the loan lifecycle and repayment accounting.

Status changes are validated against LOAN_TRANSITIONS and written with a
conditional update on the status that was read. The ledger entries for a
disbursement or a repayment are best-effort: the loan state is already
committed when they are attempted and stays committed if they fail.
"""

import calendar
import logging

from django.utils import timezone

from ..constants import Currency, LoanStatus, LoanType, PaymentMethod, RepaymentFrequency, TransactionType
from ..exceptions import OperationForbidden, StateConflict, ValidationFailed, translate_database_errors
from ..state_machines import (
    LOAN_LOCKED_FOR_EDIT,
    LOAN_PAYABLE,
    LOAN_TRANSITIONS,
    check_transition,
    loan_accepts_payments,
    loan_is_deletable,
)
from .service_base import StoreBackedService, parse_amount, reject_fields, require_fields
from .side_effects import attach_warnings, run_best_effort

logger = logging.getLogger(__name__)

STATUS_COUPLED_FIELDS = (
    'status', 'approved_by', 'approved_date', 'disbursed_date', 'rejection_reason',
    'amount_paid', 'remaining_balance', 'last_payment_date',
)
EDITABLE_FIELDS = (
    'farmer_id', 'amount', 'interest_rate', 'duration_months', 'repayment_frequency',
    'loan_type', 'issued_date', 'due_date', 'collateral', 'notes',
)


def add_months(value, months):
    """Shift a datetime by whole months, clamping to the last day."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _validate_terms(fields):
    if 'amount' in fields:
        fields['amount'] = parse_amount(fields['amount'])
    if 'interest_rate' in fields:
        fields['interest_rate'] = parse_amount(fields['interest_rate'], 'interest_rate', allow_zero=True)
    if 'duration_months' in fields:
        try:
            duration = int(fields['duration_months'])
        except (TypeError, ValueError):
            raise ValidationFailed('duration_months must be a whole number of months')
        if duration < 1:
            raise ValidationFailed('duration_months must be at least 1')
        fields['duration_months'] = duration
    if fields.get('loan_type') is not None and fields['loan_type'] not in LoanType.values:
        raise ValidationFailed(f"Unknown loan type: {fields['loan_type']}")
    if fields.get('repayment_frequency') is not None and fields['repayment_frequency'] not in RepaymentFrequency.values:
        raise ValidationFailed(f"Unknown repayment frequency: {fields['repayment_frequency']}")
    return fields


class LoanService(StoreBackedService):
    entity = 'Loan'

    def __init__(self, loan_store, ledger_service):
        super().__init__(loan_store)
        self.ledger = ledger_service

    def get_loan(self, loan_id):
        return self._get(loan_id)

    @translate_database_errors('[LOAN_SERVICE]')
    def create_loan(self, **fields):
        """
        Open a PENDING loan. The due date defaults to issue date plus the
        loan duration.
        """
        require_fields(fields, ('farmer_id', 'amount', 'interest_rate', 'duration_months'), 'Loan')
        if fields.get('status') not in (None, LoanStatus.PENDING):
            raise ValidationFailed('New loans always start PENDING')
        fields.pop('status', None)
        reject_fields(fields, STATUS_COUPLED_FIELDS, 'Approval, disbursement and repayment fields are set by the loan lifecycle')
        unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationFailed(f"Unknown loan fields: {', '.join(unknown)}", details={'fields': unknown})

        fields = _validate_terms(fields)
        fields['issued_date'] = fields.get('issued_date') or timezone.now()
        if not fields.get('due_date'):
            fields['due_date'] = add_months(fields['issued_date'], fields['duration_months'])

        loan = self.store.create(
            status=LoanStatus.PENDING,
            amount_paid=0,
            remaining_balance=fields['amount'],
            **fields,
        )
        logger.info(f"[LOAN_SERVICE] Created {loan.loan_type} loan {loan.id} of {loan.amount} for farmer {loan.farmer_id}")
        return loan

    @translate_database_errors('[LOAN_SERVICE]')
    def update_loan(self, loan_id, fields):
        loan = self._get(loan_id)
        if loan.status in LOAN_LOCKED_FOR_EDIT:
            raise OperationForbidden(f"Cannot update loan details in {loan.status} status")

        fields = dict(fields)
        reject_fields(fields, STATUS_COUPLED_FIELDS, 'Status and repayment fields change only through the loan lifecycle')
        unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationFailed(f"Unknown loan fields: {', '.join(unknown)}", details={'fields': unknown})

        fields = _validate_terms(fields)
        if 'amount' in fields:
            fields['remaining_balance'] = fields['amount'] - loan.amount_paid

        affected, rows = self.store.update(loan_id, fields, expected_status=loan.status)
        return self._single_row(affected, rows, loan_id)

    @translate_database_errors('[LOAN_SERVICE]')
    def update_status(self, loan_id, status, approved_by=None, approved_date=None,
                      disbursed_date=None, rejection_reason=None):
        """
        Move the loan along LOAN_TRANSITIONS.

        Approval stamps approver and date, rejection stores the reason and
        the first activation stamps the disbursement date and records a
        DEPOSIT for the full principal.
        """
        if status not in LoanStatus.values:
            raise ValidationFailed(f"Unknown loan status: {status}")
        loan = self._get(loan_id)
        check_transition(
            LOAN_TRANSITIONS, loan.status, status, entity='Loan',
            provided={'rejection_reason': rejection_reason},
        )
        if loan.status == status:
            return attach_warnings(loan)

        now = timezone.now()
        extra = {}
        if status == LoanStatus.APPROVED:
            extra['approved_by'] = approved_by
            extra['approved_date'] = approved_date or now
        elif status == LoanStatus.REJECTED:
            extra['rejection_reason'] = rejection_reason

        first_disbursement = status == LoanStatus.ACTIVE and loan.disbursed_date is None
        if first_disbursement:
            extra['disbursed_date'] = disbursed_date or now

        affected, rows = self.store.update_status(loan_id, status, extra=extra, expected_status=loan.status)
        updated = self._single_row(affected, rows, loan_id)
        logger.info(f"[LOAN_SERVICE] Loan {loan_id}: {loan.status} -> {status}")

        deposit = None
        if first_disbursement:
            deposit = run_best_effort(
                f"Recording disbursement for loan {loan_id}",
                self.ledger.record,
                farmer_id=loan.farmer_id,
                transaction_type=TransactionType.DEPOSIT,
                amount=loan.amount,
                currency=Currency.USD,
                payment_method=PaymentMethod.BANK_TRANSFER,
                transaction_date=extra['disbursed_date'],
                notes=f"Loan disbursement for {loan.loan_type.lower()} loan",
                reference=f"LOAN-{loan.id}",
                metadata={'loanId': str(loan.id), 'loanType': loan.loan_type},
            )
        return attach_warnings(updated, deposit)

    @translate_database_errors('[LOAN_SERVICE]')
    def record_payment(self, loan_id, amount, payment_date=None, notes=None):
        """
        Apply a repayment and record a PAYMENT transaction.

        Overpayment is accepted and leaves a negative remaining balance. A
        loan whose balance reaches zero moves to REPAID.
        """
        amount = parse_amount(amount)
        loan = self._get(loan_id)
        if not loan_accepts_payments(loan.status):
            raise StateConflict(f"Cannot record payment for loan in {loan.status} status")

        payment_date = payment_date or timezone.now()
        affected, rows = self.store.record_payment(loan_id, amount, payment_date)
        updated = self._single_row(affected, rows, loan_id, 'Loan stopped accepting payments concurrently')
        logger.info(
            f"[LOAN_SERVICE] Payment of {amount} on loan {loan_id}; "
            f"paid {updated.amount_paid}, remaining {updated.remaining_balance}"
        )

        if updated.remaining_balance <= 0:
            affected, rows = self.store.update_status(
                loan_id, LoanStatus.REPAID, expected_status=tuple(LOAN_PAYABLE),
            )
            if affected:
                updated = rows[0]
                logger.info(f"[LOAN_SERVICE] Loan {loan_id} fully repaid")

        payment = run_best_effort(
            f"Recording payment for loan {loan_id}",
            self.ledger.record,
            farmer_id=loan.farmer_id,
            transaction_type=TransactionType.PAYMENT,
            amount=amount,
            currency=Currency.USD,
            payment_method=PaymentMethod.BANK_TRANSFER,
            transaction_date=payment_date,
            notes=notes or f"Loan payment for {loan.loan_type.lower()} loan",
            reference=f"LOAN-PAYMENT-{loan.id}",
            metadata={
                'loanId': str(loan.id),
                'loanType': loan.loan_type,
                'amountPaid': str(updated.amount_paid),
                'remainingBalance': str(updated.remaining_balance),
            },
        )
        return attach_warnings(updated, payment)

    @translate_database_errors('[LOAN_SERVICE]')
    def delete_loan(self, loan_id):
        loan = self._get(loan_id)
        if not loan_is_deletable(loan.status):
            raise OperationForbidden(f"Loans in {loan.status} status cannot be deleted")
        if not self.store.delete(loan_id):
            raise StateConflict(f"Loan {loan_id} could not be deleted")
        logger.info(f"[LOAN_SERVICE] Deleted loan {loan_id}")
        return True

    @translate_database_errors('[LOAN_SERVICE]')
    def check_and_update_overdue_loans(self, now=None):
        """
        Move every ACTIVE loan past its due date to OVERDUE.

        Each loan is updated on its own; a failure is logged and the sweep
        continues. Returns the number of loans actually moved.
        """
        now = now or timezone.now()
        candidates = self.store.get_overdue_loans(now)
        updated_count = 0

        for loan in candidates:
            result = run_best_effort(
                f"Marking loan {loan.id} overdue",
                self.store.update_status,
                loan.id,
                LoanStatus.OVERDUE,
                expected_status=LoanStatus.ACTIVE,
            )
            if result.ok and result.value[0]:
                updated_count += 1
            elif result.ok:
                logger.info(f"[LOAN_SERVICE] Loan {loan.id} left ACTIVE before it could be marked overdue")

        logger.info(f"[LOAN_SERVICE] Overdue sweep: {updated_count} of {len(candidates)} loans updated")
        return updated_count

    def list_farmer_loans(self, farmer_id, filters=None, pagination=None):
        return self.store.find_by_owner(farmer_id, filters, pagination)

    def search_loans(self, criteria=None, pagination=None):
        return self.store.search(criteria, pagination)

from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.db import DatabaseError
from django.test import TestCase
from django.utils import timezone

from marketplace.constants import LoanStatus, TokenStatus
from marketplace.models import Loan, Token
from marketplace.stores import LoanStore
from marketplace.tasks import check_expired_tokens, check_overdue_loans
from marketplace.utils import build_services
from marketplace.utils.side_effects import attach_warnings, run_best_effort

from .helpers import StaticMintingClient, make_harvest, make_loan, make_token


class FlakyLoanStore(LoanStore):
    """Fails the status write for one loan."""

    def __init__(self, broken_id):
        self.broken_id = broken_id

    def update_status(self, pk, status, extra=None, expected_status=None):
        if pk == self.broken_id:
            raise DatabaseError('database is locked')
        return super().update_status(pk, status, extra=extra, expected_status=expected_status)


class OverdueLoanSweepTests(TestCase):
    def setUp(self):
        past = timezone.now() - timedelta(days=2)
        self.late_a = make_loan(due_date=past)
        self.late_b = make_loan(due_date=past - timedelta(days=10))
        self.current = make_loan()
        self.repaid = make_loan(status=LoanStatus.REPAID, due_date=past, remaining_balance=Decimal('0'))

    def _statuses(self):
        return {loan.id: loan.status for loan in Loan.objects.all()}

    def test_sweep_marks_only_active_past_due(self):
        loans = build_services(minting_client=StaticMintingClient()).loans
        self.assertEqual(loans.check_and_update_overdue_loans(), 2)

        statuses = self._statuses()
        self.assertEqual(statuses[self.late_a.id], LoanStatus.OVERDUE)
        self.assertEqual(statuses[self.late_b.id], LoanStatus.OVERDUE)
        self.assertEqual(statuses[self.current.id], LoanStatus.ACTIVE)
        self.assertEqual(statuses[self.repaid.id], LoanStatus.REPAID)

        self.assertEqual(loans.check_and_update_overdue_loans(), 0)

    def test_one_failure_does_not_stop_the_sweep(self):
        loans = build_services(
            minting_client=StaticMintingClient(),
            loan_store=FlakyLoanStore(self.late_a.id),
        ).loans
        self.assertEqual(loans.check_and_update_overdue_loans(), 1)

        statuses = self._statuses()
        self.assertEqual(statuses[self.late_a.id], LoanStatus.ACTIVE)
        self.assertEqual(statuses[self.late_b.id], LoanStatus.OVERDUE)

    def test_task_returns_count(self):
        self.assertEqual(check_overdue_loans(), {'updated_count': 2})

    def test_command(self):
        out = StringIO()
        call_command('check_overdue_loans', stdout=out)
        self.assertIn('Marked 2 loans as OVERDUE', out.getvalue())

    def test_command_dry_run_changes_nothing(self):
        out = StringIO()
        call_command('check_overdue_loans', '--dry-run', stdout=out)
        self.assertIn('DRY RUN: 2 loans', out.getvalue())
        self.assertEqual(Loan.objects.filter(status=LoanStatus.OVERDUE).count(), 0)


class ExpiredTokenSweepTests(TestCase):
    def setUp(self):
        now = timezone.now()
        past = now - timedelta(days=1)
        harvest = make_harvest()
        self.active = make_token(harvest, expiry_date=past)
        self.pending = make_token(harvest, status=TokenStatus.PENDING, expiry_date=past)
        self.revoked = make_token(harvest, status=TokenStatus.REVOKED, expiry_date=past)
        self.redeemed = make_token(
            harvest,
            status=TokenStatus.REDEEMED,
            expiry_date=past,
            redemption_amount=Decimal('10'),
            redemption_date=now - timedelta(days=3),
            redemption_tx_id='0xdone',
        )
        self.fresh = make_token(harvest)
        self.open_ended = make_token(harvest, expiry_date=None)

    def test_sweep_expires_live_tokens_only(self):
        tokens = build_services(minting_client=StaticMintingClient()).tokens
        self.assertEqual(tokens.check_and_update_expired_tokens(), 2)

        statuses = {token.id: token.status for token in Token.objects.all()}
        self.assertEqual(statuses[self.active.id], TokenStatus.EXPIRED)
        self.assertEqual(statuses[self.pending.id], TokenStatus.EXPIRED)
        self.assertEqual(statuses[self.revoked.id], TokenStatus.REVOKED)
        self.assertEqual(statuses[self.redeemed.id], TokenStatus.REDEEMED)
        self.assertEqual(statuses[self.fresh.id], TokenStatus.ACTIVE)
        self.assertEqual(statuses[self.open_ended.id], TokenStatus.ACTIVE)

    def test_task_returns_count(self):
        self.assertEqual(check_expired_tokens(), {'updated_count': 2})

    def test_command(self):
        out = StringIO()
        call_command('check_expired_tokens', stdout=out)
        self.assertIn('Marked 2 tokens as EXPIRED', out.getvalue())


class BestEffortTests(TestCase):
    def test_success_returns_value(self):
        result = run_best_effort('Adding', lambda a, b: a + b, 2, 3)
        self.assertTrue(result.ok)
        self.assertEqual(result.value, 5)
        self.assertIsNone(result.warning)

    def test_failure_is_captured_not_raised(self):
        def explode():
            raise DatabaseError('disk full')

        result = run_best_effort('Writing audit row', explode)
        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, DatabaseError)
        self.assertEqual(result.warning, 'Writing audit row failed: disk full')

    def test_failed_write_does_not_poison_outer_transaction(self):
        loan = make_loan()

        def write_then_fail():
            Loan.objects.filter(pk=loan.pk).update(notes='half written')
            raise DatabaseError('constraint failed')

        run_best_effort('Annotating loan', write_then_fail)
        loan.refresh_from_db()
        self.assertIsNone(loan.notes)
        self.assertEqual(Loan.objects.count(), 1)

    def test_attach_warnings(self):
        loan = make_loan()
        ok = run_best_effort('fine', lambda: None)
        bad = run_best_effort('broken', self._raise)
        attach_warnings(loan, ok, None, bad)
        self.assertEqual(loan.side_effect_warnings, ['broken failed: boom'])

    @staticmethod
    def _raise():
        raise ValueError('boom')

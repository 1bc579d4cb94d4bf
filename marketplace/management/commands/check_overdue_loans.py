from django.core.management.base import BaseCommand
from django.utils import timezone
import logging

from marketplace.stores import LoanStore
from marketplace.utils import build_services

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Mark ACTIVE loans whose due date has passed as OVERDUE'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List the loans that would be marked overdue without changing them',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        now = timezone.now()

        if dry_run:
            loans = LoanStore().get_overdue_loans(now)
            self.stdout.write(
                self.style.WARNING(f"DRY RUN: {len(loans)} loans are past due as of {now:%Y-%m-%d %H:%M}")
            )
            for loan in loans:
                self.stdout.write(f"  {loan.id}  farmer={loan.farmer_id}  due={loan.due_date:%Y-%m-%d}  balance={loan.remaining_balance}")
            return

        updated_count = build_services().loans.check_and_update_overdue_loans(now)
        logger.info(f"check_overdue_loans command updated {updated_count} loans")
        self.stdout.write(self.style.SUCCESS(f"Marked {updated_count} loans as OVERDUE"))

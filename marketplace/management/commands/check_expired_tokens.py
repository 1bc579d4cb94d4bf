from django.core.management.base import BaseCommand
from django.utils import timezone
import logging

from marketplace.stores import TokenStore
from marketplace.utils import build_services

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Mark tokens whose expiry date has passed as EXPIRED'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List the tokens that would expire without changing them',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        now = timezone.now()

        if dry_run:
            tokens = TokenStore().get_expired_tokens(now)
            self.stdout.write(
                self.style.WARNING(f"DRY RUN: {len(tokens)} tokens are past expiry as of {now:%Y-%m-%d %H:%M}")
            )
            for token in tokens:
                self.stdout.write(f"  {token.id}  status={token.status}  expired={token.expiry_date:%Y-%m-%d}")
            return

        updated_count = build_services().tokens.check_and_update_expired_tokens(now)
        logger.info(f"check_expired_tokens command updated {updated_count} tokens")
        self.stdout.write(self.style.SUCCESS(f"Marked {updated_count} tokens as EXPIRED"))

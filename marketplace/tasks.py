"""
Celery tasks for the marketplace.
Periodic sweeps that move loans and tokens whose deadlines have passed.
"""

from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task
def check_overdue_loans():
    """
    Mark ACTIVE loans past their due date as OVERDUE.
    """
    from .utils import build_services

    try:
        updated_count = build_services().loans.check_and_update_overdue_loans()
        logger.info(f"Overdue loan sweep complete: {updated_count} loans updated")
        return {'updated_count': updated_count}
    except Exception as e:
        logger.error(f"Failed to check overdue loans: {str(e)}")
        raise


@shared_task
def check_expired_tokens():
    """
    Mark live tokens past their expiry date as EXPIRED.
    """
    from .utils import build_services

    try:
        updated_count = build_services().tokens.check_and_update_expired_tokens()
        logger.info(f"Expired token sweep complete: {updated_count} tokens updated")
        return {'updated_count': updated_count}
    except Exception as e:
        logger.error(f"Failed to check expired tokens: {str(e)}")
        raise

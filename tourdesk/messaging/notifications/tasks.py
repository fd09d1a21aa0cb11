import logging

from celery import shared_task
from django.conf import settings

from messaging.models import Message

from .retry import RetryCoordinator

logger = logging.getLogger(__name__)


@shared_task(bind=True, ignore_result=False)
def retry_failed_messages_task(self, limit=None, channel=None):
    """Periodic batch resend of failed messages (see CELERY_BEAT_SCHEDULE)."""
    summary = RetryCoordinator().batch_retry(
        limit=limit or settings.MESSAGE_RETRY_BATCH_LIMIT, channel=channel,
    )
    if summary['failed']:
        logger.warning('%s of %s message retries failed', summary['failed'], summary['total'])
    return {key: summary[key] for key in ('total', 'success', 'failed')}


@shared_task(bind=True)
def retry_message_task(self, message_id):
    """Resend one failed message off the request cycle."""
    try:
        message = Message.objects.get(pk=message_id)
    except Message.DoesNotExist:
        return None  # Deleted between enqueue and execution
    return RetryCoordinator().retry(message).to_dict()

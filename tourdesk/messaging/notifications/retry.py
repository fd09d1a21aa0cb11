"""Resending failed messages.

The failed record is an audit entry and is never rewritten into a success:
a successful resend creates a new Message pointing back at it, a failed
resend bumps the original's retry_count. A message that already has a
successful resend is never sent again.
"""
import logging
import time
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.utils import timezone

from bookings.models import Booking
from messaging.models import Channel, Message

from .registry import get_sender

logger = logging.getLogger(__name__)


@dataclass
class RetryResult:
    success: bool
    message: Message
    new_message: Optional[Message] = None
    error: str = ''
    error_code: Optional[str] = None

    def to_dict(self):
        return {
            'success': self.success,
            'message_id': self.message.pk,
            'channel': self.message.channel,
            'recipient': self.message.recipient,
            'retry_count': self.message.retry_count,
            'max_retries': Message.MAX_RETRIES,
            'new_message_id': self.new_message.pk if self.new_message else None,
            'new_status': self.new_message.status if self.new_message else None,
            'error': self.error or None,
            'error_code': self.error_code,
        }


class RetryCoordinator:

    def __init__(self, senders=None, delay_seconds=None):
        self.senders = senders
        if delay_seconds is None:
            delay_seconds = settings.MESSAGE_RETRY_DELAY_SECONDS
        self.delay_seconds = delay_seconds

    def _sender(self, channel):
        if self.senders is not None:
            return self.senders[channel]
        return get_sender(channel)

    def _attachments(self, message, booking):
        if message.channel == Channel.SMS:
            return []
        linked = list(message.attachments.all())
        if linked:
            return linked
        # The original attempt failed before attachments were linked
        return list(booking.attachments.order_by('pk'))

    def retry(self, message):
        if message.status != Message.Status.FAILED:
            return RetryResult(
                False, message, error='Only failed messages can be retried', error_code='not_failed',
            )
        if message.retry_count >= Message.MAX_RETRIES:
            return RetryResult(
                False, message,
                error=f'Maximum retry attempts reached ({Message.MAX_RETRIES})',
                error_code='exhausted',
            )
        resend = message.resends.order_by('pk').first()
        if resend is not None:
            return RetryResult(
                False, message, new_message=resend,
                error=f'Already resent as message #{resend.pk}', error_code='already_resent',
            )

        booking = Booking.objects.filter(pk=message.booking_id).first() if message.booking_id else None
        if booking is None:
            error = 'Booking no longer exists'
            message.record_retry_failure(error)
            logger.warning('Retry of message %s skipped: %s', message.pk, error)
            return RetryResult(False, message, error=error, error_code='booking_missing')

        sender = self._sender(message.channel)
        attachments = self._attachments(message, booking)
        try:
            external_id = sender.deliver(message, booking, attachments)
        except Exception as exc:
            message.record_retry_failure(exc)
            logger.error(
                'Retry %s/%s of message %s (%s to %s) failed: %s',
                message.retry_count, Message.MAX_RETRIES, message.pk,
                message.channel, message.recipient, exc,
            )
            return RetryResult(False, message, error=str(exc)[:500], error_code='send_failed')

        now = timezone.now()
        new_message = Message.objects.create(
            booking=booking,
            channel=message.channel,
            direction=message.direction,
            recipient=message.recipient,
            subject=message.subject,
            content=message.content,
            language=message.language,
            template_id=message.template_id,
            template_variables=message.template_variables,
            external_id=external_id or '',
            status=Message.Status.SENT,
            # Attempts are counted across the whole resend chain
            retry_count=message.retry_count + 1,
            queued_at=now,
            sent_at=now,
            retry_of=message,
        )
        if attachments:
            new_message.attachments.set(attachments)
        message.record_retry_success(new_message)
        logger.info(
            'Message %s resent on %s as message %s (external id %s)',
            message.pk, message.channel, new_message.pk, external_id,
        )
        return RetryResult(True, message, new_message=new_message)

    def get_retryable_messages(self, limit=None, channel=None):
        """Failed outbound messages under the retry cap, oldest failure first.

        Messages that already have a successful resend are left alone.
        """
        queryset = (
            Message.objects.retryable().outbound()
            .filter(resends__isnull=True)
            .select_related('booking')
            .order_by('failed_at', 'pk')
        )
        if channel:
            queryset = queryset.by_channel(channel)
        return list(queryset[:limit or settings.MESSAGE_RETRY_BATCH_LIMIT])

    def batch_retry(self, limit=None, channel=None):
        messages = self.get_retryable_messages(limit, channel)
        results = []
        for index, message in enumerate(messages):
            if index and self.delay_seconds:
                time.sleep(self.delay_seconds)
            results.append(self.retry(message).to_dict())

        succeeded = sum(1 for r in results if r['success'])
        summary = {
            'total': len(results),
            'success': succeeded,
            'failed': len(results) - succeeded,
            'results': results,
        }
        logger.info(
            'Batch retry finished: %s total, %s succeeded, %s failed',
            summary['total'], summary['success'], summary['failed'],
        )
        return summary

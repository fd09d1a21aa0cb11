"""Twilio message status callbacks (WhatsApp and SMS share the format)."""
import logging

from messaging.models import Message

logger = logging.getLogger(__name__)


def _error_text(data, status):
    code = data.get('ErrorCode')
    detail = data.get('ErrorMessage') or f'Message {status}'
    return f'Error {code}: {detail}' if code else detail


def handle_status_callback(data):
    """Apply a Twilio status callback to the Message it refers to.

    Unknown SIDs and intermediate statuses are no-ops. Out-of-order callbacks
    (e.g. ``delivered`` after ``read``) never move a message backwards.
    Returns the Message, or None when the SID is unknown.
    """
    sid = data.get('MessageSid') or data.get('SmsSid') or ''
    status = (data.get('MessageStatus') or data.get('SmsStatus') or '').lower()
    if not sid or not status:
        return None

    message = Message.objects.filter(external_id=sid).first()
    if message is None:
        logger.warning('Twilio status callback for unknown SID %s (%s)', sid, status)
        return None

    if status == 'delivered':
        applied = message.mark_delivered()
    elif status == 'read':
        applied = message.mark_read()
    elif status in ('failed', 'undelivered'):
        applied = message.mark_failed(_error_text(data, status))
    else:
        return message  # queued / sending / sent: already recorded at send time

    if applied:
        logger.info('Message %s (%s) is now %s', message.pk, sid, status)
    else:
        logger.info('Ignored %s callback for message %s already %s', status, message.pk, message.status)
    return message

import base64
import logging
from html import escape

import resend
from django.conf import settings
from resend.http_client_requests import RequestsClient

from messaging.models import Channel
from messaging.storage import attachment_store

from .base import ChannelSender

logger = logging.getLogger(__name__)


def build_ticket_email_html(content):
    """Wrap the rendered template text in a minimal HTML body."""
    paragraphs = ''.join(
        f'<p style="margin:0 0 16px">{escape(block).replace(chr(10), "<br>")}</p>'
        for block in content.split('\n\n') if block.strip()
    )
    return (
        '<!DOCTYPE html><html><body style="font-family:Arial,sans-serif;'
        'color:#1a1a1a;line-height:1.5;max-width:600px;margin:0 auto;padding:24px">'
        f'{paragraphs}</body></html>'
    )


class EmailSender(ChannelSender):
    """Ticket email via the Resend API, PDFs attached by content."""

    channel = Channel.EMAIL.value

    def get_recipient(self, booking):
        return (booking.customer_email or '').strip()

    def _resend_attachments(self, attachments):
        payload = []
        for attachment in attachments:
            if not attachment_store.exists(attachment):
                logger.warning('Attachment %s missing from storage; not attached', attachment.pk)
                continue
            payload.append({
                'filename': attachment.original_name,
                'content': base64.b64encode(attachment_store.get_bytes(attachment)).decode(),
            })
        return payload

    def deliver(self, message, booking, attachments):
        resend.api_key = settings.RESEND_API_KEY
        resend.default_http_client = RequestsClient(timeout=settings.VENDOR_TIMEOUT_SECONDS)
        params = {
            'from': settings.RESEND_FROM_EMAIL,
            'to': [message.recipient],
            'subject': message.subject or f'Your tickets for {booking.product_name}',
            'html': build_ticket_email_html(message.content),
            'tags': [
                {'name': 'type', 'value': 'ticket'},
                {'name': 'booking', 'value': str(booking.pk)},
            ],
        }
        files = self._resend_attachments(attachments)
        if files:
            params['attachments'] = files
        response = resend.Emails.send(params)
        return response.get('id', '')

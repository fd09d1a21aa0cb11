import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from django.conf import settings
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from bookings.models import Booking
from messaging.exceptions import SendError
from messaging.models import Message, MessageTemplate

logger = logging.getLogger(__name__)


def format_phone_number(phone):
    """Normalize to E.164: '+' followed by digits only."""
    cleaned = re.sub(r'[^\d+]', '', phone or '')
    digits = cleaned.lstrip('+')
    return f'+{digits}' if digits else ''


def get_twilio_client():
    """Twilio REST client with an explicit per-request timeout."""
    return Client(
        settings.TWILIO_ACCOUNT_SID,
        settings.TWILIO_AUTH_TOKEN,
        http_client=TwilioHttpClient(timeout=settings.VENDOR_TIMEOUT_SECONDS),
    )


def twilio_send_params(to, from_, **extra):
    params = {'to': to, 'from_': from_, **extra}
    if settings.TWILIO_STATUS_CALLBACK_URL:
        params['status_callback'] = settings.TWILIO_STATUS_CALLBACK_URL
    return params


@dataclass
class RenderedMessage:
    """Template output for one channel, ready to be recorded and sent."""

    content: str
    subject: str = ''
    language: str = 'en'
    template: Optional[MessageTemplate] = None  # unsaved for custom messages
    variables: dict = field(default_factory=dict)

    @property
    def template_id(self):
        if self.template is not None and self.template.pk:
            return self.template.pk
        return None


class ChannelSender(ABC):
    """Base class for per-channel ticket senders.

    ``send()`` owns the Message lifecycle; ``deliver()`` is the vendor call
    alone so a failed Message can be resent without re-rendering.
    """

    channel: str = ''

    @abstractmethod
    def get_recipient(self, booking: Booking) -> str:
        """Return the normalized address for this channel, or ''."""

    @abstractmethod
    def deliver(self, message: Message, booking: Booking, attachments: list) -> str:
        """Hand the message to the vendor. Returns the vendor message id."""

    def send(self, booking, rendered, attachments=()):
        recipient = self.get_recipient(booking)
        if not recipient:
            raise SendError(f'Booking has no {self.channel} recipient')

        attachments = list(attachments)
        message = Message.objects.create(
            booking=booking,
            channel=self.channel,
            recipient=recipient,
            subject=rendered.subject,
            content=rendered.content,
            language=rendered.language,
            template_id=rendered.template_id,
            template_variables=rendered.variables,
            status=Message.Status.PENDING,
        )
        if attachments:
            message.attachments.set(attachments)
        message.mark_queued()

        try:
            external_id = self.deliver(message, booking, attachments)
        except Exception as exc:
            message.mark_failed(exc)
            logger.error(
                'Failed to send %s for booking %s to %s: %s',
                self.channel, booking.pk, recipient, exc,
            )
            raise SendError(str(exc), message=message) from exc

        message.mark_sent(external_id)
        logger.info(
            '%s sent for booking %s (message %s, external id %s)',
            self.channel, booking.pk, message.pk, external_id,
        )
        return message

from django.conf import settings

from messaging.models import Channel

from .base import ChannelSender, format_phone_number, get_twilio_client, twilio_send_params


class SMSSender(ChannelSender):
    """Plain-text SMS through Twilio Messaging. Never carries media."""

    channel = Channel.SMS.value

    def get_recipient(self, booking):
        return format_phone_number(booking.customer_phone)

    def deliver(self, message, booking, attachments):
        response = get_twilio_client().messages.create(**twilio_send_params(
            to=message.recipient,
            from_=settings.TWILIO_SMS_FROM,
            body=message.content,
        ))
        return response.sid

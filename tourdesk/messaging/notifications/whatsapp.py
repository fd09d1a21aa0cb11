import json
import logging

from django.conf import settings

from messaging.models import Channel
from messaging.storage import attachment_store

from .base import ChannelSender, format_phone_number, get_twilio_client, twilio_send_params

logger = logging.getLogger(__name__)

DEFAULT_ENTRY_TIME = '10:00 AM'


def content_template_type(has_audio_guide, with_pdf):
    if with_pdf:
        return 'ticket_audio_pdf' if has_audio_guide else 'ticket_pdf'
    return 'ticket_with_audio' if has_audio_guide else 'ticket_only'


def get_content_sid(language, has_audio_guide, with_pdf):
    """Twilio Content Template SID for the variant, English if the language has none."""
    templates = settings.WHATSAPP_CONTENT_TEMPLATES.get(
        content_template_type(has_audio_guide, with_pdf), {},
    )
    return templates.get(language) or templates.get(settings.WHATSAPP_FALLBACK_LANGUAGE)


def build_content_variables(booking, has_audio_guide, pdf_url=None):
    """Numbered variables for the ticket content templates.

    1 customer name, 2 entry date/time, 3 audio guide (or online guide) link,
    4 know-before-you-go page, 5 PDF URL (media templates only).
    """
    urls = settings.WHATSAPP_TEMPLATE_URLS
    if booking.tour_date:
        tour_date = booking.tour_date
        entry = f'{tour_date:%B} {tour_date.day}, {tour_date.year} at {booking.tour_time or DEFAULT_ENTRY_TIME}'
    else:
        entry = 'Your scheduled time'

    variables = {
        '1': booking.customer_name or 'Guest',
        '2': entry,
        '3': (booking.audio_guide_link or urls['online_guide']) if has_audio_guide else urls['online_guide'],
        '4': urls['know_before_you_go'],
    }
    if pdf_url:
        variables['5'] = pdf_url
    return variables


class WhatsAppSender(ChannelSender):
    """Ticket delivery through Twilio WhatsApp Content Templates.

    Business-initiated WhatsApp messages must use pre-approved templates, so
    the stored template's rendered text is only recorded on the Message; what
    the customer sees comes from the Content Template and its variables.
    """

    channel = Channel.WHATSAPP.value

    def get_recipient(self, booking):
        return format_phone_number(booking.customer_phone)

    def _pdf_url(self, attachments):
        if not attachments:
            return None
        first = attachments[0]
        url = attachment_store.get_temporary_url(first)
        if not url:
            logger.warning(
                'No PDF URL for attachment %s; falling back to text-only WhatsApp template',
                first.pk,
            )
        return url

    def deliver(self, message, booking, attachments):
        has_audio = booking.has_audio_guide
        pdf_url = self._pdf_url(attachments)
        content_sid = get_content_sid(message.language, has_audio, with_pdf=bool(pdf_url))
        if not content_sid:
            raise ValueError(f'No WhatsApp content template for language: {message.language}')

        variables = build_content_variables(booking, has_audio, pdf_url)
        response = get_twilio_client().messages.create(**twilio_send_params(
            to=f'whatsapp:{message.recipient}',
            from_=f'whatsapp:{settings.TWILIO_WHATSAPP_FROM}',
            content_sid=content_sid,
            content_variables=json.dumps(variables),
        ))
        return response.sid

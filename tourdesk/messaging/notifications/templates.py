from django.conf import settings
from django.utils.text import slugify

from messaging.exceptions import TemplateNotFound
from messaging.models import Channel, MessageTemplate

from .base import RenderedMessage

FALLBACK_LANGUAGE = 'en'


class TemplateResolver:
    """Find the stored template for a channel, falling back towards English."""

    def resolve(self, channel, language, has_audio_guide):
        template_type = (
            MessageTemplate.TemplateType.TICKET_WITH_AUDIO
            if has_audio_guide else MessageTemplate.TemplateType.TICKET_ONLY
        )
        templates = MessageTemplate.objects
        candidates = (
            lambda: templates.for_variant(language, template_type, channel),
            lambda: templates.for_variant(FALLBACK_LANGUAGE, template_type, channel),
            lambda: templates.default_for(channel, language),
            lambda: templates.default_for(channel, FALLBACK_LANGUAGE),
        )
        for lookup in candidates:
            template = lookup()
            if template is not None:
                return template
        raise TemplateNotFound(
            f'No {channel} template found for language {language!r} ({template_type})'
        )

    def custom_template(self, channel, subject, content):
        """Unsaved template wrapping an operator-written message."""
        return MessageTemplate(
            name='Custom Message',
            slug=f'custom-{slugify(channel)}',
            channel=channel,
            language=FALLBACK_LANGUAGE,
            subject=subject,
            content=content,
        )

    def render(self, template, booking, language=None):
        variables = booking.get_template_variables()
        return RenderedMessage(
            content=template.render(variables),
            subject=template.render_subject(variables),
            language=language or template.language,
            template=template,
            variables=variables,
        )


class NotificationTextProvider:
    """Short SMS notices sent alongside an email ticket.

    SMS never carries the PDF or audio-guide details; it only tells the
    customer to check their inbox.
    """

    def sms_ticket_notice(self, language, variables=None):
        texts = settings.SMS_TICKET_NOTIFICATIONS
        text = texts.get(language) or texts[settings.SMS_FALLBACK_LANGUAGE]
        if variables:
            for key, value in variables.items():
                text = text.replace('{' + key + '}', '' if value is None else str(value))
        return text

    def render_sms(self, booking, language, custom=False, resolver=None):
        """SMS notice: a stored SMS template if one resolves, else the
        configured per-language text. Never the audio-guide variant."""
        # Custom messages are written in English by the operator
        language = FALLBACK_LANGUAGE if custom else language
        resolver = resolver or TemplateResolver()
        try:
            template = resolver.resolve(Channel.SMS, language, has_audio_guide=False)
        except TemplateNotFound:
            variables = booking.get_template_variables()
            return RenderedMessage(
                content=self.sms_ticket_notice(language, variables),
                language=language,
                variables=variables,
            )
        return resolver.render(template, booking, language=language)

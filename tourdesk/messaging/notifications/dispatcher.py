"""Ticket dispatch: preconditions, plan, per-channel attempts, aggregation.

Every channel in a plan is attempted independently. A WhatsApp failure never
stops the Email attempt of a dual plan, and an SMS notice failure never
undoes a delivered email ticket.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

from messaging.exceptions import (
    DispatchPreconditionError, PlanOverrideError, SendError, TemplateNotFound,
    categorize_error,
)
from messaging.models import Channel, Message, MessageAttachment

from .plan import NO_CONTACT, describe, select_plan
from .prober import WhatsAppCapabilityProber
from .registry import SENDERS
from .templates import FALLBACK_LANGUAGE, NotificationTextProvider, TemplateResolver

logger = logging.getLogger(__name__)

CHANNEL_LABELS = dict(Channel.choices)
PREVIEW_CHANNELS = (Channel.WHATSAPP.value, Channel.EMAIL.value, Channel.SMS.value)


def dispatch_lock_key(booking_id):
    return f'ticket-dispatch:{booking_id}'


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class ChannelOutcome:
    channel: str
    role: str
    success: bool
    recipient: str = ''
    message: Optional[Message] = None
    error: str = ''

    @property
    def status(self):
        if self.message is not None:
            return self.message.status
        return Message.Status.SENT.value if self.success else Message.Status.FAILED.value

    def to_dict(self):
        return {
            'success': self.success,
            'status': self.status,
            'recipient': self.recipient,
            'error': self.error or None,
            'error_category': categorize_error(self.error) if self.error else None,
            'message_id': self.message.pk if self.message is not None else None,
        }


@dataclass
class DispatchResult:
    success: bool
    channel_used: Optional[str] = None
    outcomes: list = field(default_factory=list)
    errors: list = field(default_factory=list)
    error_code: Optional[str] = None
    security: bool = False

    @classmethod
    def refused(cls, exc):
        return cls(success=False, errors=[str(exc)], error_code=exc.code, security=exc.security)

    @property
    def channels(self):
        return [outcome.channel for outcome in self.outcomes]

    @property
    def messages(self):
        return [outcome.message for outcome in self.outcomes if outcome.message is not None]

    def to_dict(self):
        return {
            'success': self.success,
            'channel_used': self.channel_used,
            'channels': self.channels,
            'channel_status': {outcome.channel: outcome.to_dict() for outcome in self.outcomes},
            'messages': [
                {
                    'id': message.pk,
                    'channel': message.channel,
                    'status': message.status,
                    'recipient': message.recipient,
                    'external_id': message.external_id,
                }
                for message in self.messages
            ],
            'errors': self.errors,
            'error_code': self.error_code,
        }


def aggregate(outcomes):
    """Fold channel outcomes into (success, errors).

    Success means at least one ticket-carrying channel got through; a
    notification-only channel succeeding on its own does not count.
    """
    success = any(o.success for o in outcomes if o.role == 'ticket')
    errors = [
        f'{CHANNEL_LABELS.get(o.channel, o.channel)} failed: {o.error}'
        for o in outcomes if not o.success
    ]
    return success, errors


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

class TicketDispatcher:

    def __init__(self, prober=None, senders=None, resolver=None, text_provider=None):
        self.prober = prober or WhatsAppCapabilityProber()
        self.senders = senders if senders is not None else SENDERS
        self.resolver = resolver or TemplateResolver()
        self.text_provider = text_provider or NotificationTextProvider()

    # -- preconditions ------------------------------------------------------

    def _check_preconditions(self, booking, attachment_ids, custom_message):
        if not booking.reference_number:
            raise DispatchPreconditionError(
                'Booking has no ticket reference number', code='missing_reference',
            )
        if booking.has_audio_guide and not booking.has_audio_credentials:
            raise DispatchPreconditionError(
                'Audio guide booking has no audio guide link. Add the audio guide credentials first.',
                code='missing_audio_guide',
            )
        if custom_message is not None and not (
            (custom_message.get('subject') or '').strip()
            and (custom_message.get('content') or '').strip()
        ):
            raise DispatchPreconditionError(
                'Custom message requires a subject and content', code='invalid_custom_message',
            )

        requested = set(attachment_ids or ())
        if not requested:
            raise DispatchPreconditionError(
                'At least one attachment is required', code='attachments_required',
            )
        attachments = list(
            MessageAttachment.objects.filter(pk__in=requested, booking=booking).order_by('pk')
        )
        if len(attachments) != len(requested):
            logger.error(
                'SECURITY: Attachment mismatch for booking %s (requested %s, owned %s)',
                booking.pk, sorted(requested), [a.pk for a in attachments],
            )
            raise DispatchPreconditionError(
                'One or more attachments do not belong to this booking. '
                'Please re-upload the correct PDF.',
                code='attachment_mismatch',
                security=True,
            )
        return attachments

    # -- planning -----------------------------------------------------------

    def _probe(self, booking):
        return bool(booking.customer_phone) and self.prober.probe(booking.customer_phone)

    def plan_for(self, booking, force_channel=None):
        has_phone = bool(booking.customer_phone)
        has_email = bool(booking.customer_email)
        has_whatsapp = False if force_channel else self._probe(booking)
        return select_plan(has_phone, has_whatsapp, has_email, force=force_channel)

    # -- rendering ----------------------------------------------------------

    def _render(self, step, booking, language, custom_message):
        if step.channel == Channel.SMS:
            return self.text_provider.render_sms(
                booking, language, custom=custom_message is not None, resolver=self.resolver,
            )
        if custom_message is not None:
            template = self.resolver.custom_template(
                step.channel, custom_message['subject'], custom_message['content'],
            )
            return self.resolver.render(template, booking)
        template = self.resolver.resolve(step.channel, language, booking.has_audio_guide)
        return self.resolver.render(template, booking, language=language)

    def _attempt(self, step, booking, language, attachments, custom_message):
        sender = self.senders.get(step.channel)
        if sender is None:
            raise ValueError(f'No sender registered for channel: {step.channel!r}')

        recipient = sender.get_recipient(booking)
        outcome = ChannelOutcome(channel=step.channel, role=step.role, success=False, recipient=recipient)
        try:
            rendered = self._render(step, booking, language, custom_message)
            outcome.message = sender.send(
                booking, rendered, attachments if step.carries_ticket else (),
            )
            outcome.success = True
        except SendError as exc:
            outcome.message = exc.message
            outcome.error = str(exc)
        except TemplateNotFound as exc:
            logger.error('Template lookup failed for booking %s: %s', booking.pk, exc)
            outcome.error = str(exc)
        except Exception as exc:
            logger.exception(
                'Unexpected %s failure for booking %s', step.channel, booking.pk,
            )
            outcome.error = str(exc)
        return outcome

    # -- entry points -------------------------------------------------------

    def send_ticket(self, booking, language='en', attachment_ids=(), custom_message=None,
                    force_channel=None):
        if language == 'custom' or not language:
            language = FALLBACK_LANGUAGE

        try:
            attachments = self._check_preconditions(booking, attachment_ids, custom_message)
        except DispatchPreconditionError as exc:
            if not exc.security:
                logger.info('Ticket dispatch refused for booking %s: %s', booking.pk, exc)
            return DispatchResult.refused(exc)

        lock_key = dispatch_lock_key(booking.pk)
        if not cache.add(lock_key, timezone.now().isoformat(), timeout=settings.TICKET_DISPATCH_LOCK_SECONDS):
            logger.warning('Ticket dispatch already in progress for booking %s', booking.pk)
            return DispatchResult.refused(DispatchPreconditionError(
                'A ticket dispatch is already in progress for this booking',
                code='dispatch_in_progress',
            ))
        try:
            return self._dispatch(booking, language, attachments, custom_message, force_channel)
        finally:
            cache.delete(lock_key)

    def _dispatch(self, booking, language, attachments, custom_message, force_channel):
        try:
            plan = self.plan_for(booking, force_channel)
        except PlanOverrideError as exc:
            return DispatchResult(success=False, errors=[str(exc)], error_code='plan_override')

        if not plan.is_deliverable:
            code = 'no_contact' if plan is NO_CONTACT else 'no_ticket_channel'
            logger.info('No delivery plan for booking %s: %s', booking.pk, plan.error)
            return DispatchResult(success=False, errors=[plan.error], error_code=code)

        outcomes = [
            self._attempt(step, booking, language, attachments, custom_message)
            for step in plan.steps
        ]
        success, errors = aggregate(outcomes)

        for outcome in outcomes:
            if not outcome.success and outcome.role == 'notification':
                logger.warning(
                    'Non-critical %s notification failed for booking %s: %s',
                    outcome.channel, booking.pk, outcome.error,
                )

        if success:
            self._stamp_booking(booking)
        else:
            logger.error('Ticket dispatch failed on every channel for booking %s: %s', booking.pk, errors)

        return DispatchResult(
            success=success,
            channel_used=plan.channel_used,
            outcomes=outcomes,
            errors=errors,
            error_code=None if success else 'delivery_failed',
        )

    def _stamp_booking(self, booking):
        now = timezone.now()
        booking.tickets_sent_at = now
        update_fields = ['tickets_sent_at', 'updated_at']
        if booking.has_audio_guide and settings.AUDIO_GUIDE_STAMP_POLICY == 'with_tickets':
            booking.audio_guide_sent_at = now
            update_fields.append('audio_guide_sent_at')
        booking.save(update_fields=update_fields)

    def detect_channel(self, booking):
        has_phone = bool(booking.customer_phone)
        has_whatsapp = self._probe(booking)
        plan = select_plan(has_phone, has_whatsapp, bool(booking.customer_email))
        return {
            **describe(plan),
            'has_phone': has_phone,
            'has_email': bool(booking.customer_email),
            'has_whatsapp': has_whatsapp,
        }

    def preview(self, booking, language='en'):
        """Rendered content per channel without sending anything."""
        previews = {}
        for channel in PREVIEW_CHANNELS:
            sender = self.senders[channel]
            try:
                if channel == Channel.SMS:
                    rendered = self.text_provider.render_sms(booking, language, resolver=self.resolver)
                else:
                    template = self.resolver.resolve(channel, language, booking.has_audio_guide)
                    rendered = self.resolver.render(template, booking, language=language)
            except TemplateNotFound as exc:
                previews[channel] = {'error': str(exc)}
                continue
            previews[channel] = {
                'recipient': sender.get_recipient(booking),
                'subject': rendered.subject,
                'content': rendered.content,
                'template_id': rendered.template_id,
            }
        return previews

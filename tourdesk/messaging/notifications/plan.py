"""Delivery plan selection.

A plan is recomputed for every dispatch and every channel preview from the
booking's contact fields plus the WhatsApp probe result. It is never stored.
"""
from dataclasses import dataclass
from typing import Optional

from messaging.exceptions import PlanOverrideError
from messaging.models import Channel

TICKET = 'ticket'
NOTIFICATION = 'notification'

FORCE_CHOICES = ('whatsapp', 'email', 'email_sms', 'dual')


@dataclass(frozen=True)
class PlanStep:
    channel: str
    role: str  # TICKET carries the PDF, NOTIFICATION is a text heads-up

    @property
    def carries_ticket(self):
        return self.role == TICKET


@dataclass(frozen=True)
class DeliveryPlan:
    kind: str
    steps: tuple = ()
    description: str = ''
    error: Optional[str] = None

    @property
    def is_deliverable(self):
        return bool(self.steps)

    @property
    def channels(self):
        return [step.channel for step in self.steps]

    @property
    def channel_used(self):
        return self.kind if self.is_deliverable else None

    @property
    def is_dual_delivery(self):
        return sum(1 for step in self.steps if step.carries_ticket) > 1

    @property
    def pdf_supported(self):
        return any(step.carries_ticket for step in self.steps)

    @property
    def primary(self):
        return self.steps[0].channel if self.steps else None

    @property
    def fallback(self):
        return self.steps[1].channel if len(self.steps) > 1 else None


_WHATSAPP = PlanStep(Channel.WHATSAPP.value, TICKET)
_EMAIL = PlanStep(Channel.EMAIL.value, TICKET)
_SMS_NOTICE = PlanStep(Channel.SMS.value, NOTIFICATION)

DUAL = DeliveryPlan('dual', (_WHATSAPP, _EMAIL), 'Will send via WhatsApp + Email')
WHATSAPP_ONLY = DeliveryPlan('whatsapp', (_WHATSAPP,), 'Will send via WhatsApp')
EMAIL_SMS = DeliveryPlan('email_sms', (_EMAIL, _SMS_NOTICE), 'Will send via Email + SMS notification')
EMAIL_ONLY = DeliveryPlan('email', (_EMAIL,), 'Will send via Email only')
SMS_ONLY = DeliveryPlan(
    'sms_only',
    description='Phone without WhatsApp and no email: SMS cannot carry the ticket PDF',
    error='Customer has no WhatsApp and no email; SMS cannot deliver the ticket PDF',
)
NO_CONTACT = DeliveryPlan(
    'none',
    description='No contact information available',
    error='Booking has no phone number or email address',
)

_FORCED = {
    'whatsapp': (WHATSAPP_ONLY, ('phone',)),
    'email': (EMAIL_ONLY, ('email',)),
    'email_sms': (EMAIL_SMS, ('phone', 'email')),
    'dual': (DUAL, ('phone', 'email')),
}


def select_plan(has_phone, has_whatsapp, has_email, force=None):
    """Map contact availability onto one of six plans.

    ``force`` overrides the detected capability for operator test sends but
    never invents a missing phone or email.
    """
    if force:
        if force not in _FORCED:
            raise ValueError(f'Unknown forced channel: {force!r}')
        plan, needs = _FORCED[force]
        available = {'phone': has_phone, 'email': has_email}
        missing = [field for field in needs if not available[field]]
        if missing:
            raise PlanOverrideError(
                f"Cannot force '{force}': booking has no {' or '.join(missing)}"
            )
        return plan

    has_whatsapp = has_phone and has_whatsapp
    if has_whatsapp and has_email:
        return DUAL
    if has_whatsapp:
        return WHATSAPP_ONLY
    if has_phone and has_email:
        return EMAIL_SMS
    if has_email:
        return EMAIL_ONLY
    if has_phone:
        return SMS_ONLY
    return NO_CONTACT


def describe(plan):
    return {
        'primary': plan.primary,
        'fallback': plan.fallback,
        'description': plan.description,
        'pdf_supported': plan.pdf_supported,
        'is_dual_delivery': plan.is_dual_delivery,
        'channels': plan.channels,
        'error': plan.error,
    }

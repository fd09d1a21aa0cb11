from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from bookings.models import Booking


class Channel(models.TextChoices):
    WHATSAPP = 'whatsapp', 'WhatsApp'
    SMS = 'sms', 'SMS'
    EMAIL = 'email', 'Email'


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------

class MessageAttachment(models.Model):
    """Ticket PDF uploaded for a booking. Owned by exactly one booking."""

    ALLOWED_MIME_TYPES = ['application/pdf']

    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='attachments')
    original_name = models.CharField(max_length=255)
    file = models.FileField(upload_to='attachments/%Y/%m/', max_length=500)
    mime_type = models.CharField(max_length=100, default='application/pdf')
    size = models.PositiveBigIntegerField(default=0, help_text='File size in bytes.')
    public_url = models.URLField(
        max_length=1000, blank=True,
        help_text='Last presigned or signed download URL handed to a vendor.',
    )
    url_expires_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return self.original_name

    def clean(self):
        if self.mime_type not in self.ALLOWED_MIME_TYPES:
            raise ValidationError({'mime_type': 'Only PDF attachments are allowed.'})
        if self.size > settings.ATTACHMENT_MAX_SIZE:
            raise ValidationError({'size': 'Attachment exceeds the 10 MB limit.'})

    @property
    def size_display(self):
        size = float(self.size)
        for unit in ('B', 'KB', 'MB'):
            if size < 1024 or unit == 'MB':
                return f'{size:.2f} {unit}'
            size /= 1024


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

class MessageTemplateQuerySet(models.QuerySet):

    def active(self):
        return self.filter(is_active=True)

    def for_variant(self, language, template_type, channel):
        return self.active().filter(
            language=language, template_type=template_type, channel=channel,
        ).order_by('sort_order', 'id').first()

    def default_for(self, channel, language):
        return self.active().filter(
            channel=channel, language=language, is_default=True,
        ).order_by('sort_order', 'id').first()


class MessageTemplate(models.Model):

    class TemplateType(models.TextChoices):
        TICKET_ONLY = 'ticket_only', 'Ticket only'
        TICKET_WITH_AUDIO = 'ticket_with_audio', 'Ticket with audio guide'

    LANGUAGES = {
        'en': 'English',
        'it': 'Italiano',
        'es': 'Español',
        'de': 'Deutsch',
        'fr': 'Français',
        'ja': '日本語',
        'el': 'Ελληνικά',
        'tr': 'Türkçe',
        'ko': '한국어',
        'pt': 'Português',
        'ru': 'Русский',
        'ar': 'العربية',
        'zh': '中文',
        'nl': 'Nederlands',
        'pl': 'Polski',
    }

    VARIABLES = [
        'customer_name', 'customer_email', 'tour_date', 'tour_time',
        'product_name', 'pax', 'reference_number', 'audio_guide_url',
        'audio_guide_username', 'audio_guide_password',
    ]

    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=100, unique=True)
    channel = models.CharField(max_length=20, choices=Channel.choices)
    language = models.CharField(max_length=5, default='en')
    template_type = models.CharField(
        max_length=30, choices=TemplateType.choices, default=TemplateType.TICKET_ONLY,
    )
    subject = models.CharField(max_length=255, blank=True, help_text='Email subject line.')
    content = models.TextField()
    is_default = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    sort_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = MessageTemplateQuerySet.as_manager()

    class Meta:
        ordering = ['sort_order', 'language', 'name']
        indexes = [
            models.Index(fields=['channel', 'language'], name='idx_tmpl_chan_lang'),
            models.Index(
                fields=['language', 'template_type', 'is_active'],
                name='idx_tmpl_lang_type_active',
            ),
        ]

    def __str__(self):
        return f'{self.name} ({self.channel}/{self.language})'

    @property
    def language_name(self):
        return self.LANGUAGES.get(self.language, self.language)

    @staticmethod
    def _substitute(text, variables):
        for key, value in variables.items():
            text = text.replace('{' + key + '}', '' if value is None else str(value))
        return text

    def render(self, variables):
        return self._substitute(self.content, variables)

    def render_subject(self, variables):
        if not self.subject:
            return ''
        return self._substitute(self.subject, variables)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

class MessageQuerySet(models.QuerySet):

    def retryable(self):
        return self.filter(
            status=Message.Status.FAILED,
            retry_count__lt=Message.MAX_RETRIES,
        )

    def by_channel(self, channel):
        return self.filter(channel=channel)

    def outbound(self):
        return self.filter(direction=Message.Direction.OUTBOUND)


class Message(models.Model):
    """One outbound (or inbound) message on one channel."""

    class Status(models.TextChoices):
        PENDING = 'pending'
        QUEUED = 'queued'
        SENT = 'sent'
        DELIVERED = 'delivered'
        READ = 'read'
        FAILED = 'failed'

    class Direction(models.TextChoices):
        OUTBOUND = 'outbound'
        INBOUND = 'inbound'

    MAX_RETRIES = 3

    # Forward-only progression; FAILED may interrupt any non-terminal state.
    STATUS_RANK = {
        Status.PENDING: 0,
        Status.QUEUED: 1,
        Status.SENT: 2,
        Status.DELIVERED: 3,
        Status.READ: 4,
    }
    TERMINAL_STATUSES = {Status.READ, Status.FAILED}

    booking = models.ForeignKey(
        Booking, on_delete=models.SET_NULL, null=True, blank=True, related_name='messages',
    )
    channel = models.CharField(max_length=20, choices=Channel.choices)
    direction = models.CharField(max_length=10, choices=Direction.choices, default=Direction.OUTBOUND)
    recipient = models.CharField(max_length=255, help_text='Phone number or email address.')
    subject = models.CharField(max_length=255, blank=True)
    content = models.TextField(blank=True)
    language = models.CharField(max_length=5, default='en')
    template = models.ForeignKey(
        MessageTemplate, on_delete=models.SET_NULL, null=True, blank=True, related_name='messages',
    )
    template_variables = models.JSONField(default=dict, blank=True)
    attachments = models.ManyToManyField(MessageAttachment, blank=True, related_name='messages')
    external_id = models.CharField(max_length=100, blank=True, help_text='Twilio SID or Resend email id.')
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    error_message = models.TextField(blank=True)
    retry_count = models.PositiveSmallIntegerField(default=0)
    notes = models.TextField(blank=True)
    retry_of = models.ForeignKey(
        'self', on_delete=models.SET_NULL, null=True, blank=True, related_name='resends',
    )
    queued_at = models.DateTimeField(null=True, blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    read_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    last_retry_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = MessageQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(
                fields=['external_id'],
                name='idx_msg_external_id',
                condition=Q(external_id__gt=''),
            ),
            models.Index(fields=['status', 'failed_at'], name='idx_msg_status_failed'),
            models.Index(fields=['booking', 'channel'], name='idx_msg_booking_chan'),
        ]

    def __str__(self):
        return f'{self.channel} to {self.recipient} [{self.status}]'

    @property
    def has_resend(self):
        """A successful resend exists; the ticket already reached the customer."""
        return self.resends.exists()

    def can_retry(self):
        return (
            self.status == self.Status.FAILED
            and self.retry_count < self.MAX_RETRIES
            and not self.has_resend
        )

    def can_transition_to(self, new_status):
        if self.status in self.TERMINAL_STATUSES:
            return False
        if new_status == self.Status.FAILED:
            return True
        return self.STATUS_RANK[new_status] > self.STATUS_RANK[self.status]

    def _transition(self, new_status, stamp_field, **extra):
        if not self.can_transition_to(new_status):
            return False
        self.status = new_status
        setattr(self, stamp_field, timezone.now())
        for field, value in extra.items():
            setattr(self, field, value)
        self.save(update_fields=['status', stamp_field, *extra, 'updated_at'])
        return True

    def mark_queued(self):
        return self._transition(self.Status.QUEUED, 'queued_at')

    def mark_sent(self, external_id=None):
        extra = {'external_id': external_id} if external_id else {}
        return self._transition(self.Status.SENT, 'sent_at', **extra)

    def mark_delivered(self):
        return self._transition(self.Status.DELIVERED, 'delivered_at')

    def mark_read(self):
        return self._transition(self.Status.READ, 'read_at')

    def mark_failed(self, error):
        return self._transition(
            self.Status.FAILED, 'failed_at', error_message=str(error)[:500],
        )

    def record_retry_failure(self, error):
        """A resend of this failed message failed too."""
        self.retry_count = F('retry_count') + 1
        self.error_message = str(error)[:500]
        self.last_retry_at = timezone.now()
        self.save(update_fields=['retry_count', 'error_message', 'last_retry_at', 'updated_at'])
        self.refresh_from_db(fields=['retry_count'])

    def record_retry_success(self, new_message):
        note = f'Retried successfully as message #{new_message.pk}'
        self.notes = f'{self.notes}\n{note}' if self.notes else note
        self.last_retry_at = timezone.now()
        self.save(update_fields=['notes', 'last_retry_at', 'updated_at'])

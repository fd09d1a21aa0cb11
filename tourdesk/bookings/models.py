from django.db import models


def format_tour_date(value):
    """'January 30, 2026' (no zero padding on the day)."""
    return f'{value:%B} {value.day}, {value.year}'


class Booking(models.Model):
    """A tour reservation imported from Bokun.

    Only the fields ticket delivery reads or writes are modelled here; the
    Bokun sync owns the rest of the booking lifecycle.
    """

    bokun_booking_id = models.CharField(max_length=100, unique=True)
    bokun_product_id = models.CharField(max_length=50, blank=True)
    product_name = models.CharField(max_length=255)
    customer_name = models.CharField(max_length=255, blank=True)
    customer_email = models.EmailField(blank=True)
    customer_phone = models.CharField(max_length=30, blank=True)
    tour_date = models.DateTimeField()
    tour_time = models.CharField(
        max_length=20, blank=True,
        help_text="Entry slot as shown to the customer, e.g. '10:00 AM'.",
    )
    pax = models.PositiveIntegerField(default=1)
    reference_number = models.CharField(
        max_length=100, blank=True,
        help_text='Museum ticket reference. Empty until tickets are purchased.',
    )

    # Audio guide (Vox)
    has_audio_guide = models.BooleanField(default=False)
    audio_guide_url = models.URLField(max_length=500, blank=True)
    audio_guide_username = models.CharField(max_length=100, blank=True)
    audio_guide_password = models.CharField(max_length=100, blank=True)
    vox_dynamic_link = models.URLField(max_length=500, blank=True)

    tickets_sent_at = models.DateTimeField(null=True, blank=True)
    audio_guide_sent_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['tour_date']
        indexes = [
            models.Index(fields=['tour_date'], name='idx_booking_tour_date'),
        ]

    def __str__(self):
        return f'{self.bokun_booking_id} - {self.customer_name or "Guest"}'

    @property
    def audio_guide_link(self):
        return self.vox_dynamic_link or self.audio_guide_url or ''

    @property
    def has_audio_credentials(self):
        return bool(self.audio_guide_link)

    def get_template_variables(self):
        """Placeholder values for `{name}` tokens in message templates."""
        return {
            'customer_name': self.customer_name or 'Guest',
            'customer_email': self.customer_email,
            'tour_date': format_tour_date(self.tour_date) if self.tour_date else '',
            'tour_time': self.tour_time,
            'product_name': self.product_name,
            'pax': str(self.pax),
            'reference_number': self.reference_number,
            'audio_guide_url': self.audio_guide_link,
            'audio_guide_username': self.audio_guide_username,
            'audio_guide_password': self.audio_guide_password,
        }

from django.contrib import admin

from .models import Booking


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = [
        'bokun_booking_id', 'customer_name', 'product_name', 'tour_date',
        'reference_number', 'has_audio_guide', 'tickets_sent_at',
    ]
    list_filter = ['has_audio_guide', 'tour_date']
    search_fields = ['bokun_booking_id', 'customer_name', 'customer_email', 'reference_number']
    readonly_fields = ['tickets_sent_at', 'audio_guide_sent_at', 'created_at', 'updated_at']

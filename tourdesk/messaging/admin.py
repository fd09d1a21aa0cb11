from django.contrib import admin, messages

from .models import Message, MessageAttachment, MessageTemplate


@admin.register(MessageTemplate)
class MessageTemplateAdmin(admin.ModelAdmin):
    list_display = ['name', 'channel', 'language', 'template_type', 'is_default', 'is_active', 'sort_order']
    list_filter = ['channel', 'language', 'template_type', 'is_default', 'is_active']
    search_fields = ['name', 'slug', 'subject']
    prepopulated_fields = {'slug': ('name',)}


@admin.register(MessageAttachment)
class MessageAttachmentAdmin(admin.ModelAdmin):
    list_display = ['original_name', 'booking', 'mime_type', 'size', 'created_at']
    search_fields = ['original_name', 'booking__bokun_booking_id']
    raw_id_fields = ['booking']
    readonly_fields = ['public_url', 'url_expires_at', 'created_at']


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ['id', 'booking', 'channel', 'recipient', 'status', 'retry_count', 'created_at']
    list_filter = ['channel', 'status', 'direction']
    search_fields = ['recipient', 'external_id', 'booking__bokun_booking_id']
    raw_id_fields = ['booking', 'template', 'retry_of']
    readonly_fields = [
        'external_id', 'queued_at', 'sent_at', 'delivered_at', 'read_at',
        'failed_at', 'last_retry_at', 'created_at', 'updated_at',
    ]
    actions = ['retry_selected']

    @admin.action(description='Retry selected failed messages')
    def retry_selected(self, request, queryset):
        from .notifications.tasks import retry_message_task

        retryable = [m for m in queryset if m.can_retry()]
        for message in retryable:
            retry_message_task.delay(message.pk)
        skipped = queryset.count() - len(retryable)
        self.message_user(request, f'{len(retryable)} message(s) queued for retry.', messages.SUCCESS)
        if skipped:
            self.message_user(
                request, f'{skipped} message(s) skipped (not failed or retries exhausted).', messages.WARNING,
            )

from rest_framework import serializers

from .exceptions import categorize_error
from .models import Channel, Message, MessageAttachment, MessageTemplate
from .notifications.plan import FORCE_CHOICES

CUSTOM_CONTENT_MIN_LENGTH = 50


def _language_choices():
    return list(MessageTemplate.LANGUAGES) + ['custom']


# ---------------------------------------------------------------------------
# Input serializers
# ---------------------------------------------------------------------------

class SendTicketSerializer(serializers.Serializer):
    language = serializers.ChoiceField(choices=_language_choices(), default='en')
    attachment_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1), allow_empty=False,
        error_messages={'empty': 'At least one attachment is required.'},
    )
    custom_subject = serializers.CharField(required=False, allow_blank=True, max_length=255)
    custom_content = serializers.CharField(required=False, allow_blank=True)
    force_channel = serializers.ChoiceField(choices=FORCE_CHOICES, required=False, allow_null=True)

    def validate(self, data):
        subject = data.get('custom_subject', '').strip()
        content = data.get('custom_content', '').strip()
        is_custom = data['language'] == 'custom' or bool(subject or content)

        data['custom_message'] = None
        if is_custom:
            errors = {}
            if not subject:
                errors['custom_subject'] = 'A subject is required for custom messages.'
            if len(content) < CUSTOM_CONTENT_MIN_LENGTH:
                errors['custom_content'] = (
                    f'Custom message must be at least {CUSTOM_CONTENT_MIN_LENGTH} characters.'
                )
            if errors:
                raise serializers.ValidationError(errors)
            data['custom_message'] = {'subject': subject, 'content': content}
        data['attachment_ids'] = sorted(set(data['attachment_ids']))
        return data


class MessagePreviewSerializer(serializers.Serializer):
    booking_id = serializers.IntegerField(min_value=1)
    language = serializers.ChoiceField(choices=list(MessageTemplate.LANGUAGES), default='en')


class RetryBatchSerializer(serializers.Serializer):
    limit = serializers.IntegerField(min_value=1, max_value=200, default=50)
    channel = serializers.ChoiceField(choices=Channel.choices, required=False, allow_null=True)


# ---------------------------------------------------------------------------
# Output serializers
# ---------------------------------------------------------------------------

class MessageAttachmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = MessageAttachment
        fields = ['id', 'original_name', 'mime_type', 'size', 'created_at']


class MessageSerializer(serializers.ModelSerializer):
    attachments = MessageAttachmentSerializer(many=True, read_only=True)
    booking_reference = serializers.CharField(source='booking.bokun_booking_id', read_only=True, default=None)
    customer_name = serializers.CharField(source='booking.customer_name', read_only=True, default=None)
    error_category = serializers.SerializerMethodField()
    can_retry = serializers.SerializerMethodField()

    class Meta:
        model = Message
        fields = [
            'id', 'booking', 'booking_reference', 'customer_name', 'channel',
            'direction', 'recipient', 'subject', 'content', 'language',
            'template', 'external_id', 'status', 'error_message',
            'error_category', 'retry_count', 'can_retry', 'notes', 'retry_of',
            'attachments', 'queued_at', 'sent_at', 'delivered_at', 'read_at',
            'failed_at', 'last_retry_at', 'created_at',
        ]
        read_only_fields = fields

    def get_error_category(self, obj):
        return categorize_error(obj.error_message) if obj.error_message else None

    def get_can_retry(self, obj):
        return obj.can_retry()


class MessageTemplateSerializer(serializers.ModelSerializer):
    language_name = serializers.CharField(read_only=True)

    class Meta:
        model = MessageTemplate
        fields = [
            'id', 'name', 'slug', 'channel', 'language', 'language_name',
            'template_type', 'subject', 'content', 'is_default', 'sort_order',
        ]
        read_only_fields = fields

import logging

from django.conf import settings
from django.core.signing import BadSignature, SignatureExpired
from django.http import FileResponse, Http404
from django.shortcuts import get_object_or_404
from rest_framework import generics, status
from rest_framework.parsers import FormParser, JSONParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView
from twilio.request_validator import RequestValidator

from bookings.models import Booking

from .analytics import get_delivery_stats, parse_period
from .filters import MessageFilter
from .models import Channel, Message, MessageAttachment, MessageTemplate
from .notifications import RetryCoordinator, TicketDispatcher
from .notifications.tasks import retry_failed_messages_task
from .notifications.webhook import handle_status_callback
from .serializers import (
    MessagePreviewSerializer, MessageSerializer, MessageTemplateSerializer,
    RetryBatchSerializer, SendTicketSerializer,
)
from .storage import attachment_store, read_download_token

logger = logging.getLogger(__name__)

ATTACHMENT_MISMATCH_ERROR = (
    'One or more attachments do not belong to this booking. Please re-upload the correct PDF.'
)


# ---------------------------------------------------------------------------
# Ticket dispatch
# ---------------------------------------------------------------------------

class SendTicketView(APIView):

    def post(self, request, pk):
        booking = get_object_or_404(Booking, pk=pk)

        serializer = SendTicketSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {'success': False, 'errors': serializer.errors},
                status=status.HTTP_422_UNPROCESSABLE_ENTITY,
            )
        data = serializer.validated_data

        # Ownership is checked here too so a tampered request never reaches dispatch
        owned = MessageAttachment.objects.filter(
            pk__in=data['attachment_ids'], booking=booking,
        ).count()
        if owned != len(data['attachment_ids']):
            logger.error(
                'SECURITY: Attachment mismatch on send-ticket for booking %s by user %s (requested %s, owned %s)',
                booking.pk, request.user.pk, data['attachment_ids'], owned,
            )
            return Response(
                {'success': False, 'errors': [ATTACHMENT_MISMATCH_ERROR], 'error_code': 'attachment_mismatch'},
                status=status.HTTP_422_UNPROCESSABLE_ENTITY,
            )

        result = TicketDispatcher().send_ticket(
            booking,
            language=data['language'],
            attachment_ids=data['attachment_ids'],
            custom_message=data['custom_message'],
            force_channel=data.get('force_channel'),
        )
        return Response(
            result.to_dict(),
            status=status.HTTP_200_OK if result.success else status.HTTP_422_UNPROCESSABLE_ENTITY,
        )


class DetectChannelView(APIView):

    def get(self, request, pk):
        booking = get_object_or_404(Booking, pk=pk)
        return Response(TicketDispatcher().detect_channel(booking))


class MessagePreviewView(APIView):

    def post(self, request):
        serializer = MessagePreviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = get_object_or_404(Booking, pk=serializer.validated_data['booking_id'])
        previews = TicketDispatcher().preview(booking, serializer.validated_data['language'])
        return Response({'language': serializer.validated_data['language'], 'previews': previews})


# ---------------------------------------------------------------------------
# Message history
# ---------------------------------------------------------------------------

class BookingMessageHistoryView(generics.ListAPIView):
    serializer_class = MessageSerializer

    def get_queryset(self):
        booking = get_object_or_404(Booking, pk=self.kwargs['pk'])
        return (
            Message.objects.filter(booking=booking)
            .select_related('booking')
            .prefetch_related('attachments', 'resends')
            .order_by('-created_at', '-pk')
        )


class MessageListView(generics.ListAPIView):
    queryset = Message.objects.select_related('booking').prefetch_related('attachments', 'resends')
    serializer_class = MessageSerializer
    filterset_class = MessageFilter
    ordering_fields = ['created_at', 'failed_at', 'status', 'channel']
    ordering = ['-created_at']


class MessageTemplateListView(APIView):

    def get(self, request):
        templates = MessageTemplate.objects.active()
        channel = request.query_params.get('channel')
        if channel:
            templates = templates.filter(channel=channel)
        language = request.query_params.get('language')
        if language:
            templates = templates.filter(language=language)
        return Response({
            'templates': MessageTemplateSerializer(templates, many=True).data,
            'languages': [
                {'code': code, 'name': name} for code, name in MessageTemplate.LANGUAGES.items()
            ],
            'channels': [{'value': value, 'label': label} for value, label in Channel.choices],
        })


class MessageStatsView(APIView):

    def get(self, request):
        start_dt, period, err = parse_period(request.query_params)
        if err:
            return Response({'detail': err}, status=status.HTTP_400_BAD_REQUEST)
        return Response(get_delivery_stats(start_dt, period))


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------

class MessageRetryView(APIView):

    def post(self, request, pk):
        message = get_object_or_404(Message, pk=pk)
        result = RetryCoordinator().retry(message)
        if result.success:
            response_status = status.HTTP_200_OK
        elif result.error_code in ('not_failed', 'exhausted', 'already_resent'):
            response_status = status.HTTP_409_CONFLICT
        else:
            response_status = status.HTTP_422_UNPROCESSABLE_ENTITY
        return Response(result.to_dict(), status=response_status)


class RetryFailedMessagesView(APIView):

    def post(self, request):
        serializer = RetryBatchSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        task = retry_failed_messages_task.delay(limit=data['limit'], channel=data.get('channel'))
        return Response(
            {'task_id': task.id, 'limit': data['limit'], 'channel': data.get('channel')},
            status=status.HTTP_202_ACCEPTED,
        )


# ---------------------------------------------------------------------------
# Public endpoints (vendors, not staff)
# ---------------------------------------------------------------------------

class SignedAttachmentDownload(APIView):
    """Serves a ticket PDF to Twilio on storages without presigned URLs."""
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, token):
        try:
            pk = read_download_token(token)
        except SignatureExpired:
            logger.info('Expired attachment download link used')
            return Response(status=status.HTTP_403_FORBIDDEN)
        except BadSignature:
            logger.warning('Invalid attachment download token')
            return Response(status=status.HTTP_403_FORBIDDEN)

        attachment = get_object_or_404(MessageAttachment, pk=pk)
        if not attachment_store.exists(attachment):
            raise Http404('Attachment file not found')
        return FileResponse(
            attachment.file.open('rb'),
            content_type=attachment.mime_type,
            filename=attachment.original_name,
        )


class TwilioStatusWebhookView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    parser_classes = [FormParser, JSONParser]

    def post(self, request):
        params = request.data.dict() if hasattr(request.data, 'dict') else dict(request.data)

        if settings.TWILIO_WEBHOOK_VALIDATE:
            url = settings.TWILIO_STATUS_CALLBACK_URL or request.build_absolute_uri()
            signature = request.headers.get('X-Twilio-Signature', '')
            validator = RequestValidator(settings.TWILIO_AUTH_TOKEN)
            if not signature or not validator.validate(url, params, signature):
                logger.warning('Invalid Twilio signature on status callback for %s', params.get('MessageSid'))
                return Response(status=status.HTTP_403_FORBIDDEN)

        try:
            handle_status_callback(params)
        except Exception:
            logger.exception('Error processing Twilio status callback for %s', params.get('MessageSid'))

        return Response(status=status.HTTP_200_OK)

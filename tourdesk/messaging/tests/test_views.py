"""Tests for the messaging API.

Covers:
- POST send-ticket: validation (422), ownership check, dispatch result codes
- GET detect-channel, POST messages/preview
- Message history per booking, message list filters
- Templates listing, delivery stats
- Single retry (200/409/422), repeated retry refused, batch retry enqueue (202)
- Signed attachment download: valid, forged and expired tokens, missing file
- Authentication required on staff endpoints
"""
import time
from datetime import timedelta
from unittest.mock import MagicMock, patch

from django.contrib.auth.models import User
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from messaging.models import Message
from messaging.storage import make_download_token

from .mixins import DeliverySetupMixin, twilio_client

RESEND_SEND = 'messaging.notifications.email.resend.Emails.send'


class APITestMixin(DeliverySetupMixin):

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        cls.staff_user = User.objects.create_user(
            username='ops', email='ops@florencewithlocals.com', password='pass',
        )

    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(self.staff_user)


# ---------------------------------------------------------------------------
# Send ticket
# ---------------------------------------------------------------------------

@patch('messaging.notifications.prober.WhatsAppCapabilityProber.probe', return_value=False)
class SendTicketViewTest(APITestMixin, TestCase):

    def _url(self, booking):
        return f'/api/v1/bookings/{booking.pk}/send-ticket/'

    @patch(RESEND_SEND, return_value={'id': 'em_1'})
    def test_email_only_success(self, mock_send, _):
        booking = self._make_booking(customer_phone='')
        attachment = self._make_attachment(booking)

        resp = self.client.post(self._url(booking), {
            'language': 'en', 'attachment_ids': [attachment.pk],
        }, format='json')

        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.data['success'])
        self.assertEqual(resp.data['channel_used'], 'email')
        self.assertEqual(resp.data['messages'][0]['external_id'], 'em_1')
        booking.refresh_from_db()
        self.assertIsNotNone(booking.tickets_sent_at)

    def test_unknown_booking_404(self, _):
        resp = self.client.post('/api/v1/bookings/999999/send-ticket/', {
            'attachment_ids': [1],
        }, format='json')
        self.assertEqual(resp.status_code, 404)

    def test_empty_attachments_422(self, _):
        booking = self._make_booking()
        resp = self.client.post(self._url(booking), {'attachment_ids': []}, format='json')

        self.assertEqual(resp.status_code, 422)
        self.assertFalse(resp.data['success'])
        self.assertIn('attachment_ids', resp.data['errors'])

    def test_invalid_language_422(self, _):
        booking = self._make_booking()
        attachment = self._make_attachment(booking)
        resp = self.client.post(self._url(booking), {
            'language': 'xx', 'attachment_ids': [attachment.pk],
        }, format='json')
        self.assertEqual(resp.status_code, 422)

    def test_custom_content_too_short_422(self, _):
        booking = self._make_booking()
        attachment = self._make_attachment(booking)
        resp = self.client.post(self._url(booking), {
            'language': 'custom', 'attachment_ids': [attachment.pk],
            'custom_subject': 'Hello', 'custom_content': 'Too short',
        }, format='json')

        self.assertEqual(resp.status_code, 422)
        self.assertIn('custom_content', resp.data['errors'])

    @patch(RESEND_SEND)
    def test_foreign_attachment_rejected(self, mock_send, _):
        booking = self._make_booking()
        foreign = self._make_attachment(self._make_booking())

        with self.assertLogs('messaging.views', level='ERROR') as logs:
            resp = self.client.post(self._url(booking), {
                'attachment_ids': [foreign.pk],
            }, format='json')

        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.data['error_code'], 'attachment_mismatch')
        self.assertIn('SECURITY', logs.output[0])
        self.assertEqual(Message.objects.count(), 0)
        mock_send.assert_not_called()

    def test_missing_reference_422(self, _):
        booking = self._make_booking(reference_number='')
        attachment = self._make_attachment(booking)

        resp = self.client.post(self._url(booking), {
            'attachment_ids': [attachment.pk],
        }, format='json')

        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.data['error_code'], 'missing_reference')
        self.assertEqual(Message.objects.count(), 0)

    def test_phone_only_422(self, _):
        booking = self._make_booking(customer_email='')
        attachment = self._make_attachment(booking)

        resp = self.client.post(self._url(booking), {
            'attachment_ids': [attachment.pk],
        }, format='json')

        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.data['error_code'], 'no_ticket_channel')

    @patch('messaging.notifications.whatsapp.get_twilio_client')
    @patch(RESEND_SEND, return_value={'id': 'em_1'})
    def test_force_channel(self, mock_send, mock_client, mock_probe):
        mock_client.return_value = twilio_client()
        booking = self._make_booking()
        attachment = self._make_attachment(booking)

        resp = self.client.post(self._url(booking), {
            'attachment_ids': [attachment.pk], 'force_channel': 'dual',
        }, format='json')

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['channel_used'], 'dual')
        self.assertEqual(resp.data['channels'], ['whatsapp', 'email'])
        mock_probe.assert_not_called()

    def test_requires_authentication(self, _):
        booking = self._make_booking()
        resp = APIClient().post(self._url(booking), {'attachment_ids': [1]}, format='json')
        self.assertEqual(resp.status_code, 403)


# ---------------------------------------------------------------------------
# Detection and preview
# ---------------------------------------------------------------------------

class DetectChannelViewTest(APITestMixin, TestCase):

    @patch('messaging.notifications.prober.WhatsAppCapabilityProber.probe', return_value=True)
    def test_dual(self, _):
        booking = self._make_booking()
        resp = self.client.get(f'/api/v1/bookings/{booking.pk}/detect-channel/')

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['primary'], 'whatsapp')
        self.assertEqual(resp.data['fallback'], 'email')
        self.assertEqual(resp.data['description'], 'Will send via WhatsApp + Email')


class MessagePreviewViewTest(APITestMixin, TestCase):

    def test_preview(self):
        booking = self._make_booking()
        resp = self.client.post('/api/v1/messages/preview/', {
            'booking_id': booking.pk, 'language': 'it',
        }, format='json')

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['language'], 'it')
        self.assertEqual(
            resp.data['previews']['email']['subject'], f'I tuoi biglietti - {booking.reference_number}',
        )

    def test_unknown_booking(self):
        resp = self.client.post('/api/v1/messages/preview/', {'booking_id': 999999}, format='json')
        self.assertEqual(resp.status_code, 404)


# ---------------------------------------------------------------------------
# History and listing
# ---------------------------------------------------------------------------

class MessageHistoryViewTest(APITestMixin, TestCase):

    def test_booking_history(self):
        booking = self._make_booking()
        attachment = self._make_attachment(booking)
        message = self._make_message(booking, channel='email', recipient='maria@example.com')
        message.attachments.set([attachment])
        self._make_message(self._make_booking())

        resp = self.client.get(f'/api/v1/bookings/{booking.pk}/messages/')

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['count'], 1)
        row = resp.data['results'][0]
        self.assertEqual(row['booking_reference'], booking.bokun_booking_id)
        self.assertEqual(row['error_category'], 'other')
        self.assertTrue(row['can_retry'])
        self.assertEqual(row['attachments'][0]['original_name'], 'ticket.pdf')

    def test_list_filters(self):
        booking = self._make_booking()
        self._make_message(booking, channel='email', recipient='maria@example.com')
        self._make_message(booking, status=Message.Status.DELIVERED, error_message='')

        resp = self.client.get('/api/v1/messages/', {'channel': 'email'})
        self.assertEqual(resp.data['count'], 1)

        resp = self.client.get('/api/v1/messages/', {'status': 'delivered'})
        self.assertEqual(resp.data['count'], 1)
        self.assertEqual(resp.data['results'][0]['status'], 'delivered')

        resp = self.client.get('/api/v1/messages/', {'recipient': 'MARIA@'})
        self.assertEqual(resp.data['count'], 1)


class MessageTemplateListViewTest(APITestMixin, TestCase):

    def test_lists_active_templates(self):
        resp = self.client.get('/api/v1/messages/templates/', {'channel': 'email'})

        self.assertEqual(resp.status_code, 200)
        slugs = {t['slug'] for t in resp.data['templates']}
        self.assertEqual(slugs, {'email-ticket-en', 'email-ticket-it', 'email-audio-en'})
        self.assertIn({'code': 'it', 'name': 'Italiano'}, resp.data['languages'])
        self.assertIn({'value': 'sms', 'label': 'SMS'}, resp.data['channels'])


class MessageStatsViewTest(APITestMixin, TestCase):

    def test_stats(self):
        booking = self._make_booking()
        now = timezone.now()
        self._make_message(
            booking, status=Message.Status.DELIVERED, error_message='',
            sent_at=now - timedelta(seconds=30), delivered_at=now,
        )
        self._make_message(booking, channel='email', error_message='Rate limit exceeded')

        resp = self.client.get('/api/v1/messages/stats/', {'period': '24h'})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['overview']['total'], 2)
        self.assertEqual(resp.data['overview']['delivered'], 1)
        self.assertEqual(resp.data['overview']['delivery_rate'], 50.0)
        self.assertEqual(resp.data['overview']['delivery_rate_status'], 'warning')
        self.assertEqual(resp.data['by_channel']['email']['failed'], 1)
        self.assertEqual(resp.data['error_categories'], {'rate_limited': 1})
        self.assertEqual(resp.data['avg_delivery_time_seconds'], 30)
        self.assertEqual(resp.data['retryable'], 1)

    def test_invalid_period(self):
        resp = self.client.get('/api/v1/messages/stats/', {'period': '1y'})
        self.assertEqual(resp.status_code, 400)


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------

class MessageRetryViewTest(APITestMixin, TestCase):

    @patch('messaging.notifications.whatsapp.get_twilio_client')
    def test_retry_success(self, mock_client):
        mock_client.return_value = twilio_client(sid='SMretry')
        message = self._make_message(self._make_booking())

        resp = self.client.post(f'/api/v1/messages/{message.pk}/retry/')

        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.data['success'])
        self.assertEqual(resp.data['new_status'], 'sent')

    def test_exhausted_conflict(self):
        message = self._make_message(self._make_booking(), retry_count=3)
        resp = self.client.post(f'/api/v1/messages/{message.pk}/retry/')
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.data['error_code'], 'exhausted')

    def test_not_failed_conflict(self):
        message = self._make_message(self._make_booking(), status=Message.Status.SENT, error_message='')
        resp = self.client.post(f'/api/v1/messages/{message.pk}/retry/')
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.data['error_code'], 'not_failed')

    @patch('messaging.notifications.whatsapp.get_twilio_client')
    def test_second_retry_conflicts_after_resend(self, mock_client):
        client = mock_client.return_value = twilio_client(sid='SMretry')
        message = self._make_message(self._make_booking())

        first = self.client.post(f'/api/v1/messages/{message.pk}/retry/')
        second = self.client.post(f'/api/v1/messages/{message.pk}/retry/')

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 409)
        self.assertEqual(second.data['error_code'], 'already_resent')
        self.assertEqual(second.data['new_message_id'], first.data['new_message_id'])
        client.messages.create.assert_called_once()
        self.assertEqual(Message.objects.filter(retry_of=message).count(), 1)

        history = self.client.get(f'/api/v1/bookings/{message.booking_id}/messages/')
        rows = {row['id']: row for row in history.data['results']}
        self.assertFalse(rows[message.pk]['can_retry'])

    @patch('messaging.notifications.whatsapp.get_twilio_client')
    def test_send_failure_422(self, mock_client):
        mock_client.return_value.messages.create.side_effect = Exception('Error 63016: outside window')
        message = self._make_message(self._make_booking())

        resp = self.client.post(f'/api/v1/messages/{message.pk}/retry/')

        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.data['retry_count'], 1)

    @patch('messaging.views.retry_failed_messages_task.delay')
    def test_batch_retry_enqueued(self, mock_delay):
        mock_delay.return_value = MagicMock(id='task-123')

        resp = self.client.post('/api/v1/messages/retry-failed/', {'limit': 20, 'channel': 'email'}, format='json')

        self.assertEqual(resp.status_code, 202)
        self.assertEqual(resp.data, {'task_id': 'task-123', 'limit': 20, 'channel': 'email'})
        mock_delay.assert_called_once_with(limit=20, channel='email')


# ---------------------------------------------------------------------------
# Public attachment download
# ---------------------------------------------------------------------------

class SignedAttachmentDownloadTest(DeliverySetupMixin, TestCase):

    def setUp(self):
        self.attachment = self._make_attachment(self._make_booking())

    def _url(self, token=None):
        return f'/api/public/attachments/{token or make_download_token(self.attachment.pk, 60)}/'

    def test_valid_token_serves_pdf(self):
        url = self._url()
        resp = self.client.get(url)

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp['Content-Type'], 'application/pdf')
        self.assertEqual(b''.join(resp.streaming_content), b'%PDF-1.4 test ticket')

    def test_forged_token_forbidden(self):
        resp = self.client.get(self._url('deadbeef'))
        self.assertEqual(resp.status_code, 403)

    def test_expired_token_forbidden(self):
        with patch('django.core.signing.time.time', return_value=time.time() - 2 * 60 * 60):
            token = make_download_token(self.attachment.pk, 60)
        resp = self.client.get(self._url(token))
        self.assertEqual(resp.status_code, 403)

    def test_missing_file_404(self):
        self.attachment.file.storage.delete(self.attachment.file.name)
        self.assertEqual(self.client.get(self._url()).status_code, 404)

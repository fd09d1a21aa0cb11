"""Tests for the retry_failed_messages management command.

Covers:
- Nothing to retry
- --dry-run lists candidates without sending
- Live run: summary output, CommandError when any retry fails
- --channel filter
"""
from io import StringIO
from unittest.mock import patch

from django.core.management import CommandError, call_command
from django.test import TestCase

from messaging.models import Message

from .mixins import DeliverySetupMixin, twilio_client

RESEND_SEND = 'messaging.notifications.email.resend.Emails.send'


class RetryFailedMessagesCommandTest(DeliverySetupMixin, TestCase):

    def _call(self, *args):
        out = StringIO()
        call_command('retry_failed_messages', *args, stdout=out)
        return out.getvalue()

    def test_no_messages(self):
        output = self._call()
        self.assertIn('No retryable messages found.', output)

    @patch(RESEND_SEND)
    def test_dry_run_sends_nothing(self, mock_send):
        message = self._make_message(
            self._make_booking(), channel='email', recipient='maria@example.com',
        )

        output = self._call('--dry-run')

        self.assertIn('Mode: DRY RUN', output)
        self.assertIn('Found 1 retryable message(s):', output)
        self.assertIn('maria@example.com', output)
        self.assertIn('DRY RUN - no messages were retried.', output)
        mock_send.assert_not_called()
        message.refresh_from_db()
        self.assertEqual(message.retry_count, 0)
        self.assertEqual(Message.objects.count(), 1)

    @patch(RESEND_SEND, return_value={'id': 'em_retry'})
    def test_live_run_success(self, mock_send):
        self._make_message(self._make_booking(), channel='email', recipient='maria@example.com')

        output = self._call('--limit', '10')

        self.assertIn('Total: 1  Success: 1  Failed: 0', output)
        self.assertIn('All messages retried successfully.', output)
        self.assertEqual(Message.objects.filter(external_id='em_retry').count(), 1)

    @patch('messaging.notifications.whatsapp.get_twilio_client')
    def test_live_run_failure_raises(self, mock_client):
        client = mock_client.return_value = twilio_client()
        client.messages.create.side_effect = Exception('Error 63016: outside allowed window')
        message = self._make_message(self._make_booking())

        with self.assertRaisesMessage(CommandError, '1 message(s) failed to retry'):
            self._call()

        message.refresh_from_db()
        self.assertEqual(message.retry_count, 1)

    @patch(RESEND_SEND, return_value={'id': 'em_retry'})
    def test_channel_filter(self, mock_send):
        booking = self._make_booking()
        self._make_message(booking, channel='email', recipient='maria@example.com')
        whatsapp_message = self._make_message(booking)

        output = self._call('--channel', 'email')

        self.assertIn('Channel: email', output)
        self.assertIn('Total: 1', output)
        whatsapp_message.refresh_from_db()
        self.assertEqual(whatsapp_message.retry_count, 0)
        self.assertFalse(whatsapp_message.resends.exists())

    def test_invalid_channel_rejected(self):
        with self.assertRaises(CommandError):
            self._call('--channel', 'fax')

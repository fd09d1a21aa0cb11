import logging

import requests as http_requests
from django.conf import settings
from twilio.base.exceptions import TwilioException

from .base import format_phone_number, get_twilio_client

logger = logging.getLogger(__name__)

CAPABLE_LINE_TYPES = ('mobile', 'voip')


class WhatsAppCapabilityProber:
    """Decide whether a phone number can receive WhatsApp messages.

    Lookup v2 line type intelligence is the only signal Twilio offers; a
    landline can't run WhatsApp, anything mobile-ish probably can.
    """

    def __init__(self, probe_failure_policy=None, unsupported_prefixes=None):
        self.probe_failure_policy = probe_failure_policy or settings.WHATSAPP_PROBE_FAILURE_POLICY
        if self.probe_failure_policy not in ('open', 'closed'):
            raise ValueError(f'Unknown probe failure policy: {self.probe_failure_policy}')
        if unsupported_prefixes is None:
            unsupported_prefixes = settings.WHATSAPP_UNSUPPORTED_PREFIXES
        self.unsupported_prefixes = tuple(unsupported_prefixes)

    def _on_failure(self, number, exc):
        capable = self.probe_failure_policy == 'open'
        logger.warning(
            'WhatsApp lookup failed for %s (%s); assuming %s per %s policy',
            number, exc, 'capable' if capable else 'not capable', self.probe_failure_policy,
        )
        return capable

    def probe(self, phone):
        number = format_phone_number(phone)
        if not number:
            return False

        if number.startswith(self.unsupported_prefixes):
            logger.info('WhatsApp skipped for %s: market uses another messenger', number)
            return False

        try:
            lookup = (
                get_twilio_client().lookups.v2
                .phone_numbers(number)
                .fetch(fields='line_type_intelligence')
            )
            line_type = (lookup.line_type_intelligence or {}).get('type')
        except (TwilioException, http_requests.exceptions.RequestException) as exc:
            return self._on_failure(number, exc)
        except Exception as exc:
            logger.exception('Unexpected WhatsApp lookup response for %s', number)
            return self._on_failure(number, exc)

        return line_type in CAPABLE_LINE_TYPES

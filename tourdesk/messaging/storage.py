"""Access to stored ticket PDFs.

Prod keeps attachments in a private S3 bucket (django-storages) and hands
vendors presigned URLs. Dev/local storage has no presigning, so the API
serves the file itself behind a signed public route that expires with the
URL.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.core import signing
from django.urls import reverse
from django.utils import timezone

logger = logging.getLogger(__name__)


DOWNLOAD_TOKEN_SALT = 'messaging.attachment-download'


def make_download_token(attachment_id, ttl_minutes):
    """Timestamped token for the public download route, valid for ``ttl_minutes``."""
    return signing.dumps({'attachment': attachment_id, 'ttl': ttl_minutes}, salt=DOWNLOAD_TOKEN_SALT)


def read_download_token(token):
    """Return the attachment id in ``token``.

    Raises ``signing.BadSignature`` for a forged token and its subclass
    ``signing.SignatureExpired`` once the token's TTL has passed.
    """
    payload = signing.loads(token, salt=DOWNLOAD_TOKEN_SALT)
    signing.loads(token, salt=DOWNLOAD_TOKEN_SALT, max_age=timedelta(minutes=payload['ttl']))
    return payload['attachment']


class AttachmentStore:
    """Thin wrapper over the attachment FileField's storage."""

    # Cached URLs are reused only while this much validity remains
    MIN_REMAINING = timedelta(days=1)

    def exists(self, attachment):
        if not attachment.file:
            return False
        try:
            return attachment.file.storage.exists(attachment.file.name)
        except Exception:
            logger.exception('Storage lookup failed for attachment %s', attachment.pk)
            return False

    def get_bytes(self, attachment):
        with attachment.file.open('rb') as fh:
            return fh.read()

    def get_temporary_url(self, attachment, ttl_minutes=None):
        """Return a URL a vendor can fetch the PDF from, or None."""
        ttl_minutes = ttl_minutes or settings.ATTACHMENT_URL_EXPIRY_MINUTES
        now = timezone.now()

        if (
            attachment.public_url
            and attachment.url_expires_at
            and attachment.url_expires_at > now + self.MIN_REMAINING
        ):
            return attachment.public_url

        if not self.exists(attachment):
            logger.warning('Attachment %s missing from storage; no URL generated', attachment.pk)
            return None

        try:
            if getattr(settings, 'STORAGE_BACKEND', 'local') == 's3':
                url = attachment.file.storage.url(attachment.file.name, expire=ttl_minutes * 60)
            else:
                path = reverse('attachment_signed_download', kwargs={
                    'token': make_download_token(attachment.pk, ttl_minutes),
                })
                url = f'{settings.API_ORIGIN.rstrip("/")}{path}'
        except Exception:
            logger.exception('Failed to generate temporary URL for attachment %s', attachment.pk)
            return None

        attachment.public_url = url
        attachment.url_expires_at = now + timedelta(minutes=ttl_minutes)
        attachment.save(update_fields=['public_url', 'url_expires_at'])
        return url


attachment_store = AttachmentStore()

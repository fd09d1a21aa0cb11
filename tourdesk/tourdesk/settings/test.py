import os
import tempfile

os.environ.setdefault('SECRET_KEY', 'test-secret-key-for-tourdesk')

from .base import *  # noqa: E402

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

MEDIA_ROOT = tempfile.mkdtemp(prefix='tourdesk-media-')
STORAGE_BACKEND = 'local'
STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

TWILIO_ACCOUNT_SID = 'ACtest'
TWILIO_AUTH_TOKEN = 'test-auth-token'
TWILIO_WHATSAPP_FROM = '+15550001111'
TWILIO_SMS_FROM = '+15550002222'
TWILIO_STATUS_CALLBACK_URL = ''
TWILIO_WEBHOOK_VALIDATE = True
RESEND_API_KEY = 're_test'
WHATSAPP_CONTENT_TEMPLATES = {
    'ticket_pdf': {'en': 'HXpdf_en', 'it': 'HXpdf_it'},
    'ticket_audio_pdf': {'en': 'HXaudio_pdf_en'},
    'ticket_only': {'en': 'HXtext_en'},
    'ticket_with_audio': {'en': 'HXaudio_text_en'},
}
WHATSAPP_UNSUPPORTED_PREFIXES = ['+86', '+81']
MESSAGE_RETRY_DELAY_SECONDS = 0
API_ORIGIN = 'http://testserver'

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {'null': {'class': 'logging.NullHandler'}},
    'root': {'handlers': ['null'], 'level': 'WARNING'},
}

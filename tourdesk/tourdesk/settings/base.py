import json
from pathlib import Path

from decouple import config

BASE_DIR = Path(__file__).resolve().parent.parent.parent

SECRET_KEY = config('SECRET_KEY')

DEBUG = config('DEBUG', default=False, cast=bool)

ALLOWED_HOSTS = config(
    'ALLOWED_HOSTS',
    default='localhost,127.0.0.1',
    cast=lambda v: [s.strip() for s in v.split(',')]
)

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    # Third party
    'rest_framework',
    'corsheaders',
    'django_filters',
    'django_celery_beat',
    'django_celery_results',
    # Local
    'bookings',
    'messaging',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'tourdesk.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [BASE_DIR / 'templates'],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'tourdesk.wsgi.application'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': config('DB_NAME', default='tourdesk_db'),
        'USER': config('DB_USER', default='tourdesk_user'),
        'PASSWORD': config('DB_PASSWORD', default='tourdesk_password'),
        'HOST': config('DB_HOST', default='localhost'),
        'PORT': config('DB_PORT', default='5432'),
    }
}

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator', 'OPTIONS': {'min_length': 8}},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'Europe/Rome'
USE_I18N = True
USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

MEDIA_URL = '/media/'
MEDIA_ROOT = BASE_DIR / 'media'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.SessionAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'DEFAULT_FILTER_BACKENDS': [
        'django_filters.rest_framework.DjangoFilterBackend',
        'rest_framework.filters.OrderingFilter',
    ],
    'DEFAULT_PAGINATION_CLASS': 'tourdesk.pagination.MessagePagination',
    'PAGE_SIZE': 50,
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
}

CORS_ALLOW_CREDENTIALS = True
CORS_ALLOWED_ORIGINS = config(
    'CORS_ALLOWED_ORIGINS',
    default='http://localhost:3000,http://127.0.0.1:3000',
    cast=lambda v: [s.strip() for s in v.split(',')]
)

# Public origin of this API (signed attachment URLs are built on it)
API_ORIGIN = config('API_ORIGIN', default='http://localhost:8000')

# --- Twilio (WhatsApp + SMS + Lookup) ---
TWILIO_ACCOUNT_SID = config('TWILIO_ACCOUNT_SID', default='')
TWILIO_AUTH_TOKEN = config('TWILIO_AUTH_TOKEN', default='')
TWILIO_WHATSAPP_FROM = config('TWILIO_WHATSAPP_FROM', default='')
TWILIO_SMS_FROM = config('TWILIO_SMS_FROM', default='')
TWILIO_STATUS_CALLBACK_URL = config('TWILIO_STATUS_CALLBACK_URL', default='')
TWILIO_WEBHOOK_VALIDATE = config('TWILIO_WEBHOOK_VALIDATE', default=True, cast=bool)

# Content Template SIDs: {"ticket_pdf": {"en": "HX..."}, "ticket_audio_pdf": {...}, ...}
WHATSAPP_CONTENT_TEMPLATES = config('WHATSAPP_CONTENT_TEMPLATES', default='{}', cast=json.loads)
WHATSAPP_FALLBACK_LANGUAGE = 'en'
WHATSAPP_TEMPLATE_URLS = {
    'online_guide': config('WHATSAPP_ONLINE_GUIDE_URL', default='https://uffizi.florencewithlocals.com'),
    'know_before_you_go': config(
        'WHATSAPP_KNOW_BEFORE_YOU_GO_URL',
        default='https://uffizi.florencewithlocals.com/know-before-you-go',
    ),
}

# Lookup outage handling: 'open' assumes WhatsApp, 'closed' assumes no WhatsApp
WHATSAPP_PROBE_FAILURE_POLICY = config('WHATSAPP_PROBE_FAILURE_POLICY', default='open')
# Markets where another messenger dominates; these go Email + SMS without a lookup
WHATSAPP_UNSUPPORTED_PREFIXES = config(
    'WHATSAPP_UNSUPPORTED_PREFIXES',
    default='+86,+81,+82,+7,+1',
    cast=lambda v: [s.strip() for s in v.split(',') if s.strip()]
)

# --- Resend Email API ---
RESEND_API_KEY = config('RESEND_API_KEY', default='')
RESEND_FROM_EMAIL = config('RESEND_FROM_EMAIL', default='Florence with Locals <tickets@florencewithlocals.com>')

# Per vendor call, seconds
VENDOR_TIMEOUT_SECONDS = 10

# --- Ticket dispatch ---
# 'with_tickets' stamps audio_guide_sent_at on every successful dispatch of an
# audio-guide booking; 'never' leaves it to the operator.
AUDIO_GUIDE_STAMP_POLICY = config('AUDIO_GUIDE_STAMP_POLICY', default='with_tickets')
TICKET_DISPATCH_LOCK_SECONDS = 120
ATTACHMENT_URL_EXPIRY_MINUTES = 7 * 24 * 60  # 7 days, S3 SigV4 maximum
ATTACHMENT_MAX_SIZE = 10 * 1024 * 1024  # 10 MB
MESSAGE_RETRY_DELAY_SECONDS = 1
MESSAGE_RETRY_BATCH_LIMIT = 50

# Short SMS notices (not tickets): the PDF went by email.
SMS_TICKET_NOTIFICATIONS = {
    'en': 'Your Uffizi Gallery tickets have been sent to your email. Please check your inbox. - Florence with Locals',
    'it': 'I biglietti Uffizi sono stati inviati alla tua email. Controlla la posta. - Florence with Locals',
    'es': 'Sus entradas Uffizi han sido enviadas a su email. Revise su bandeja de entrada. - Florence with Locals',
    'de': 'Ihre Uffizi-Tickets wurden an Ihre E-Mail gesendet. Bitte Posteingang prüfen. - Florence with Locals',
    'fr': 'Vos billets Uffizi ont ete envoyes par email. Verifiez votre boite de reception. - Florence with Locals',
    'pt': 'Seus ingressos Uffizi foram enviados ao seu email. Verifique sua caixa de entrada. - Florence with Locals',
    'tr': 'Uffizi biletleriniz e-postaniza gonderildi. Lutfen gelen kutunuzu kontrol edin. - Florence with Locals',
    'ja': 'ウフィツィ美術館のチケットをメールで送信しました。受信箱をご確認ください。Florence with Locals',
    'ko': '우피치 미술관 티켓이 이메일로 발송되었습니다. 받은편지함을 확인해주세요. - Florence with Locals',
    'el': 'Τα εισιτήρια Uffizi στάλθηκαν στο email σας. Ελέγξτε τα εισερχόμενα. - Florence with Locals',
}
SMS_FALLBACK_LANGUAGE = 'en'

# --- Celery ---
CELERY_BROKER_URL = config('CELERY_BROKER_URL', default='redis://localhost:6379/0')
CELERY_RESULT_BACKEND = 'django-db'
CELERY_CACHE_BACKEND = 'django-cache'
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_BEAT_SCHEDULER = 'django_celery_beat.schedulers:DatabaseScheduler'

# DatabaseScheduler syncs these into the DB on first beat startup.
CELERY_BEAT_SCHEDULE = {
    'retry-failed-messages': {
        'task': 'messaging.notifications.tasks.retry_failed_messages_task',
        'schedule': 30 * 60,  # every 30 minutes
    },
}
CELERY_TASK_ACKS_LATE = True
CELERY_TASK_REJECT_ON_WORKER_LOST = True
CELERY_TASK_TIME_LIMIT = 10 * 60
CELERY_TASK_SOFT_TIME_LIMIT = 5 * 60
CELERY_WORKER_MAX_TASKS_PER_CHILD = 200
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
CELERY_BROKER_TRANSPORT_OPTIONS = {'visibility_timeout': 3600}

# Django cache (dispatch locks)
CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.redis.RedisCache',
        'LOCATION': config('CACHE_REDIS_URL', default='redis://localhost:6379/1'),
    }
}

# Upload limits
DATA_UPLOAD_MAX_MEMORY_SIZE = 10 * 1024 * 1024  # 10 MB
FILE_UPLOAD_MAX_MEMORY_SIZE = 5 * 1024 * 1024   # 5 MB

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
}

import os
from pathlib import Path
import dj_database_url
import uuid

# --- CORRELATION ID CONTEXT (THREAD/ASYNC SAFE) ---
from contextvars import ContextVar

correlation_id_var = ContextVar("correlation_id", default=None)

def set_correlation_id(value=None):
    if value is None:
        value = str(uuid.uuid4())
    correlation_id_var.set(value)
    return value

def get_correlation_id():
    return correlation_id_var.get()

BASE_DIR = Path(__file__).resolve().parent.parent
SECRET_KEY = os.getenv('SECRET_KEY', 'unsafe-secret-for-dev')
DEBUG = os.getenv('DEBUG', '1') == '1'
ALLOWED_HOSTS = ['*']

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'requisitions',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'middleware.observability.ObservabilityMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
]

ROOT_URLCONF = 'project.urls'

TEMPLATES = [{
    'BACKEND': 'django.template.backends.django.DjangoTemplates',
    'DIRS': [],
    'APP_DIRS': True,
    'OPTIONS': {'context_processors': [
        'django.template.context_processors.debug',
        'django.template.context_processors.request',
        'django.contrib.auth.context_processors.auth',
        'django.contrib.messages.context_processors.messages',
    ]},
}]

WSGI_APPLICATION = 'project.wsgi.application'

DATABASE_URL = os.getenv('DATABASE_URL', '')
if DATABASE_URL:
    DATABASES = {'default': dj_database_url.parse(DATABASE_URL)}
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

AUTH_PASSWORD_VALIDATORS = []

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = '/static/'

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': [],
    'UNAUTHENTICATED_USER': None,
}

# Celery
CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://redis:6379/0')
CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', 'redis://redis:6379/0')
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_ACKS_LATE = True
CELERY_TASK_ALWAYS_EAGER = os.getenv('CELERY_TASK_ALWAYS_EAGER', '0') == '1'
CELERY_TASK_ROUTES = {
    'requisitions.tasks.process_requisition': {'queue': 'requisition-processing'},
}
# Keep finished job results around for inspection, then let them expire
CELERY_RESULT_EXPIRES = int(os.getenv('CELERY_RESULT_EXPIRES', str(24 * 60 * 60)))

# Requisition processing policy
REQUISITION_MAX_ATTEMPTS = int(os.getenv('REQUISITION_MAX_ATTEMPTS', '3'))
REQUISITION_RETRY_BACKOFF = int(os.getenv('REQUISITION_RETRY_BACKOFF', '5'))

# Oracle Fusion
FUSION_BASE_URL = os.getenv('FUSION_BASE_URL', '')
FUSION_USERNAME = os.getenv('FUSION_USERNAME', '')
FUSION_PASSWORD = os.getenv('FUSION_PASSWORD', '')
FUSION_REST_VERSION = os.getenv('FUSION_REST_VERSION', '11.13.18.05')
FUSION_TIMEOUT = int(os.getenv('FUSION_TIMEOUT', '30'))
FUSION_EXTERNAL_REF_FIELD = os.getenv('FUSION_EXTERNAL_REF_FIELD', 'ExternalReference')

# Uploads
MAX_UPLOAD_SIZE = int(os.getenv('MAX_UPLOAD_SIZE', str(10 * 1024 * 1024)))

SIMULATE_BASE_URL = os.getenv('SIMULATE_BASE_URL', 'http://web:8000')


# --- FORMATTERS ---
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,

    "filters": {
        "observability_fields": {
            "()": "middleware.logging_filters.EnsureObservabilityFields",
        },
    },

    "formatters": {
        # -----------------------------
        # HTTP REQUEST/RESPONSE FORMATTER
        # -----------------------------
        "http_json": {
            "format": (
                '{'
                '"timestamp":"%(asctime)s",'
                '"level":"%(levelname)s",'
                '"logger":"%(name)s",'
                '"message":"%(message)s",'
                '"correlation_id":"%(correlation_id)s",'
                '"method":"%(method)s",'
                '"path":"%(path)s",'
                '"type":"http",'
                '"client_ip":"%(client_ip)s",'
                '"user_agent":"%(user_agent)s",'
                '"status_code":"%(status_code)s",'
                '"response_bytes":"%(response_bytes)s",'
                '"duration_sec":"%(duration_sec)s"'
                '}'
            )
        },

        # -----------------------------
        # CELERY TASK FORMATTER
        # -----------------------------
        "celery_json": {
            "format": (
                '{'
                '"timestamp":"%(asctime)s",'
                '"level":"%(levelname)s",'
                '"logger":"%(name)s",'
                '"message":"%(message)s",'
                '"correlation_id":"%(correlation_id)s",'
                '"task_name":"%(task_name)s",'
                '"task_id":"%(task_id)s",'
                '"queue":"%(queue)s",'
                '"retries":"%(retries)s",'
                '"duration_sec":"%(duration_sec)s",'
                '"type":"celery"'
                '}'
            )
        },

        # -----------------------------
        # BATCH / REQUISITION EVENTS
        # -----------------------------
        "app_json": {
            "format": (
                '{'
                '"timestamp":"%(asctime)s",'
                '"level":"%(levelname)s",'
                '"logger":"%(name)s",'
                '"message":"%(message)s",'
                '"correlation_id":"%(correlation_id)s",'
                '"batch_id":"%(batch_id)s",'
                '"requisition_id":"%(requisition_id)s",'
                '"status":"%(status)s",'
                '"error":"%(error)s",'
                '"duration_sec":"%(duration_sec)s",'
                '"type":"app"'
                '}'
            )
        },
    },

    "handlers": {
        # HTTP handler
        "http_handler": {
            "class": "logging.StreamHandler",
            "formatter": "http_json",
            "filters": ["observability_fields"],
        },

        # Celery handler
        "celery_handler": {
            "class": "logging.StreamHandler",
            "formatter": "celery_json",
            "filters": ["observability_fields"],
        },

        # Batch/requisition handler
        "app_handler": {
            "class": "logging.StreamHandler",
            "formatter": "app_json",
            "filters": ["observability_fields"],
        },

        # Fallback debug logger
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "http_json",
            "filters": ["observability_fields"],
        },
    },

    "loggers": {
        # -----------------------------
        # HTTP LOGGER
        # -----------------------------
        "observability.http": {
            "handlers": ["http_handler"],
            "level": "INFO",
            "propagate": False,
        },

        # -----------------------------
        # CELERY TASK LOGGER
        # -----------------------------
        "observability.tasks": {
            "handlers": ["celery_handler"],
            "level": "INFO",
            "propagate": False,
        },

        # -----------------------------
        # REQUISITIONS APP LOGGER
        # -----------------------------
        "requisitions": {
            "handlers": ["app_handler"],
            "level": os.getenv('REQUISITIONS_LOG_LEVEL', 'INFO'),
            "propagate": False,
        },

        # Root fallback (optional)
        "": {
            "handlers": ["console"],
            "level": "WARNING",
        },
    },
}

"""
DailySnap - Django Settings
===========================

Production-ready configuration for:
- Render (Stateless deployment)
- Neon.tech (PostgreSQL)
- Cloudinary (Photo storage)
- Firebase Cloud Messaging (Push notifications)
- WhiteNoise (Static files)
"""

import os
from pathlib import Path

import cloudinary
import dj_database_url
from dotenv import load_dotenv

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# Load local environment variables from .env (no-op if missing).
load_dotenv(BASE_DIR / ".env")


def env_list(name, default=''):
    """Comma separated env var -> list of stripped, non-empty values."""
    raw = os.environ.get(name, default)
    return [item.strip() for item in raw.split(',') if item.strip()]


# =============================================================================
# SECURITY SETTINGS
# =============================================================================

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.environ.get('SECRET_KEY', 'django-insecure-dev-key-change-in-production')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.environ.get('DEBUG', 'False').lower() in ('true', '1', 'yes')

RENDER_EXTERNAL_HOSTNAME = os.environ.get('RENDER_EXTERNAL_HOSTNAME')
ALLOWED_HOSTS = []

if RENDER_EXTERNAL_HOSTNAME:
    ALLOWED_HOSTS.append(RENDER_EXTERNAL_HOSTNAME)
elif os.environ.get('ALLOWED_HOSTS'):
    ALLOWED_HOSTS = env_list('ALLOWED_HOSTS')
else:
    ALLOWED_HOSTS = ['localhost', '127.0.0.1', 'testserver']

# Render.com specific: Trust the proxy headers
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

# Production security settings (enabled when DEBUG=False)
if not DEBUG:
    SECURE_SSL_REDIRECT = os.environ.get('SECURE_SSL_REDIRECT', 'True').lower() in ('true', '1', 'yes')
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_HSTS_SECONDS = 31536000  # 1 year
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_HSTS_PRELOAD = True

CSRF_TRUSTED_ORIGINS = []
if RENDER_EXTERNAL_HOSTNAME:
    CSRF_TRUSTED_ORIGINS.append(f'https://{RENDER_EXTERNAL_HOSTNAME}')
elif os.environ.get('CSRF_TRUSTED_ORIGINS'):
    CSRF_TRUSTED_ORIGINS = env_list('CSRF_TRUSTED_ORIGINS')
else:
    CSRF_TRUSTED_ORIGINS = ['https://*.onrender.com']

# =============================================================================
# APPLICATION DEFINITION
# =============================================================================

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Third-party apps
    'cloudinary',

    # Local apps
    'core',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',  # WhiteNoise for static files
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'core.middleware.RequestTimezoneMiddleware',
    'core.middleware.InactivityLogoutMiddleware',
    'core.middleware.ApiRequestLoggingMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'dailysnap.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
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

WSGI_APPLICATION = 'dailysnap.wsgi.application'

# =============================================================================
# DATABASE - Neon.tech PostgreSQL
# =============================================================================

# Reads racing a slow backend are cancelled after this many milliseconds.
DB_READ_TIMEOUT_MS = int(os.environ.get('DB_READ_TIMEOUT_MS', '20000'))

# Database configuration priority:
# 1. DB_* variables (for local Postgres with explicit settings)
# 2. DATABASE_URL (for production/Render/Neon.tech)
# 3. SQLite (local development fallback)
DATABASE_URL = os.environ.get('DATABASE_URL')
DB_NAME = os.environ.get('DB_NAME')
DB_USER = os.environ.get('DB_USER')
DB_PASSWORD = os.environ.get('DB_PASSWORD')
DB_HOST = os.environ.get('DB_HOST', 'localhost')
DB_PORT = os.environ.get('DB_PORT', '5432')

POSTGRES_OPTIONS = {'options': f'-c statement_timeout={DB_READ_TIMEOUT_MS}'}

if DB_NAME and DB_USER and DB_PASSWORD:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': DB_NAME,
            'USER': DB_USER,
            'PASSWORD': DB_PASSWORD,
            'HOST': DB_HOST,
            'PORT': DB_PORT,
            'OPTIONS': POSTGRES_OPTIONS,
        }
    }
elif DATABASE_URL:
    # SSL requirements are handled by the DATABASE_URL itself (e.g., sslmode=require)
    DATABASES = {
        'default': dj_database_url.config(
            default=DATABASE_URL,
            conn_max_age=600,
            conn_health_checks=True,
            ssl_require=False,
        )
    }
    if DATABASES['default'].get('ENGINE', '').endswith('postgresql'):
        DATABASES['default'].setdefault('OPTIONS', {}).update(POSTGRES_OPTIONS)
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

# =============================================================================
# PASSWORD VALIDATION
# =============================================================================

AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
        'OPTIONS': {'min_length': 6},
    },
]

# =============================================================================
# INTERNATIONALIZATION
# =============================================================================

LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.environ.get('TIME_ZONE', 'Europe/Rome')
USE_I18N = True
USE_TZ = True

# =============================================================================
# STATIC FILES - WhiteNoise
# =============================================================================

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# In local dev, avoid manifest requirements (no need to run collectstatic).
STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'staticfiles': {
        'BACKEND': (
            'django.contrib.staticfiles.storage.StaticFilesStorage'
            if DEBUG
            else 'whitenoise.storage.CompressedManifestStaticFilesStorage'
        ),
    },
}

if DEBUG:
    WHITENOISE_USE_FINDERS = True
    WHITENOISE_AUTOREFRESH = True

# =============================================================================
# MEDIA FILES - Cloudinary
# =============================================================================

CLOUDINARY_STORAGE = {
    'CLOUD_NAME': os.environ.get('CLOUDINARY_CLOUD_NAME', ''),
    'API_KEY': os.environ.get('CLOUDINARY_API_KEY', ''),
    'API_SECRET': os.environ.get('CLOUDINARY_API_SECRET', ''),
}

cloudinary.config(
    cloud_name=CLOUDINARY_STORAGE['CLOUD_NAME'],
    api_key=CLOUDINARY_STORAGE['API_KEY'],
    api_secret=CLOUDINARY_STORAGE['API_SECRET'],
    secure=True,
)

# Folder that per-user daily photos are uploaded into.
CLOUDINARY_UPLOAD_FOLDER = os.environ.get('CLOUDINARY_UPLOAD_FOLDER', 'dailysnap')

BLOB_STORE_BACKEND = os.environ.get('BLOB_STORE_BACKEND', 'core.storage.CloudinaryBlobStore')

# =============================================================================
# DEFAULT PRIMARY KEY
# =============================================================================

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# =============================================================================
# AUTHENTICATION
# =============================================================================

# Only these addresses may sign in or register. The gate fails closed: with it
# on and the list empty, nobody gets in. Turn it off for open registration
# (conversations only; two-party mode needs exactly two addresses here).
ACCESS_GATE_ENABLED = os.environ.get('ACCESS_GATE_ENABLED', 'True').lower() in ('true', '1', 'yes')
ACCESS_ALLOWED_EMAILS = [email.lower() for email in env_list('ACCESS_ALLOWED_EMAILS')]

AUTH_MAX_FAILED_ATTEMPTS = int(os.environ.get('AUTH_MAX_FAILED_ATTEMPTS', '5'))
AUTH_LOCKOUT_SECONDS = int(os.environ.get('AUTH_LOCKOUT_SECONDS', '900'))

# Auto-logout after this many seconds without user interaction.
SESSION_INACTIVITY_TIMEOUT = int(os.environ.get('SESSION_INACTIVITY_TIMEOUT', '300'))

# Background polling that must not count as user activity.
SESSION_PASSIVE_PATHS = [
    '/api/today/status/',
]

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    },
}

# =============================================================================
# PUSH NOTIFICATIONS - Firebase Cloud Messaging
# =============================================================================

PUSH_BACKEND = os.environ.get('PUSH_BACKEND', 'core.push.FirebasePushBackend')

# Path to a service account JSON file; empty = application default credentials.
FIREBASE_CREDENTIALS = os.environ.get('FIREBASE_CREDENTIALS', '')

PUSH_ICON = '/favicon.svg'

# Scheduled jobs are evaluated in this single timezone.
NOTIFICATION_TIMEZONE = os.environ.get('NOTIFICATION_TIMEZONE', 'Europe/Rome')
DAILY_REMINDER_HOUR = int(os.environ.get('DAILY_REMINDER_HOUR', '13'))
REMINDER_INTERVAL_HOURS = int(os.environ.get('REMINDER_INTERVAL_HOURS', '3'))
REMINDER_ACTIVE_HOURS = (9, 22)

# crontab entries driving `manage.py send_notifications <job>`
NOTIFICATION_SCHEDULES = {
    'midnight_memory': '0 0 * * *',
    'daily_reminder': f'0 {DAILY_REMINDER_HOUR} * * *',
    'hourly_reminder': f'0 */{REMINDER_INTERVAL_HOURS} * * *',
}

# =============================================================================
# UPLOADS
# =============================================================================

UPLOAD_FETCH_MAX_ATTEMPTS = int(os.environ.get('UPLOAD_FETCH_MAX_ATTEMPTS', '3'))

# =============================================================================
# LOGGING
# =============================================================================

API_VERBOSE_LOGGING = os.environ.get('API_VERBOSE_LOGGING', str(DEBUG)).lower() in ('true', '1', 'yes')

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
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': os.environ.get('DJANGO_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
        'core': {
            'handlers': ['console'],
            'level': os.environ.get('APP_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}

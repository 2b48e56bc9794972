"""
Django settings for the potlam operations console.

Values come from the environment (optionally a local ``.env`` file). The
console keeps no business data of its own: the sqlite database only backs
Django sessions and messages.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / '.env')


def _env_bool(name, default=False):
    return os.getenv(name, str(default)).lower() in ('1', 'true', 'yes', 'on')


SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
DEBUG = _env_bool('DEBUG', True)
ALLOWED_HOSTS = [h.strip() for h in os.getenv('ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',') if h.strip()]

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'login',
    'dashboard',
    'cashbox',
    'expenses',
    'pricing',
    'inventory',
    'tasks',
    'shop',
    'products',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
    'login.middleware.BackendAuthMiddleware',
]

ROOT_URLCONF = 'potlam.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [BASE_DIR / 'templates'],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.messages.context_processors.messages',
                'login.context_processors.session_user',
            ],
        },
    },
]

WSGI_APPLICATION = 'potlam.wsgi.application'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.getenv('SQLITE_PATH', str(BASE_DIR / 'db.sqlite3')),
    }
}

SESSION_COOKIE_AGE = int(os.getenv('SESSION_COOKIE_AGE', 60 * 60 * 24))
SESSION_COOKIE_SECURE = _env_bool('SESSION_COOKIE_SECURE', not DEBUG)
CSRF_COOKIE_SECURE = _env_bool('CSRF_COOKIE_SECURE', not DEBUG)
MESSAGE_STORAGE = 'django.contrib.messages.storage.session.SessionStorage'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.getenv('TIME_ZONE', 'Asia/Kolkata')
USE_I18N = True
USE_TZ = True

STATIC_URL = '/static/'
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Backend API
BACKEND_API_URL = os.getenv('BACKEND_API_URL', 'http://localhost:8000/api')
BACKEND_API_TIMEOUT = float(os.getenv('BACKEND_API_TIMEOUT', 10))
BACKEND_FANOUT_TIMEOUT = float(os.getenv('BACKEND_FANOUT_TIMEOUT', 15))

# Login throttling; only read X-Forwarded-For behind a trusted proxy
RATE_LIMIT_TRUST_FORWARDED = _env_bool('RATE_LIMIT_TRUST_FORWARDED', False)

# Pricing display
CURRENCY_SYMBOL = os.getenv('CURRENCY_SYMBOL', '₹')
PRICING_STRICT_CHECK = _env_bool('PRICING_STRICT_CHECK', DEBUG)

# Page sizes
EXPENSE_SUMMARY_LIMIT = int(os.getenv('EXPENSE_SUMMARY_LIMIT', 500))
EXPENSE_PAGE_SIZE = int(os.getenv('EXPENSE_PAGE_SIZE', 20))
CASHBOX_PAGE_SIZE = int(os.getenv('CASHBOX_PAGE_SIZE', 10))
TASK_PAGE_SIZE = int(os.getenv('TASK_PAGE_SIZE', 10))

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name}: {message}',
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
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': os.getenv('DJANGO_LOG_LEVEL', 'WARNING'),
            'propagate': False,
        },
        'backend_api': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}

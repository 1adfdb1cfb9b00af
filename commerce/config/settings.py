"""
Django settings for the commerce project.

All deployment-specific values come from the environment (or a .env file
at the repository root) through django-environ.
"""
from datetime import timedelta
from pathlib import Path

import environ

BASE_DIR = Path(__file__).resolve().parent.parent.parent

env = environ.Env(
    DJANGO_DEBUG=(bool, False),
    DJANGO_ALLOWED_HOSTS=(list, ['localhost', '127.0.0.1', 'testserver']),
)
environ.Env.read_env(BASE_DIR / '.env')

SECRET_KEY = env('DJANGO_SECRET_KEY', default='django-insecure-local-development-key-change-me')
DEBUG = env('DJANGO_DEBUG')
ALLOWED_HOSTS = env('DJANGO_ALLOWED_HOSTS')

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'rest_framework_simplejwt',
    'django_filters',
    'django_guid',
    'commerce.core',
    'commerce.catalog',
    'commerce.parties',
    'commerce.inventory',
    'commerce.pricing',
    'commerce.orders',
    'commerce.content',
    'commerce.reports',
]

MIDDLEWARE = [
    'django_guid.middleware.guid_middleware',
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.locale.LocaleMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'commerce.config.urls'
WSGI_APPLICATION = 'commerce.config.wsgi.application'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

DATABASES = {
    'default': env.db('DATABASE_URL', default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}
DATABASES['default']['ATOMIC_REQUESTS'] = False

AUTH_USER_MODEL = 'core.User'
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
]

# Internationalization
LANGUAGE_CODE = 'vi'
LANGUAGES = [
    ('en', 'English'),
    ('vi', 'Tiếng Việt'),
]
TIME_ZONE = env('DJANGO_TIME_ZONE', default='Asia/Ho_Chi_Minh')
USE_I18N = True
USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'
MEDIA_URL = '/media/'
MEDIA_ROOT = Path(env('MEDIA_ROOT', default=str(BASE_DIR / 'media')))

# Non-file request bodies are capped; uploads larger than this spool to a temporary file
DATA_UPLOAD_MAX_MEMORY_SIZE = 10 * 1024 * 1024
FILE_UPLOAD_MAX_MEMORY_SIZE = 10 * 1024 * 1024

# Cache: Redis when configured, local memory otherwise
REDIS_URL = env('REDIS_URL', default='')
if REDIS_URL:
    CACHES = {
        'default': {
            'BACKEND': 'django_redis.cache.RedisCache',
            'LOCATION': REDIS_URL,
            'OPTIONS': {
                'CLIENT_CLASS': 'django_redis.client.DefaultClient',
                'IGNORE_EXCEPTIONS': True,
            },
            'KEY_PREFIX': 'ce',
            'TIMEOUT': 300,
        }
    }
else:
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'ce-commerce',
        }
    }

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework_simplejwt.authentication.JWTAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.IsAuthenticated',
    ),
    'DEFAULT_FILTER_BACKENDS': (
        'django_filters.rest_framework.DjangoFilterBackend',
    ),
    'EXCEPTION_HANDLER': 'commerce.core.exceptions.api_exception_handler',
    'DEFAULT_THROTTLE_RATES': {
        'login': env('THROTTLE_LOGIN', default='5/15m'),
        'register': env('THROTTLE_REGISTER', default='3/h'),
        'checkout': env('THROTTLE_CHECKOUT', default='10/h'),
        'contact': env('THROTTLE_CONTACT', default='5/h'),
        'api_general': env('THROTTLE_API_GENERAL', default='100/m'),
        'api_admin': env('THROTTLE_API_ADMIN', default='200/m'),
        'search': env('THROTTLE_SEARCH', default='30/m'),
    },
    'NUM_PROXIES': env.int('NUM_PROXIES', default=None),
}

SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(minutes=env.int('JWT_ACCESS_MINUTES', default=60)),
    'REFRESH_TOKEN_LIFETIME': timedelta(days=env.int('JWT_REFRESH_DAYS', default=7)),
    'AUTH_HEADER_TYPES': ('Bearer',),
    'UPDATE_LAST_LOGIN': True,
}

# Business configuration
DEFAULT_CURRENCY = env('DEFAULT_CURRENCY', default='VND')
DEFAULT_LOCALE = env('DEFAULT_LOCALE', default='vi')
ORDER_CODE_PREFIX = env('ORDER_CODE_PREFIX', default='CE')
BUSINESS_PAYMENT_TERMS_DAYS = env.int('BUSINESS_PAYMENT_TERMS_DAYS', default=30)
LOYALTY_POINT_VALUE = env.int('LOYALTY_POINT_VALUE', default=10000)
DEFAULT_WAREHOUSE_CODE = env('DEFAULT_WAREHOUSE_CODE', default='MAIN')
REVIEW_FLAG_THRESHOLD = env.int('REVIEW_FLAG_THRESHOLD', default=5)
REPORTS_CACHE_TTL = env.int('REPORTS_CACHE_TTL', default=600)

LOG_LEVEL = env('LOG_LEVEL', default='INFO')

# Request correlation id: reused from X-Request-ID when it is a valid UUID, echoed on the response
DJANGO_GUID = {
    'GUID_HEADER_NAME': 'X-Request-ID',
    'VALIDATE_GUID': True,
    'RETURN_HEADER': True,
    'EXPOSE_HEADER': True,
    'UUID_FORMAT': 'hex',
}

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'filters': {
        'correlation_id': {
            '()': 'django_guid.log_filters.CorrelationId',
        },
    },
    'formatters': {
        'verbose': {
            'format': '%(asctime)s %(levelname)s [%(name)s] [req:%(correlation_id)s] %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
            'filters': ['correlation_id'],
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
        'commerce': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'django_guid': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
    },
}

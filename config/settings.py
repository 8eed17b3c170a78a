"""
Django settings for Resellers Hub project.

Resellers Hub - Data bundles and result checkers for Ghanaian resellers
Built with: Django + django-allauth + Paystack
"""

from decimal import Decimal
from pathlib import Path
import environ

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# Initialize environment variables
env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, ['localhost', '127.0.0.1']),
)

# Read .env file
environ.Env.read_env(BASE_DIR / '.env')

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = env('SECRET_KEY', default='django-insecure-resellers-hub-dev-key')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env('DEBUG')

ALLOWED_HOSTS = env.list('ALLOWED_HOSTS')

SITE_URL = env('SITE_URL', default='http://127.0.0.1:8000')


# =============================================================================
# APPLICATION DEFINITION
# =============================================================================

DJANGO_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'django.contrib.sites',
]

THIRD_PARTY_APPS = [
    'django_extensions',
    'allauth',
    'allauth.account',
    'allauth.socialaccount',
    'allauth.socialaccount.providers.google',
]

LOCAL_APPS = [
    'core',
]

INSTALLED_APPS = DJANGO_APPS + THIRD_PARTY_APPS + LOCAL_APPS

# Site ID for django.contrib.sites (required by allauth)
SITE_ID = 1


# =============================================================================
# MIDDLEWARE
# =============================================================================

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
    'allauth.account.middleware.AccountMiddleware',
]

ROOT_URLCONF = 'config.urls'


# =============================================================================
# TEMPLATES (Django admin and allauth emails only)
# =============================================================================

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

WSGI_APPLICATION = 'config.wsgi.application'


# =============================================================================
# DATABASE
# =============================================================================

DATABASES = {
    'default': env.db('DATABASE_URL', default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}


# =============================================================================
# PASSWORD VALIDATION
# =============================================================================

# Registration applies its own letter-and-digit rule (core.services.validate_password_strength)
AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator', 'OPTIONS': {'min_length': 8}},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
]


# =============================================================================
# INTERNATIONALIZATION
# =============================================================================

LANGUAGE_CODE = 'en-us'

TIME_ZONE = 'Africa/Accra'  # Ghana timezone

USE_I18N = True

USE_TZ = True


# =============================================================================
# STATIC FILES (Django admin assets)
# =============================================================================

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# WhiteNoise for efficient static file serving
STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'staticfiles': {
        'BACKEND': 'whitenoise.storage.CompressedManifestStaticFilesStorage',
    },
}


# =============================================================================
# DEFAULT PRIMARY KEY FIELD TYPE
# =============================================================================

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Custom User Model (email-based authentication)
AUTH_USER_MODEL = 'core.User'


# =============================================================================
# PAYSTACK (payment gateway)
# =============================================================================

# The `paystack.secret_key` Setting row takes precedence over these values
PAYSTACK_SECRET_KEY = env('PAYSTACK_SECRET_KEY', default='')
PAYSTACK_PUBLIC_KEY = env('PAYSTACK_PUBLIC_KEY', default='')
PAYSTACK_BASE_URL = env('PAYSTACK_BASE_URL', default='https://api.paystack.co')
PAYSTACK_TAX_RATE = Decimal(env('PAYSTACK_TAX_RATE', default='0.025'))
CHECKOUT_APPLY_TAX = env.bool('CHECKOUT_APPLY_TAX', default=False)


# =============================================================================
# DATA BUNDLE PROVIDER
# =============================================================================

# The `external_api.*` Setting rows take precedence over these values
PROVIDER_API_KEY = env('PROVIDER_API_KEY', default='')
PROVIDER_API_SECRET = env('PROVIDER_API_SECRET', default='')
PROVIDER_API_ENDPOINT = env('PROVIDER_API_ENDPOINT', default='https://skytechgh.com/api/v1/orders')
PROVIDER_TIMEOUT = env.int('PROVIDER_TIMEOUT', default=30)
PROVIDER_MAX_RETRIES = env.int('PROVIDER_MAX_RETRIES', default=3)
PROVIDER_BACKOFF_BASE = env.float('PROVIDER_BACKOFF_BASE', default=1.0)


# =============================================================================
# BUSINESS RULES
# =============================================================================

AGENT_ACTIVATION_FEE = Decimal(env('AGENT_ACTIVATION_FEE', default='60.00'))
WITHDRAWAL_MIN_AMOUNT = Decimal(env('WITHDRAWAL_MIN_AMOUNT', default='10.00'))
WITHDRAWAL_MAX_AMOUNT = Decimal(env('WITHDRAWAL_MAX_AMOUNT', default='100000.00'))
WALLET_TOPUP_MIN_AMOUNT = Decimal(env('WALLET_TOPUP_MIN_AMOUNT', default='1.00'))
PHONE_PREFIX_VALIDATION = env.bool('PHONE_PREFIX_VALIDATION', default=True)
API_KEY_HOURLY_LIMIT = env.int('API_KEY_HOURLY_LIMIT', default=5)


# =============================================================================
# EMAIL CONFIGURATION
# =============================================================================

EMAIL_BACKEND = 'django.core.mail.backends.smtp.EmailBackend'
EMAIL_HOST = env('EMAIL_HOST', default='smtp.gmail.com')
EMAIL_PORT = env.int('EMAIL_PORT', default=587)
EMAIL_USE_TLS = env.bool('EMAIL_USE_TLS', default=True)
EMAIL_HOST_USER = env('EMAIL_HOST_USER', default='')
EMAIL_HOST_PASSWORD = env('EMAIL_HOST_PASSWORD', default='')
DEFAULT_FROM_EMAIL = 'Resellers Hub <noreply@resellershub.com.gh>'


# =============================================================================
# PUSH NOTIFICATIONS (Web Push / VAPID)
# =============================================================================

VAPID_PUBLIC_KEY = env('VAPID_PUBLIC_KEY', default='')
VAPID_PRIVATE_KEY = env('VAPID_PRIVATE_KEY', default='')
VAPID_ADMIN_EMAIL = env('VAPID_ADMIN_EMAIL', default='admin@resellershub.com.gh')


# =============================================================================
# SECURITY SETTINGS (Enable in Production)
# =============================================================================

if not DEBUG:
    SECURE_BROWSER_XSS_FILTER = True
    SECURE_CONTENT_TYPE_NOSNIFF = True
    X_FRAME_OPTIONS = 'DENY'
    SECURE_SSL_REDIRECT = env.bool('SECURE_SSL_REDIRECT', default=False)
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_HSTS_SECONDS = 31536000
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_HSTS_PRELOAD = True


# =============================================================================
# AUTHENTICATION SETTINGS
# =============================================================================

AUTHENTICATION_BACKENDS = [
    'django.contrib.auth.backends.ModelBackend',
    'allauth.account.auth_backends.AuthenticationBackend',
]

LOGIN_URL = '/api/auth/login'
LOGIN_REDIRECT_URL = '/'
LOGOUT_REDIRECT_URL = '/'

# Session settings
SESSION_COOKIE_AGE = 60 * 60 * 24 * 7  # 7 days
SESSION_EXPIRE_AT_BROWSER_CLOSE = False


# =============================================================================
# DJANGO-ALLAUTH SETTINGS
# =============================================================================

# Email is the primary identifier, not username
ACCOUNT_LOGIN_METHODS = {'email'}
ACCOUNT_SIGNUP_FIELDS = ['email*', 'password1*']
ACCOUNT_USER_MODEL_USERNAME_FIELD = None
ACCOUNT_UNIQUE_EMAIL = True

# Storefront customers must be able to buy before confirming their inbox
ACCOUNT_EMAIL_VERIFICATION = 'optional'
ACCOUNT_CONFIRM_EMAIL_ON_GET = True
ACCOUNT_EMAIL_CONFIRMATION_EXPIRE_DAYS = 3

# Social account settings
SOCIALACCOUNT_AUTO_SIGNUP = True
SOCIALACCOUNT_EMAIL_VERIFICATION = 'none'
SOCIALACCOUNT_QUERY_EMAIL = True

ACCOUNT_ADAPTER = 'core.adapters.ResellerAccountAdapter'
SOCIALACCOUNT_ADAPTER = 'core.adapters.ResellerSocialAccountAdapter'

SOCIALACCOUNT_PROVIDERS = {
    'google': {
        'SCOPE': ['profile', 'email'],
        'AUTH_PARAMS': {'access_type': 'online'},
        'OAUTH_PKCE_ENABLED': True,
    }
}

# Use console email backend for development
if DEBUG:
    EMAIL_BACKEND = 'django.core.mail.backends.console.EmailBackend'


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

LOGS_DIR = Path(env('LOGS_DIR', default=str(BASE_DIR / 'logs')))
LOGS_DIR.mkdir(parents=True, exist_ok=True)
LOG_LEVEL = env('LOG_LEVEL', default='DEBUG' if DEBUG else 'INFO')


def rotating_log(filename, level='INFO', formatter='standard', backups=5):
    """10 MB rotating file handler under LOGS_DIR."""
    return {
        'level': level,
        'class': 'logging.handlers.RotatingFileHandler',
        'filename': LOGS_DIR / filename,
        'maxBytes': 10 * 1024 * 1024,
        'backupCount': backups,
        'formatter': formatter,
        'encoding': 'utf-8',
    }


LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,

    'formatters': {
        'standard': {
            'format': '{levelname} {asctime} {name} {filename}:{lineno} {message}',
            'style': '{',
        },
        'traced': {
            'format': '{levelname} {asctime} {name} {pathname}:{lineno} {funcName} [pid {process:d}] {message}',
            'style': '{',
        },
        'console': {
            'format': '{levelname} {name}: {message}',
            'style': '{',
        },
    },

    'handlers': {
        'console': {
            'level': 'DEBUG',
            'class': 'logging.StreamHandler',
            'formatter': 'console',
        },
        # Everything the app logs
        'app_file': rotating_log('resellers_hub.log', level='DEBUG'),
        'error_file': rotating_log('errors.log', level='ERROR', formatter='traced'),
        # Logins, API keys and webhook signature failures
        'security_file': rotating_log('security.log', formatter='traced'),
        # Orders, ledger postings, Paystack and payouts; kept longer
        'money_file': rotating_log('payments.log', backups=20),
        # Provider dispatch attempts
        'dispatch_file': rotating_log('dispatch.log', level='DEBUG'),
    },

    'loggers': {
        'django': {
            'handlers': ['console', 'app_file', 'error_file'],
            'level': 'INFO',
        },
        'django.security': {
            'handlers': ['security_file', 'error_file'],
            'level': 'INFO',
            'propagate': False,
        },
        'django.request': {
            'handlers': ['app_file', 'error_file'],
            'level': 'WARNING',
            'propagate': False,
        },
        'core': {
            'handlers': ['console', 'app_file', 'error_file'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'core.transactions': {
            'handlers': ['app_file', 'error_file', 'money_file'],
            'level': 'DEBUG',
            'propagate': False,
        },
        'core.payments': {
            'handlers': ['app_file', 'error_file', 'money_file'],
            'level': 'DEBUG',
            'propagate': False,
        },
        'core.providers': {
            'handlers': ['app_file', 'error_file', 'dispatch_file'],
            'level': 'DEBUG',
            'propagate': False,
        },
        'core.auth': {
            'handlers': ['app_file', 'security_file'],
            'level': 'INFO',
            'propagate': False,
        },
        'core.notifications': {
            'handlers': ['app_file', 'error_file'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}

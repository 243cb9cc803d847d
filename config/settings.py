# config/settings.py

import os
from pathlib import Path
from dotenv import load_dotenv

# Build paths inside the project
BASE_DIR = Path(__file__).resolve().parent.parent

# Loads environment variables from .env file
load_dotenv(BASE_DIR / '.env')

# Quick-start development settings - not for production
SECRET_KEY = os.getenv('SECRET_KEY', 'a-default-secret-key-for-development')
DEBUG = os.getenv('DEBUG', '1') == '1'

ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', '127.0.0.1,localhost').split(',')

# Application definition
INSTALLED_APPS = [
    'daphne', # RT: The real-time server
    'channels',

    # Local apps
    'accounts',
    'rooms',
    'messaging',
    'core',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'config.urls'

ASGI_APPLICATION = 'config.asgi.application'

# The real-time layer keeps no data in a database; the REST API owns persistence.
DATABASES = {}

# Channels
# The channel layer only carries pushes from the REST side to open sockets.
# Live connections and presence stay in this process's memory (see core/hub.py).
REDIS_URL = os.getenv('REDIS_URL')
if REDIS_URL:
    CHANNEL_LAYERS = {
        "default": {
            "BACKEND": "channels_redis.core.RedisChannelLayer",
            "CONFIG": {
                "hosts": [REDIS_URL],
            },
        },
    }
else:
    CHANNEL_LAYERS = {
        "default": {
            "BACKEND": "channels.layers.InMemoryChannelLayer",
        },
    }

# Login tokens (shared secret with the REST API)
JWT_SECRET = os.getenv('JWT_SECRET', SECRET_KEY)
JWT_ALGORITHM = os.getenv('JWT_ALGORITHM', 'HS256')
JWT_EXPIRES_SECONDS = int(os.getenv('JWT_EXPIRES_SECONDS', '3600'))  # 1 hour

# Real-time presence
REALTIME_REAPER_INTERVAL_SECONDS = float(os.getenv('REALTIME_REAPER_INTERVAL_SECONDS', '10'))
REALTIME_ONLINE_TIMEOUT_MS = int(os.getenv('REALTIME_ONLINE_TIMEOUT_MS', '30000'))
REALTIME_TYPING_TIMEOUT_MS = int(os.getenv('REALTIME_TYPING_TIMEOUT_MS', '5000'))
# Close every socket with 1001 on SIGTERM/SIGINT
REALTIME_HANDLE_SIGNALS = os.getenv('REALTIME_HANDLE_SIGNALS', '1') == '1'

# Logging
LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG' if DEBUG else 'INFO')

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
        'level': 'WARNING',
    },
    'loggers': {
        'accounts': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
        'core': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
        'messaging': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
        'rooms': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
    },
}

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Security settings for production
if not DEBUG:
    SECURE_SSL_REDIRECT = True
    SECURE_HSTS_SECONDS = 31536000
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_HSTS_PRELOAD = True

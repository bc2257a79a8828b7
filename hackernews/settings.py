# hackernews-graphql -- hackernews/settings.py
#
# Copyright © 2017 Sean Bolton.
#
# Permission is hereby granted, free of charge, to any person obtaining
# a copy of this software and associated documentation files (the
# "Software"), to deal in the Software without restriction, including
# without limitation the rights to use, copy, modify, merge, publish,
# distribute, sublicense, and/or sell copies of the Software, and to
# permit persons to whom the Software is furnished to do so, subject to
# the following conditions:
#
# The above copyright notice and this permission notice shall be
# included in all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND,
# EXPRESS OR IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF
# MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND
# NONINFRINGEMENT. IN NO EVENT SHALL THE AUTHORS OR COPYRIGHT HOLDERS BE
# LIABLE FOR ANY CLAIM, DAMAGES OR OTHER LIABILITY, WHETHER IN AN ACTION
# OF CONTRACT, TORT OR OTHERWISE, ARISING FROM, OUT OF OR IN CONNECTION
# WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE SOFTWARE.

import os
from pathlib import Path

from dotenv import load_dotenv


BASE_DIR = Path(__file__).resolve().parent.parent

# Like the dotenv/config preload of the front-end tutorial's servers, values already present in
# the environment win over those in .env.
load_dotenv(BASE_DIR / '.env')


def env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


# ========== Django core ==========

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'django-insecure-hackernews-graphql-dev-key')

DEBUG = env_bool('DJANGO_DEBUG')

ALLOWED_HOSTS = [h.strip() for h in os.environ.get('DJANGO_ALLOWED_HOSTS', '*').split(',') if h.strip()]

INSTALLED_APPS = [
    'django.contrib.staticfiles',
    'graphene_django',
    'hackernews',
    'users',
    'links',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'hackernews.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
            ],
        },
    },
]

WSGI_APPLICATION = 'hackernews.wsgi.application'
ASGI_APPLICATION = 'hackernews.asgi.application'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / os.environ.get('DATABASE_NAME', 'db.sqlite3'),
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = False
USE_TZ = True

STATIC_URL = 'static/'


# ========== GraphQL ==========

GRAPHENE = {
    'SCHEMA': 'hackernews.schema.schema',
}

# The database alias resolvers run their queries against; see hackernews.context.
GRAPHQL_DATABASE = os.environ.get('GRAPHQL_DATABASE', 'default')

# newLink / newVote fan-out. The in-memory layer only reaches subscribers in this process.
# A subscriber stops getting events group_expiry seconds after subscribing; the layer's own
# default is one day.
SUBSCRIPTION_GROUP_EXPIRY = int(os.environ.get('SUBSCRIPTION_GROUP_EXPIRY', str(10 * 365 * 86400)))
CHANNEL_LAYERS = {
    'default': {
        'BACKEND': 'channels.layers.InMemoryChannelLayer',
        'CONFIG': {
            'group_expiry': SUBSCRIPTION_GROUP_EXPIRY,
        },
    },
}


# ========== API authentication ==========

API_SECRET = os.environ.get('API_SECRET', 'change-me')
API_TOKEN_ALGORITHM = 'HS256'
API_TOKEN_TTL = int(os.environ.get('API_TOKEN_TTL', '0'))  # seconds, 0 for no expiry
PASSWORD_HASH_ROUNDS = int(os.environ.get('PASSWORD_HASH_ROUNDS', '10'))


# ========== server ==========

API_HOST = os.environ.get('API_HOST', '127.0.0.1')
API_PORT = int(os.environ.get('API_PORT', '4000'))


# ========== logging ==========

LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'loggers': {
        'hackernews': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
        'users': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
        'links': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
    },
}

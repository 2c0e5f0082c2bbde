from .settings import *  # noqa: F401,F403

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
NOTIFICATIONS_SMS_ENABLED = False
NOTIFICATIONS_ASYNC = False

LOGGING['handlers']['file'] = {  # noqa: F405
    'class': 'logging.NullHandler',
}

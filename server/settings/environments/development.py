"""Settings for local development and tests."""

from server.settings.components import config

DEBUG = True

SECRET_KEY = config(
    'DJANGO_SECRET_KEY',
    default='development-only-insecure-secret-key',
)

ALLOWED_HOSTS = [
    config('DOMAIN_NAME', default='localhost'),
    '127.0.0.1',
    '[::1]',
]

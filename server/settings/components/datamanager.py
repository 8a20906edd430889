"""File engine and session settings."""

from server.settings.components import config

# Shared namespace used when a request omits one
DEFAULT_NAMESPACE_NAME = config('DM_DEFAULT_NAMESPACE', default='default')

# Identifier allocation
LOCAL_NAME_LENGTH = 40
LOCAL_NAME_ATTEMPTS = 5
PUBLIC_SLUG_LENGTH = 25
RANDOM_FILE_NAME_LENGTH = 20

# Remote URL uploads
ALLOWED_URL_SCHEMES = ('http', 'https')
URL_FETCH_TIMEOUT = config('DM_URL_FETCH_TIMEOUT', cast=float, default=30.0)
URL_FETCH_CHUNK_SIZE = 64 * 1024

# Soft-deleted rows are purged after this many days
DELETED_FILE_RETENTION_DAYS = config(
    'DM_DELETED_FILE_RETENTION_DAYS',
    cast=int,
    default=30,
)

# Login sessions
SESSION_LIMIT = config('DM_SESSION_LIMIT', cast=int, default=10)
SESSION_TIMEOUT = config('DM_SESSION_TIMEOUT', cast=int, default=7 * 24 * 3600)

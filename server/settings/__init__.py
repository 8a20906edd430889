"""Settings entry point.

Settings are assembled with django-split-settings from the files in
``components/`` and the environment file selected by ``DJANGO_ENV``.
"""

from os import environ

import django_stubs_ext
from split_settings.tools import include, optional

# Runtime support for generic admin classes like ``ModelAdmin[File]``.
django_stubs_ext.monkeypatch()

# Managing environment via `DJANGO_ENV` variable:
environ.setdefault('DJANGO_ENV', 'development')
_ENV = environ['DJANGO_ENV']

_base_settings = (
    'components/common.py',
    'components/logging.py',
    'components/storages.py',
    'components/datamanager.py',
    # Select the right env:
    'environments/{0}.py'.format(_ENV),
    # Optionally override some settings:
    optional('environments/local.py'),
)

# Include settings:
include(*_base_settings)

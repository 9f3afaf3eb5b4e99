"""Django settings for the drive project.

Settings are split into components and composed with django-split-settings.
Local overrides can be placed in ``components/local.py`` (not committed).
"""

from split_settings.tools import include, optional

include(
    'components/common.py',
    'components/storages.py',
    'components/drive.py',
    optional('components/local.py'),
)

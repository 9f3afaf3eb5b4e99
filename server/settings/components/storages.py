"""Django storage configuration for the drive storage tiers.

Three tiers are exposed as ``STORAGES`` aliases:
- ``local``: fast private disk where uploads land first
- ``cloud``: durable S3-compatible bucket (MinIO, R2, AWS)
- ``public``: disk served under MEDIA_URL for downloadable copies
"""

from typing import Any, Final

from server.settings.components import BASE_DIR, config

_MEDIA_ROOT: Final = config(
    'DJANGO_MEDIA_ROOT',
    default=str(BASE_DIR.joinpath('media')),
)
_MEDIA_URL: Final = config('DJANGO_MEDIA_URL', default='/media/')

STORAGES: Final[dict[str, dict[str, Any]]] = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'local': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
        'OPTIONS': {
            'location': config(
                'DRIVE_LOCAL_ROOT',
                default=str(BASE_DIR.joinpath('storage', 'local')),
            ),
            'base_url': None,  # Never served directly
        },
    },
    'cloud': {
        'BACKEND': 'server.apps.drive.infrastructure.storage.CloudStorage',
        'OPTIONS': {
            'bucket_name': config(
                'AWS_STORAGE_BUCKET_NAME',
                default='drive-cloud',
            ),
            'access_key': config('AWS_ACCESS_KEY_ID', default=None),
            'secret_key': config('AWS_SECRET_ACCESS_KEY', default=None),
            'endpoint_url': config(
                'AWS_S3_ENDPOINT_URL',
                default=None,
            ),
            'region_name': config(
                'AWS_S3_REGION_NAME',
                default='us-east-1',
            ),
            'file_overwrite': True,  # Same key as the local tier
            'default_acl': None,  # Inherit bucket ACL
        },
    },
    'public': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
        'OPTIONS': {
            'location': f'{_MEDIA_ROOT}/public',
            'base_url': f'{_MEDIA_URL}public/',
        },
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}

"""Drive core settings."""

from server.settings.components import config

# Trashed nodes older than this are purged by ``cleanup_trash``
DRIVE_TRASH_RETENTION_DAYS = config(
    'DRIVE_TRASH_RETENTION_DAYS',
    cast=int,
    default=30,
)

# False: restoring a folder restores only that folder.
# True: also restores descendants trashed together with it.
DRIVE_RESTORE_CASCADES = config(
    'DRIVE_RESTORE_CASCADES',
    cast=bool,
    default=False,
)

# Key prefixes inside the storage tiers
DRIVE_UPLOAD_PREFIX = config('DRIVE_UPLOAD_PREFIX', default='files')
DRIVE_ZIP_PREFIX = config('DRIVE_ZIP_PREFIX', default='zip')

DRIVE_SHARE_MAIL_SUBJECT = config(
    'DRIVE_SHARE_MAIL_SUBJECT',
    default='Files have been shared with you',
)

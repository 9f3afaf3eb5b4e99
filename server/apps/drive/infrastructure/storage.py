"""Storage tier access for drive payloads.

Each tier is a Django ``STORAGES`` alias. Operations here are the only
place the core touches bytes; everything else works on keys.
"""

import logging
from enum import StrEnum
from typing import Any, final, override

from django.core.files.base import ContentFile
from django.core.files.storage import Storage, storages
from storages.backends.s3 import S3Storage

from server.apps.drive.exceptions import StorageError

logger = logging.getLogger(__name__)


class Tier(StrEnum):
    """Storage tier aliases as configured in ``STORAGES``."""

    LOCAL = 'local'
    CLOUD = 'cloud'
    PUBLIC = 'public'


@final
class CloudStorage(S3Storage):
    """S3 storage backend for the durable cloud tier.

    Extends django-storages S3Storage with logging around writes and
    deletes.
    """

    @override
    def save(  # noqa: WPS211
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Save payload to S3 with logging.

        Args:
            name: Storage key for the payload.
            content: File content (file-like object).
            max_length: Optional maximum length for the key.

        Returns:
            Actual key used.

        Raises:
            Exception: If S3 upload fails.
        """
        try:
            logger.info('Uploading payload to cloud: %s', name)
            saved_name = super().save(name, content, max_length)
        except Exception:
            logger.exception('Failed to upload payload to cloud: %s', name)
            raise
        else:
            return saved_name

    @override
    def delete(self, name: str) -> None:
        """Delete payload from S3 with logging.

        Args:
            name: Storage key of the payload.

        Raises:
            Exception: If S3 delete fails.
        """
        try:
            logger.info('Deleting payload from cloud: %s', name)
            super().delete(name)
        except Exception:
            logger.exception('Failed to delete payload from cloud: %s', name)
            raise


def get_tier(tier: Tier | str) -> Storage:
    """Get the storage backend configured for a tier.

    Args:
        tier: Tier alias.

    Returns:
        Storage instance from Django's storages registry.
    """
    return storages[str(tier)]


def read_payload(tier: Tier | str, key: str) -> bytes:
    """Read a payload from a tier.

    Args:
        tier: Tier alias.
        key: Tier-relative key.

    Returns:
        Payload bytes.

    Raises:
        FileNotFoundError: If the tier has no payload under ``key``.
        StorageError: If the backend fails.
    """
    storage = get_tier(tier)
    try:
        if not storage.exists(key):
            raise FileNotFoundError(f'{tier}:{key}')
        with storage.open(key, 'rb') as payload:
            return payload.read()
    except FileNotFoundError:
        raise
    except Exception as error:
        logger.exception('Failed to read payload: %s:%s', tier, key)
        raise StorageError(str(tier), key, str(error)) from error


def write_payload(tier: Tier | str, key: str, content: bytes) -> str:
    """Write a payload to a tier, replacing any payload under ``key``.

    Args:
        tier: Tier alias.
        key: Tier-relative key.
        content: Payload bytes.

    Returns:
        Key the payload was stored under.

    Raises:
        StorageError: If the backend fails.
    """
    storage = get_tier(tier)
    try:
        storage.delete(key)
        saved_key = storage.save(key, ContentFile(content))
    except Exception as error:
        logger.exception('Failed to write payload: %s:%s', tier, key)
        raise StorageError(str(tier), key, str(error)) from error

    logger.debug('Stored payload %s:%s (%d bytes)', tier, saved_key, len(content))
    return saved_key


def save_payload(tier: Tier | str, key: str, content: bytes) -> str:
    """Write a payload to a tier without touching existing payloads.

    When ``key`` is taken the backend picks a free variant of it.

    Args:
        tier: Tier alias.
        key: Preferred tier-relative key.
        content: Payload bytes.

    Returns:
        Key the payload was stored under.

    Raises:
        StorageError: If the backend fails.
    """
    try:
        saved_key = get_tier(tier).save(key, ContentFile(content))
    except Exception as error:
        logger.exception('Failed to save payload: %s:%s', tier, key)
        raise StorageError(str(tier), key, str(error)) from error

    logger.debug('Saved payload %s:%s (%d bytes)', tier, saved_key, len(content))
    return saved_key


def delete_payload(tier: Tier | str, key: str) -> None:
    """Delete a payload from a tier.

    Deleting an absent payload is not an error.

    Args:
        tier: Tier alias.
        key: Tier-relative key.

    Raises:
        StorageError: If the backend fails.
    """
    if not key:
        return

    storage = get_tier(tier)
    try:
        storage.delete(key)
    except FileNotFoundError:
        logger.warning('Payload already absent: %s:%s', tier, key)
    except Exception as error:
        raise StorageError(str(tier), key, str(error)) from error


def local_path(tier: Tier | str, key: str) -> str:
    """Filesystem path of a payload on a disk-backed tier.

    Args:
        tier: Tier alias (local or public).
        key: Tier-relative key.

    Returns:
        Absolute filesystem path.
    """
    return get_tier(tier).path(key)


def public_url(tier: Tier | str, key: str) -> str:
    """URL under which a payload is served.

    Args:
        tier: Tier alias, normally public.
        key: Tier-relative key.

    Returns:
        URL string.
    """
    return get_tier(tier).url(key)

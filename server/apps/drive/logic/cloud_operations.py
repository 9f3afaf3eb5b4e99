"""Cloud upload job: moves file payloads from the local to the cloud tier."""

import logging

from django.db.models import QuerySet

from server.apps.drive.exceptions import StorageError
from server.apps.drive.infrastructure.storage import (
    Tier,
    delete_payload,
    read_payload,
    write_payload,
)
from server.apps.drive.models import FileNode, Node

logger = logging.getLogger(__name__)


def pending_uploads() -> QuerySet[FileNode]:
    """Files, live or trashed, whose payload is still in the local tier."""
    return FileNode.all_objects.filter(
        is_folder=False,
        uploaded_on_cloud=False,
    ).exclude(storage_path='').order_by('id')


def upload_to_cloud(node_id: int) -> bool:
    """Copy a file payload to the cloud tier and flip its flag.

    The flag goes from False to True exactly once: the update is
    conditional, so a concurrent run that lost the race leaves the row
    alone. The local copy is deleted once the flag is set.

    Args:
        node_id: ID of the file node.

    Returns:
        True if this call migrated the payload, False if it was already
        on the cloud tier.

    Raises:
        Node.DoesNotExist: If the node was purged.
        StorageError: If the local payload is missing or the copy fails.
    """
    file_node = FileNode.all_objects.get(id=node_id, is_folder=False)
    if file_node.uploaded_on_cloud:
        return False

    key = file_node.storage_path
    try:
        content = read_payload(Tier.LOCAL, key)
    except FileNotFoundError as error:
        raise StorageError(Tier.LOCAL, key, 'missing') from error

    write_payload(Tier.CLOUD, key, content)

    updated = Node.all_objects.filter(
        id=node_id,
        uploaded_on_cloud=False,
    ).update(uploaded_on_cloud=True)
    if not updated:
        logger.info('File %d was uploaded to cloud concurrently', node_id)
        return False

    logger.info('File uploaded to cloud: %s (ID: %d)', key, node_id)

    try:
        delete_payload(Tier.LOCAL, key)
    except StorageError:
        # Cloud copy is authoritative now
        logger.exception('Failed to delete local copy (orphaned): %s', key)

    return True

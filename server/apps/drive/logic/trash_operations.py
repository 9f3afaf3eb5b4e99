"""Business logic for trash (soft delete) operations."""

import logging
from typing import Any

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from server.apps.drive.exceptions import InvalidNodeStateError, StorageError
from server.apps.drive.infrastructure.storage import Tier, delete_payload
from server.apps.drive.logic.node_operations import lock_tree
from server.apps.drive.models import LiveNodeQuerySet, Node

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


def trash(node: Node) -> Node:
    """Move a node and its live descendants to trash.

    The whole subtree receives one ``deleted_at`` timestamp in one
    transaction. Parent links and intervals are kept so the node can be
    restored in place.

    Args:
        node: Live node to trash.

    Returns:
        Updated node.

    Raises:
        InvalidNodeStateError: If node is the root or already in trash.
    """
    if node.is_root:
        raise InvalidNodeStateError('The root folder cannot be trashed')

    with transaction.atomic():
        lock_tree(node.owner_id)
        node.refresh_from_db(fields=['lft', 'rgt', 'deleted_at'])
        if node.is_trashed:
            raise InvalidNodeStateError(f'Node {node.id} is already in trash')

        deleted_at = timezone.now()
        count = Node.objects.filter(
            owner_id=node.owner_id,
            lft__gte=node.lft,
            rgt__lte=node.rgt,
        ).update(deleted_at=deleted_at)
        node.deleted_at = deleted_at

    logger.info(
        'Node moved to trash: %s (ID: %d, %d nodes)',
        node.name,
        node.id,
        count,
    )
    return node


def trash_all(parent: Node) -> list[Node]:
    """Trash every live child of a folder.

    Each child becomes its own trash root; restoring one does not
    restore its siblings.

    Args:
        parent: Folder whose children are trashed.

    Returns:
        The trashed children.
    """
    children = list(Node.objects.filter(parent=parent))
    for child in children:
        trash(child)
    return children


def trash_ids(owner: _User, ids: list[int]) -> list[Node]:
    """Trash the owner's live nodes with the given ids.

    Ids that do not match a live node of the owner are skipped; so are
    nodes already trashed by an earlier cascade in the same call.

    Args:
        owner: Tree owner.
        ids: Node ids.

    Returns:
        Nodes that were trashed.
    """
    trashed = []
    for node in Node.objects.filter(owner=owner, id__in=ids).order_by('lft'):
        node.refresh_from_db(fields=['deleted_at'])
        if node.is_trashed:
            continue
        trashed.append(trash(node))
    return trashed


def restore(node: Node) -> Node:
    """Restore a node from trash.

    Only the node itself is restored: descendants trashed together with
    a folder stay in trash. With ``DRIVE_RESTORE_CASCADES`` enabled the
    descendants sharing the node's ``deleted_at`` are restored too.

    Args:
        node: Trashed node.

    Returns:
        Updated node.

    Raises:
        InvalidNodeStateError: If node is not in trash.
    """
    with transaction.atomic():
        lock_tree(node.owner_id)
        node.refresh_from_db(fields=['lft', 'rgt', 'deleted_at'])
        if not node.is_trashed:
            raise InvalidNodeStateError(f'Node {node.id} is not in trash')

        restored = Node.all_objects.filter(id=node.id)
        if settings.DRIVE_RESTORE_CASCADES:
            restored = Node.all_objects.filter(
                owner_id=node.owner_id,
                lft__gte=node.lft,
                rgt__lte=node.rgt,
                deleted_at=node.deleted_at,
            )
        count = restored.update(deleted_at=None)
        node.deleted_at = None

    logger.info(
        'Node restored: %s (ID: %d, %d nodes)',
        node.name,
        node.id,
        count,
    )
    return node


def restore_ids(owner: _User, ids: list[int]) -> list[Node]:
    """Restore the owner's trashed nodes with the given ids."""
    nodes = list(list_trash(owner).filter(id__in=ids))
    return [restore(node) for node in nodes]


def restore_all(owner: _User) -> int:
    """Restore every trashed node of the owner.

    Args:
        owner: Tree owner.

    Returns:
        Number of restored nodes.
    """
    with transaction.atomic():
        lock_tree(owner.pk)
        count = Node.all_objects.filter(
            owner=owner,
            deleted_at__isnull=False,
        ).update(deleted_at=None)

    logger.info('Trash restored for user %s: %d nodes', owner.pk, count)
    return count


def purge(node: Node) -> None:
    """Permanently delete a trashed node.

    Rows are removed first: the node, its stored subtree, and through
    cascades their stars and shares. Payloads are deleted afterwards,
    from the tier each file currently lives in, outside the transaction.
    A payload that cannot be deleted is logged as orphaned and reported
    with ``StorageError``; the rows stay deleted.

    A folder whose subtree holds live nodes (restored on their own after
    the folder was trashed) is not purged until they are trashed again.

    Args:
        node: Trashed node.

    Raises:
        InvalidNodeStateError: If node is not in trash or its subtree
            holds live nodes.
        StorageError: If a payload could not be deleted.
    """
    with transaction.atomic():
        lock_tree(node.owner_id)
        node.refresh_from_db(fields=['lft', 'rgt', 'deleted_at'])
        if not node.is_trashed:
            raise InvalidNodeStateError(
                f'Node {node.id} must be in trash before purging',
            )

        subtree = Node.all_objects.filter(
            owner_id=node.owner_id,
            lft__gte=node.lft,
            rgt__lte=node.rgt,
        )
        if subtree.filter(deleted_at__isnull=True).exists():
            raise InvalidNodeStateError(
                f'Node {node.id} has restored descendants, trash them first',
            )

        files = subtree.filter(is_folder=False).values_list(
            'storage_path',
            'uploaded_on_cloud',
        )
        payloads = [
            (Tier.CLOUD if on_cloud else Tier.LOCAL, key)
            for key, on_cloud in files
        ]
        node_id = node.id
        node.delete()

    logger.info(
        'Node purged: %s (ID: %d, %d payloads)',
        node.name,
        node_id,
        len(payloads),
    )

    failures: list[StorageError] = []
    for tier, key in payloads:
        try:
            delete_payload(tier, key)
        except StorageError as error:
            logger.exception('Failed to delete payload (orphaned): %s:%s', tier, key)
            failures.append(error)

    if failures:
        raise failures[0]


def list_trash(owner: _User, search_term: str = '') -> LiveNodeQuerySet:
    """List the owner's trashed nodes.

    Args:
        owner: Tree owner.
        search_term: Optional case-insensitive name filter.

    Returns:
        QuerySet ordered folders first, most recently trashed first.
    """
    query = Node.all_objects.filter(
        owner=owner,
        deleted_at__isnull=False,
    ).order_by('-is_folder', '-deleted_at', '-id')

    if search_term:
        query = query.filter(name__icontains=search_term)
    return query


def purge_ids(owner: _User, ids: list[int]) -> int:
    """Purge the owner's trashed nodes with the given ids.

    Returns:
        Number of purged trash entries.
    """
    return _purge_each(list_trash(owner).filter(id__in=ids))


def purge_all(owner: _User) -> int:
    """Permanently delete everything in the owner's trash.

    Args:
        owner: Tree owner.

    Returns:
        Number of purged trash entries (nodes removed as part of an
        earlier entry's subtree are not counted, folders still holding
        restored nodes are skipped).
    """
    count = _purge_each(list_trash(owner))
    logger.info('Trash emptied for user %s: %d entries purged', owner.pk, count)
    return count


def _purge_each(query: LiveNodeQuerySet) -> int:
    count = 0
    failures: list[StorageError] = []
    for node in query.order_by('lft'):
        if not Node.all_objects.filter(id=node.id).exists():
            # Removed with an ancestor purged earlier in this loop
            continue
        try:
            purge(node)
        except InvalidNodeStateError:
            logger.warning('Purge skipped, live nodes under %d', node.id)
            continue
        except StorageError as error:
            failures.append(error)
        count += 1

    if failures:
        raise failures[0]
    return count

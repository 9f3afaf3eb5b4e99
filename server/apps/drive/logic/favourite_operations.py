"""Business logic for starring (favourite) nodes."""

import logging
from typing import Any

from django.db import transaction

from server.apps.drive.exceptions import InvalidNodeStateError
from server.apps.drive.models import Node, StarredFile

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


def toggle_star(user: _User, node: Node) -> bool:
    """Star a node, or unstar it if it is already starred.

    Args:
        user: User starring the node.
        node: Live node to toggle.

    Returns:
        True if the node is starred after the call.

    Raises:
        InvalidNodeStateError: If node is a root.
    """
    if node.is_root:
        raise InvalidNodeStateError('The root folder cannot be starred')

    with transaction.atomic():
        deleted, _ = StarredFile.objects.filter(file=node, user=user).delete()
        if not deleted:
            StarredFile.objects.get_or_create(file=node, user=user)

    starred = not deleted
    logger.info(
        'Node %d %s by user %s',
        node.id,
        'starred' if starred else 'unstarred',
        user.pk,
    )
    return starred


def is_starred(user: _User, node: Node) -> bool:
    return StarredFile.objects.filter(file=node, user=user).exists()


def starred_ids(user: _User) -> set[int]:
    """Ids of every node the user starred."""
    return set(
        StarredFile.objects.filter(user=user).values_list('file_id', flat=True),
    )

"""Business logic for the node tree (files and folders)."""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from django.conf import settings
from django.core.files.uploadedfile import UploadedFile
from django.db import transaction
from django.db.models import F
from django.utils.crypto import get_random_string
from django.utils.text import slugify

from server.apps.drive.exceptions import InvalidNodeStateError
from server.apps.drive.infrastructure.metadata import detect_mime_type
from server.apps.drive.infrastructure.storage import (
    Tier,
    delete_payload,
    get_tier,
)
from server.apps.drive.models import FileNode, Folder, LiveNodeQuerySet, Node

# User type for Django's dynamic user model
_User = Any

# Random upload names keep keys unguessable
_UPLOAD_NAME_LENGTH: Final = 40

logger = logging.getLogger(__name__)


def lock_tree(owner_id: int) -> Node:
    """Lock the owner's root row for the current transaction.

    Every structural mutation takes this lock first, so interval
    recomputations of one tree never interleave. Must be called inside
    ``transaction.atomic()``.

    Args:
        owner_id: Owner whose tree is locked.

    Returns:
        The locked root node.

    Raises:
        Node.DoesNotExist: If the owner has no root.
    """
    return Node.all_objects.select_for_update().get(
        owner_id=owner_id,
        is_root=True,
    )


def provision_root(user: _User) -> Node:
    """Create the root folder of a user's tree if it is missing.

    Args:
        user: Account owner.

    Returns:
        The (new or existing) root node.
    """
    with transaction.atomic():
        root = Node.all_objects.filter(owner=user, is_root=True).first()
        if root is not None:
            return root

        root = Node.all_objects.create(
            owner=user,
            name=user.get_username(),
            is_folder=True,
            is_root=True,
            lft=1,
            rgt=2,
        )

    logger.info('Root folder created for user %s (ID: %d)', user.pk, root.id)
    return root


def get_root(owner: _User) -> Node:
    """Get the owner's root folder.

    Raises:
        Node.DoesNotExist: If the root was never provisioned.
    """
    return Node.objects.get(owner=owner, is_root=True)


def resolve_by_path(owner: _User, path: str) -> Node:
    """Find the live node at a slug path in the owner's tree.

    Sibling names are not unique, so several nodes can share a path;
    the oldest one wins.

    Args:
        owner: Tree owner.
        path: Slug path such as 'documents/reports'.

    Returns:
        Matching node.

    Raises:
        Node.DoesNotExist: If nothing in the owner's tree matches.
    """
    node = Node.objects.filter(
        owner=owner,
        is_root=False,
        path=path.strip('/'),
    ).order_by('id').first()

    if node is None:
        raise Node.DoesNotExist(f'No node at path {path!r}')
    return node


def _build_path(parent: Node, name: str) -> str:
    slug = slugify(name)
    if parent.is_root:
        return slug
    return f'{parent.path}/{slug}'


def append_child(parent: Node, node: Node) -> Node:
    """Insert a node as the last child of a folder.

    Opens a gap of two at the parent's right bound: every interval to
    the right shifts by two and every ancestor range (including the
    parent) widens by two, then the node takes the gap.

    Args:
        parent: Live folder receiving the node.
        node: Unsaved node.

    Returns:
        The saved node.

    Raises:
        InvalidNodeStateError: If parent is a file or in trash, or node
            is a root.
    """
    if not parent.is_folder:
        raise InvalidNodeStateError(
            f'Cannot append to file {parent.name!r} (ID: {parent.id})',
        )
    if node.is_root:
        raise InvalidNodeStateError('A root node cannot be appended')

    with transaction.atomic():
        lock_tree(parent.owner_id)
        parent.refresh_from_db(fields=['lft', 'rgt', 'deleted_at'])
        if parent.is_trashed:
            raise InvalidNodeStateError(
                f'Cannot append to trashed folder {parent.name!r}',
            )

        boundary = parent.rgt
        tree = Node.all_objects.filter(owner_id=parent.owner_id)
        tree.filter(rgt__gte=boundary).update(rgt=F('rgt') + 2)
        tree.filter(lft__gt=boundary).update(lft=F('lft') + 2)

        node.owner_id = parent.owner_id
        node.parent = parent
        node.lft = boundary
        node.rgt = boundary + 1
        node.path = _build_path(parent, node.name)
        node.save()

        parent.rgt = boundary + 2

    logger.info(
        'Node appended: %s under %s (ID: %d)',
        node.name,
        parent.name,
        node.id,
    )
    return node


def list_children(parent: Node) -> LiveNodeQuerySet:
    """Live children of a folder, folders first and newest first."""
    return Node.objects.filter(parent=parent).listed()


def ancestors(node: Node) -> LiveNodeQuerySet:
    """Ancestors of a node ordered from the root down to its parent.

    Uses interval containment, a single query regardless of depth. The
    interval is reloaded first: inserts elsewhere in the tree shift it.

    Args:
        node: Node whose breadcrumb is built.

    Returns:
        QuerySet of ancestor nodes (root included).
    """
    node.refresh_from_db(fields=['lft', 'rgt'])
    return Node.all_objects.filter(
        owner_id=node.owner_id,
        lft__lt=node.lft,
        rgt__gt=node.rgt,
    ).order_by('lft')


def descendants(node: Node, include_trashed: bool = False) -> LiveNodeQuerySet:
    """Nodes strictly inside a node's interval, in tree order.

    Args:
        node: Subtree root.
        include_trashed: Also return trashed descendants.

    Returns:
        QuerySet ordered depth-first.
    """
    node.refresh_from_db(fields=['lft', 'rgt'])
    manager = Node.all_objects if include_trashed else Node.objects
    return manager.filter(
        owner_id=node.owner_id,
        lft__gt=node.lft,
        rgt__lt=node.rgt,
    ).order_by('lft')


def search(owner: _User, term: str) -> LiveNodeQuerySet:
    """Case-insensitive name search across the owner's whole tree."""
    return Node.objects.filter(
        owner=owner,
        is_root=False,
        name__icontains=term,
    ).listed()


def list_files(
    owner: _User,
    folder: Node | None = None,
    search_term: str = '',
    favourites: bool = False,
) -> LiveNodeQuerySet:
    """List the owner's files as shown in "my files".

    A search term replaces the folder scope with a flat search over
    the whole tree.

    Args:
        owner: Tree owner.
        folder: Folder to list, the root when omitted.
        search_term: Optional name filter.
        favourites: Only return nodes the owner starred.

    Returns:
        QuerySet of live nodes, root excluded.
    """
    if search_term:
        query = search(owner, search_term)
    else:
        folder = folder or get_root(owner)
        query = list_children(folder).filter(owner=owner)

    if favourites:
        query = query.filter(stars__user=owner)

    return query


def _ensure_owned(owner: _User, node: Node) -> None:
    if node.owner_id != owner.pk:
        raise Node.DoesNotExist(
            f'Node {node.id} does not belong to user {owner.pk}',
        )


def create_folder(
    owner: _User,
    name: str,
    parent: Node | None = None,
) -> Folder:
    """Create a folder.

    Args:
        owner: Tree owner.
        name: Folder name (duplicates among siblings are allowed).
        parent: Parent folder, the root when omitted.

    Returns:
        Created folder.

    Raises:
        Node.DoesNotExist: If parent belongs to another user.
        InvalidNodeStateError: If parent is not a live folder.
    """
    parent = parent or get_root(owner)
    _ensure_owned(owner, parent)

    folder = Folder(name=name, is_folder=True)
    append_child(parent, folder)
    return folder


def upload_file(
    owner: _User,
    uploaded: UploadedFile,
    parent: Node | None = None,
) -> FileNode:
    """Store an upload in the local tier and add it to the tree.

    The payload is written first; if the tree insert fails the payload
    is removed again. Moving the payload to the cloud tier is left to
    the cloud upload job.

    Args:
        owner: Tree owner.
        uploaded: Uploaded file (name, size and content type are used).
        parent: Parent folder, the root when omitted.

    Returns:
        Created file node.

    Raises:
        Node.DoesNotExist: If parent belongs to another user.
        InvalidNodeStateError: If parent is not a live folder.
    """
    parent = parent or get_root(owner)
    _ensure_owned(owner, parent)

    name = Path(uploaded.name).name
    key = '{prefix}/{owner_id}/{random}{suffix}'.format(
        prefix=settings.DRIVE_UPLOAD_PREFIX,
        owner_id=owner.pk,
        random=get_random_string(_UPLOAD_NAME_LENGTH),
        suffix=Path(name).suffix.lower(),
    )

    storage = get_tier(Tier.LOCAL)
    try:
        logger.info('Storing upload in local tier: %s', key)
        saved_key = storage.save(key, uploaded)
    except Exception:
        logger.exception('Failed to store upload: %s', key)
        raise

    file_node = FileNode(
        name=name,
        is_folder=False,
        storage_path=saved_key,
        mime=detect_mime_type(name, getattr(uploaded, 'content_type', None)),
        size=uploaded.size,
        uploaded_on_cloud=False,
    )
    try:
        append_child(parent, file_node)
    except Exception:
        logger.exception('Tree insert failed, removing stored upload: %s', saved_key)
        delete_payload(Tier.LOCAL, saved_key)
        raise

    return file_node


def save_file_tree(
    owner: _User,
    tree: Mapping[str, Any],
    parent: Node | None = None,
) -> list[Node]:
    """Upload a nested folder structure.

    Mapping values create folders, every other value is uploaded as a
    file.

    Args:
        owner: Tree owner.
        tree: ``{folder_name: {...}, file_name: uploaded_file}``.
        parent: Folder receiving the structure, the root when omitted.

    Returns:
        Created nodes in creation order.
    """
    parent = parent or get_root(owner)
    created: list[Node] = []

    for name, entry in tree.items():
        if isinstance(entry, Mapping):
            folder = create_folder(owner, name, parent)
            created.append(folder)
            created.extend(save_file_tree(owner, entry, folder))
        else:
            created.append(upload_file(owner, entry, parent))

    return created

"""Business logic for sharing grants."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Final

from django.contrib.auth import get_user_model
from django.db import transaction

from server.apps.drive.exceptions import InvalidNodeStateError
from server.apps.drive.infrastructure.notifications import notify_share
from server.apps.drive.logic.node_operations import get_root
from server.apps.drive.models import FileShare, LiveNodeQuerySet, Node

# User type for Django's dynamic user model
_User = Any

SELECT_FILES_TO_SHARE: Final = 'Please select files to share'

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShareResult:
    """Outcome of a share request.

    ``message`` is set instead of grants when the request had nothing
    to share. ``created`` lists the grants that were missing when the
    request checked; a grant a concurrent request inserted first is
    still listed, but stored only once.
    """

    grantee: _User | None = None
    created: list[FileShare] = field(default_factory=list)
    message: str = ''


def share(files: Sequence[Node], grantee_email: str, grantor: _User) -> ShareResult:
    """Grant a user read access to files.

    An email that matches no account is a silent no-op. Grants that
    already exist are left untouched; only missing (file, grantee)
    pairs are inserted. One notification covering all ``files`` is sent
    per call, whether or not new grants were created.

    Args:
        files: Nodes to share (at least one).
        grantee_email: Email of the receiving user.
        grantor: User sharing the files.

    Returns:
        ShareResult with the grantee and the newly created grants.

    Raises:
        InvalidNodeStateError: If a root node is among ``files``.
    """
    if any(node.is_root for node in files):
        raise InvalidNodeStateError('The root folder cannot be shared')

    grantee = get_user_model().objects.filter(email=grantee_email).first()
    if grantee is None:
        logger.warning(
            'Share skipped, no user with email %s (grantor: %s)',
            grantee_email,
            grantor.pk,
        )
        return ShareResult()

    file_ids = [node.id for node in files]
    with transaction.atomic():
        existing = set(
            FileShare.objects.filter(
                file_id__in=file_ids,
                user=grantee,
            ).values_list('file_id', flat=True),
        )
        new_grants = [
            FileShare(file_id=file_id, user=grantee)
            for file_id in dict.fromkeys(file_ids)
            if file_id not in existing
        ]
        # Unique constraint covers concurrent shares of the same pair
        FileShare.objects.bulk_create(new_grants, ignore_conflicts=True)

    logger.info(
        'Shared %d files with user %s by user %s (%d new grants)',
        len(file_ids),
        grantee.pk,
        grantor.pk,
        len(new_grants),
    )

    notify_share(grantee, grantor, files)
    return ShareResult(grantee=grantee, created=new_grants)


def share_files(
    grantor: _User,
    grantee_email: str,
    ids: Sequence[int] | None = None,
    all_files: bool = False,
    parent: Node | None = None,
) -> ShareResult:
    """Share a selection of the grantor's nodes.

    Args:
        grantor: Owner of the nodes.
        grantee_email: Email of the receiving user.
        ids: Explicit node ids.
        all_files: Share every live child of ``parent`` instead.
        parent: Folder used with ``all_files``, the root when omitted.

    Returns:
        ShareResult; carries a message when nothing was selected.
    """
    ids = list(ids or [])
    if not all_files and not ids:
        return ShareResult(message=SELECT_FILES_TO_SHARE)

    if all_files:
        parent = parent or get_root(grantor)
        files = list(Node.objects.filter(parent=parent, owner=grantor))
    else:
        files = list(Node.objects.filter(owner=grantor, id__in=ids))

    if not files:
        return ShareResult(message=SELECT_FILES_TO_SHARE)

    return share(files, grantee_email, grantor)


def list_shared_with_me(user: _User, search_term: str = '') -> LiveNodeQuerySet:
    """Live nodes other users shared with ``user``."""
    query = Node.objects.filter(shares__user=user)
    if search_term:
        query = query.filter(name__icontains=search_term)
    return query.distinct().listed()


def list_shared_by_me(user: _User, search_term: str = '') -> LiveNodeQuerySet:
    """Live nodes ``user`` owns and shared with at least one grantee."""
    query = Node.objects.filter(owner=user, shares__isnull=False)
    if search_term:
        query = query.filter(name__icontains=search_term)
    return query.distinct().listed()

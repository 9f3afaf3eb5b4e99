"""Business logic for downloads and zip archive export.

A single file is served as a copy staged in the public tier. Anything
else is bundled into a zip archive written to the public tier under a
random name. Folders are walked depth-first and keep their relative
paths inside the archive.

No database transaction is held while tier I/O runs.
"""

import logging
import threading
import zipfile
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Final, final

from django.conf import settings
from django.utils.crypto import get_random_string

from server.apps.drive.exceptions import ExportCancelledError, StorageError
from server.apps.drive.infrastructure.metadata import storage_basename
from server.apps.drive.infrastructure.storage import (
    Tier,
    delete_payload,
    local_path,
    public_url,
    read_payload,
    save_payload,
    write_payload,
)
from server.apps.drive.logic.node_operations import list_children
from server.apps.drive.logic.share_operations import (
    list_shared_by_me,
    list_shared_with_me,
)
from server.apps.drive.models import FileNode, LiveNodeQuerySet, Node

# User type for Django's dynamic user model
_User = Any

SELECT_FILES_TO_DOWNLOAD: Final = 'Please select files to download'
FOLDER_IS_EMPTY: Final = 'The folder is empty'

SHARED_WITH_ME_CONTEXT: Final = 'shared_with_me'
SHARED_BY_ME_CONTEXT: Final = 'shared_by_me'

_ZIP_NAME_LENGTH: Final = 16

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownloadResult:
    """Downloadable payload, or a message when there is nothing to serve."""

    url: str = ''
    filename: str = ''
    message: str = ''


def download_files(
    user: _User,
    parent: Node,
    ids: Sequence[int] | None = None,
    all_files: bool = False,
    cancel_event: threading.Event | None = None,
) -> DownloadResult:
    """Download a selection from one of the user's folders.

    Args:
        user: Owner of the nodes.
        parent: Folder the selection was made in; names the archive.
        ids: Explicit node ids.
        all_files: Download every live child of ``parent``.
        cancel_event: Set to abort a running export.

    Returns:
        DownloadResult.
    """
    scope = Node.objects.filter(owner=user)
    if all_files:
        scope = list_children(parent).filter(owner=user)
    return resolve_download(
        scope,
        ids,
        all_files=all_files,
        context=parent.name,
        cancel_event=cancel_event,
    )


def download_shared_with_me(
    user: _User,
    ids: Sequence[int] | None = None,
    all_files: bool = False,
    cancel_event: threading.Event | None = None,
) -> DownloadResult:
    """Download nodes other users shared with ``user``."""
    return resolve_download(
        list_shared_with_me(user),
        ids,
        all_files=all_files,
        context=SHARED_WITH_ME_CONTEXT,
        cancel_event=cancel_event,
    )


def download_shared_by_me(
    user: _User,
    ids: Sequence[int] | None = None,
    all_files: bool = False,
    cancel_event: threading.Event | None = None,
) -> DownloadResult:
    """Download nodes ``user`` shared with others."""
    return resolve_download(
        list_shared_by_me(user),
        ids,
        all_files=all_files,
        context=SHARED_BY_ME_CONTEXT,
        cancel_event=cancel_event,
    )


def resolve_download(  # noqa: WPS211
    scope: LiveNodeQuerySet,
    ids: Sequence[int] | None,
    all_files: bool = False,
    context: str = 'download',
    cancel_event: threading.Event | None = None,
) -> DownloadResult:
    """Turn a download request into a single downloadable payload.

    - nothing selected: message, no fault
    - one folder: zip of its children, or a message if it is empty
    - one file: staged copy in the public tier, no zip
    - several nodes: zip named after ``context``

    Args:
        scope: Live nodes the caller may download.
        ids: Explicit node ids (ignored with ``all_files``).
        all_files: Download every node in ``scope``.
        context: Archive name for multi-node downloads.
        cancel_event: Set to abort a running export.

    Returns:
        DownloadResult.

    Raises:
        Node.DoesNotExist: If a single requested id is not in scope.
        StorageError: If a payload cannot be read or written.
        ExportCancelledError: If ``cancel_event`` was set.
    """
    ids = list(ids or [])
    if not all_files and not ids:
        return DownloadResult(message=SELECT_FILES_TO_DOWNLOAD)

    if all_files:
        nodes = list(scope)
    elif len(ids) == 1:
        nodes = [scope.get(id=ids[0])]
    else:
        nodes = list(scope.filter(id__in=ids))

    if not nodes:
        if all_files:
            return DownloadResult(message=FOLDER_IS_EMPTY)
        raise Node.DoesNotExist(f'None of the nodes {ids} can be downloaded')

    if len(nodes) > 1:
        url = build_zip(nodes, cancel_event)
        return DownloadResult(url=url, filename=f'{context}.zip')

    node = nodes[0]
    if node.is_folder:
        children = list(list_children(node))
        if not children:
            logger.info('Download of empty folder requested: %d', node.id)
            return DownloadResult(message=FOLDER_IS_EMPTY)
        url = build_zip(children, cancel_event)
        return DownloadResult(url=url, filename=f'{node.name}.zip')

    return DownloadResult(url=stage_file(node.as_variant()), filename=node.name)


def stage_file(file_node: FileNode) -> str:
    """Copy a file payload into the public tier.

    The copy is stored under the payload's base name and stays in the
    public tier after the download.

    Args:
        file_node: File to stage.

    Returns:
        Public URL of the staged copy.

    Raises:
        StorageError: If the payload is missing or the copy fails.
    """
    tier = file_node.tier
    try:
        content = read_payload(tier, file_node.storage_path)
    except FileNotFoundError as error:
        raise StorageError(tier, file_node.storage_path, 'missing') from error

    logger.debug(
        'Staging file %d from %s tier (%d bytes)',
        file_node.id,
        tier,
        len(content),
    )
    staged_key = write_payload(
        Tier.PUBLIC,
        storage_basename(file_node.storage_path),
        content,
    )
    return public_url(Tier.PUBLIC, staged_key)


def build_zip(
    nodes: Iterable[Node],
    cancel_event: threading.Event | None = None,
) -> str:
    """Write nodes into a zip archive staged in the public tier.

    All or nothing: an unreadable payload or a cancellation removes the
    partial archive and aborts the export. Cloud payloads are staged
    next to the archive under keys of this export only, and removed
    once the archive is written.

    Args:
        nodes: Top-level entries of the archive.
        cancel_event: Set to abort the export.

    Returns:
        Public URL of the archive.

    Raises:
        StorageError: If a payload cannot be read.
        ExportCancelledError: If ``cancel_event`` was set.
    """
    zip_key = '{prefix}/{name}.zip'.format(
        prefix=settings.DRIVE_ZIP_PREFIX,
        name=get_random_string(_ZIP_NAME_LENGTH),
    )
    # Reserve the key so the archive path exists on the public tier
    zip_key = save_payload(Tier.PUBLIC, zip_key, b'')
    zip_path = local_path(Tier.PUBLIC, zip_key)

    staging = _ZipStaging(zip_key.removesuffix('.zip'))

    logger.info('Building zip archive: %s', zip_key)
    try:
        with zipfile.ZipFile(zip_path, 'w', zipfile.ZIP_DEFLATED) as archive:
            entries = _add_nodes_to_zip(archive, nodes, '', cancel_event, staging)
    except Exception:
        logger.exception('Zip export failed, removing partial archive: %s', zip_key)
        delete_payload(Tier.PUBLIC, zip_key)
        raise
    finally:
        staging.clear()

    logger.info('Zip archive ready: %s (%d entries)', zip_key, entries)
    return public_url(Tier.PUBLIC, zip_key)


def _add_nodes_to_zip(
    archive: zipfile.ZipFile,
    nodes: Iterable[Node],
    ancestors: str,
    cancel_event: threading.Event | None,
    staging: '_ZipStaging',
) -> int:
    count = 0
    for node in nodes:
        if node.is_folder:
            count += _add_nodes_to_zip(
                archive,
                list_children(node),
                f'{ancestors}{node.name}/',
                cancel_event,
                staging,
            )
            continue

        if cancel_event is not None and cancel_event.is_set():
            raise ExportCancelledError('Archive export cancelled')

        file_node = node.as_variant()
        source = staging.readable_path(file_node)
        try:
            archive.write(source, f'{ancestors}{node.name}')
        except OSError as error:
            raise StorageError(
                file_node.tier,
                file_node.storage_path,
                str(error),
            ) from error
        count += 1
    return count


@final
class _ZipStaging:
    """Public tier copies of cloud payloads read by one export."""

    def __init__(self, prefix: str) -> None:
        self._prefix = prefix
        self._keys: list[str] = []

    def readable_path(self, file_node: FileNode) -> str:
        """Local filesystem path the archive writer can read the payload from.

        Cloud payloads are first staged into the public tier.
        """
        if file_node.tier != Tier.CLOUD:
            return local_path(Tier.LOCAL, file_node.storage_path)

        try:
            content = read_payload(Tier.CLOUD, file_node.storage_path)
        except FileNotFoundError as error:
            raise StorageError(Tier.CLOUD, file_node.storage_path, 'missing') from error

        staged_key = save_payload(
            Tier.PUBLIC,
            '{prefix}/{name}'.format(
                prefix=self._prefix,
                name=storage_basename(file_node.storage_path),
            ),
            content,
        )
        self._keys.append(staged_key)
        return local_path(Tier.PUBLIC, staged_key)

    def clear(self) -> None:
        """Remove every staged copy; failures only leave orphans behind."""
        for key in self._keys:
            try:
                delete_payload(Tier.PUBLIC, key)
            except StorageError:
                logger.exception('Failed to remove staged copy (orphaned): %s', key)
        self._keys.clear()

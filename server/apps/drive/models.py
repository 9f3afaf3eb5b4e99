"""Database models for drive app."""

from typing import ClassVar, Final, final, override

from django.conf import settings
from django.db import models

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 1024
_PATH_MAX_LENGTH: Final = 1024
_STORAGE_PATH_MAX_LENGTH: Final = 1024
_MIME_TYPE_MAX_LENGTH: Final = 255


class LiveNodeQuerySet(models.QuerySet['Node']):
    """QuerySet helpers shared by node managers."""

    def live(self) -> 'LiveNodeQuerySet':
        """Nodes that are not in trash."""
        return self.filter(deleted_at__isnull=True)

    def trashed(self) -> 'LiveNodeQuerySet':
        """Nodes that are in trash."""
        return self.filter(deleted_at__isnull=False)

    def listed(self) -> 'LiveNodeQuerySet':
        """Folders first, newest first, ties broken by id."""
        return self.order_by('-is_folder', '-created_at', '-id')


class LiveNodeManager(models.Manager['Node']):
    """Default manager: hides trashed nodes."""

    @override
    def get_queryset(self) -> LiveNodeQuerySet:
        return LiveNodeQuerySet(self.model, using=self._db).live()


class AllNodeManager(models.Manager['Node']):
    """Manager that sees live and trashed nodes."""

    @override
    def get_queryset(self) -> LiveNodeQuerySet:
        return LiveNodeQuerySet(self.model, using=self._db)


class Node(models.Model):
    """File or folder in a user's tree.

    The tree is stored as nested intervals: every node owns the range
    ``[lft, rgt]`` and the range of a folder contains the ranges of all
    its descendants. Intervals are numbered per owner, the root of each
    owner starts at ``lft=1``.

    Trashing only sets ``deleted_at``; a trashed node keeps its parent
    and its interval so it can be restored in place.
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='nodes',
        db_index=True,
    )

    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        related_name='children',
        null=True,
        blank=True,
    )

    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    # Slug path used for URL lookups, empty for the root
    path = models.CharField(
        max_length=_PATH_MAX_LENGTH,
        blank=True,
        default='',
        db_index=True,
    )

    is_folder = models.BooleanField(default=False)
    is_root = models.BooleanField(default=False)

    # Nested interval
    lft = models.PositiveIntegerField(db_index=True)
    rgt = models.PositiveIntegerField(db_index=True)

    # File payload (empty for folders)
    storage_path = models.CharField(
        max_length=_STORAGE_PATH_MAX_LENGTH,
        blank=True,
        default='',
        help_text='Tier-relative key: {prefix}/{owner_id}/file.ext',
    )
    mime = models.CharField(
        max_length=_MIME_TYPE_MAX_LENGTH,
        blank=True,
        default='',
    )
    size = models.BigIntegerField(default=0, help_text='Size in bytes')
    uploaded_on_cloud = models.BooleanField(
        default=False,
        help_text='Set once by the cloud upload job',
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)

    objects = LiveNodeManager()
    all_objects = AllNodeManager()

    class Meta:
        """Model metadata."""

        verbose_name = 'Node'  # type: ignore[mutable-override]
        verbose_name_plural = 'Nodes'  # type: ignore[mutable-override]
        base_manager_name = 'all_objects'

        indexes: ClassVar[list[models.Index]] = [
            models.Index(
                fields=['owner', 'lft', 'rgt'],
                name='drive_node_interval_idx',
            ),
            models.Index(
                fields=['parent', 'deleted_at'],
                name='drive_node_children_idx',
            ),
        ]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            # One root per owner
            models.UniqueConstraint(
                fields=['owner'],
                condition=models.Q(is_root=True),
                name='drive_node_single_root',
            ),
            models.CheckConstraint(
                condition=models.Q(lft__lt=models.F('rgt')),
                name='drive_node_interval_ordered',
            ),
            # Only files carry a payload
            models.CheckConstraint(
                condition=(
                    models.Q(is_folder=False) | models.Q(storage_path='')
                ),
                name='drive_node_folder_without_payload',
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(is_root=False) | models.Q(is_folder=True)
                ),
                name='drive_node_root_is_folder',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        kind = 'folder' if self.is_folder else 'file'
        return f'{self.owner_id}:{self.name} ({kind})'

    @property
    def is_trashed(self) -> bool:
        return self.deleted_at is not None

    def contains(self, other: 'Node') -> bool:
        """Check whether ``other`` lies in this node's subtree.

        Both intervals are reloaded first, inserts elsewhere in the tree
        shift them.

        Args:
            other: Node to test.

        Returns:
            True for the node itself and all of its descendants.
        """
        self.refresh_from_db(fields=['lft', 'rgt'])
        if other is not self:
            other.refresh_from_db(fields=['lft', 'rgt'])
        return (
            self.owner_id == other.owner_id
            and self.lft <= other.lft
            and other.rgt <= self.rgt
        )

    def as_variant(self) -> 'Folder | FileNode':
        """Return the same row typed as ``Folder`` or ``FileNode``."""
        variant = Folder if self.is_folder else FileNode
        field_names = [field.attname for field in self._meta.concrete_fields]
        return variant.from_db(
            self._state.db,
            field_names,
            [getattr(self, name) for name in field_names],
        )


class FolderManager(LiveNodeManager):
    """Live folders only."""

    @override
    def get_queryset(self) -> LiveNodeQuerySet:
        return super().get_queryset().filter(is_folder=True)


class FileNodeManager(LiveNodeManager):
    """Live files only."""

    @override
    def get_queryset(self) -> LiveNodeQuerySet:
        return super().get_queryset().filter(is_folder=False)


@final
class Folder(Node):
    """Node variant that may have children and carries no payload."""

    objects = FolderManager()

    class Meta:
        """Model metadata."""

        proxy = True


@final
class FileNode(Node):
    """Node variant that carries a stored payload and has no children."""

    objects = FileNodeManager()

    class Meta:
        """Model metadata."""

        proxy = True

    @property
    def tier(self) -> str:
        """Storage tier currently holding the payload."""
        return 'cloud' if self.uploaded_on_cloud else 'local'


@final
class StarredFile(models.Model):
    """Favourite marker: presence of the row means starred."""

    file = models.ForeignKey(
        Node,
        on_delete=models.CASCADE,
        related_name='stars',
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='starred_files',
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Starred file'  # type: ignore[mutable-override]
        verbose_name_plural = 'Starred files'  # type: ignore[mutable-override]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.UniqueConstraint(
                fields=['file', 'user'],
                name='drive_starred_file_user_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id} * {self.file_id}'


@final
class FileShare(models.Model):
    """Read grant of one node to one grantee.

    The grantor is the node owner, the row itself only records the
    grantee.
    """

    file = models.ForeignKey(
        Node,
        on_delete=models.CASCADE,
        related_name='shares',
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='received_shares',
        help_text='Grantee',
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'File share'  # type: ignore[mutable-override]
        verbose_name_plural = 'File shares'  # type: ignore[mutable-override]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            # One grant per (file, grantee)
            models.UniqueConstraint(
                fields=['file', 'user'],
                name='drive_file_share_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.file_id} -> {self.user_id}'

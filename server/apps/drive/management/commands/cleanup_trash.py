"""Management command to purge old nodes from trash."""

import logging
from datetime import timedelta
from typing import Any, Final, final, override

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

from server.apps.drive.exceptions import InvalidNodeStateError, StorageError
from server.apps.drive.logic.trash_operations import purge
from server.apps.drive.models import Node

_DEFAULT_BATCH_SIZE: Final = 1000

logger = logging.getLogger(__name__)


@final
class Command(BaseCommand):
    """Permanently delete nodes that stayed in trash past retention."""

    help = 'Purge nodes trashed longer than DRIVE_TRASH_RETENTION_DAYS'

    @override
    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be purged without purging',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=_DEFAULT_BATCH_SIZE,
            help=f'Max nodes to process (default: {_DEFAULT_BATCH_SIZE})',
        )

    @override
    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the cleanup command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        dry_run = options['dry_run']
        batch_size = options['batch_size']
        retention_days = settings.DRIVE_TRASH_RETENTION_DAYS

        cutoff = timezone.now() - timedelta(days=retention_days)

        self.stdout.write(
            f'Looking for nodes trashed before {cutoff} '
            f'(older than {retention_days} days)',
        )

        # Ancestors first: purging a folder removes its trashed subtree
        old_nodes = list(
            Node.all_objects.filter(
                deleted_at__isnull=False,
                deleted_at__lte=cutoff,
            ).order_by('owner_id', 'lft')[:batch_size],
        )

        count = 0
        failed = 0

        for node in old_nodes:
            if dry_run:
                self.stdout.write(
                    f'Would purge: {node.name} '
                    f'(owner: {node.owner_id}, deleted: {node.deleted_at})',
                )
                count += 1
                continue

            if not Node.all_objects.filter(id=node.id).exists():
                continue

            try:
                purge(node)
            except InvalidNodeStateError as exc:
                # Folder still holds restored nodes
                self.stderr.write(f'Skipped {node.id}: {exc}')
                failed += 1
                continue
            except StorageError as exc:
                # Row is gone, only the payload is orphaned
                self.stderr.write(f'Orphaned payload for {node.id}: {exc}')
                failed += 1
            except Exception as exc:
                self.stderr.write(f'Failed to purge {node.id}: {exc}')
                logger.exception('Failed to purge node from trash: %d', node.id)
                failed += 1
                continue
            count += 1

        if dry_run:
            self.stdout.write(
                self.style.SUCCESS(f'Would purge {count} nodes from trash'),
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f'Purged {count} nodes from trash, {failed} failed',
                ),
            )

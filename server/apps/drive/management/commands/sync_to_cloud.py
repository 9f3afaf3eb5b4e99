"""Management command to run the cloud upload job over pending files."""

import logging
from typing import Any, Final, final, override

from django.core.management.base import BaseCommand

from server.apps.drive.logic.cloud_operations import (
    pending_uploads,
    upload_to_cloud,
)

_DEFAULT_BATCH_SIZE: Final = 100

logger = logging.getLogger(__name__)


@final
class Command(BaseCommand):
    """Move file payloads that are still local to the cloud tier."""

    help = 'Upload pending file payloads from the local to the cloud tier'

    @override
    def add_arguments(self, parser: Any) -> None:
        parser.add_argument(
            '--batch-size',
            type=int,
            default=_DEFAULT_BATCH_SIZE,
            help=f'Max files to process (default: {_DEFAULT_BATCH_SIZE})',
        )

    @override
    def handle(self, *args: Any, **options: Any) -> None:
        pending = list(
            pending_uploads().values_list('id', flat=True)[:options['batch_size']],
        )

        uploaded = 0
        failed = 0
        for node_id in pending:
            try:
                if upload_to_cloud(node_id):
                    uploaded += 1
            except Exception as exc:
                self.stderr.write(f'Failed to upload {node_id}: {exc}')
                logger.exception('Cloud upload failed for node: %d', node_id)
                failed += 1

        self.stdout.write(
            self.style.SUCCESS(
                f'Uploaded {uploaded} files to cloud, {failed} failed',
            ),
        )

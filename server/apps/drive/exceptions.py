"""Exceptions for drive app.

Missing nodes and users are reported with the ORM's own
``DoesNotExist`` exceptions; the classes below cover the rest.
"""


class InvalidNodeStateError(Exception):
    """Raised when an operation would break a tree or lifecycle rule.

    Examples: appending to a file, trashing the root, purging a live node.
    """


class StorageError(Exception):
    """Raised when a storage tier fails to read, write or delete a payload."""

    def __init__(self, tier: str, key: str, reason: str = '') -> None:
        """Initialize StorageError.

        Args:
            tier: Storage tier alias (local, cloud, public).
            key: Tier-relative key of the payload.
            reason: Optional details of the failure.
        """
        self.tier = tier
        self.key = key

        message = f'Storage operation failed on {tier}:{key}'
        if reason:
            message = f'{message} ({reason})'
        super().__init__(message)


class ExportCancelledError(Exception):
    """Raised when an archive export is cancelled by the caller."""

"""Signal handlers for drive app."""

import logging

from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from server.apps.drive.logic.node_operations import provision_root

logger = logging.getLogger(__name__)


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_root_folder(
    sender: type,
    instance: object,
    created: bool,
    **kwargs: object,
) -> None:
    """Provision the tree root when a user account is created.

    Args:
        sender: The user model class.
        instance: The saved user.
        created: Whether the row was just inserted.
        **kwargs: Additional signal arguments.
    """
    if not created or kwargs.get('raw'):
        return

    logger.info('Provisioning root folder for new user: %s', instance.pk)
    provision_root(instance)

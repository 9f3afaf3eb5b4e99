"""Share notification mail."""

import logging
from collections.abc import Iterable
from typing import Any

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


def _display_name(user: Any) -> str:
    return user.get_full_name() or user.get_username()


def notify_share(grantee: Any, grantor: Any, files: Iterable[Any]) -> None:
    """Tell a grantee which files were shared with them.

    Fire-and-forget: a mail failure is logged and never propagated, the
    grants are already stored.

    Args:
        grantee: User receiving access.
        grantor: User who shared the files.
        files: Nodes included in the share request.
    """
    names = [node.name for node in files]
    body = '{grantor} shared {count} item(s) with you:\n\n{items}\n'.format(
        grantor=_display_name(grantor),
        count=len(names),
        items='\n'.join(f'- {name}' for name in names),
    )

    try:
        send_mail(
            subject=settings.DRIVE_SHARE_MAIL_SUBJECT,
            message=body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[grantee.email],
        )
    except Exception:
        logger.exception(
            'Failed to send share notification to user %s',
            grantee.pk,
        )
        return

    logger.info(
        'Share notification sent to user %s (%d items)',
        grantee.pk,
        len(names),
    )

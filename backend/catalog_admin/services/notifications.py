from __future__ import annotations
"""Per-identity notification inbox.

Identities only ever see and mark their own notifications. ``notify`` joins the
caller's unit of work, so a notification exists exactly when the change it
announces was committed.
"""
import logging
from typing import Any, Dict, List

from catalog_admin.errors import NotFound
from catalog_admin.stores.base import NotificationRecord, Stores
from catalog_admin.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class NotificationInbox:
    def __init__(self, stores: Stores):
        self.stores = stores

    def notify(self, user_id: int, type: str, content: Dict[str, Any]) -> NotificationRecord:
        return self.stores.notifications.add(user_id, type, content, utcnow())

    def list(self, identity_id: int) -> List[NotificationRecord]:
        """Newest first."""
        return self.stores.notifications.list_for(identity_id)

    def unread_count(self, identity_id: int) -> int:
        return self.stores.notifications.count_unread(identity_id)

    def mark_read(self, identity_id: int, notification_id: int) -> NotificationRecord:
        with self.stores.transaction():
            current = self.stores.notifications.get(notification_id)
            # someone else's notification is reported as missing
            if current is None or current.user_id != identity_id:
                raise NotFound('Notification not found')
            self.stores.notifications.mark_read(notification_id)
        return self.stores.notifications.get(notification_id)

    def mark_all_read(self, identity_id: int) -> int:
        with self.stores.transaction():
            count = self.stores.notifications.mark_all_read(identity_id)
        logger.info('Identity %s marked %s notifications read', identity_id, count)
        return count


def notification_json(n: NotificationRecord):
    return {
        'id': n.id,
        'type': n.type,
        'content': n.content,
        'is_read': n.is_read,
        'created_at': n.created_at.isoformat() if n.created_at else None,
    }


__all__ = ['NotificationInbox', 'notification_json']

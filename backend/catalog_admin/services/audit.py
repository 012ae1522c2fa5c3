from __future__ import annotations
import logging
from typing import Any, List, Optional

from catalog_admin.constants.permissions import MANAGE_SETTINGS, is_revertible
from catalog_admin.payloads import coerce_payload
from catalog_admin.stores.base import AuditRecord, Stores
from catalog_admin.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


class AuditLog:
    def __init__(self, stores: Stores, engine):
        self.stores = stores
        self.engine = engine

    def record(self, action_type: str, actor_id: int, payload: Any) -> AuditRecord:
        """Append an audit entry in its own unit of work.

        ``payload`` is a typed payload or a plain dict; it must carry the fields
        ``action_type`` needs. Store failures are not masked: StoreUnavailable
        reaches the caller.
        """
        typed = coerce_payload(action_type, payload)
        with self.stores.transaction():
            return self.append(actor_id, typed)

    def append(self, actor_id: int, payload: Any) -> AuditRecord:
        """Append within the caller's transaction (no commit here)."""
        action_type = payload.action_type
        payload = coerce_payload(action_type, payload)
        return self.stores.audit.append(
            action_type,
            actor_id,
            payload.to_dict(),
            is_revertible(action_type),
            utcnow(),
        )

    def get(self, entry_id: int) -> Optional[AuditRecord]:
        return self.stores.audit.get(entry_id)

    def recent(self, viewer_id: int, limit: Optional[int] = DEFAULT_LIMIT, action_type: Optional[str] = None,
               actor_id: Optional[int] = None) -> List[AuditRecord]:
        """Newest first. ``limit`` is clamped to [1, MAX_LIMIT]."""
        self.engine.require(viewer_id, MANAGE_SETTINGS)
        limit = DEFAULT_LIMIT if limit is None else max(1, min(int(limit), MAX_LIMIT))
        return self.stores.audit.recent(limit, action_type=action_type, actor_id=actor_id)


def entry_json(e: AuditRecord):
    return {
        'id': e.id,
        'action_type': e.action_type,
        'actor_id': e.actor_id,
        'payload': e.payload.to_dict(),
        'created_at': e.created_at.isoformat() if e.created_at else None,
        'revertible': e.revertible,
        'reverted': e.reverted,
    }

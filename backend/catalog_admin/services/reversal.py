"""Type-specific reversal of audited actions.

    product_added     -> delete the product
    product_updated   -> write previous_values back onto the product
    price_change      -> delete the latest price row; if previous_price is known,
                         insert it again effective now
    permission_change -> restore previous_allowed on RoleGrant(role, action)

The price_change reversal is not a historical rollback. The old value comes back
as a new price point dated now; intervening rows and the original effective date
are not restored.

Compensation, the ``reverted`` flag and the ``action_reverted`` entry commit as one
unit. A failing compensation leaves the entry untouched and its exception reaches
the caller as raised. Reversals themselves are never revertible.
"""
from __future__ import annotations
import logging
from typing import Dict

from catalog_admin.constants import permissions as P
from catalog_admin.errors import AlreadyReverted, Forbidden, NotFound, NotRevertible
from catalog_admin.payloads import (
    ActionReverted, PermissionChange, PriceChange, ProductAdded, ProductUpdated,
)
from catalog_admin.stores.base import AuditRecord, Stores
from catalog_admin.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class ReversalEngine:
    def __init__(self, stores: Stores, audit):
        self.stores = stores
        self.audit = audit
        self._handlers: Dict[str, tuple] = {
            P.PRODUCT_ADDED: (ProductAdded, self._undo_product_added),
            P.PRODUCT_UPDATED: (ProductUpdated, self._undo_product_updated),
            P.PRICE_CHANGE: (PriceChange, self._undo_price_change),
            P.PERMISSION_CHANGE: (PermissionChange, self._undo_permission_change),
        }

    def revert(self, entry_id: int, actor_id: int) -> AuditRecord:
        """Undo audit entry ``entry_id``; returns the new ``action_reverted`` entry."""
        with self.stores.transaction():
            entry = self.stores.audit.get(entry_id)
            if entry is None:
                raise NotFound('Audit entry not found')
            if not entry.revertible or entry.action_type not in self._handlers:
                raise NotRevertible()
            if entry.reverted:
                raise AlreadyReverted()
            actor = self.stores.identities.get_profile(actor_id)
            if actor is None or actor.role != P.ROLE_ADMIN:
                logger.info('Revert of entry %s denied for identity %s', entry_id, actor_id)
                raise Forbidden()
            payload_type, handler = self._handlers[entry.action_type]
            if not isinstance(entry.payload, payload_type):
                raise NotRevertible('Audit entry is missing the data needed to revert it')
            handler(entry.payload)
            if not self.stores.audit.mark_reverted(entry.id):
                raise AlreadyReverted()
            reversal = self.audit.append(
                actor_id,
                ActionReverted(
                    reverted_id=entry.id,
                    reverted_action=entry.action_type,
                    original_payload=entry.payload.to_dict(),
                ),
            )
        logger.info('Entry %s (%s) reverted by %s', entry_id, entry.action_type, actor_id)
        return reversal

    def _undo_product_added(self, payload: ProductAdded):
        self.stores.catalog.delete_product(payload.product_code)

    def _undo_product_updated(self, payload: ProductUpdated):
        self.stores.catalog.update_product(payload.product_code, dict(payload.previous_values))

    def _undo_price_change(self, payload: PriceChange):
        self.stores.catalog.delete_latest_price(payload.product_code)
        if payload.previous_price is not None:
            self.stores.catalog.insert_price(payload.product_code, payload.previous_price, utcnow())

    def _undo_permission_change(self, payload: PermissionChange):
        self.stores.grants.upsert_grant(payload.role, payload.action, payload.previous_allowed)


__all__ = ['ReversalEngine']

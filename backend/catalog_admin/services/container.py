from __future__ import annotations
from catalog_admin.stores.base import Stores
from catalog_admin.services.audit import AuditLog
from catalog_admin.services.catalog import CatalogGate
from catalog_admin.services.notifications import NotificationInbox
from catalog_admin.services.policy import PermissionAdmin, PermissionEngine
from catalog_admin.services.promotion import PromotionWorkflow
from catalog_admin.services.reversal import ReversalEngine


class Services:
    """All services wired over one Stores bundle (one per request in the app)."""

    def __init__(self, stores: Stores):
        self.stores = stores
        self.engine = PermissionEngine(stores)
        self.audit = AuditLog(stores, self.engine)
        self.permissions = PermissionAdmin(stores, self.engine, self.audit)
        self.notifications = NotificationInbox(stores)
        self.promotions = PromotionWorkflow(stores, self.engine, self.audit, self.notifications)
        self.reversal = ReversalEngine(stores, self.audit)
        self.catalog = CatalogGate(stores, self.engine, self.audit)

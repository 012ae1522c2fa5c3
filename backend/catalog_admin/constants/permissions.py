"""Central enum-like definitions to avoid typos in role/action/audit strings.
Extend cautiously; never rename codes silently. Stored grants, overrides and audit
rows reference them by value.
"""
from __future__ import annotations
from typing import FrozenSet, List, Tuple

ROLE_ADMIN = 'admin'
ROLE_USER = 'user'
ROLES = [ROLE_ADMIN, ROLE_USER]

# --- Actions ---
VIEW_DASHBOARD = 'view_dashboard'
MANAGE_PRODUCTS = 'manage_products'
MANAGE_USERS = 'manage_users'
MANAGE_SETTINGS = 'manage_settings'
REQUEST_ADMIN = 'request_admin'
ADD_PRODUCT = 'add_product'
EDIT_PRODUCT = 'edit_product'
DELETE_PRODUCT = 'delete_product'
ADD_PRICE_HISTORY = 'add_price_history'
EDIT_PRICE_HISTORY = 'edit_price_history'
DELETE_PRICE_HISTORY = 'delete_price_history'

ALL_ACTIONS: List[str] = [
    VIEW_DASHBOARD, MANAGE_PRODUCTS, MANAGE_USERS, MANAGE_SETTINGS, REQUEST_ADMIN,
    ADD_PRODUCT, EDIT_PRODUCT, DELETE_PRODUCT,
    ADD_PRICE_HISTORY, EDIT_PRICE_HISTORY, DELETE_PRICE_HISTORY,
]

# Seeded once by the first-user bootstrap
MUTATION_ACTIONS: List[str] = [
    ADD_PRODUCT, EDIT_PRODUCT, DELETE_PRODUCT,
    ADD_PRICE_HISTORY, EDIT_PRICE_HISTORY, DELETE_PRICE_HISTORY,
]


def build_default_grants() -> List[Tuple[str, str, bool]]:
    grants: List[Tuple[str, str, bool]] = []
    for action in MUTATION_ACTIONS:
        grants.append((ROLE_ADMIN, action, True))
    for action in MUTATION_ACTIONS:
        grants.append((ROLE_USER, action, False))
    return grants

DEFAULT_GRANTS = build_default_grants()

# --- Promotion request lifecycle ---
REQUEST_PENDING = 'pending'
REQUEST_APPROVED = 'approved'
REQUEST_REJECTED = 'rejected'

# --- Audit action types ---
PRODUCT_ADDED = 'product_added'
PRODUCT_UPDATED = 'product_updated'
PRODUCT_DELETED = 'product_deleted'
PRICE_CHANGE = 'price_change'
PRICE_EDITED = 'price_edited'
PRICE_DELETED = 'price_deleted'
PERMISSION_CHANGE = 'permission_change'
PERMISSION_REQUEST = 'permission_request'
PERMISSION_REQUEST_RESOLVED = 'permission_request_resolved'
ACTION_REVERTED = 'action_reverted'

REVERTIBLE_ACTION_TYPES: FrozenSet[str] = frozenset({
    PRODUCT_ADDED,
    PRODUCT_UPDATED,
    PRICE_CHANGE,
    PERMISSION_CHANGE,
})


def is_revertible(action_type: str) -> bool:
    return action_type in REVERTIBLE_ACTION_TYPES

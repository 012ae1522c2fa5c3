from __future__ import annotations
"""Permission resolution and role-grant / override administration.

Resolution order for (identity, action):
  1. role == admin              -> allowed
  2. identity override present  -> override value
  3. RoleGrant(role, action)    -> grant value, else denied

Every call re-reads the identity and grant; nothing is cached between checks, so
a promotion or grant change is visible on the very next call.
"""
import logging
from typing import Dict, Mapping, Optional

from catalog_admin.constants import permissions as P
from catalog_admin.errors import Forbidden, InvalidInput, NotFound, StoreUnavailable
from catalog_admin.payloads import PermissionChange
from catalog_admin.stores.base import Identity, Stores

logger = logging.getLogger(__name__)


def resolve(identity: Optional[Identity], action: str, grants: Mapping[tuple, bool]) -> bool:
    """Pure resolution over an already-read identity and (role, action) -> allowed map."""
    if identity is None:
        return False
    if identity.role == P.ROLE_ADMIN:
        return True
    override = identity.overrides.get(action)
    if override is not None:
        return bool(override)
    if identity.role is None:
        return False
    return bool(grants.get((identity.role, action), False))


class PermissionEngine:
    def __init__(self, stores: Stores):
        self.stores = stores

    def can(self, identity_id: int, action: str) -> bool:
        grants = {}
        try:
            identity = self.stores.identities.get_profile(identity_id)
            needs_grant = (
                identity is not None
                and identity.role not in (None, P.ROLE_ADMIN)
                and identity.overrides.get(action) is None
            )
            if needs_grant:
                grant = self.stores.grants.get_grant(identity.role, action)
                if grant:
                    grants[(grant.role, grant.action)] = grant.allowed
        except StoreUnavailable:
            logger.exception('Permission check failed closed for identity %s action %s', identity_id, action)
            return False
        return resolve(identity, action, grants)

    def require(self, identity_id: int, action: str) -> None:
        if not self.can(identity_id, action):
            logger.info('Denied identity %s action %s', identity_id, action)
            raise Forbidden()

    def effective_permissions(self, identity_id: int) -> Dict[str, bool]:
        """Every known action resolved against one read of identity and grants."""
        try:
            identity = self.stores.identities.get_profile(identity_id)
            grants = {(g.role, g.action): g.allowed for g in self.stores.grants.get_grants()}
        except StoreUnavailable:
            logger.exception('Effective permissions failed closed for identity %s', identity_id)
            return {action: False for action in P.ALL_ACTIONS}
        return {action: resolve(identity, action, grants) for action in P.ALL_ACTIONS}


def _validate_action(action: str):
    if action not in P.ALL_ACTIONS:
        raise InvalidInput(f'Unknown action: {action}')


class PermissionAdmin:
    """Role-grant and per-identity override changes (the permissions settings screens)."""

    def __init__(self, stores: Stores, engine: PermissionEngine, audit):
        self.stores = stores
        self.engine = engine
        self.audit = audit

    def list_grants(self, actor_id: int):
        self.engine.require(actor_id, P.MANAGE_SETTINGS)
        return self.stores.grants.get_grants()

    def list_identities(self, actor_id: int):
        self.engine.require(actor_id, P.MANAGE_USERS)
        return self.stores.identities.list_identities()

    def set_grant(self, actor_id: int, role: str, action: str, allowed: bool):
        self.engine.require(actor_id, P.MANAGE_SETTINGS)
        if role not in P.ROLES:
            raise InvalidInput(f'Unknown role: {role}')
        _validate_action(action)
        with self.stores.transaction():
            current = self.stores.grants.get_grant(role, action)
            previous = current.allowed if current else False
            self.stores.grants.upsert_grant(role, action, bool(allowed))
            entry = self.audit.append(
                actor_id,
                PermissionChange(role=role, action=action, allowed=bool(allowed), previous_allowed=previous),
            )
        logger.info('Grant %s/%s set to %s by %s', role, action, bool(allowed), actor_id)
        return entry

    def set_override(self, actor_id: int, target_id: int, action: str, allowed: Optional[bool]):
        """``allowed=None`` clears the override so the role grant applies again."""
        self.engine.require(actor_id, P.MANAGE_USERS)
        _validate_action(action)
        with self.stores.transaction():
            target = self.stores.identities.get_profile(target_id)
            if target is None:
                raise NotFound('Identity not found')
            if target.role == P.ROLE_ADMIN:
                raise InvalidInput('Admin users have all permissions by default')
            self.stores.identities.set_override(target_id, action, None if allowed is None else bool(allowed))
        logger.info('Override %s for identity %s set to %s by %s', action, target_id, allowed, actor_id)
        return self.stores.identities.get_profile(target_id)

    def clear_override(self, actor_id: int, target_id: int, action: str):
        return self.set_override(actor_id, target_id, action, None)


__all__ = ['resolve', 'PermissionEngine', 'PermissionAdmin']

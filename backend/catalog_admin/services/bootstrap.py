"""First-user bootstrap: the first identity to establish a session becomes admin.

Runs on every login but only acts once per identity: an identity that already
holds a role is left alone. The "nobody has a role yet" check and the role write
happen inside ``claim_first_admin`` as one conditional store operation, so two
simultaneous first sessions cannot both win.
"""
from __future__ import annotations
import logging

from catalog_admin.constants.permissions import DEFAULT_GRANTS, ROLE_USER
from catalog_admin.errors import StoreUnavailable
from catalog_admin.stores.base import Stores

logger = logging.getLogger(__name__)


def seed_default_grants(stores: Stores) -> int:
    """Upsert the baseline grants keyed by (role, action); safe to repeat."""
    for role, action, allowed in DEFAULT_GRANTS:
        stores.grants.upsert_grant(role, action, allowed)
    return len(DEFAULT_GRANTS)


def bootstrap_if_first_user(stores: Stores, identity_id: int) -> bool:
    """Return True when this call made ``identity_id`` the initial administrator.

    Otherwise the identity receives the default ``user`` role (if it has none).
    Store failures are logged and treated as a no-op; the next login retries.
    """
    try:
        with stores.transaction():
            identity = stores.identities.get_profile(identity_id)
            if identity is None:
                logger.warning('Bootstrap skipped: identity %s not found', identity_id)
                return False
            if identity.role is not None:
                return False
            if stores.identities.claim_first_admin(identity_id):
                seed_default_grants(stores)
                logger.warning('Identity %s (%s) bootstrapped as initial administrator', identity_id, identity.email)
                return True
            stores.identities.set_role(identity_id, ROLE_USER, only_if_unset=True)
            return False
    except StoreUnavailable:
        logger.exception('Bootstrap failed for identity %s', identity_id)
        return False


__all__ = ['bootstrap_if_first_user', 'seed_default_grants']

from __future__ import annotations
from typing import Optional
from werkzeug.security import generate_password_hash, check_password_hash

from catalog_admin.errors import InvalidInput
from catalog_admin.stores.base import Identity, Stores


def register(stores: Stores, email: str, password: str, name: Optional[str] = None) -> Identity:
    if not email or not password:
        raise InvalidInput('email & password required')
    with stores.transaction():
        if stores.identities.find_credentials(email):
            raise InvalidInput('email already registered')
        return stores.identities.create_identity(email, name or '', generate_password_hash(password))


def authenticate(stores: Stores, email: str, password: str) -> Optional[Identity]:
    found = stores.identities.find_credentials(email)
    if not found:
        return None
    identity, password_hash = found
    if not check_password_hash(password_hash, password):
        return None
    return identity

from functools import wraps
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity
from catalog_admin.errors import Forbidden


def current_identity_id() -> int:
    # Identity stored as string (flask-jwt-extended v4 requirement)
    return int(get_jwt_identity())


def require_permission(action: str):
    """Resolve ``action`` for the token's identity on every call.

    The token carries only the identity id; the decision is never read from
    claims, so role or grant changes apply without re-login.
    """
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            from catalog_admin import get_services
            if not get_services().engine.can(current_identity_id(), action):
                raise Forbidden()
            return fn(*args, **kwargs)
        return wrapper
    return outer

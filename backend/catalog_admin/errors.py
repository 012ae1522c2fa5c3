from __future__ import annotations
"""Error taxonomy for authorization, workflow and reversal failures.

Every error is a werkzeug ``HTTPException`` so the app-level handler renders it in
the standard ``{"error": {"status", "title", "detail"}}`` shape. ``tag`` is a stable
identifier for callers that do not speak HTTP.

Details are user-facing: they never carry storage driver text. The originating
exception is chained and logged where it is raised.
"""
from typing import Optional
from werkzeug.exceptions import HTTPException


class AuthzError(HTTPException):
    code = 500
    tag = 'error'
    description = 'Unexpected error'

    def __init__(self, description: Optional[str] = None):
        super().__init__(description=description)


class Forbidden(AuthzError):
    code = 403
    tag = 'forbidden'
    description = "You don't have permission to perform this action"

    def __init__(self):
        # denial text stays generic regardless of which check failed
        super().__init__()


class NotFound(AuthzError):
    code = 404
    tag = 'not_found'
    description = 'Resource not found'


class InvalidInput(AuthzError):
    code = 400
    tag = 'invalid_input'
    description = 'Invalid input'


class DuplicateRequest(AuthzError):
    code = 409
    tag = 'duplicate_request'
    description = 'A pending request already exists'


class AlreadyResolved(AuthzError):
    code = 409
    tag = 'already_resolved'
    description = 'Request has already been resolved'


class AlreadyReverted(AuthzError):
    code = 409
    tag = 'already_reverted'
    description = 'Action has already been reverted'


class NotRevertible(AuthzError):
    code = 422
    tag = 'not_revertible'
    description = 'This action cannot be reverted'


class StoreUnavailable(AuthzError):
    code = 503
    tag = 'store_unavailable'
    description = 'Service temporarily unavailable'


__all__ = [
    'AuthzError', 'Forbidden', 'NotFound', 'InvalidInput', 'DuplicateRequest',
    'AlreadyResolved', 'AlreadyReverted', 'NotRevertible', 'StoreUnavailable',
]

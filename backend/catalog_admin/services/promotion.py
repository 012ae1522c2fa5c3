from __future__ import annotations
"""Admin promotion requests: pending -> approved | rejected (both terminal).

Approval writes the request resolution and the requester's role in a single unit
of work; if either write fails neither is kept, so a request is never left
``approved`` for an identity that is not admin. The requester's
``permission_request_resolved`` notification joins the same unit.
"""
import logging
from typing import List, Optional

from catalog_admin.constants import permissions as P
from catalog_admin.errors import AlreadyResolved, DuplicateRequest, InvalidInput, NotFound
from catalog_admin.payloads import PermissionRequest, PermissionRequestResolved
from catalog_admin.stores.base import PromotionRequestRecord, Stores
from catalog_admin.utils.fsm import TransitionValidator
from catalog_admin.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

REQUEST_FSM = TransitionValidator({
    P.REQUEST_PENDING: {P.REQUEST_APPROVED, P.REQUEST_REJECTED},
    P.REQUEST_APPROVED: set(),
    P.REQUEST_REJECTED: set(),
}, terminal_error=AlreadyResolved)

DECISIONS = (P.REQUEST_APPROVED, P.REQUEST_REJECTED)


class PromotionWorkflow:
    def __init__(self, stores: Stores, engine, audit, notifications):
        self.stores = stores
        self.engine = engine
        self.audit = audit
        self.notifications = notifications

    def request_promotion(self, identity_id: int) -> PromotionRequestRecord:
        with self.stores.transaction():
            identity = self.stores.identities.get_profile(identity_id)
            if identity is None:
                raise NotFound('Identity not found')
            if identity.role == P.ROLE_ADMIN:
                raise InvalidInput('Already an administrator')
            if self.stores.requests.find_pending(identity_id):
                raise DuplicateRequest()
            # the store's uniqueness guard covers a concurrent insert slipping past the check above
            record = self.stores.requests.insert_pending(identity_id, utcnow())
            self.audit.append(identity_id, PermissionRequest(request_id=record.id, requester_id=identity_id))
        logger.info('Identity %s requested promotion (request %s)', identity_id, record.id)
        return record

    def resolve(self, request_id: int, resolver_id: int, decision: str) -> PromotionRequestRecord:
        self.engine.require(resolver_id, P.MANAGE_USERS)
        if decision not in DECISIONS:
            raise InvalidInput(f'decision must be one of {list(DECISIONS)}')
        with self.stores.transaction():
            request = self.stores.requests.get(request_id)
            if request is None:
                raise NotFound('Request not found')
            REQUEST_FSM.assert_can_transition(request.status, decision)
            if decision == P.REQUEST_APPROVED:
                if not self.stores.identities.set_role(request.requester_id, P.ROLE_ADMIN):
                    raise NotFound('Requester not found')
            resolved_at = utcnow()
            if not self.stores.requests.resolve(request_id, decision, resolver_id, resolved_at):
                # lost to a concurrent resolution; roll back the role write with it
                raise AlreadyResolved()
            self.audit.append(
                resolver_id,
                PermissionRequestResolved(request_id=request_id, requester_id=request.requester_id, status=decision),
            )
            self.notifications.notify(request.requester_id, P.PERMISSION_REQUEST_RESOLVED, {
                'request_id': request_id,
                'status': decision,
                'resolved_at': resolved_at.isoformat(),
                'resolved_by': resolver_id,
            })
            resolved = self.stores.requests.get(request_id)
        logger.info('Request %s %s by %s', request_id, decision, resolver_id)
        return resolved

    def approve(self, request_id: int, resolver_id: int) -> PromotionRequestRecord:
        return self.resolve(request_id, resolver_id, P.REQUEST_APPROVED)

    def reject(self, request_id: int, resolver_id: int) -> PromotionRequestRecord:
        return self.resolve(request_id, resolver_id, P.REQUEST_REJECTED)

    def latest_request(self, identity_id: int) -> Optional[PromotionRequestRecord]:
        return self.stores.requests.latest_for(identity_id)

    def pending_requests(self, actor_id: int) -> List[PromotionRequestRecord]:
        self.engine.require(actor_id, P.MANAGE_USERS)
        return self.stores.requests.list_pending()


def request_json(r: PromotionRequestRecord):
    return {
        'id': r.id,
        'user_id': r.requester_id,
        'status': r.status,
        'requested_at': r.requested_at.isoformat() if r.requested_at else None,
        'resolved_at': r.resolved_at.isoformat() if r.resolved_at else None,
        'resolved_by': r.resolved_by,
    }

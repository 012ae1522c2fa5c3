from __future__ import annotations
"""SQLAlchemy-backed stores sharing a single session (one unit of work per request).

Store methods flush but never commit; ``SqlStores.transaction()`` owns the commit.
Driver failures surface as ``StoreUnavailable`` with the original error chained.
Integrity violations that guard a uniqueness rule are translated by the method that
expects them.
"""
import logging
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, delete, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from catalog_admin.constants.permissions import ROLE_ADMIN, REQUEST_PENDING
from catalog_admin.errors import DuplicateRequest, InvalidInput, StoreUnavailable
from catalog_admin.models.authz import Profile, RoleGrant, BootstrapClaim, PromotionRequest
from catalog_admin.models.audit import AuditEntry
from catalog_admin.models.notification import Notification
from catalog_admin.models.product import Product, PriceHistory
from catalog_admin.payloads import parse_payload
from catalog_admin.stores.base import (
    AuditRecord, Grant, Identity, NotificationRecord, PromotionRequestRecord, Stores,
)

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = ('description', 'unit')


def _store_call(fn):
    @wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except IntegrityError:
            raise
        except DBAPIError as exc:
            logger.exception('Store call %s failed', fn.__qualname__)
            raise StoreUnavailable() from exc
    return wrapper


def _identity(p: Profile) -> Identity:
    return Identity(id=p.id, email=p.email, role=p.role, overrides=dict(p.permissions or {}), name=p.name or '')


def _request(r: PromotionRequest) -> PromotionRequestRecord:
    return PromotionRequestRecord(
        id=r.id,
        requester_id=r.user_id,
        status=r.status,
        requested_at=r.requested_at,
        resolved_at=r.resolved_at,
        resolved_by=r.resolved_by,
    )


def _audit(e: AuditEntry) -> AuditRecord:
    return AuditRecord(
        id=e.id,
        action_type=e.action_type,
        actor_id=e.actor_id,
        payload=parse_payload(e.action_type, e.payload),
        created_at=e.created_at,
        revertible=bool(e.revertible),
        reverted=bool(e.reverted),
    )


def _price(r: PriceHistory) -> Dict[str, Any]:
    return {'id': r.id, 'prodcode': r.prodcode, 'unitprice': r.unitprice, 'effdate': r.effdate}


def _notification(n: Notification) -> NotificationRecord:
    return NotificationRecord(
        id=n.id,
        user_id=n.user_id,
        type=n.type,
        content=dict(n.content or {}),
        is_read=bool(n.is_read),
        created_at=n.created_at,
    )


class _SessionBound:
    def __init__(self, session: Session):
        self.session = session

    def _fresh(self, stmt):
        # populate_existing: never answer from a stale identity map
        return self.session.execute(stmt.execution_options(populate_existing=True))


class SqlIdentityStore(_SessionBound):
    @_store_call
    def get_profile(self, identity_id: int) -> Optional[Identity]:
        p = self._fresh(select(Profile).where(Profile.id == identity_id)).scalar_one_or_none()
        return _identity(p) if p else None

    @_store_call
    def find_credentials(self, email: str):
        p = self._fresh(select(Profile).where(Profile.email == email)).scalar_one_or_none()
        if not p:
            return None
        return _identity(p), p.password_hash

    @_store_call
    def create_identity(self, email: str, name: str, password_hash: str) -> Identity:
        p = Profile(email=email, name=name or email.split('@')[0], password_hash=password_hash, permissions={})
        self.session.add(p)
        try:
            self.session.flush()
        except IntegrityError:
            self.session.rollback()
            raise InvalidInput('email already registered')
        return _identity(p)

    @_store_call
    def count_profiles(self) -> int:
        return self.session.execute(select(func.count(Profile.id)).where(Profile.role.is_not(None))).scalar_one()

    @_store_call
    def claim_first_admin(self, identity_id: int) -> bool:
        """Count check, singleton claim row and role write in one unit.

        Must be the first write of its transaction: a lost race rolls the session back.
        """
        if self.count_profiles() != 0:
            return False
        self.session.add(BootstrapClaim(id=1, profile_id=identity_id))
        try:
            self.session.flush()
        except IntegrityError:
            self.session.rollback()
            logger.info('First-admin claim lost by identity %s', identity_id)
            return False
        res = self.session.execute(
            update(Profile).where(Profile.id == identity_id, Profile.role.is_(None)).values(role=ROLE_ADMIN)
        )
        return res.rowcount == 1

    @_store_call
    def set_role(self, identity_id: int, role: str, only_if_unset: bool = False) -> bool:
        stmt = update(Profile).where(Profile.id == identity_id)
        if only_if_unset:
            stmt = stmt.where(Profile.role.is_(None))
        res = self.session.execute(stmt.values(role=role))
        return res.rowcount == 1

    @_store_call
    def set_override(self, identity_id: int, action: str, allowed: Optional[bool]) -> bool:
        p = self._fresh(select(Profile).where(Profile.id == identity_id)).scalar_one_or_none()
        if not p:
            return False
        overrides = dict(p.permissions or {})
        if allowed is None:
            overrides.pop(action, None)
        else:
            overrides[action] = bool(allowed)
        # reassign so the JSON column is flagged dirty
        p.permissions = overrides
        self.session.flush()
        return True

    @_store_call
    def list_identities(self) -> List[Identity]:
        rows = self._fresh(select(Profile).order_by(Profile.id.asc())).scalars().all()
        return [_identity(p) for p in rows]


class SqlGrantStore(_SessionBound):
    @_store_call
    def get_grants(self) -> List[Grant]:
        rows = self._fresh(select(RoleGrant).order_by(RoleGrant.role.asc(), RoleGrant.action.asc())).scalars().all()
        return [Grant(role=g.role, action=g.action, allowed=bool(g.allowed)) for g in rows]

    @_store_call
    def get_grant(self, role: str, action: str) -> Optional[Grant]:
        g = self._fresh(select(RoleGrant).where(RoleGrant.role == role, RoleGrant.action == action)).scalar_one_or_none()
        return Grant(role=g.role, action=g.action, allowed=bool(g.allowed)) if g else None

    @_store_call
    def upsert_grant(self, role: str, action: str, allowed: bool) -> None:
        """Insert or update the (role, action) row as one statement where the dialect allows it."""
        values = {'role': role, 'action': action, 'allowed': bool(allowed)}
        dialect = self.session.get_bind().dialect.name
        if dialect in ('postgresql', 'sqlite'):
            insert = pg_insert if dialect == 'postgresql' else sqlite_insert
            stmt = insert(RoleGrant).values(**values).on_conflict_do_update(
                index_elements=['role', 'action'], set_={'allowed': values['allowed']}
            )
            self.session.execute(stmt)
            return
        set_allowed = (
            update(RoleGrant).where(RoleGrant.role == role, RoleGrant.action == action).values(allowed=values['allowed'])
        )
        if self.session.execute(set_allowed).rowcount:
            return
        try:
            with self.session.begin_nested():
                self.session.add(RoleGrant(**values))
                self.session.flush()
        except IntegrityError:
            # a concurrent writer inserted the same pair first
            self.session.execute(set_allowed)


class SqlPromotionRequestStore(_SessionBound):
    @_store_call
    def get(self, request_id: int) -> Optional[PromotionRequestRecord]:
        r = self._fresh(select(PromotionRequest).where(PromotionRequest.id == request_id)).scalar_one_or_none()
        return _request(r) if r else None

    @_store_call
    def find_pending(self, identity_id: int) -> Optional[PromotionRequestRecord]:
        r = self._fresh(
            select(PromotionRequest).where(PromotionRequest.user_id == identity_id, PromotionRequest.status == REQUEST_PENDING)
        ).scalars().first()
        return _request(r) if r else None

    @_store_call
    def latest_for(self, identity_id: int) -> Optional[PromotionRequestRecord]:
        r = self._fresh(
            select(PromotionRequest)
            .where(PromotionRequest.user_id == identity_id)
            .order_by(PromotionRequest.requested_at.desc(), PromotionRequest.id.desc())
        ).scalars().first()
        return _request(r) if r else None

    @_store_call
    def list_pending(self) -> List[PromotionRequestRecord]:
        rows = self._fresh(
            select(PromotionRequest)
            .where(PromotionRequest.status == REQUEST_PENDING)
            .order_by(PromotionRequest.requested_at.desc(), PromotionRequest.id.desc())
        ).scalars().all()
        return [_request(r) for r in rows]

    @_store_call
    def insert_pending(self, identity_id: int, requested_at: datetime) -> PromotionRequestRecord:
        r = PromotionRequest(user_id=identity_id, status=REQUEST_PENDING, requested_at=requested_at)
        self.session.add(r)
        try:
            self.session.flush()
        except IntegrityError:
            # partial unique index: a concurrent pending request won
            self.session.rollback()
            raise DuplicateRequest()
        return _request(r)

    @_store_call
    def resolve(self, request_id: int, status: str, resolved_by: int, resolved_at: datetime) -> bool:
        res = self.session.execute(
            update(PromotionRequest)
            .where(PromotionRequest.id == request_id, PromotionRequest.status == REQUEST_PENDING)
            .values(status=status, resolved_by=resolved_by, resolved_at=resolved_at)
        )
        return res.rowcount == 1


class SqlAuditStore(_SessionBound):
    @_store_call
    def append(self, action_type: str, actor_id: int, payload: Dict[str, Any], revertible: bool,
               created_at: datetime) -> AuditRecord:
        e = AuditEntry(
            action_type=action_type,
            actor_id=actor_id,
            payload=payload or {},
            revertible=revertible,
            reverted=False,
            created_at=created_at,
        )
        self.session.add(e)
        self.session.flush()
        return _audit(e)

    @_store_call
    def get(self, entry_id: int) -> Optional[AuditRecord]:
        e = self._fresh(select(AuditEntry).where(AuditEntry.id == entry_id)).scalar_one_or_none()
        return _audit(e) if e else None

    @_store_call
    def recent(self, limit: int, action_type: Optional[str] = None, actor_id: Optional[int] = None) -> List[AuditRecord]:
        q = select(AuditEntry)
        if action_type:
            q = q.where(AuditEntry.action_type == action_type)
        if actor_id is not None:
            q = q.where(AuditEntry.actor_id == actor_id)
        rows = self._fresh(q.order_by(AuditEntry.id.desc()).limit(limit)).scalars().all()
        return [_audit(e) for e in rows]

    @_store_call
    def mark_reverted(self, entry_id: int) -> bool:
        res = self.session.execute(
            update(AuditEntry).where(AuditEntry.id == entry_id, AuditEntry.reverted.is_(False)).values(reverted=True)
        )
        return res.rowcount == 1


class SqlCatalogStore(_SessionBound):
    @_store_call
    def get_product(self, code: str) -> Optional[Dict[str, Any]]:
        p = self._fresh(select(Product).where(Product.prodcode == code)).scalar_one_or_none()
        if not p:
            return None
        return {'prodcode': p.prodcode, 'description': p.description, 'unit': p.unit}

    @_store_call
    def add_product(self, code: str, fields: Dict[str, Any]) -> None:
        values = {k: v for k, v in (fields or {}).items() if k in PRODUCT_FIELDS}
        self.session.add(Product(prodcode=code, **values))
        try:
            self.session.flush()
        except IntegrityError:
            self.session.rollback()
            raise InvalidInput('product code already exists')

    @_store_call
    def update_product(self, code: str, fields: Dict[str, Any]) -> None:
        values = {k: v for k, v in (fields or {}).items() if k in PRODUCT_FIELDS}
        if values:
            self.session.execute(update(Product).where(Product.prodcode == code).values(**values))

    @_store_call
    def delete_product(self, code: str) -> None:
        self.session.execute(delete(PriceHistory).where(PriceHistory.prodcode == code))
        self.session.execute(delete(Product).where(Product.prodcode == code))

    @_store_call
    def latest_price(self, code: str) -> Optional[float]:
        row = self._fresh(
            select(PriceHistory)
            .where(PriceHistory.prodcode == code)
            .order_by(PriceHistory.effdate.desc(), PriceHistory.id.desc())
        ).scalars().first()
        return row.unitprice if row else None

    @_store_call
    def delete_latest_price(self, code: str) -> None:
        latest_id = self.session.execute(
            select(PriceHistory.id)
            .where(PriceHistory.prodcode == code)
            .order_by(PriceHistory.effdate.desc(), PriceHistory.id.desc())
            .limit(1)
        ).scalar_one_or_none()
        if latest_id is not None:
            self.session.execute(delete(PriceHistory).where(PriceHistory.id == latest_id))

    @_store_call
    def insert_price(self, code: str, price: float, date: datetime) -> None:
        self.session.add(PriceHistory(prodcode=code, unitprice=price, effdate=date or datetime.now(timezone.utc)))
        self.session.flush()

    @_store_call
    def list_prices(self, code: str) -> List[Dict[str, Any]]:
        rows = self._fresh(
            select(PriceHistory)
            .where(PriceHistory.prodcode == code)
            .order_by(PriceHistory.effdate.desc(), PriceHistory.id.desc())
        ).scalars().all()
        return [_price(r) for r in rows]

    @_store_call
    def get_price(self, price_id: int) -> Optional[Dict[str, Any]]:
        row = self._fresh(select(PriceHistory).where(PriceHistory.id == price_id)).scalar_one_or_none()
        return _price(row) if row else None

    @_store_call
    def update_price(self, price_id: int, price: float, date: datetime) -> bool:
        res = self.session.execute(
            update(PriceHistory).where(PriceHistory.id == price_id).values(unitprice=price, effdate=date)
        )
        return res.rowcount == 1

    @_store_call
    def delete_price(self, price_id: int) -> bool:
        res = self.session.execute(delete(PriceHistory).where(PriceHistory.id == price_id))
        return res.rowcount == 1


class SqlNotificationStore(_SessionBound):
    @_store_call
    def add(self, user_id: int, type: str, content: Dict[str, Any], created_at: datetime) -> NotificationRecord:
        n = Notification(user_id=user_id, type=type, content=content or {}, is_read=False, created_at=created_at)
        self.session.add(n)
        self.session.flush()
        return _notification(n)

    @_store_call
    def get(self, notification_id: int) -> Optional[NotificationRecord]:
        n = self._fresh(select(Notification).where(Notification.id == notification_id)).scalar_one_or_none()
        return _notification(n) if n else None

    @_store_call
    def list_for(self, user_id: int) -> List[NotificationRecord]:
        rows = self._fresh(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
        ).scalars().all()
        return [_notification(n) for n in rows]

    @_store_call
    def count_unread(self, user_id: int) -> int:
        return self.session.execute(
            select(func.count(Notification.id)).where(Notification.user_id == user_id, Notification.is_read.is_(False))
        ).scalar_one()

    @_store_call
    def mark_read(self, notification_id: int) -> bool:
        res = self.session.execute(
            update(Notification).where(Notification.id == notification_id).values(is_read=True)
        )
        return res.rowcount == 1

    @_store_call
    def mark_all_read(self, user_id: int) -> int:
        res = self.session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        return res.rowcount


class SqlStores(Stores):
    def __init__(self, session: Session):
        super().__init__()
        self.session = session
        self.identities = SqlIdentityStore(session)
        self.grants = SqlGrantStore(session)
        self.requests = SqlPromotionRequestStore(session)
        self.audit = SqlAuditStore(session)
        self.catalog = SqlCatalogStore(session)
        self.notifications = SqlNotificationStore(session)

    def _commit(self):
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise
        except DBAPIError as exc:
            self.session.rollback()
            logger.exception('Commit failed')
            raise StoreUnavailable() from exc

    def _rollback(self):
        try:
            self.session.rollback()
        except DBAPIError:
            # keep the original failure as the one the caller sees
            logger.exception('Rollback failed')


__all__ = [
    'SqlIdentityStore', 'SqlGrantStore', 'SqlPromotionRequestStore', 'SqlAuditStore',
    'SqlCatalogStore', 'SqlNotificationStore', 'SqlStores',
]

"""Store contracts consumed by the services.

Services never reach for a module-level session: they receive a ``Stores`` bundle
(SQL-backed in the app, in-memory fakes in tests). Records handed back are plain
frozen dataclasses, re-read from the backing store on every call.

Atomicity lives in the store: the conditional operations (``claim_first_admin``,
``set_role(only_if_unset=True)``, ``resolve``, ``mark_reverted``) report via their
bool result whether the guarded write happened.
"""
from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Protocol


@dataclass(frozen=True)
class Identity:
    id: int
    email: str
    role: Optional[str] = None
    overrides: Dict[str, bool] = field(default_factory=dict)
    name: str = ''


@dataclass(frozen=True)
class Grant:
    role: str
    action: str
    allowed: bool


@dataclass(frozen=True)
class PromotionRequestRecord:
    id: int
    requester_id: int
    status: str
    requested_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[int] = None


@dataclass(frozen=True)
class AuditRecord:
    id: int
    action_type: str
    actor_id: int
    payload: Any
    created_at: Optional[datetime] = None
    revertible: bool = False
    reverted: bool = False


@dataclass(frozen=True)
class NotificationRecord:
    id: int
    user_id: int
    type: str
    content: Dict[str, Any] = field(default_factory=dict)
    is_read: bool = False
    created_at: Optional[datetime] = None


class IdentityStore(Protocol):
    def get_profile(self, identity_id: int) -> Optional[Identity]: ...
    def find_credentials(self, email: str) -> Optional[tuple]: ...
    def create_identity(self, email: str, name: str, password_hash: str) -> Identity: ...
    def count_profiles(self) -> int: ...
    def claim_first_admin(self, identity_id: int) -> bool: ...
    def set_role(self, identity_id: int, role: str, only_if_unset: bool = False) -> bool: ...
    def set_override(self, identity_id: int, action: str, allowed: Optional[bool]) -> bool: ...
    def list_identities(self) -> List[Identity]: ...


class GrantStore(Protocol):
    def get_grants(self) -> List[Grant]: ...
    def get_grant(self, role: str, action: str) -> Optional[Grant]: ...
    def upsert_grant(self, role: str, action: str, allowed: bool) -> None: ...


class PromotionRequestStore(Protocol):
    def get(self, request_id: int) -> Optional[PromotionRequestRecord]: ...
    def find_pending(self, identity_id: int) -> Optional[PromotionRequestRecord]: ...
    def latest_for(self, identity_id: int) -> Optional[PromotionRequestRecord]: ...
    def list_pending(self) -> List[PromotionRequestRecord]: ...
    def insert_pending(self, identity_id: int, requested_at: datetime) -> PromotionRequestRecord: ...
    def resolve(self, request_id: int, status: str, resolved_by: int, resolved_at: datetime) -> bool: ...


class AuditStore(Protocol):
    def append(self, action_type: str, actor_id: int, payload: Dict[str, Any], revertible: bool,
               created_at: datetime) -> AuditRecord: ...
    def get(self, entry_id: int) -> Optional[AuditRecord]: ...
    def recent(self, limit: int, action_type: Optional[str] = None, actor_id: Optional[int] = None) -> List[AuditRecord]: ...
    def mark_reverted(self, entry_id: int) -> bool: ...


class CatalogStore(Protocol):
    def get_product(self, code: str) -> Optional[Dict[str, Any]]: ...
    def add_product(self, code: str, fields: Dict[str, Any]) -> None: ...
    def update_product(self, code: str, fields: Dict[str, Any]) -> None: ...
    def delete_product(self, code: str) -> None: ...
    def latest_price(self, code: str) -> Optional[float]: ...
    def delete_latest_price(self, code: str) -> None: ...
    def insert_price(self, code: str, price: float, date: datetime) -> None: ...
    def list_prices(self, code: str) -> List[Dict[str, Any]]: ...
    def get_price(self, price_id: int) -> Optional[Dict[str, Any]]: ...
    def update_price(self, price_id: int, price: float, date: datetime) -> bool: ...
    def delete_price(self, price_id: int) -> bool: ...


class NotificationStore(Protocol):
    def add(self, user_id: int, type: str, content: Dict[str, Any], created_at: datetime) -> NotificationRecord: ...
    def get(self, notification_id: int) -> Optional[NotificationRecord]: ...
    def list_for(self, user_id: int) -> List[NotificationRecord]: ...
    def count_unread(self, user_id: int) -> int: ...
    def mark_read(self, notification_id: int) -> bool: ...
    def mark_all_read(self, user_id: int) -> int: ...


class Stores:
    """Bundle of stores sharing one unit of work.

    ``transaction()`` nests: only the outermost block commits. An exception leaving
    the outermost block rolls the whole unit back and is re-raised unchanged.
    """

    identities: IdentityStore
    grants: GrantStore
    requests: PromotionRequestStore
    audit: AuditStore
    catalog: CatalogStore
    notifications: NotificationStore

    def __init__(self):
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator['Stores']:
        if self._depth == 0:
            self._begin()
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self._rollback()
            raise
        self._depth -= 1
        if self._depth == 0:
            self._commit()

    def _begin(self):
        pass

    def _commit(self):
        raise NotImplementedError

    def _rollback(self):
        raise NotImplementedError


__all__ = [
    'Identity', 'Grant', 'PromotionRequestRecord', 'AuditRecord',
    'NotificationRecord', 'IdentityStore', 'GrantStore', 'PromotionRequestStore', 'AuditStore',
    'CatalogStore', 'NotificationStore',
    'Stores',
]

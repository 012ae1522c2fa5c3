"""Typed audit payloads, one dataclass per audit action type.

Each variant carries exactly the fields its reversal (or display) needs. Stored
rows keep the plain dict form; ``parse_payload`` rebuilds the variant on read.

    payload = PriceChange(product_code='P-1', new_price=12.5, previous_price=10.0)
    store.append(payload.action_type, actor_id, payload.to_dict(), ...)
    parse_payload('price_change', row.payload) == payload
"""
from __future__ import annotations
import math
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Callable, ClassVar, Dict, Optional, Type, Union

from catalog_admin.constants import permissions as P
from catalog_admin.errors import InvalidInput


def is_price(value: Any) -> bool:
    """A finite, non-negative number. Booleans are not prices."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value >= 0


def _text(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


def _int_id(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _flag(value: Any) -> bool:
    return isinstance(value, bool)


def _mapping(value: Any) -> bool:
    return isinstance(value, dict)


# field name -> check; a field means the same thing in every variant that has it
FIELD_CHECKS: Dict[str, Callable[[Any], bool]] = {
    'product_code': _text,
    'product_name': lambda v: v is None or isinstance(v, str),
    'previous_values': _mapping,
    'new_values': _mapping,
    'new_price': is_price,
    'previous_price': lambda v: v is None or is_price(v),
    'price_id': _int_id,
    'effdate': _text,
    'previous_effdate': _text,
    'role': lambda v: isinstance(v, str) and v in P.ROLES,
    'action': lambda v: isinstance(v, str) and v in P.ALL_ACTIONS,
    'allowed': _flag,
    'previous_allowed': _flag,
    'request_id': _int_id,
    'requester_id': _int_id,
    'status': lambda v: v in (P.REQUEST_APPROVED, P.REQUEST_REJECTED),
    'reverted_id': _int_id,
    'reverted_action': _text,
    'original_payload': _mapping,
}


@dataclass(frozen=True)
class ProductAdded:
    action_type: ClassVar[str] = P.PRODUCT_ADDED
    product_code: str
    product_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ProductUpdated:
    action_type: ClassVar[str] = P.PRODUCT_UPDATED
    product_code: str
    previous_values: Dict[str, Any]
    new_values: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ProductDeleted:
    action_type: ClassVar[str] = P.PRODUCT_DELETED
    product_code: str
    previous_values: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PriceChange:
    action_type: ClassVar[str] = P.PRICE_CHANGE
    product_code: str
    new_price: float
    previous_price: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.previous_price is None:
            # absent rather than null: the product had no price before
            data.pop('previous_price')
        return data


@dataclass(frozen=True)
class PriceEdited:
    """A price-history row rewritten in place; dates are ISO strings."""
    action_type: ClassVar[str] = P.PRICE_EDITED
    product_code: str
    price_id: int
    new_price: float
    effdate: str
    previous_price: Optional[float]
    previous_effdate: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PriceDeleted:
    action_type: ClassVar[str] = P.PRICE_DELETED
    product_code: str
    price_id: int
    previous_price: Optional[float]
    previous_effdate: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PermissionChange:
    action_type: ClassVar[str] = P.PERMISSION_CHANGE
    role: str
    action: str
    allowed: bool
    previous_allowed: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PermissionRequest:
    action_type: ClassVar[str] = P.PERMISSION_REQUEST
    request_id: int
    requester_id: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PermissionRequestResolved:
    action_type: ClassVar[str] = P.PERMISSION_REQUEST_RESOLVED
    request_id: int
    requester_id: int
    status: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ActionReverted:
    action_type: ClassVar[str] = P.ACTION_REVERTED
    reverted_id: int
    reverted_action: str
    original_payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class UnknownPayload:
    """Rows whose action type is outside the known set, or whose fields do not fit it."""
    action_type: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.data)


Payload = Union[
    ProductAdded, ProductUpdated, ProductDeleted, PriceChange, PriceEdited, PriceDeleted,
    PermissionChange, PermissionRequest, PermissionRequestResolved, ActionReverted, UnknownPayload,
]

PAYLOAD_TYPES: Dict[str, Type] = {
    cls.action_type: cls
    for cls in (
        ProductAdded, ProductUpdated, ProductDeleted, PriceChange, PriceEdited, PriceDeleted,
        PermissionChange, PermissionRequest, PermissionRequestResolved, ActionReverted,
    )
}


def invalid_fields(payload: Any) -> list:
    """Names of the fields of a typed payload whose value has the wrong type."""
    return [
        f.name for f in fields(payload)
        if not FIELD_CHECKS.get(f.name, lambda v: True)(getattr(payload, f.name))
    ]


def parse_payload(action_type: str, data: Optional[Dict[str, Any]], strict: bool = False) -> Payload:
    """Build the typed variant for ``action_type`` from its stored dict.

    With ``strict`` a missing or malformed field raises InvalidInput (used when
    accepting new entries); otherwise it degrades to UnknownPayload so old or
    hand-edited rows stay readable but are never acted on.
    """
    data = dict(data or {})
    cls = PAYLOAD_TYPES.get(action_type)
    if cls is None:
        if strict:
            raise InvalidInput(f'Unknown action type: {action_type}')
        return UnknownPayload(action_type=action_type, data=data)
    names = {f.name for f in fields(cls)}
    try:
        payload = cls(**{k: v for k, v in data.items() if k in names})
    except TypeError:
        if strict:
            raise InvalidInput(f'Payload does not match action type {action_type}')
        return UnknownPayload(action_type=action_type, data=data)
    bad = invalid_fields(payload)
    if bad:
        if strict:
            raise InvalidInput(f'Invalid {action_type} payload fields: {bad}')
        return UnknownPayload(action_type=action_type, data=data)
    return payload


def coerce_payload(action_type: str, payload: Any) -> Payload:
    """Accept either a typed payload or a plain dict; the result must match ``action_type``."""
    if isinstance(payload, dict) or payload is None:
        return parse_payload(action_type, payload, strict=True)
    if getattr(payload, 'action_type', None) != action_type or isinstance(payload, UnknownPayload):
        raise InvalidInput(f'Payload does not match action type {action_type}')
    bad = invalid_fields(payload)
    if bad:
        raise InvalidInput(f'Invalid {action_type} payload fields: {bad}')
    return payload


__all__ = [
    'ProductAdded', 'ProductUpdated', 'ProductDeleted', 'PriceChange', 'PriceEdited', 'PriceDeleted',
    'PermissionChange', 'PermissionRequest', 'PermissionRequestResolved', 'ActionReverted',
    'UnknownPayload', 'Payload', 'PAYLOAD_TYPES', 'FIELD_CHECKS', 'is_price', 'invalid_fields',
    'parse_payload', 'coerce_payload',
]

from __future__ import annotations
"""Product / price mutations behind the permission gate.

Each operation checks the caller's permission, applies the change to the catalog
store and appends the audit entry carrying what a reversal needs. Both writes
commit together.
"""
import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from catalog_admin.constants import permissions as P
from catalog_admin.errors import InvalidInput, NotFound
from catalog_admin.payloads import (
    PriceChange, PriceDeleted, PriceEdited, ProductAdded, ProductDeleted, ProductUpdated,
)
from catalog_admin.stores.base import AuditRecord, Stores
from catalog_admin.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = ('description', 'unit')


def _product_fields(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    data = data or {}
    unknown = set(data) - set(PRODUCT_FIELDS)
    if unknown:
        raise InvalidInput(f'Unknown product fields: {sorted(unknown)}')
    values = {k: data[k] for k in PRODUCT_FIELDS if k in data}
    for k, v in values.items():
        if v is not None and not isinstance(v, str):
            raise InvalidInput(f'{k} must be a string')
    return values


def parse_price(value: Any) -> float:
    if isinstance(value, bool):
        raise InvalidInput('price must be a number')
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise InvalidInput('price must be a number')
    if not math.isfinite(price):
        raise InvalidInput('price must be a finite number')
    if price < 0:
        raise InvalidInput('price cannot be negative')
    return price


def parse_effdate(value: Any) -> Optional[datetime]:
    """``None`` means "now". Accepts a datetime or an ISO date / datetime string."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            raise InvalidInput('effdate must be an ISO date')
    else:
        raise InvalidInput('effdate must be an ISO date')
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _iso(value: Any) -> str:
    return value.isoformat() if isinstance(value, datetime) else str(value)


class CatalogGate:
    def __init__(self, stores: Stores, engine, audit):
        self.stores = stores
        self.engine = engine
        self.audit = audit

    def add_product(self, actor_id: int, code: str, fields: Optional[Dict[str, Any]] = None) -> AuditRecord:
        self.engine.require(actor_id, P.ADD_PRODUCT)
        if not code or not isinstance(code, str):
            raise InvalidInput('product code required')
        values = _product_fields(fields)
        with self.stores.transaction():
            if self.stores.catalog.get_product(code):
                raise InvalidInput('product code already exists')
            self.stores.catalog.add_product(code, values)
            return self.audit.append(actor_id, ProductAdded(product_code=code, product_name=values.get('description')))

    def update_product(self, actor_id: int, code: str, fields: Dict[str, Any]) -> AuditRecord:
        self.engine.require(actor_id, P.EDIT_PRODUCT)
        values = _product_fields(fields)
        if not values:
            raise InvalidInput('nothing to update')
        with self.stores.transaction():
            current = self.stores.catalog.get_product(code)
            if not current:
                raise NotFound('Product not found')
            previous = {k: current.get(k) for k in values}
            self.stores.catalog.update_product(code, values)
            return self.audit.append(
                actor_id, ProductUpdated(product_code=code, previous_values=previous, new_values=values)
            )

    def delete_product(self, actor_id: int, code: str) -> AuditRecord:
        self.engine.require(actor_id, P.DELETE_PRODUCT)
        with self.stores.transaction():
            current = self.stores.catalog.get_product(code)
            if not current:
                raise NotFound('Product not found')
            self.stores.catalog.delete_product(code)
            previous = {k: current.get(k) for k in PRODUCT_FIELDS}
            return self.audit.append(actor_id, ProductDeleted(product_code=code, previous_values=previous))

    def change_price(self, actor_id: int, code: str, new_price: Any, effdate: Any = None) -> AuditRecord:
        """Add a price point; ``effdate`` defaults to now."""
        self.engine.require(actor_id, P.ADD_PRICE_HISTORY)
        new_price = parse_price(new_price)
        effective = parse_effdate(effdate) or utcnow()
        with self.stores.transaction():
            if not self.stores.catalog.get_product(code):
                raise NotFound('Product not found')
            previous = self.stores.catalog.latest_price(code)
            self.stores.catalog.insert_price(code, new_price, effective)
            entry = self.audit.append(
                actor_id, PriceChange(product_code=code, new_price=new_price, previous_price=previous)
            )
        logger.info('Price of %s changed %s -> %s by %s', code, previous, new_price, actor_id)
        return entry

    def price_history(self, code: str) -> List[Dict[str, Any]]:
        """Newest first."""
        if not self.stores.catalog.get_product(code):
            raise NotFound('Product not found')
        return self.stores.catalog.list_prices(code)

    def _price_row(self, code: str, price_id: int) -> Dict[str, Any]:
        row = self.stores.catalog.get_price(price_id)
        if not row or row['prodcode'] != code:
            raise NotFound('Price record not found')
        return row

    def edit_price(self, actor_id: int, code: str, price_id: int, new_price: Any = None,
                   effdate: Any = None) -> AuditRecord:
        self.engine.require(actor_id, P.EDIT_PRICE_HISTORY)
        if new_price is None and effdate is None:
            raise InvalidInput('nothing to update')
        price = None if new_price is None else parse_price(new_price)
        effective = parse_effdate(effdate)
        with self.stores.transaction():
            row = self._price_row(code, price_id)
            price = row['unitprice'] if price is None else price
            effective = row['effdate'] if effective is None else effective
            if price is None:
                raise InvalidInput('price required')
            self.stores.catalog.update_price(price_id, price, effective)
            entry = self.audit.append(actor_id, PriceEdited(
                product_code=code,
                price_id=price_id,
                new_price=price,
                effdate=_iso(effective),
                previous_price=row['unitprice'],
                previous_effdate=_iso(row['effdate']),
            ))
        logger.info('Price record %s of %s edited by %s', price_id, code, actor_id)
        return entry

    def delete_price(self, actor_id: int, code: str, price_id: int) -> AuditRecord:
        self.engine.require(actor_id, P.DELETE_PRICE_HISTORY)
        with self.stores.transaction():
            row = self._price_row(code, price_id)
            self.stores.catalog.delete_price(price_id)
            entry = self.audit.append(actor_id, PriceDeleted(
                product_code=code,
                price_id=price_id,
                previous_price=row['unitprice'],
                previous_effdate=_iso(row['effdate']),
            ))
        logger.info('Price record %s of %s deleted by %s', price_id, code, actor_id)
        return entry


def price_json(row: Dict[str, Any]):
    return {
        'id': row['id'],
        'prodcode': row['prodcode'],
        'unitprice': row['unitprice'],
        'effdate': _iso(row['effdate']),
    }

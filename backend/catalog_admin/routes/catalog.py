from __future__ import annotations
from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from catalog_admin import get_services
from catalog_admin.decorators.auth import current_identity_id
from catalog_admin.errors import InvalidInput
from catalog_admin.services.audit import entry_json
from catalog_admin.services.catalog import price_json

cat_bp = Blueprint('catalog', __name__)


@cat_bp.post('/products')
@jwt_required()
def add_product():
    data = request.json or {}
    code = data.pop('prodcode', None)
    entry = get_services().catalog.add_product(current_identity_id(), code, data)
    return entry_json(entry), 201


@cat_bp.patch('/products/<code>')
@jwt_required()
def update_product(code: str):
    entry = get_services().catalog.update_product(current_identity_id(), code, request.json or {})
    return entry_json(entry)


@cat_bp.delete('/products/<code>')
@jwt_required()
def delete_product(code: str):
    entry = get_services().catalog.delete_product(current_identity_id(), code)
    return entry_json(entry)


# --- Price history ---

@cat_bp.get('/products/<code>/prices')
@jwt_required()
def list_prices(code: str):
    rows = get_services().catalog.price_history(code)
    return {'data': [price_json(r) for r in rows]}


@cat_bp.post('/products/<code>/prices')
@jwt_required()
def change_price(code: str):
    data = request.json or {}
    if 'unitprice' not in data:
        raise InvalidInput('unitprice required')
    entry = get_services().catalog.change_price(current_identity_id(), code, data['unitprice'], data.get('effdate'))
    return entry_json(entry), 201


@cat_bp.patch('/products/<code>/prices/<int:price_id>')
@jwt_required()
def edit_price(code: str, price_id: int):
    data = request.json or {}
    entry = get_services().catalog.edit_price(
        current_identity_id(), code, price_id, data.get('unitprice'), data.get('effdate')
    )
    return entry_json(entry)


@cat_bp.delete('/products/<code>/prices/<int:price_id>')
@jwt_required()
def delete_price(code: str, price_id: int):
    entry = get_services().catalog.delete_price(current_identity_id(), code, price_id)
    return entry_json(entry)

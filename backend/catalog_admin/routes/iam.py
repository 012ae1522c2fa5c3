from flask import Blueprint, request, abort
from flask_jwt_extended import create_access_token, jwt_required
from catalog_admin import get_services
from catalog_admin.constants.permissions import MANAGE_SETTINGS
from catalog_admin.decorators.auth import current_identity_id, require_permission
from catalog_admin.errors import InvalidInput
from catalog_admin.services.accounts import register, authenticate
from catalog_admin.services.audit import entry_json
from catalog_admin.services.bootstrap import bootstrap_if_first_user
from catalog_admin.services.notifications import notification_json
from catalog_admin.services.promotion import request_json

iam_bp = Blueprint('iam', __name__)


def _identity_json(identity, perms=None):
    body = {
        'id': identity.id,
        'email': identity.email,
        'name': identity.name,
        'role': identity.role,
        'overrides': identity.overrides,
    }
    if perms is not None:
        body['permissions'] = perms
    return body


def _int_arg(name):
    raw = request.args.get(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        raise InvalidInput(f'{name} must be int')


# --- Auth ---

@iam_bp.post('/auth/register')
def register_identity():
    data = request.json or {}
    services = get_services()
    identity = register(services.stores, data.get('email'), data.get('password'), data.get('name'))
    return _identity_json(identity), 201


@iam_bp.post('/auth/login')
def login():
    data = request.json or {}
    email = data.get('email'); password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    services = get_services()
    identity = authenticate(services.stores, email, password)
    if not identity:
        abort(401, description='invalid credentials')
    # first session for this identity: may make it the initial admin
    bootstrapped = bootstrap_if_first_user(services.stores, identity.id)
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    token = create_access_token(identity=str(identity.id))
    return {'access_token': token, 'bootstrapped': bootstrapped}


@iam_bp.get('/auth/me')
@jwt_required()
def me():
    services = get_services()
    identity_id = current_identity_id()
    identity = services.stores.identities.get_profile(identity_id)
    if not identity:
        abort(404)
    return _identity_json(identity, services.engine.effective_permissions(identity_id))


# --- Role grants ---

@iam_bp.get('/grants')
@require_permission(MANAGE_SETTINGS)
def list_grants():
    grants = get_services().permissions.list_grants(current_identity_id())
    return {'data': [{'role': g.role, 'action': g.action, 'allowed': g.allowed} for g in grants]}


@iam_bp.put('/grants')
@jwt_required()
def set_grant():
    data = request.json or {}
    if not isinstance(data.get('allowed'), bool):
        raise InvalidInput('allowed must be boolean')
    entry = get_services().permissions.set_grant(
        current_identity_id(), data.get('role'), data.get('action'), data['allowed']
    )
    return {'role': data['role'], 'action': data['action'], 'allowed': data['allowed'], 'audit_id': entry.id}


# --- Per-identity overrides ---

@iam_bp.get('/users')
@jwt_required()
def list_users():
    identities = get_services().permissions.list_identities(current_identity_id())
    return {'data': [_identity_json(i) for i in identities]}


@iam_bp.put('/users/<int:user_id>/overrides/<action>')
@jwt_required()
def set_override(user_id: int, action: str):
    data = request.json or {}
    if not isinstance(data.get('allowed'), bool):
        raise InvalidInput('allowed must be boolean')
    identity = get_services().permissions.set_override(current_identity_id(), user_id, action, data['allowed'])
    return _identity_json(identity)


@iam_bp.delete('/users/<int:user_id>/overrides/<action>')
@jwt_required()
def clear_override(user_id: int, action: str):
    identity = get_services().permissions.clear_override(current_identity_id(), user_id, action)
    return _identity_json(identity)


# --- Admin promotion requests ---

@iam_bp.post('/admin-requests')
@jwt_required()
def create_admin_request():
    record = get_services().promotions.request_promotion(current_identity_id())
    return request_json(record), 201


@iam_bp.get('/admin-requests/mine')
@jwt_required()
def my_admin_request():
    record = get_services().promotions.latest_request(current_identity_id())
    return {'data': request_json(record) if record else None}


@iam_bp.get('/admin-requests')
@jwt_required()
def list_admin_requests():
    rows = get_services().promotions.pending_requests(current_identity_id())
    return {'data': [request_json(r) for r in rows]}


@iam_bp.post('/admin-requests/<int:request_id>/approve')
@jwt_required()
def approve_admin_request(request_id: int):
    record = get_services().promotions.approve(request_id, current_identity_id())
    return request_json(record)


@iam_bp.post('/admin-requests/<int:request_id>/reject')
@jwt_required()
def reject_admin_request(request_id: int):
    record = get_services().promotions.reject(request_id, current_identity_id())
    return request_json(record)


# --- Audit Log ---

@iam_bp.get('/audit/logs')
@jwt_required()
def list_audit_logs():
    rows = get_services().audit.recent(
        current_identity_id(),
        limit=_int_arg('limit'),
        action_type=request.args.get('action_type'),
        actor_id=_int_arg('actor_id'),
    )
    return {'data': [entry_json(e) for e in rows]}


@iam_bp.post('/audit/logs/<int:entry_id>/revert')
@jwt_required()
def revert_audit_entry(entry_id: int):
    reversal = get_services().reversal.revert(entry_id, current_identity_id())
    return entry_json(reversal)


# --- Notifications ---

@iam_bp.get('/notifications')
@jwt_required()
def list_notifications():
    inbox = get_services().notifications
    identity_id = current_identity_id()
    rows = inbox.list(identity_id)
    return {'data': [notification_json(n) for n in rows], 'unread': inbox.unread_count(identity_id)}


@iam_bp.get('/notifications/unread-count')
@jwt_required()
def unread_notifications():
    return {'unread': get_services().notifications.unread_count(current_identity_id())}


@iam_bp.post('/notifications/<int:notification_id>/read')
@jwt_required()
def mark_notification_read(notification_id: int):
    record = get_services().notifications.mark_read(current_identity_id(), notification_id)
    return notification_json(record)


@iam_bp.post('/notifications/read-all')
@jwt_required()
def mark_all_notifications_read():
    return {'updated': get_services().notifications.mark_all_read(current_identity_id())}

import pytest

from catalog_admin.constants import permissions as P
from catalog_admin.errors import AlreadyResolved, DuplicateRequest, Forbidden, InvalidInput, NotFound
from tests.test_utils_seed import seed_admin_and_user


def test_request_creates_pending_and_audits(backend, services):
    _, user_id = seed_admin_and_user(backend)
    req = services.promotions.request_promotion(user_id)
    assert req.status == P.REQUEST_PENDING
    assert req.requester_id == user_id
    entries = services.stores.audit.recent(10, action_type=P.PERMISSION_REQUEST)
    assert len(entries) == 1
    assert entries[0].payload.request_id == req.id
    assert entries[0].revertible is False


def test_second_request_while_pending_is_duplicate(backend, services):
    admin_id, user_id = seed_admin_and_user(backend)
    services.promotions.request_promotion(user_id)
    with pytest.raises(DuplicateRequest):
        services.promotions.request_promotion(user_id)
    assert len(services.promotions.pending_requests(admin_id)) == 1


def test_admin_cannot_request(backend, services):
    admin_id, _ = seed_admin_and_user(backend)
    with pytest.raises(InvalidInput):
        services.promotions.request_promotion(admin_id)


def test_approve_promotes_and_audits(backend, services):
    admin_id, user_id = seed_admin_and_user(backend)
    req = services.promotions.request_promotion(user_id)
    assert services.engine.can(user_id, P.ADD_PRODUCT) is False
    resolved = services.promotions.resolve(req.id, admin_id, P.REQUEST_APPROVED)
    assert resolved.status == P.REQUEST_APPROVED
    assert resolved.resolved_by == admin_id
    assert resolved.resolved_at is not None
    assert backend.role_of(user_id) == P.ROLE_ADMIN
    assert services.engine.can(user_id, P.ADD_PRODUCT) is True
    [entry] = services.stores.audit.recent(10, action_type=P.PERMISSION_REQUEST_RESOLVED)
    assert entry.payload.status == P.REQUEST_APPROVED
    assert entry.payload.requester_id == user_id


def test_second_resolution_fails_and_keeps_role(backend, services):
    admin_id, user_id = seed_admin_and_user(backend)
    req = services.promotions.request_promotion(user_id)
    services.promotions.resolve(req.id, admin_id, P.REQUEST_APPROVED)
    with pytest.raises(AlreadyResolved):
        services.promotions.resolve(req.id, admin_id, P.REQUEST_REJECTED)
    assert backend.role_of(user_id) == P.ROLE_ADMIN
    assert services.stores.requests.get(req.id).status == P.REQUEST_APPROVED


def test_reject_keeps_role_and_allows_new_request(backend, services):
    admin_id, user_id = seed_admin_and_user(backend)
    req = services.promotions.request_promotion(user_id)
    rejected = services.promotions.reject(req.id, admin_id)
    assert rejected.status == P.REQUEST_REJECTED
    assert backend.role_of(user_id) == P.ROLE_USER
    [entry] = services.stores.audit.recent(10, action_type=P.PERMISSION_REQUEST_RESOLVED)
    assert entry.payload.status == P.REQUEST_REJECTED
    again = services.promotions.request_promotion(user_id)
    assert services.promotions.latest_request(user_id).id == again.id


def test_non_admin_cannot_resolve(backend, services):
    _, user_id = seed_admin_and_user(backend)
    other = backend.add_identity('other@example.com', role=P.ROLE_USER)
    req = services.promotions.request_promotion(other)
    with pytest.raises(Forbidden):
        services.promotions.approve(req.id, user_id)
    assert backend.role_of(other) == P.ROLE_USER


def test_manage_users_override_can_resolve(backend, services):
    admin_id, user_id = seed_admin_and_user(backend)
    backend.state['profiles'][user_id]['overrides'][P.MANAGE_USERS] = True
    other = backend.add_identity('other@example.com', role=P.ROLE_USER)
    req = services.promotions.request_promotion(other)
    services.promotions.approve(req.id, user_id)
    assert backend.role_of(other) == P.ROLE_ADMIN


def test_forbidden_checked_before_not_found(backend, services):
    _, user_id = seed_admin_and_user(backend)
    with pytest.raises(Forbidden):
        services.promotions.approve(777, user_id)


def test_missing_request_not_found(backend, services):
    admin_id, _ = seed_admin_and_user(backend)
    with pytest.raises(NotFound):
        services.promotions.approve(777, admin_id)


def test_unknown_decision_rejected(backend, services):
    admin_id, user_id = seed_admin_and_user(backend)
    req = services.promotions.request_promotion(user_id)
    with pytest.raises(InvalidInput):
        services.promotions.resolve(req.id, admin_id, P.REQUEST_PENDING)


def test_role_write_failure_leaves_request_pending(backend, services):
    admin_id, user_id = seed_admin_and_user(backend)
    req = services.promotions.request_promotion(user_id)
    boom = RuntimeError('role write failed')
    backend.failures['identities.set_role'] = boom
    with pytest.raises(RuntimeError) as info:
        services.promotions.approve(req.id, admin_id)
    assert info.value is boom
    assert services.stores.requests.get(req.id).status == P.REQUEST_PENDING
    assert backend.role_of(user_id) == P.ROLE_USER
    assert services.stores.audit.recent(10, action_type=P.PERMISSION_REQUEST_RESOLVED) == []


def test_resolution_write_failure_rolls_back_role(backend, services):
    admin_id, user_id = seed_admin_and_user(backend)
    req = services.promotions.request_promotion(user_id)
    backend.failures['requests.resolve'] = RuntimeError('resolve failed')
    with pytest.raises(RuntimeError):
        services.promotions.approve(req.id, admin_id)
    assert backend.role_of(user_id) == P.ROLE_USER
    assert services.stores.requests.get(req.id).status == P.REQUEST_PENDING


def test_pending_requests_requires_manage_users(backend, services):
    _, user_id = seed_admin_and_user(backend)
    with pytest.raises(Forbidden):
        services.promotions.pending_requests(user_id)


def test_pending_requests_newest_first(backend, services):
    admin_id, _ = seed_admin_and_user(backend)
    u1 = backend.add_identity('u1@example.com', role=P.ROLE_USER)
    u2 = backend.add_identity('u2@example.com', role=P.ROLE_USER)
    r1 = services.promotions.request_promotion(u1)
    r2 = services.promotions.request_promotion(u2)
    assert [r.id for r in services.promotions.pending_requests(admin_id)] == [r2.id, r1.id]


def test_non_admin_with_bad_decision_gets_forbidden(backend, services):
    _, user_id = seed_admin_and_user(backend)
    other = backend.add_identity('other@example.com', role=P.ROLE_USER)
    req = services.promotions.request_promotion(other)
    with pytest.raises(Forbidden):
        services.promotions.resolve(req.id, user_id, 'maybe')

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import event, select, func

from catalog_admin import get_db
from catalog_admin.constants import permissions as P
from catalog_admin.errors import DuplicateRequest, InvalidInput, StoreUnavailable
from catalog_admin.models.authz import BootstrapClaim, Profile, RoleGrant
from catalog_admin.payloads import PriceChange, UnknownPayload
from catalog_admin.services.bootstrap import bootstrap_if_first_user
from catalog_admin.stores.sql import SqlStores


def _identity(stores, email):
    with stores.transaction():
        return stores.identities.create_identity(email, '', 'hash')


def test_bootstrap_on_sql_makes_one_admin(sql_stores):
    a = _identity(sql_stores, 'a@example.com')
    b = _identity(sql_stores, 'b@example.com')
    assert bootstrap_if_first_user(sql_stores, a.id) is True
    assert bootstrap_if_first_user(sql_stores, b.id) is False
    assert bootstrap_if_first_user(sql_stores, a.id) is False
    session = get_db()
    roles = dict(session.execute(select(Profile.id, Profile.role)).all())
    assert roles == {a.id: P.ROLE_ADMIN, b.id: P.ROLE_USER}
    assert session.execute(select(func.count(RoleGrant.id))).scalar_one() == len(P.DEFAULT_GRANTS)
    assert session.execute(select(func.count(BootstrapClaim.id))).scalar_one() == 1


def test_claim_row_blocks_second_admin_when_count_raced(sql_stores, monkeypatch):
    a = _identity(sql_stores, 'a@example.com')
    b = _identity(sql_stores, 'b@example.com')
    assert bootstrap_if_first_user(sql_stores, a.id) is True
    # b read a zero count before a committed: the singleton claim row still refuses it
    monkeypatch.setattr(sql_stores.identities, 'count_profiles', lambda: 0)
    assert bootstrap_if_first_user(sql_stores, b.id) is False
    assert sql_stores.identities.get_profile(b.id).role == P.ROLE_USER
    assert sql_stores.identities.get_profile(a.id).role == P.ROLE_ADMIN


def test_duplicate_email_rejected(sql_stores):
    _identity(sql_stores, 'dup@example.com')
    with pytest.raises(InvalidInput):
        _identity(sql_stores, 'dup@example.com')


def test_set_role_only_if_unset(sql_stores):
    a = _identity(sql_stores, 'a@example.com')
    with sql_stores.transaction():
        assert sql_stores.identities.set_role(a.id, P.ROLE_USER, only_if_unset=True) is True
        assert sql_stores.identities.set_role(a.id, P.ROLE_ADMIN, only_if_unset=True) is False
    assert sql_stores.identities.get_profile(a.id).role == P.ROLE_USER


def test_overrides_roundtrip_json(sql_stores):
    a = _identity(sql_stores, 'a@example.com')
    with sql_stores.transaction():
        sql_stores.identities.set_override(a.id, P.ADD_PRODUCT, True)
        sql_stores.identities.set_override(a.id, P.EDIT_PRODUCT, False)
    assert sql_stores.identities.get_profile(a.id).overrides == {P.ADD_PRODUCT: True, P.EDIT_PRODUCT: False}
    with sql_stores.transaction():
        sql_stores.identities.set_override(a.id, P.ADD_PRODUCT, None)
    assert sql_stores.identities.get_profile(a.id).overrides == {P.EDIT_PRODUCT: False}


def test_upsert_grant_keeps_one_row(sql_stores):
    with sql_stores.transaction():
        sql_stores.grants.upsert_grant(P.ROLE_USER, P.ADD_PRODUCT, True)
        sql_stores.grants.upsert_grant(P.ROLE_USER, P.ADD_PRODUCT, False)
    grants = sql_stores.grants.get_grants()
    assert len(grants) == 1
    assert grants[0].allowed is False


def test_partial_unique_index_allows_one_pending(sql_stores):
    a = _identity(sql_stores, 'a@example.com')
    now = datetime.now(timezone.utc)
    with sql_stores.transaction():
        first = sql_stores.requests.insert_pending(a.id, now)
    with pytest.raises(DuplicateRequest):
        with sql_stores.transaction():
            sql_stores.requests.insert_pending(a.id, now)
    with sql_stores.transaction():
        assert sql_stores.requests.resolve(first.id, P.REQUEST_REJECTED, a.id, now) is True
        assert sql_stores.requests.resolve(first.id, P.REQUEST_APPROVED, a.id, now) is False
    # a resolved request no longer blocks a new one
    with sql_stores.transaction():
        second = sql_stores.requests.insert_pending(a.id, now + timedelta(seconds=1))
    assert sql_stores.requests.latest_for(a.id).id == second.id
    assert [r.id for r in sql_stores.requests.list_pending()] == [second.id]


def test_audit_append_get_recent_and_mark(sql_stores):
    now = datetime.now(timezone.utc)
    with sql_stores.transaction():
        e1 = sql_stores.audit.append(P.PRICE_CHANGE, 1, {'product_code': 'P1', 'new_price': 2.0}, True, now)
        e2 = sql_stores.audit.append('legacy_thing', 2, {'x': 1}, False, now)
    got = sql_stores.audit.get(e1.id)
    assert got.payload == PriceChange(product_code='P1', new_price=2.0)
    assert got.revertible is True and got.reverted is False
    assert isinstance(sql_stores.audit.get(e2.id).payload, UnknownPayload)
    assert [e.id for e in sql_stores.audit.recent(10)] == [e2.id, e1.id]
    assert [e.id for e in sql_stores.audit.recent(10, actor_id=1)] == [e1.id]
    assert [e.id for e in sql_stores.audit.recent(10, action_type='legacy_thing')] == [e2.id]
    with sql_stores.transaction():
        assert sql_stores.audit.mark_reverted(e1.id) is True
        assert sql_stores.audit.mark_reverted(e1.id) is False
    assert sql_stores.audit.get(e1.id).reverted is True


def test_catalog_latest_price_and_delete(sql_stores):
    t0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
    with sql_stores.transaction():
        sql_stores.catalog.add_product('P1', {'description': 'Bolt', 'unit': 'pc'})
        sql_stores.catalog.insert_price('P1', 1.0, t0)
        sql_stores.catalog.insert_price('P1', 2.0, t0 + timedelta(days=1))
    assert sql_stores.catalog.latest_price('P1') == 2.0
    with sql_stores.transaction():
        sql_stores.catalog.delete_latest_price('P1')
    assert sql_stores.catalog.latest_price('P1') == 1.0
    with sql_stores.transaction():
        sql_stores.catalog.update_product('P1', {'description': 'Nut'})
    assert sql_stores.catalog.get_product('P1')['description'] == 'Nut'
    with sql_stores.transaction():
        sql_stores.catalog.delete_product('P1')
    assert sql_stores.catalog.get_product('P1') is None
    assert sql_stores.catalog.latest_price('P1') is None


def test_rollback_discards_unit_of_work(sql_stores):
    with pytest.raises(RuntimeError):
        with sql_stores.transaction():
            sql_stores.grants.upsert_grant(P.ROLE_USER, P.ADD_PRODUCT, True)
            raise RuntimeError('boom')
    assert sql_stores.grants.get_grants() == []


def test_driver_error_surfaces_as_store_unavailable():
    from sqlalchemy.exc import OperationalError

    class BrokenSession:
        def execute(self, *a, **k):
            raise OperationalError('SELECT 1', {}, Exception('connection refused'))

        def rollback(self):
            pass

    stores = SqlStores(BrokenSession())
    with pytest.raises(StoreUnavailable) as info:
        stores.identities.get_profile(1)
    assert 'connection refused' not in info.value.description
    assert isinstance(info.value.__cause__, OperationalError)


def test_upsert_grant_is_a_single_conflict_safe_statement(sql_stores):
    engine = get_db().get_bind()
    statements = []

    def capture(conn, cursor, statement, params, context, executemany):
        statements.append(statement)

    event.listen(engine, 'before_cursor_execute', capture)
    try:
        with sql_stores.transaction():
            sql_stores.grants.upsert_grant(P.ROLE_USER, P.ADD_PRODUCT, True)
    finally:
        event.remove(engine, 'before_cursor_execute', capture)
    writes = [s for s in statements if 'role_permissions' in s]
    assert len(writes) == 1
    assert 'ON CONFLICT' in writes[0].upper()


def test_upsert_grant_over_row_committed_elsewhere(sql_stores):
    # another session inserted the pair after this one last looked
    session = get_db()
    session.add(RoleGrant(role=P.ROLE_USER, action=P.ADD_PRODUCT, allowed=True))
    session.commit()
    a = _identity(sql_stores, 'a@example.com')
    with sql_stores.transaction():
        sql_stores.grants.upsert_grant(P.ROLE_USER, P.ADD_PRODUCT, False)
        sql_stores.identities.set_role(a.id, P.ROLE_USER)
    assert sql_stores.grants.get_grant(P.ROLE_USER, P.ADD_PRODUCT).allowed is False
    assert len(sql_stores.grants.get_grants()) == 1
    assert sql_stores.identities.get_profile(a.id).role == P.ROLE_USER


def test_catalog_price_rows(sql_stores):
    t0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
    with sql_stores.transaction():
        sql_stores.catalog.add_product('P1', {})
        sql_stores.catalog.insert_price('P1', 1.0, t0)
        sql_stores.catalog.insert_price('P1', 2.0, t0 + timedelta(days=1))
    rows = sql_stores.catalog.list_prices('P1')
    assert [r['unitprice'] for r in rows] == [2.0, 1.0]
    first_id = rows[1]['id']
    assert sql_stores.catalog.get_price(first_id)['prodcode'] == 'P1'
    with sql_stores.transaction():
        assert sql_stores.catalog.update_price(first_id, 3.0, t0 + timedelta(days=2)) is True
    assert sql_stores.catalog.latest_price('P1') == 3.0
    with sql_stores.transaction():
        assert sql_stores.catalog.delete_price(first_id) is True
        assert sql_stores.catalog.delete_price(first_id) is False
    assert sql_stores.catalog.get_price(first_id) is None
    assert [r['unitprice'] for r in sql_stores.catalog.list_prices('P1')] == [2.0]


def test_notification_store(sql_stores):
    a = _identity(sql_stores, 'a@example.com')
    b = _identity(sql_stores, 'b@example.com')
    now = datetime.now(timezone.utc)
    with sql_stores.transaction():
        n1 = sql_stores.notifications.add(a.id, 'note', {'n': 1}, now)
        n2 = sql_stores.notifications.add(a.id, 'note', {'n': 2}, now + timedelta(seconds=1))
        sql_stores.notifications.add(b.id, 'note', {}, now)
    assert [n.id for n in sql_stores.notifications.list_for(a.id)] == [n2.id, n1.id]
    assert sql_stores.notifications.get(n1.id).content == {'n': 1}
    assert sql_stores.notifications.count_unread(a.id) == 2
    with sql_stores.transaction():
        assert sql_stores.notifications.mark_read(n1.id) is True
    assert sql_stores.notifications.count_unread(a.id) == 1
    with sql_stores.transaction():
        assert sql_stores.notifications.mark_all_read(a.id) == 1
    assert sql_stores.notifications.count_unread(a.id) == 0
    assert sql_stores.notifications.count_unread(b.id) == 1

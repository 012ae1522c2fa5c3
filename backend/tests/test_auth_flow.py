from catalog_admin.constants import permissions as P
from tests.test_utils_seed import register, login, auth_headers


def test_login_and_me(client):
    register(client, 't@example.com', name='T')

    resp = client.post('/iam/auth/login', json={'email': 't@example.com', 'password': 'pw'})
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['bootstrapped'] is True
    token = resp.get_json()['access_token']

    me = client.get('/iam/auth/me', headers=auth_headers(token))
    assert me.status_code == 200
    body = me.get_json()
    assert body['email'] == 't@example.com'
    assert body['name'] == 'T'
    assert body['role'] == P.ROLE_ADMIN
    assert all(body['permissions'][a] for a in P.ALL_ACTIONS)


def test_second_login_is_not_bootstrapped(client):
    register(client, 'a@example.com')
    register(client, 'b@example.com')
    login(client, 'a@example.com')
    resp = client.post('/iam/auth/login', json={'email': 'b@example.com', 'password': 'pw'})
    assert resp.get_json()['bootstrapped'] is False
    me = client.get('/iam/auth/me', headers=auth_headers(resp.get_json()['access_token'])).get_json()
    assert me['role'] == P.ROLE_USER
    assert not any(me['permissions'][a] for a in P.MUTATION_ACTIONS)
    # repeat login leaves the admin in place
    assert client.post('/iam/auth/login', json={'email': 'a@example.com', 'password': 'pw'}).get_json()['bootstrapped'] is False


def test_bad_credentials(client):
    register(client, 'x@example.com')
    resp = client.post('/iam/auth/login', json={'email': 'x@example.com', 'password': 'nope'})
    assert resp.status_code == 401
    resp = client.post('/iam/auth/login', json={'email': 'x@example.com'})
    assert resp.status_code == 400


def test_duplicate_registration(client):
    register(client, 'dup@example.com')
    resp = client.post('/iam/auth/register', json={'email': 'dup@example.com', 'password': 'pw'})
    assert resp.status_code == 400
    assert resp.get_json()['error']['tag'] == 'invalid_input'


def test_protected_endpoint_without_token(client):
    resp = client.get('/iam/auth/me')
    assert resp.status_code == 401

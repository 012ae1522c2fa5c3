import os, sys, pytest
# Ensure backend directory is on path so 'catalog_admin' and 'tests' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from catalog_admin import create_app, get_db, get_stores
from catalog_admin.models.authz import Base
# Import all model modules to ensure tables are registered before create_all
import catalog_admin.models.audit  # noqa: F401
import catalog_admin.models.product  # noqa: F401
import catalog_admin.models.notification  # noqa: F401
from catalog_admin.services.container import Services
from tests.fakes import FakeStores, MemoryBackend


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({'DATABASE_URL': 'sqlite+pysqlite:///:memory:', 'JWT_SECRET_KEY': 'test-secret-key-with-enough-bytes'})
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture()
def fresh_db(app_instance):
    """Empty tables: bootstrap behaviour depends on nobody holding a role yet."""
    session = get_db()
    session.rollback()
    session.close()
    engine = session.get_bind()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture()
def client(app_instance, fresh_db):
    return app_instance.test_client()


@pytest.fixture()
def sql_stores(fresh_db):
    return get_stores()


@pytest.fixture()
def backend():
    return MemoryBackend()


@pytest.fixture()
def stores(backend):
    return FakeStores(backend)


@pytest.fixture()
def services(stores):
    return Services(stores)

import pytest
from fastapi.testclient import TestClient

from factories import make_asset, make_user, open_test_database
from rwa_platform.main import create_app
from rwa_platform.middleware.rate_limit import limiter


@pytest.fixture
def database():
    database = open_test_database()
    yield database
    database.close()


@pytest.fixture
def db(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def alice(db):
    return make_user(db)


@pytest.fixture
def bob(db):
    return make_user(db, user_id="did:privy:bob", wallet="0xB0B")


@pytest.fixture
def asset(db):
    """Asset priced at 100 with no explicit issuance cap."""
    return make_asset(db)


@pytest.fixture
def client(database):
    limiter.enabled = False
    app = create_app(database)
    with TestClient(app) as c:
        yield c
    limiter.enabled = True

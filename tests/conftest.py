import pytest
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from oficina.config import settings
from oficina.database import Base, build_engine
from oficina.dependencies import get_db, create_access_token
from oficina.main import app
from oficina.models.topic import Topic
from oficina.models.user import User

test_engine = build_engine(settings.test_database_url)
TestSession = sessionmaker(bind=test_engine)


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db():
    connection = test_engine.connect()
    transaction = connection.begin()
    session = TestSession(bind=connection)
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def debug_mode(monkeypatch):
    monkeypatch.setattr(settings, "invitation_debug", True)


@pytest.fixture
def admin_user(db):
    user = User(email="admin@test.com", nombre="Admin", role="admin", password_hash="x")
    user.set_password("admin123")
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def staff_user(db):
    user = User(email="staff@test.com", nombre="Staff", role="user", password_hash="x")
    user.set_password("staff123")
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def admin_token(admin_user):
    return create_access_token(admin_user)


@pytest.fixture
def staff_token(staff_user):
    return create_access_token(staff_user)


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def staff_headers(staff_token):
    return {"Authorization": f"Bearer {staff_token}"}


@pytest.fixture
def topic(db):
    tema = Topic(nombre="Recursos Naturales", abreviatura="RNAR")
    db.add(tema)
    db.flush()
    return tema


@pytest.fixture
def new_account(db):
    """An account just created by self-registration, before its profile is set."""
    user = User(email="ana@b.com", password_hash="x")
    db.add(user)
    db.flush()
    return user

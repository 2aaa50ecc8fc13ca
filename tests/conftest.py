import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs512"
os.environ["ALLOWED_HOSTS"] = '["*"]'
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["SMTP_HOST"] = ""
os.environ["AZURE_TRANSLATOR_KEY"] = ""
os.environ["XML_FEED_URL"] = ""
os.environ["TRANSLATE_INITIAL_COOLDOWN_SECONDS"] = "0"
os.environ["TRANSLATE_BATCH_DELAY_SECONDS"] = "0"
os.environ["STREAM_PAUSE_SECONDS"] = "0"

import mongomock
import pytest
from fastapi.testclient import TestClient

from propertyhub.core.config import get_settings
from propertyhub.core.database import Base, SessionLocal, engine
from propertyhub.core.mongo import get_properties
from propertyhub.core.security import create_session_token
from propertyhub.main import app
from propertyhub.models.user import User, UserRole


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def collection():
    coll = mongomock.MongoClient()["propertyhub"]["Property"]
    coll.create_index("id", unique=True)
    return coll


@pytest.fixture
def client(collection):
    app.dependency_overrides[get_properties] = lambda: collection
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_user(db, email: str, role: UserRole, is_active: bool = True) -> User:
    user = User(email=email, name=email.split("@")[0].title(), role=role, is_active=is_active)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def sign_in(client: TestClient, user: User) -> TestClient:
    token = create_session_token(user.id, user.email, user.role.value)
    client.cookies.set(get_settings().SESSION_COOKIE_NAME, token)
    return client


@pytest.fixture
def admin_user(db):
    return make_user(db, "admin@example.com", UserRole.admin)


@pytest.fixture
def admin_client(client, admin_user):
    return sign_in(client, admin_user)


def listing(property_id: str, **fields) -> dict:
    record = {
        "id": property_id,
        "date": "2024-03-01",
        "ref": f"R{property_id}",
        "price": 150000,
        "currency": "EUR",
        "type": "Apartamento",
        "town": "Torrevieja",
        "province": "Alicante",
        "country": "España",
        "beds": 2,
        "baths": 1,
        "pool": 0,
        "new_build": 0,
        "images": [{"id": "1", "url": f"https://img.example.com/{property_id}/1.jpg", "cover": True}],
        "features": [{"name": "Terraza"}],
    }
    record.update(fields)
    return record

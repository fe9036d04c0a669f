import io
import os
import tempfile

# Settings are read at import time, so they must be in place before the app loads
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="rightartist-uploads-"))

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from PIL import Image
from sqlalchemy.orm import sessionmaker

from app.config import JWT_ALGORITHM, SECRET_KEY
from app.database import Base, build_engine, get_db
from app.dependencies import get_calendar_service, get_notifier, get_payment_gateway
from app.errors import UnprocessableEntityError
from app.main import app
from app.models import User
from app.services.calendar_service import CalendarService
from app.services.payment_service import ChargeResult

engine = build_engine("sqlite://")
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeNotifier:
    """Records pushes instead of writing to websockets"""

    def __init__(self):
        self.events = []
        self.fail = False

    async def push(self, user_id, event):
        if self.fail:
            raise RuntimeError("socket gone")
        self.events.append((user_id, event))
        return True

    def of_type(self, user_id, event_type):
        return [e for uid, e in self.events if uid == user_id and e["type"] == event_type]


class FakePaymentGateway:
    """Approves every card except the token 'declined'"""

    def __init__(self):
        self.charges = []

    def is_available(self):
        return True

    async def charge(self, card_token, amount_cents, reference):
        if card_token == "declined":
            raise UnprocessableEntityError("Card declined")
        self.charges.append((card_token, amount_cents, reference))
        return ChargeResult(transaction_ref=f"txn-{len(self.charges)}")


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def gateway():
    return FakePaymentGateway()


@pytest.fixture
def client(db, notifier, gateway):
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_calendar_service] = CalendarService
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_token(sub, role="fan", **claims):
    return jwt.encode({"sub": sub, "role": role, **claims}, SECRET_KEY, algorithm=JWT_ALGORITHM)


def auth(user):
    return {"Authorization": f"Bearer {make_token(user.id, user.role)}"}


@pytest.fixture
def make_user(db):
    def _make_user(role, username=None, **fields):
        username = username or f"{role}-{len(db.query(User).all()) + 1}"
        user = User(username=username, email=f"{username}@example.com", role=role, **fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def fan(make_user):
    return make_user("fan", username="fan")


@pytest.fixture
def shop(make_user):
    return make_user("shop", username="shop", is_paid=True)


@pytest.fixture
def designer(make_user):
    return make_user("designer", username="designer")


@pytest.fixture
def admin(make_user):
    return make_user("admin", username="admin", is_admin=True)


@pytest.fixture
def png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (64, 64), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


def create_post(client, user, feed_type, title="Koi sleeve"):
    response = client.post(
        "/posts",
        json={"title": title, "description": "Full color", "location": "Austin", "feedType": feed_type},
        headers=auth(user),
    )
    assert response.status_code == 201, response.text
    return response.json()


def pitch(client, user, post_id, content="I can do this", **extra):
    return client.post(f"/posts/{post_id}/comments", json={"content": content, **extra}, headers=auth(user))


def accept(client, user, post_id, comment_id):
    return client.post(f"/posts/{post_id}/accept-pitch", json={"commentId": comment_id}, headers=auth(user))

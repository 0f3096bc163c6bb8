import pytest
from httpx import AsyncClient, ASGITransport
from sqlmodel import Session, SQLModel

from rewards_ledger.db import get_session, make_engine
from rewards_ledger.main import app
from rewards_ledger.models import Reward, RewardCategory, User
from rewards_ledger.services import awarding
from rewards_ledger.services.categories import ensure_default_categories

DATABASE_URL = "sqlite://"
engine = make_engine(DATABASE_URL)


@pytest.fixture(name="session")
def session_fixture():
    SQLModel.metadata.create_all(engine)
    with Session(engine, expire_on_commit=False) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    def get_session_override():
        yield session

    app.dependency_overrides[get_session] = get_session_override
    client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="categories")
def categories_fixture(session: Session):
    return ensure_default_categories(session)


@pytest.fixture(name="make_user")
def make_user_fixture(session: Session):
    counter = {"n": 0}

    def _make_user(points: int = 0, role: str = "member", password: str = "password", **fields) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=fields.pop("email", f"user{n}@example.com"),
            first_name=fields.pop("first_name", f"User{n}"),
            last_name=fields.pop("last_name", "Test"),
            role=role,
            **fields,
        )
        user.set_password(password)
        session.add(user)
        session.commit()
        if points:
            awarding.award(session, user.id, "general", points, "Starting balance", commit=True)
        return user

    return _make_user


@pytest.fixture(name="make_reward")
def make_reward_fixture(session: Session):
    def _make_reward(price: int = 60, quantity: int = 5, **fields) -> Reward:
        reward = Reward(
            title=fields.pop("title", "Community T-Shirt"),
            description=fields.pop("description", "A comfy shirt"),
            price=price,
            quantity=quantity,
            category=fields.pop("category", RewardCategory.MERCHANDISE),
            **fields,
        )
        session.add(reward)
        session.commit()
        return reward

    return _make_reward


class RecordingNotifier:
    def __init__(self):
        self.calls = []

    def notify(self, user_id, event_type, payload):
        self.calls.append((user_id, event_type, payload))


class RecordingAuditLog:
    def __init__(self):
        self.events = []

    def record(self, event):
        self.events.append(event)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def audit_log():
    return RecordingAuditLog()

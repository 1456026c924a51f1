import sys
from datetime import datetime, timedelta
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT_DIR))

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import floneo.db.init_db  # registers every table on SQLModel.metadata
from floneo.core.config import settings
from floneo.core.websockets import get_broadcaster
from floneo.db.database import get_session
from floneo.db.engine import enable_sqlite_foreign_keys
from floneo.main import create_app
from floneo.models.app import App
from floneo.models.user import User


class RecordingBroadcaster:
    """Stands in for ConnectionManager and remembers every published event."""

    def __init__(self):
        self.events = []

    def publish(self, channel, event, payload):
        self.events.append({"channel": channel, "event": event, "data": payload})
        return True

    def publish_all(self, event, payload):
        self.events.append({"channel": None, "event": event, "data": payload})
        return True

    def named(self, event):
        return [e for e in self.events if e["event"] == event]


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    SQLModel.metadata.create_all(engine)
    yield engine


@pytest.fixture()
def session(engine):
    with Session(engine) as session:
        yield session
        session.rollback()
        for table in reversed(SQLModel.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()


@pytest.fixture()
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture()
def api(engine):
    """Application with the test database wired in (broadcaster left to each client fixture)."""
    app = create_app()

    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    return app


@pytest.fixture()
def client(api, broadcaster):
    api.dependency_overrides[get_broadcaster] = lambda: broadcaster
    return TestClient(api)


def make_user(session: Session, email: str) -> User:
    user = User(email=email, verified=True)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def make_app(session: Session, owner: User, name: str = "Shop") -> App:
    app = App(name=name, description=f"{name} app", owner_id=owner.id)
    session.add(app)
    session.commit()
    session.refresh(app)
    return app


def make_token(user_id, expires_in: timedelta = timedelta(hours=1), **claims) -> str:
    payload = {"exp": datetime.utcnow() + expires_in, **claims}
    if user_id is not None:
        payload["sub"] = str(user_id)
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture()
def user(session):
    return make_user(session, "owner@example.com")


@pytest.fixture()
def other_user(session):
    return make_user(session, "intruder@example.com")


@pytest.fixture()
def owned_app(session, user):
    return make_app(session, user)


@pytest.fixture()
def auth_headers(user):
    return {"Authorization": f"Bearer {make_token(user.id)}"}


@pytest.fixture()
def other_headers(other_user):
    return {"Authorization": f"Bearer {make_token(other_user.id)}"}

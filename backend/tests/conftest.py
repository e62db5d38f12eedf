import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["EVENTS_ENABLED"] = "false"
os.environ["NOTIFICATIONS_ENABLED"] = "false"

import uuid
from datetime import timedelta

import httpx
import pytest

from procureflow import models  # noqa: F401
from procureflow.api.deps import get_event_publisher, get_notification_dispatcher
from procureflow.core.auth_middleware import CurrentUser
from procureflow.core.capabilities import resolve_capabilities
from procureflow.core.events import DomainEvent, EventPublisher
from procureflow.core.notifications import Notification, NotificationDispatcher
from procureflow.core.security import create_access_token
from procureflow.db.base import Base, utcnow
from procureflow.db.session import build_engine, build_session_maker, get_db
from procureflow.main import app
from procureflow.services.request_ledger import RequestLedger


class RecordingPublisher(EventPublisher):
    """Keeps published events in memory instead of sending them to Redis."""

    def __init__(self):
        super().__init__(enabled=True)
        self.published: list[DomainEvent] = []

    async def publish(self, events: list[DomainEvent]) -> None:
        self.published.extend(events)


class RecordingDispatcher(NotificationDispatcher):
    """Keeps dispatched notifications in memory instead of enqueueing them."""

    def __init__(self):
        super().__init__(enabled=True)
        self.sent: list[Notification] = []

    def dispatch(self, kind, recipient_id, payload) -> None:
        self.sent.append(Notification(kind, recipient_id, payload))


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'procureflow.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


def _caps(role: str):
    return resolve_capabilities(CurrentUser(id=uuid.uuid4(), role=role))


@pytest.fixture
def owner():
    return _caps("owner")


@pytest.fixture
def staff():
    return _caps("staff")


@pytest.fixture
def vendor():
    return _caps("vendor")


@pytest.fixture
def other_vendor():
    return _caps("vendor")


@pytest.fixture
def request_items():
    return [
        {"name": "Cement", "quantity": 50, "unit": "kg", "category": "cement"},
        {"name": "Steel Rod", "quantity": 100, "unit": "pcs", "category": "steel"},
    ]


@pytest.fixture
def make_request(db, owner, request_items):
    """Create (and optionally approve) a committed material request."""

    async def _make(approve: bool = True, **overrides):
        fields = {
            "project_id": uuid.uuid4(),
            "title": "Tower B foundation",
            "items": request_items,
            "required_by": utcnow() + timedelta(days=14),
        }
        fields.update(overrides)
        request = (await RequestLedger.create_request(db, owner, **fields)).value
        await db.commit()
        if approve:
            request = (await RequestLedger.approve(db, request.id, owner)).value
            await db.commit()
        return request

    return _make


@pytest.fixture
def make_order(db, vendor, make_request):
    """Committed purchase order for ``vendor`` on a fresh approved request."""

    async def _make():
        request = await make_request()
        _, order, _ = (await RequestLedger.accept_request(db, request.id, vendor)).value
        await db.commit()
        return order

    return _make


# ── HTTP ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
async def client(session_maker, publisher, dispatcher):
    async def _get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_event_publisher] = lambda: publisher
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    def _headers(caps) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(caps.user_id, caps.role)}"}

    return _headers

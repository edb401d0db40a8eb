"""Pytest configuration and fixtures."""
import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.database import get_db
from app.events import build_event_registry
from app.exceptions import EnqueueError
from app.main import app
from app.models.base import Base
from app.models.integration import Integration
from app.models.organisation import Organisation
from app.models.webhook import WebhookSubscription
from app.plugins.registry import build_plugin_manager
from app.services.jwt_service import JWTService


class FakeJobQueue:
    """In-memory stand-in for JobQueue that records what would be enqueued."""

    def __init__(self):
        self.deliveries = []
        self.plugin_events = []
        self.fail_webhook_ids = set()
        self.fail_plugin_events = False

    async def enqueue_webhook_delivery(self, job):
        if job.webhook.id in self.fail_webhook_ids:
            raise EnqueueError(f"broker unavailable for {job.webhook.id}")
        self.deliveries.append(job)
        return f"delivery-{len(self.deliveries)}"

    async def enqueue_plugin_event(self, event, organisation_id, payload):
        if self.fail_plugin_events:
            raise EnqueueError("broker unavailable")
        self.plugin_events.append((event, organisation_id, payload))
        return f"plugin-{len(self.plugin_events)}"

    async def close(self):
        pass


@pytest.fixture
async def engine():
    """In-memory SQLite database shared by every session of a test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def organisation(db):
    org = Organisation(name="Acme Corp", domain="acme.com")
    db.add(org)
    await db.commit()
    return org


@pytest.fixture
async def other_organisation(db):
    org = Organisation(name="Beta Inc", domain="beta.com")
    db.add(org)
    await db.commit()
    return org


@pytest.fixture
def plugins():
    return build_plugin_manager()


@pytest.fixture
def events():
    return build_event_registry()


@pytest.fixture
def queue():
    return FakeJobQueue()


@pytest.fixture
def add_webhook(db):
    """Insert a subscription directly, bypassing service validation."""

    async def _add(organisation_id, events, url="https://example.com/hook", secret="whsec_test"):
        webhook = WebhookSubscription(organisation_id=organisation_id, url=url, secret=secret, events=events)
        db.add(webhook)
        await db.commit()
        return webhook

    return _add


@pytest.fixture
def add_integration(db):
    """Insert a plugin installation directly, bypassing config validation."""

    async def _add(organisation_id, provider, config, enabled=True):
        integration = Integration(organisation_id=organisation_id, provider=provider, config=config, enabled=enabled)
        db.add(integration)
        await db.commit()
        return integration

    return _add


@pytest.fixture
def mock_http():
    """Factory for httpx clients whose requests are answered by `handler(request)`."""

    def _client(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _client


@pytest.fixture
def auth_headers():
    """Factory for bearer headers signed with the app secret."""

    def _headers(org_id, role="admin", user_id="user-1", email="admin@acme.com"):
        token = JWTService().create_token(user_id, org_id, role, email)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
async def client(session_factory, plugins, events, queue):
    """API client wired to the test database and the fake queue."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.plugins = plugins
    app.state.events = events
    app.state.job_queue = queue

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()

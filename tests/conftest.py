import os
import tempfile

# Configure before any app module reads config
_db_dir = tempfile.mkdtemp(prefix="access-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_db_dir}/test.db"
os.environ["RECONCILE_ON_STARTUP"] = "0"
os.environ["JWT_SECRET"] = "test-secret"

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.core.database.engine import AsyncSessionLocal, reset_db  # noqa: E402
from app.features.access.engine import AccessControlEngine  # noqa: E402
from app.features.audit.sink import AuditEvent, AuditSink  # noqa: E402
from app.features.auth.tokens import issue_access_token  # noqa: E402
from app.main import app  # noqa: E402


class RecordingAuditSink(AuditSink):
    """Keeps emitted events in memory."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def write(self, event: AuditEvent) -> None:
        self.events.append(event)

    def types(self) -> list[str]:
        return [event.event_type for event in self.events]


@pytest.fixture(autouse=True)
async def reset_schema():
    await reset_db()
    yield


@pytest.fixture
async def db():
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def audit() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
async def access(db, audit) -> AccessControlEngine:
    """Engine with system roles seeded."""
    engine = AccessControlEngine(db, audit)
    await engine.roles.bootstrap_system_roles()
    return engine


@pytest.fixture
def make_user(access):
    async def _make_user(user_ref: str, role_names=(), group_ids=()):
        return await access.create_user(
            user_ref=user_ref,
            email=f"{user_ref}@respondnow.io",
            name=user_ref.title(),
            role_names=role_names,
            group_ids=group_ids,
        )

    return _make_user


@pytest.fixture
def token_for(access):
    """Issue an access token carrying the user's current access snapshot."""
    async def _token_for(user_ref: str) -> str:
        user = await access.users.get(user_ref)
        roles, permissions = await access.access_snapshot(user)
        token, _ = issue_access_token(user, roles, permissions)
        return token

    return _token_for


@pytest.fixture
def auth_headers(token_for):
    async def _auth_headers(user_ref: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {await token_for(user_ref)}"}

    return _auth_headers


@pytest.fixture
async def async_client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

"""
Test infrastructure for the DevNews API.

Strategy
--------
- SQLite via aiosqlite eliminates the need for a running Postgres instance.
  The database lives in a temporary file and the engine uses NullPool, so
  every session gets its own connection; the stats endpoint opens several
  sessions at once and needs them to be independent.
- ``get_db`` and ``get_session_factory`` are overridden so every request uses
  the test engine.  The mailer and the upload storage are replaced with a
  recording fake and a per-test temporary directory.
- All tables are created fresh (plus the ``user`` / ``admin`` roles) before
  each test and dropped after, giving each test a clean isolated state.
- Redis is disabled by setting ``cache._redis = None``; the CacheManager
  treats that as "every read is a miss".
- Environment overrides are applied before the application is imported so
  that ``settings`` picks them up (cheap bcrypt rounds, temp upload dir).
"""
import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="devnews-tests-")
TEST_DATABASE_URL = f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'test.db')}"

os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("UPLOAD_DIR", os.path.join(_TMP_DIR, "uploads"))
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("MAX_PAGE_SIZE", "150")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from devnews.auth import ADMIN_ROLE, USER_ROLE  # noqa: E402
from devnews.cache import cache  # noqa: E402
from devnews.database import Base, get_db, get_session_factory  # noqa: E402
from devnews.mailer import MailDeliveryError, get_mailer  # noqa: E402
from devnews.main import app  # noqa: E402
from devnews.middleware import install_query_counter  # noqa: E402
from devnews.models import Role, User, UserStatus  # noqa: E402
from devnews.security import create_access_token, hash_password  # noqa: E402
from devnews.storage import LocalFileStorage, get_storage  # noqa: E402

DEFAULT_PASSWORD = "secret123"

# ---------------------------------------------------------------------------
# Test database engine
# ---------------------------------------------------------------------------

engine_test = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db
app.dependency_overrides[get_session_factory] = lambda: async_session_test


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------

class RecordingMailer:
    """Stands in for the SMTP mailer; records messages or fails on demand."""

    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.fail = False

    async def send(self, to: str, subject: str, html: str) -> None:
        if self.fail:
            raise MailDeliveryError("SMTP unavailable")
        self.sent.append({"to": to, "subject": subject, "html": html})


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables and the reference roles before each test, drop after."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with async_session_test() as session:
        session.add_all([Role(name=USER_ROLE), Role(name=ADMIN_ROLE)])
        await session.commit()
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live session for seeding or asserting ORM state directly."""
    async with async_session_test() as session:
        yield session


@pytest.fixture
def mailer() -> RecordingMailer:
    fake = RecordingMailer()
    app.dependency_overrides[get_mailer] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_mailer, None)


@pytest.fixture
def upload_storage(tmp_path) -> LocalFileStorage:
    storage = LocalFileStorage(str(tmp_path / "uploads"))
    app.dependency_overrides[get_storage] = lambda: storage
    yield storage
    app.dependency_overrides.pop(get_storage, None)


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    cache._redis = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ---------------------------------------------------------------------------
# User helpers
# ---------------------------------------------------------------------------

async def create_user(
    email: str,
    name: str | None = None,
    password: str = DEFAULT_PASSWORD,
    role: str = USER_ROLE,
    status: UserStatus = UserStatus.ACTIVE,
) -> User:
    """Insert and commit a user directly, bypassing the API."""
    async with async_session_test() as session:
        role_row = (await session.execute(select(Role).where(Role.name == role))).scalar_one()
        user = User(
            email=email,
            name=name,
            password_hash=hash_password(password),
            status=status,
            role_id=role_row.id,
        )
        session.add(user)
        await session.commit()
        return user


async def fetch(model, pk):
    """Load a row in a fresh session so the result reflects committed state."""
    async with async_session_test() as session:
        return await session.get(model, pk)


def bearer(user_id: int) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest_asyncio.fixture
async def user() -> User:
    return await create_user("alice@example.com", "alice")


@pytest_asyncio.fixture
async def other_user() -> User:
    return await create_user("bob@example.com", "bob")


@pytest_asyncio.fixture
async def admin() -> User:
    return await create_user("admin@example.com", "admin", role=ADMIN_ROLE)

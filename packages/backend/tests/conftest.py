"""Test fixtures — in-memory fakes for the core, temp SQLite for storage.

Testing pattern:

1. Core tests (auth service, confirmation engine) run against FakeStore,
   an in-memory implementation of the same store interfaces SqlStorage
   implements. No database needed.
2. Storage tests get a fresh SQLite file per test (aiosqlite), so the
   real SQL — including the conditional UPDATE used for confirmation —
   is exercised.
3. API tests drive the FastAPI app through httpx's ASGITransport with
   get_auth_service overridden to a service built on the fakes.

bcrypt rounds are dropped to the minimum so hashing doesn't dominate
the run.
"""

import itertools
from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from warden.api.deps import get_auth_service, get_engine
from warden.config import Settings
from warden.db.engine import init_models, make_engine, make_session_factory
from warden.delivery.email import EmailSender
from warden.domain.models import App, ConfirmationCode, User
from warden.errors import (
    AppNotFoundError,
    CodeExistsError,
    CodeNotFoundError,
    DeliveryError,
    UserExistsError,
    UserNotFoundError,
)
from warden.main import create_app
from warden.services.auth import AuthService
from warden.services.confirmation import CodeGenerator, ConfirmationEngine
from warden.storage import (
    AppProvider,
    ConfirmationStore,
    SqlStorage,
    UserProvider,
    UserSaver,
)

APP_SECRET = "test-app-secret-0123456789abcdef0123456789"


# ─── Fakes ──────────────────────────────────────────────────


class FakeStore(UserSaver, UserProvider, AppProvider, ConfirmationStore):
    """Dict-backed store. No awaits inside check-and-set, so it is atomic
    on a single event loop just like the SQL UPDATE is in the database."""

    def __init__(self):
        self.users: dict[int, User] = {}
        self.apps: dict[int, App] = {}
        self.codes: dict[int, ConfirmationCode] = {}
        self._ids = itertools.count(1)

    def add_app(self, app_id: int, name: str, secret: str = APP_SECRET) -> App:
        app = App(id=app_id, name=name, secret=secret)
        self.apps[app_id] = app
        return app

    async def save_user(self, email, pass_hash, date_of_birth, full_name,
                        phone_number, telegram_name):
        if any(
            u.email == email or u.telegram_name == telegram_name
            for u in self.users.values()
        ):
            raise UserExistsError("fake.save_user: user already exists")
        user_id = next(self._ids)
        self.users[user_id] = User(
            id=user_id,
            email=email,
            pass_hash=pass_hash,
            date_of_birth=date_of_birth,
            full_name=full_name,
            phone_number=phone_number,
            telegram_name=telegram_name,
        )
        return user_id

    async def user(self, email):
        for u in self.users.values():
            if u.email == email:
                return u
        raise UserNotFoundError("fake.user: user not found")

    async def user_by_telegram(self, telegram_name):
        for u in self.users.values():
            if u.telegram_name == telegram_name:
                return u
        raise UserNotFoundError("fake.user_by_telegram: user not found")

    async def is_admin(self, user_id):
        if user_id not in self.users:
            raise UserNotFoundError("fake.is_admin: user not found")
        return self.users[user_id].is_admin

    async def app(self, app_id):
        if app_id not in self.apps:
            raise AppNotFoundError("fake.app: app not found")
        return self.apps[app_id]

    async def save_code(self, user_id, code):
        if user_id in self.codes:
            raise CodeExistsError("fake.save_code: code already exists")
        self.codes[user_id] = ConfirmationCode(user_id=user_id, code=code)
        return user_id

    async def confirmation(self, user_id):
        if user_id not in self.codes:
            raise CodeNotFoundError("fake.confirmation: not found")
        record = self.codes[user_id]
        return ConfirmationCode(record.user_id, record.code, record.confirmed)

    async def mark_confirmed(self, user_id, code):
        record = self.codes.get(user_id)
        if record is None or record.confirmed or record.code != code:
            return False
        record.confirmed = True
        return True

    async def confirm_user(self, user_id):
        record = self.codes.get(user_id)
        if record is None or record.confirmed:
            return False
        record.confirmed = True
        return True

    async def replace_code(self, user_id, code):
        record = self.codes.get(user_id)
        if record is None:
            self.codes[user_id] = ConfirmationCode(user_id=user_id, code=code)
            return True
        if record.confirmed:
            return False
        record.code = code
        return True


class RecordingEmailSender(EmailSender):
    """Keeps every message; raises DeliveryError while `fail` is set."""

    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []
        self.fail = False

    async def send(self, recipient, subject, body):
        if self.fail:
            raise DeliveryError("smtp: connection refused")
        self.sent.append((recipient, subject, body))

    def last_code(self) -> str:
        return self.sent[-1][2].rsplit(" ", 1)[-1]


class SequenceCodeGenerator(CodeGenerator):
    def __init__(self, codes):
        self._codes = iter(codes)

    def generate(self):
        return next(self._codes)


# ─── Fixtures ───────────────────────────────────────────────


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    monkeypatch.setattr("warden.auth.password.DEFAULT_ROUNDS", 4)


@pytest.fixture()
def store():
    s = FakeStore()
    s.add_app(1, "test-app")
    return s


@pytest.fixture()
def email_sender():
    return RecordingEmailSender()


@pytest.fixture()
def generator():
    return SequenceCodeGenerator(["12345", "23456", "34567", "45678", "56789"])


@pytest.fixture()
def confirmations(store, email_sender, generator):
    return ConfirmationEngine(
        codes=store,
        users=store,
        email_sender=email_sender,
        generator=generator,
    )


@pytest.fixture()
def delivery_reports():
    return []


@pytest.fixture()
def auth_service(store, confirmations, delivery_reports):
    async def listener(report):
        delivery_reports.append(report)

    return AuthService(
        user_saver=store,
        user_provider=store,
        app_provider=store,
        confirmations=confirmations,
        token_ttl=timedelta(minutes=60),
        delivery_listener=listener,
    )


@pytest_asyncio.fixture()
async def sql_engine(tmp_path):
    """Fresh SQLite file per test, tables created."""
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'warden-test.db'}")
    await init_models(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture()
def sql_storage(sql_engine):
    return SqlStorage(make_session_factory(sql_engine))


@pytest.fixture()
def api_app(auth_service, sql_engine):
    """FastAPI app with the service graph overridden for testing."""
    app = create_app(Settings(environment="local"))
    app.dependency_overrides[get_auth_service] = lambda: auth_service
    app.dependency_overrides[get_engine] = lambda: sql_engine
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(api_app):
    transport = ASGITransport(app=api_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

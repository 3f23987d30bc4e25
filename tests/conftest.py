import os

os.environ.setdefault("ACCOUNTS_DB_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ACCOUNTS_JWT_SECRET", "test-signing-secret-0123456789abcdef")

from datetime import datetime, timedelta
import re

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio.engine import create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, select, col
from sqlmodel.ext.asyncio.session import AsyncSession

from accounts import dbmodel
from accounts.authenticator import Authenticator
from accounts.config import settings
from accounts.errors import MailError, StorageError
from accounts.events import EventPublisher
from accounts.mailer import MailSender
from accounts.schema import UploadedFile
from accounts.service import AccountService
from accounts.storage import BlobStorage


class MemoryStorage(BlobStorage):
    def __init__(self):
        self.blobs = {}
        self.fail_on = None

    def upload(self, bucket, path, content, content_type):
        if self.fail_on is not None and path.startswith(self.fail_on):
            raise StorageError(f"bucket {bucket} refused {path}")
        self.blobs[(bucket, path)] = content
        return f"https://storage.test/{bucket}/{path}"

    def remove(self, bucket, path):
        self.blobs.pop((bucket, path), None)


class RecordingMailer(MailSender):
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to, subject, text, html=None):
        if self.fail:
            raise MailError("smtp is down")
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})


class RecordingPublisher(EventPublisher):
    def __init__(self):
        self.events = []

    async def publish(self, msg):
        self.events.append(msg)


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 1, 5, 9, 30)

    def __call__(self):
        return self.now

    def advance(self, delta: timedelta):
        self.now += delta


def token_from(text: str) -> str:
    return re.search(r"token=(\S+)", text).group(1)


def pdf(name: str = "id card.pdf") -> UploadedFile:
    return UploadedFile(filename=name, content=b"%PDF-1.4", content_type="application/pdf")


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def authenticator():
    return Authenticator(
        key=settings.jwt_secret, algorithm=settings.algorithm, expire=timedelta(hours=1)
    )


@pytest.fixture
def service(engine, storage, mailer, publisher, clock, authenticator):
    return AccountService(
        engine=engine,
        storage=storage,
        mailer=mailer,
        authenticator=authenticator,
        publisher=publisher,
        frontend_url="https://portal.test/",
        reset_window=timedelta(minutes=10),
        clock=clock,
    )


@pytest_asyncio.fixture
async def client(service):
    from app.main import create_api

    transport = httpx.ASGITransport(app=create_api(service))
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def find_account(engine):
    async def find(email):
        async with AsyncSession(engine, expire_on_commit=False) as session:
            return (
                await session.exec(
                    select(dbmodel.Account).where(col(dbmodel.Account.email) == email)
                )
            ).first()

    return find


@pytest_asyncio.fixture
async def staff(service, mailer, find_account):
    outcome = await service.register(
        fullname="Ana Santos",
        email="ana@example.com",
        contact_number="09171234567",
        role="staff",
    )
    assert outcome.ok
    mailer.sent.clear()
    return await find_account("ana@example.com")

import os

# Settings are read at import time; give them something before app modules load.
os.environ.setdefault("DATABASE_HOSTNAME", "localhost")
os.environ.setdefault("DATABASE_PASSWORD", "test")
os.environ.setdefault("DATABASE_NAME", "convoy_test")
os.environ.setdefault("DATABASE_USERNAME", "test")
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.core.dependencies import get_otp_service
from app.core.rate_limiter import limiter
from app.main import create_app
from app.services.email_service import EmailResult
from app.services.otp_service import OTPService
import app.models  # noqa: F401

# Disable rate limiting globally for tests
limiter.enabled = False

# One in-memory database shared by every connection in the process
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine, "connect")
def _sqlite_connect(dbapi_connection, connection_record):
    # Hand transaction control to SQLAlchemy so SAVEPOINT (begin_nested) works
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@event.listens_for(engine, "begin")
def _sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Outbox:
    """Stands in for SMTP delivery; keeps every code it was asked to send."""

    def __init__(self):
        self.sent = []
        self.fail_with = None

    async def __call__(self, email_to: str, code: str, expires_in_minutes: int) -> EmailResult:
        if self.fail_with:
            return EmailResult(sent=False, error=self.fail_with)
        self.sent.append((email_to, code))
        return EmailResult(sent=True)

    def last_code(self, email: str) -> str:
        return [code for to, code in self.sent if to == email][-1]


@pytest.fixture
def session():
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
def otp_service(session, outbox):
    return OTPService(session, bypass=False, sender=outbox)


@pytest.fixture
async def client(session, otp_service):
    # Fresh app per test so overrides never leak between tests
    new_app = create_app()

    def override_get_db():
        yield session

    new_app.dependency_overrides[get_db] = override_get_db
    new_app.dependency_overrides[get_otp_service] = lambda: otp_service

    async with AsyncClient(transport=ASGITransport(app=new_app), base_url="http://test") as c:
        yield c

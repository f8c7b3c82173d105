import os
from datetime import datetime, timezone
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite:///./telecare-test.db")

from telecare.cache import Cache  # noqa: E402
from telecare.database import Base, build_engine, get_db  # noqa: E402
from telecare.domain.ledger.ledger import CreditLedger  # noqa: E402
from telecare.domain.video.session_issuer import SessionIssuer  # noqa: E402
from telecare.main import app  # noqa: E402
from telecare.models import Account, Role, TransactionType, VerificationStatus  # noqa: E402

API_KEY = "12345678"
API_SECRET = "test-secret"


class StubSessionIssuer(SessionIssuer):
    """Signs with test credentials and returns canned session ids instead of calling out"""

    def __init__(self, session_id: Optional[str] = "1_MX4xMjM0NTY3OH4"):
        super().__init__(api_key=API_KEY, api_secret=API_SECRET)
        self.session_id = session_id
        self.calls = 0

    async def create_session(self) -> Optional[str]:
        self.calls += 1
        return self.session_id


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'telecare.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def issuer():
    return StubSessionIssuer()


@pytest.fixture
def client(db, issuer):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.state.session_issuer = issuer
    app.state.cache = Cache(client=None)
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.session_issuer = None
    app.state.cache = None


def headers_for(account: Account) -> dict:
    return {"X-Account-Subject": account.external_id}


def make_account(
    db,
    role: Role,
    credits: int = 0,
    verification: Optional[VerificationStatus] = None,
    name: str = "Test User",
) -> Account:
    """Create an account; starting credits go through the ledger so balances reconcile"""
    count = db.query(Account).count()
    account = Account(
        external_id=f"user_{count + 1}",
        email=f"user{count + 1}@example.com",
        name=name,
        role=role,
        verification_status=verification,
        credits=0,
    )
    if role == Role.DOCTOR and verification is None:
        account.verification_status = VerificationStatus.VERIFIED
    db.add(account)
    db.flush()
    if credits:
        CreditLedger(db).credit(account.id, credits, TransactionType.CREDIT_PURCHASE)
    db.commit()
    db.refresh(account)
    return account


@pytest.fixture
def patient(db):
    return make_account(db, Role.PATIENT, credits=10, name="Pat Owner")


@pytest.fixture
def doctor(db):
    return make_account(db, Role.DOCTOR, name="Dr. Vet")


@pytest.fixture
def admin(db):
    return make_account(db, Role.ADMIN, name="Admin")


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)

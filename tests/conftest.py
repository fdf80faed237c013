"""Pytest fixtures for testing"""

import pytest
from datetime import datetime
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from quota_gateway.api.main import create_app
from quota_gateway.api.dependencies import get_notification_client
from quota_gateway.domain.models import CODSettings, Notification
from quota_gateway.infrastructure.database.models import Base, BuyerProfile, Merchant, TransactionPackage
from quota_gateway.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False, "timeout": 30})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

NOW = datetime(2026, 1, 15, 9, 0, 0)


class RecordingDispatcher:
    """Collects notifications instead of sending them"""

    def __init__(self):
        self.sent: list[Notification] = []

    def send(self, notification: Notification) -> None:
        self.sent.append(notification)


class FakeNotificationClient:
    def __init__(self):
        self.payloads: list[dict] = []

    async def send_notification(self, payload: dict) -> bool:
        self.payloads.append(payload)
        return True


@pytest.fixture
def session_factory():
    """Independent sessions against the test database (for concurrency tests)"""
    Base.metadata.create_all(bind=engine)
    try:
        yield TestingSessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    """Create test database and session"""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def notification_client() -> FakeNotificationClient:
    return FakeNotificationClient()


@pytest.fixture
def client(db: Session, notification_client: FakeNotificationClient) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_client] = lambda: notification_client
    return TestClient(app)


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def cod_settings() -> CODSettings:
    return CODSettings()


@pytest.fixture
def make_merchant(db: Session):
    def _make(merchant_id: str = "merchant-1", **fields) -> Merchant:
        merchant = Merchant(id=merchant_id, user_id=fields.pop("user_id", f"user-{merchant_id}"),
                            name=fields.pop("name", "Warung Desa"), **fields)
        db.add(merchant)
        db.commit()
        return merchant

    return _make


@pytest.fixture
def make_package(db: Session):
    def _make(transaction_quota: int = 50, validity_days: int = 30, **fields) -> TransactionPackage:
        package = TransactionPackage(
            name=fields.pop("name", f"Paket {transaction_quota}"),
            price=fields.pop("price", 500),
            transaction_quota=transaction_quota,
            validity_days=validity_days,
            **fields,
        )
        db.add(package)
        db.commit()
        return package

    return _make


@pytest.fixture
def make_buyer(db: Session):
    def _make(buyer_id: str = "buyer-1", **fields) -> BuyerProfile:
        profile = BuyerProfile(buyer_id=buyer_id, **fields)
        db.add(profile)
        db.commit()
        return profile

    return _make

"""Pytest fixtures for testing"""

import pytest
from datetime import date
from decimal import Decimal
from typing import Callable, Generator
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from billing_ledger.api.dependencies import get_notification_client, get_today
from billing_ledger.api.main import create_app
from billing_ledger.infrastructure.clients.notifications import NotificationClient
from billing_ledger.infrastructure.database.models import Base
from billing_ledger.infrastructure.database.session import get_db
from billing_ledger.domain.models import BillingRecord, Financing, PaymentFrequency, PaymentStatus
from billing_ledger.domain.schedule import due_date_for_quota


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# A Tuesday; quota 1 of the sample contract falls due on it
REFERENCE_DATE = date(2024, 1, 2)
START_DATE = date(2023, 12, 26)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def notification_client() -> AsyncMock:
    """Webhook client that records events instead of posting them"""
    return AsyncMock(spec=NotificationClient)


@pytest.fixture
def client(db: Session, notification_client: AsyncMock) -> TestClient:
    """Create FastAPI test client with test database and a fixed reference date"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_today] = lambda: REFERENCE_DATE
    app.dependency_overrides[get_notification_client] = lambda: notification_client
    return TestClient(app)


@pytest.fixture
def weekly_financing() -> Financing:
    """4400.00 over 220 weekly quotas of 20.00, quota 1 due 2024-01-02"""
    return Financing(
        id=1,
        financing_number="FIN-00001",
        total_amount=Decimal("4400.00"),
        payment_frequency=PaymentFrequency.WEEKLY,
        total_quotas=220,
        quota_amount=Decimal("20.00"),
        start_date=START_DATE,
        next_due_date=date(2024, 1, 2),
        late_fee_percentage=Decimal("10"),
        current_balance=Decimal("4400.00"),
    )


@pytest.fixture
def pending_quota() -> Callable[[Financing, int], BillingRecord]:
    """Factory for a quota record as the billing-day run would create it"""

    def build(financing: Financing, quota_number: int) -> BillingRecord:
        return BillingRecord(
            id=quota_number,
            financing_id=financing.id,
            quota_number=quota_number,
            amount=financing.quota_amount_for(quota_number),
            due_date=due_date_for_quota(financing.start_date, financing.payment_frequency, quota_number),
            status=PaymentStatus.PENDIENTE,
            sequence=quota_number,
            is_generated=True,
        )

    return build

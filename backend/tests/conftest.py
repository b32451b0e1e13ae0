"""
Test configuration and fixtures for TowDesk backend tests.
"""

import os

# Keep the app's own engine off the working directory
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from typing import Generator, List, Optional, Tuple
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from main import app
from app.db.base import Base
from app.db.session import get_db
from app.core.errors import TransportFailure
from app.core.security import create_access_token
from app.services import rate_limiter
from app.services.blob_storage import LocalBlobStorage, get_blob_storage
from app.services.link_tokens import LinkTokenService
from app.services.location import Geocoder, get_geocoder
from app.services.messaging import PhoneNumberValidator, WhatsAppLinkBuilder, get_messaging_transport
from app.services.providers import StaticTowProviderDirectory, TowProvider, get_provider_directory


# Use in-memory SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_PROVIDERS = [
    {"name": "QuickTow Services", "notification_address": "+27698053809"},
    {"name": "Eugene Towing", "notification_address": "+27740881414"},
]


class FakeGeocoder(Geocoder):
    """Geocoder returning a canned address, or failing like a dead network."""

    def __init__(self, address: Optional[str] = "12 Main Road, Cape Town", fail: bool = False):
        self.address = address
        self.fail = fail
        self.calls: List[Tuple[float, float]] = []

    async def reverse_resolve(self, latitude: float, longitude: float) -> Optional[str]:
        self.calls.append((latitude, longitude))
        if self.fail:
            raise TransportFailure("geocoding", "Geocoding request failed")
        return self.address


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Fresh in-memory counters for every test."""
    rate_limiter._rate_limiter = rate_limiter.RateLimiter(rate_limiter.InMemoryCounterStore())
    yield
    rate_limiter._rate_limiter = None


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def geocoder() -> FakeGeocoder:
    return FakeGeocoder()


@pytest.fixture
def storage(tmp_path) -> LocalBlobStorage:
    return LocalBlobStorage(root=str(tmp_path / "uploads"))


@pytest.fixture
def directory() -> StaticTowProviderDirectory:
    return StaticTowProviderDirectory([TowProvider(**p) for p in TEST_PROVIDERS])


@pytest.fixture
def messaging() -> WhatsAppLinkBuilder:
    return WhatsAppLinkBuilder(base_url="https://wa.me", country_code="")


@pytest.fixture
def phone_validator() -> PhoneNumberValidator:
    return PhoneNumberValidator(enabled=True)


@pytest.fixture(scope="function")
def client(db: Session, geocoder, storage, directory, messaging) -> Generator[TestClient, None, None]:
    """Create a test client with database and collaborator overrides."""
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_geocoder] = lambda: geocoder
    app.dependency_overrides[get_blob_storage] = lambda: storage
    app.dependency_overrides[get_provider_directory] = lambda: directory
    app.dependency_overrides[get_messaging_transport] = lambda: messaging
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def operator_token() -> str:
    """Get an access token for a dispatch operator."""
    return create_access_token("operator-1", "operator")


@pytest.fixture
def admin_token() -> str:
    """Get an access token for an admin."""
    return create_access_token("admin-1", "admin")


@pytest.fixture
def customer_token() -> str:
    """Get an access token for a role that may not dispatch."""
    return create_access_token("customer-1", "customer")


@pytest.fixture
def operator_headers(operator_token: str) -> dict:
    """Get authorization headers for the dispatch operator."""
    return {"Authorization": f"Bearer {operator_token}"}


@pytest.fixture
def admin_headers(admin_token: str) -> dict:
    """Get authorization headers for the admin."""
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def customer_headers(customer_token: str) -> dict:
    """Get authorization headers for the non-operator role."""
    return {"Authorization": f"Bearer {customer_token}"}


@pytest.fixture
def link_service(db: Session, messaging, phone_validator) -> LinkTokenService:
    return LinkTokenService(db, messaging=messaging, phone_validator=phone_validator)


@pytest.fixture
def issued_link(link_service: LinkTokenService):
    """A valid link issued to a reporter."""
    return link_service.issue(
        name="Thandi Mokoena",
        phone="+27821234567",
        email="thandi@example.com",
        issued_by="operator-1",
    )


@pytest.fixture
def fake_geocoder():
    """Factory for geocoders with a chosen answer."""
    return FakeGeocoder


@pytest.fixture
def intake_service(db: Session, storage, link_service, phone_validator):
    from app.services.intake import AccidentIntakeService

    return AccidentIntakeService(db, storage=storage, links=link_service, phone_validator=phone_validator)


@pytest.fixture
def report_fields():
    """Fields of a typical submission with a GPS fix."""
    from app.services.intake import ReportFields

    return ReportFields(
        client_name="Thandi Mokoena",
        client_phone="+27821234567",
        vehicle_make="Toyota",
        vehicle_model="Corolla",
        description="Rear-ended at the traffic light",
        insurance_company="Santam",
        latitude=-33.9249,
        longitude=18.4241,
        address="12 Main Road, Cape Town",
    )


@pytest.fixture
def pending_report(intake_service, issued_link, report_fields):
    """A submitted report waiting for dispatch."""
    return intake_service.submit(issued_link.link.token, report_fields).report

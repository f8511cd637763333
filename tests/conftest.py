"""Pytest configuration and shared fixtures.

Every test gets a fresh in-memory SQLite database; API tests drive the app
through httpx's ASGI transport with the collaborators replaced by fakes.
"""

import os

# Point settings at throwaway resources BEFORE importing cuotas
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["SMTP_HOST"] = ""
os.environ["DIRECTORY_URL"] = ""

from datetime import datetime  # noqa: E402
from decimal import Decimal  # noqa: E402
from itertools import count  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from cuotas.api import dependencies  # noqa: E402
from cuotas.errors import UpstreamError  # noqa: E402
from cuotas.main import app  # noqa: E402
from cuotas.models import Base  # noqa: E402
from cuotas.models.monthly_due import DueState, MonthlyDue  # noqa: E402
from cuotas.services import get_async_session  # noqa: E402
from cuotas.services.directory_client import Resident  # noqa: E402
from cuotas.services.dues_service import period_dates  # noqa: E402
from cuotas.services.email_service import EmailService  # noqa: E402
from cuotas.services.payment_provider import CheckoutSession  # noqa: E402


class FakeCheckoutProvider:
    """Checkout provider recording every session it opens."""

    provider_name = "fake"

    def __init__(self, enabled: bool = True, fail: bool = False):
        self._enabled = enabled
        self.fail = fail
        self.calls: list[dict] = []
        self._ids = count(1)

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def create_session(self, **kwargs) -> CheckoutSession:
        self.calls.append(kwargs)
        if self.fail:
            raise UpstreamError("provider down", code="provider_error")
        session_id = f"cs_test_{next(self._ids)}"
        return CheckoutSession(
            id=session_id, url=f"https://checkout.test/{session_id}", provider=self.provider_name
        )


class FakeEmailService(EmailService):
    """EmailService that records messages instead of talking SMTP."""

    def __init__(self, fail: bool = False):
        super().__init__(host="smtp.test", port=25, from_email="billing@test", from_name="Test")
        self.fail = fail
        self.sent: list[dict] = []

    async def send(self, to_email, subject, body_text, body_html=""):
        if self.fail:
            raise UpstreamError("smtp down", code="email_error")
        self.sent.append({"to": to_email, "subject": subject, "text": body_text, "html": body_html})
        return True


class FakeDirectoryClient:
    def __init__(self, residents: list[Resident] | None = None, fail: bool = False):
        self.residents = residents or []
        self.fail = fail

    async def fetch_active_residents(self) -> list[Resident]:
        if self.fail:
            raise UpstreamError("directory down", code="directory_error")
        return list(self.residents)


@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def session(session_factory):
    """Provide a test database session with all tables created."""
    async with session_factory() as db:
        yield db


@pytest.fixture
def checkout_provider() -> FakeCheckoutProvider:
    return FakeCheckoutProvider()


@pytest.fixture
def failing_checkout_provider() -> FakeCheckoutProvider:
    return FakeCheckoutProvider(fail=True)


@pytest.fixture
def email_service() -> FakeEmailService:
    return FakeEmailService()


@pytest.fixture
def failing_email_service() -> FakeEmailService:
    return FakeEmailService(fail=True)


@pytest.fixture
def directory_client() -> FakeDirectoryClient:
    return FakeDirectoryClient(
        [
            Resident(id="R1", name="Ana Rojas", email="ana@example.com"),
            Resident(id="R2", name="Luis Vargas", email="luis@example.com"),
        ]
    )


@pytest.fixture
def invoice_dir(tmp_path):
    return tmp_path / "invoices"


@pytest.fixture
async def client(session_factory, checkout_provider, email_service, directory_client, invoice_dir):
    """Provide an httpx client bound to the app with the test database."""
    from cuotas.api.routes.invoices import get_invoice_service
    from cuotas.services.invoice_service import InvoiceService

    async def override_get_async_session():
        async with session_factory() as db:
            yield db

    async def override_get_invoice_service():
        async with session_factory() as db:
            yield InvoiceService(db, invoice_dir=invoice_dir)

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_invoice_service] = override_get_invoice_service
    app.dependency_overrides[dependencies.get_checkout_provider] = lambda: checkout_provider
    app.dependency_overrides[dependencies.get_email_service] = lambda: email_service
    app.dependency_overrides[dependencies.get_directory_client] = lambda: directory_client

    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http

    app.dependency_overrides.clear()


@pytest.fixture
def make_due(session):
    """Insert a due directly, bypassing the generator."""

    async def _make_due(
        resident_id: str = "R1",
        year: int = 2025,
        month: int = 3,
        base: str = "65.00",
        state: DueState = DueState.PENDING,
        **fields,
    ) -> MonthlyDue:
        due_date, grace_date = period_dates(year, month, 5)
        values = dict(
            resident_id=resident_id,
            resident_name=f"Resident {resident_id}",
            resident_email=f"{resident_id.lower()}@example.com",
            year=year,
            month=month,
            base_amount=Decimal(base),
            surcharge_amount=Decimal("0.00"),
            total_amount=Decimal(base),
            surcharge_percent=Decimal("10.00"),
            state=state,
            due_date=due_date,
            grace_date=grace_date,
            delinquency_days=0,
        )
        values.update(fields)
        due = MonthlyDue(**values)
        session.add(due)
        await session.commit()
        return due

    return _make_due


@pytest.fixture
def april_10() -> datetime:
    return datetime(2025, 4, 10, 6, 0, 0)

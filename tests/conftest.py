"""
Pytest configuration and shared fixtures.

Adds the project root to the Python path so tests can import domain,
repositories, services and api, and builds every service over the
in-memory stores in `fakes.py`.
"""

import sys
from decimal import Decimal
from pathlib import Path

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.consultant import Consultant, ConsultantStatus  # noqa: E402
from domain.order import CustomerInfo, LineItem  # noqa: E402
from fakes import (  # noqa: E402
    ANA_ID,
    FIXED_NOW,
    RUI_ID,
    FakeStripeGateway,
    RecordingNotificationSink,
    in_memory_stores,
    make_settings,
)
from services.order_intake import OrderIntakeService, OrderSubmission  # noqa: E402
from services.payment_webhook_service import PaymentWebhookService  # noqa: E402


@pytest.fixture
def ana() -> Consultant:
    return Consultant(
        id=ANA_ID,
        code="ANA01",
        status=ConsultantStatus.ACTIVE,
        commission_percentage=Decimal("15"),
        full_name="Ana Costa",
        email="ana@example.com",
        monthly_report_enabled=True,
    )


@pytest.fixture
def rui_suspended() -> Consultant:
    return Consultant(
        id=RUI_ID,
        code="RUI02",
        status=ConsultantStatus.SUSPENDED,
        commission_percentage=Decimal("10"),
        full_name="Rui Lopes",
        email="rui@example.com",
    )


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def stores(ana, rui_suspended):
    return in_memory_stores([ana, rui_suspended])


@pytest.fixture
def notifications() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture
def gateway(settings, ring) -> FakeStripeGateway:
    return FakeStripeGateway(settings, line_items=[ring])


@pytest.fixture
def intake(stores, settings, gateway, notifications) -> OrderIntakeService:
    return OrderIntakeService(
        stores,
        settings,
        gateway=gateway,
        notifications=notifications,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def customer() -> CustomerInfo:
    return CustomerInfo(
        first_name="Maria",
        last_name="Silva",
        email="maria@example.com",
        phone="912345678",
        address="Rua das Flores 10",
        city="Porto",
        postal_code="4000-001",
    )


@pytest.fixture
def ring() -> LineItem:
    return LineItem(name="Anel Prata", price=Decimal("45.00"), quantity=1, product_id="ring-01")


@pytest.fixture
def submission(customer, ring) -> OrderSubmission:
    return OrderSubmission(customer=customer, items=[ring], consultant_code="ana01")


@pytest.fixture
def webhook_service(intake, gateway) -> PaymentWebhookService:
    return PaymentWebhookService(intake, gateway)

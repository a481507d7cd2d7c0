"""
FastAPI dependency providers.

Routers never build repositories or gateways themselves; they receive them
here so tests can swap in fakes with `app.dependency_overrides`.
"""

import hmac
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException

from config.settings import Settings, get_settings
from domain.ports import CheckoutGateway, NotificationSink
from repositories.stores import Stores, supabase_stores
from services.notifications import LoggingNotificationSink
from services.order_intake import OrderIntakeService
from services.payment_gateway import StripeCheckoutGateway
from services.payment_webhook_service import PaymentWebhookService

logger = logging.getLogger(__name__)


def get_app_settings() -> Settings:
    return get_settings()


def get_stores() -> Stores:
    return supabase_stores()


def get_gateway(settings: Settings = Depends(get_app_settings)) -> CheckoutGateway:
    return StripeCheckoutGateway(settings)


def get_notification_sink() -> NotificationSink:
    return LoggingNotificationSink()


def get_intake_service(
    stores: Stores = Depends(get_stores),
    settings: Settings = Depends(get_app_settings),
    gateway: CheckoutGateway = Depends(get_gateway),
    notifications: NotificationSink = Depends(get_notification_sink),
) -> OrderIntakeService:
    return OrderIntakeService(stores, settings, gateway=gateway, notifications=notifications)


def get_webhook_service(
    intake: OrderIntakeService = Depends(get_intake_service),
    gateway: CheckoutGateway = Depends(get_gateway),
) -> PaymentWebhookService:
    return PaymentWebhookService(intake, gateway)


def _bearer_matches(authorization: Optional[str], secret: Optional[str]) -> bool:
    if not secret or not authorization:
        return False
    return hmac.compare_digest(authorization, f"Bearer {secret}")


def require_cron_secret(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Scheduled-job routes accept only `Authorization: Bearer <CRON_SECRET>`."""

    if not _bearer_matches(authorization, settings.cron_secret):
        logger.warning(
            "Rejected scheduled-job request with invalid credentials",
            extra={"security_event": "cron_auth_failed"},
        )
        raise HTTPException(status_code=401, detail="Unauthorized")


def require_admin_token(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Back-office routes accept only `Authorization: Bearer <ADMIN_API_TOKEN>`."""

    if not _bearer_matches(authorization, settings.admin_api_token):
        logger.warning(
            "Rejected back-office request with invalid credentials",
            extra={"security_event": "admin_auth_failed"},
        )
        raise HTTPException(status_code=401, detail="Unauthorized")

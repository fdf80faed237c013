"""Dependency injection for FastAPI endpoints"""

from fastapi import BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from quota_gateway.config import settings
from quota_gateway.domain.models import CODSettings
from quota_gateway.domain.pricing import QuotaTierPricer
from quota_gateway.infrastructure.clients.notifications import BackgroundNotificationDispatcher, NotificationClient
from quota_gateway.infrastructure.database.repositories import TierRepository
from quota_gateway.infrastructure.database.session import get_db
from quota_gateway.services.cod import CODRiskEngine
from quota_gateway.services.quota import QuotaConsumptionService
from quota_gateway.services.subscriptions import SubscriptionLedger


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_cod_settings() -> CODSettings:
    """COD configuration for this deployment"""
    return CODSettings.from_settings(settings)


def get_notification_client() -> NotificationClient:
    return NotificationClient()


def get_notification_dispatcher(
    background_tasks: BackgroundTasks,
    client: NotificationClient = Depends(get_notification_client),
) -> BackgroundNotificationDispatcher:
    return BackgroundNotificationDispatcher(background_tasks, client)


def get_tier_pricer(db: Session = Depends(get_db)) -> QuotaTierPricer:
    """Pricer over stored tiers, falling back to the default table"""
    tiers = TierRepository(db).list_tiers()
    return QuotaTierPricer(tiers or None)


def get_risk_engine(
    db: Session = Depends(get_db),
    cod_settings: CODSettings = Depends(get_cod_settings),
) -> CODRiskEngine:
    return CODRiskEngine(db, cod_settings)


def get_quota_service(
    db: Session = Depends(get_db),
    dispatcher: BackgroundNotificationDispatcher = Depends(get_notification_dispatcher),
) -> QuotaConsumptionService:
    return QuotaConsumptionService(db, dispatcher=dispatcher)


def get_subscription_ledger(db: Session = Depends(get_db)) -> SubscriptionLedger:
    return SubscriptionLedger(db)

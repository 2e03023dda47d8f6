"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from mess_ledger.adapters.fcm_push_client import HttpxFcmPushClient
from mess_ledger.adapters.supabase_meal_status_repository import (
    SupabaseMealStatusRepository,
)
from mess_ledger.adapters.supabase_mess_repository import SupabaseMessRepository
from mess_ledger.adapters.supabase_notification_repository import (
    SupabaseNotificationRepository,
    SupabaseTokenRepository,
)
from mess_ledger.adapters.supabase_transaction_repository import (
    SupabaseTransactionRepository,
)
from mess_ledger.config import Settings
from mess_ledger.services.balances import BalanceService
from mess_ledger.services.cache import InMemoryCache
from mess_ledger.services.ledger import TransactionLedgerService
from mess_ledger.services.meals import MealStatusService
from mess_ledger.services.messes import MessService
from mess_ledger.services.notifications import NotificationService
from mess_ledger.services.reports import ReportService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    mess_service: MessService
    meal_service: MealStatusService
    ledger_service: TransactionLedgerService
    balance_service: BalanceService
    report_service: ReportService
    notification_service: NotificationService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    mess_repository = SupabaseMessRepository(supabase_client)
    meal_repository = SupabaseMealStatusRepository(supabase_client)
    transaction_repository = SupabaseTransactionRepository(supabase_client)
    push_client = HttpxFcmPushClient.create(
        server_key=resolved_settings.fcm_server_key,
        base_url=resolved_settings.fcm_base_url,
    )

    balance_service = BalanceService(
        meal_repository=meal_repository,
        transaction_repository=transaction_repository,
        mess_repository=mess_repository,
    )
    report_service = ReportService(
        balance_service=balance_service,
        mess_repository=mess_repository,
        cache=InMemoryCache(),
        cache_ttl_seconds=resolved_settings.report_cache_ttl_seconds,
    )
    notification_service = NotificationService(
        repository=SupabaseNotificationRepository(supabase_client),
        token_repository=SupabaseTokenRepository(supabase_client),
        mess_repository=mess_repository,
        push_client=push_client,
        title=resolved_settings.push_title,
        default_link=resolved_settings.default_link,
    )
    listeners = [balance_service, report_service]
    mess_service = MessService(
        mess_repository,
        default_timezone=resolved_settings.default_timezone,
        listeners=listeners,
    )
    meal_service = MealStatusService(
        repository=meal_repository,
        mess_repository=mess_repository,
        listeners=listeners,
    )
    ledger_service = TransactionLedgerService(
        repository=transaction_repository,
        mess_repository=mess_repository,
        notifications=notification_service,
        listeners=listeners,
    )

    async def close_resources() -> None:
        await push_client.close()

    return AppContainer(
        settings=resolved_settings,
        mess_service=mess_service,
        meal_service=meal_service,
        ledger_service=ledger_service,
        balance_service=balance_service,
        report_service=report_service,
        notification_service=notification_service,
        close_resources=close_resources,
    )

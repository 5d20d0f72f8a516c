"""
Wiring of the gift card services.

create_app() builds one GiftCardServices per app and keeps it on
app.extensions['gift_cards']. Hosts swap collaborators (dispatcher, account
directory, order gateway) by passing them to init_services().
"""
from dataclasses import dataclass
from typing import Optional

from flask import current_app

from .activity_log import ActivityLog
from .admin_service import AdminService
from .association_service import AccountDirectory, AssociationService, SqlAccountDirectory
from .code_generator import CodeGenerator
from .csv_service import CSVTransferService
from .issuance_service import IssuanceService
from .ledger_store import LedgerStore
from .notification_service import NotificationDispatcher, build_dispatcher
from .redemption_service import OrderGateway, RedemptionEngine
from .scheduled_tasks import ScheduledTasksService
from .settings_service import GiftCardSettings, SettingsService

EXTENSION_KEY = 'gift_cards'


@dataclass
class GiftCardServices:
    settings: GiftCardSettings
    settings_service: SettingsService
    store: LedgerStore
    activity_log: ActivityLog
    code_generator: CodeGenerator
    accounts: AccountDirectory
    dispatcher: NotificationDispatcher
    redemption: RedemptionEngine
    association: AssociationService
    issuance: IssuanceService
    admin: AdminService
    csv: CSVTransferService
    scheduled: ScheduledTasksService


def build_services(
    config,
    settings: Optional[GiftCardSettings] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    accounts: Optional[AccountDirectory] = None,
    order_gateway: Optional[OrderGateway] = None,
) -> GiftCardServices:
    """Assemble the service graph from a config mapping and optional collaborators."""
    settings = settings or GiftCardSettings.from_config(config)
    store = LedgerStore()
    settings_service = SettingsService(settings, int(config.get('GIFT_CARD_OPTIONS_REFRESH_SECONDS', 60)))
    activity_log = ActivityLog(settings, settings_service)
    code_generator = CodeGenerator(
        exists=store.exists,
        length=settings.code_length,
        max_attempts=settings.code_max_attempts,
    )
    accounts = accounts or SqlAccountDirectory(config.get('GIFT_CARD_USERS_TABLE', 'users'))
    dispatcher = dispatcher or build_dispatcher(config, settings)

    issuance = IssuanceService(store, code_generator, activity_log, accounts, dispatcher, settings)

    return GiftCardServices(
        settings=settings,
        settings_service=settings_service,
        store=store,
        activity_log=activity_log,
        code_generator=code_generator,
        accounts=accounts,
        dispatcher=dispatcher,
        redemption=RedemptionEngine(store, activity_log, settings, order_gateway),
        association=AssociationService(store, activity_log, accounts),
        issuance=issuance,
        admin=AdminService(store, issuance, activity_log),
        csv=CSVTransferService(store, activity_log),
        scheduled=ScheduledTasksService(store, activity_log, dispatcher, settings),
    )


def init_services(app, **collaborators) -> GiftCardServices:
    """Build the services for ``app`` and register them as an extension."""
    services = build_services(app.config, **collaborators)
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services(app=None) -> GiftCardServices:
    """Services of the given (or current) app."""
    app = app or current_app
    return app.extensions[EXTENSION_KEY]

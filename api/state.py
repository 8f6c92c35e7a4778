"""Application state.

Everything a request needs is built once from AppConfig and owned by one
AppState stored on app.state. Routes read it through get_state().
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from accruals.onboarding import CampaignOnboarding
from accruals.reconciler import WebhookReconciler
from accruals.resolver import ReferenceResolver
from accruals.webhooks import WebhookHandler
from connectors.accounting_base import AccountingConnector, ConnectorConfig, create_connector
from connectors.xero import CONNECTOR_TYPE, XeroOAuthConfig, XeroOAuthProvider
from core.config import AppConfig, SettingsStore
from core.ledger import AccrualLedger
from core.observability.activity import ActivityFeed
from core.observability.logging import get_logger
from core.observability.metrics import MetricsCollector, get_metrics
from core.security import FileTokenStore, TokenEncryption

logger = get_logger(__name__)


@dataclass
class AppState:
    """Owned service state shared by all requests."""
    config: AppConfig
    settings: SettingsStore
    ledger: AccrualLedger
    activity: ActivityFeed
    metrics: MetricsCollector
    oauth: XeroOAuthProvider
    connector: AccountingConnector
    resolver: ReferenceResolver
    onboarding: CampaignOnboarding
    reconciler: WebhookReconciler
    webhooks: WebhookHandler

    @classmethod
    def build(
        cls,
        config: AppConfig,
        oauth: Optional[XeroOAuthProvider] = None,
        connector: Optional[AccountingConnector] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> "AppState":
        """Wire the service from configuration.

        oauth, connector and metrics may be supplied to replace the
        defaults (tests pass fakes here).
        """
        settings = SettingsStore(config.initial_settings())
        ledger = AccrualLedger()
        activity = ActivityFeed()
        metrics = metrics or get_metrics()

        if oauth is None:
            oauth = build_oauth_provider(config)

        if connector is None:
            connector = create_connector(
                ConnectorConfig(
                    connector_type=CONNECTOR_TYPE,
                    timeout_seconds=config.api_timeout_seconds,
                    max_retries=config.api_max_retries,
                ),
                auth_provider=oauth,
            )

        reconciler = WebhookReconciler(
            connector,
            ledger,
            settings,
            mode=config.reconcile_mode,
            activity=activity,
            metrics=metrics,
        )

        logger.info(f"Settings: {settings.current.describe()}; reconcile against {config.reconcile_mode.value}")

        return cls(
            config=config,
            settings=settings,
            ledger=ledger,
            activity=activity,
            metrics=metrics,
            oauth=oauth,
            connector=connector,
            resolver=ReferenceResolver(connector),
            onboarding=CampaignOnboarding(
                connector,
                oauth,
                ledger,
                settings,
                activity=activity,
                metrics=metrics,
            ),
            reconciler=reconciler,
            webhooks=WebhookHandler(
                reconciler,
                oauth,
                config.webhook_key,
                activity=activity,
                metrics=metrics,
            ),
        )


def build_oauth_provider(config: AppConfig) -> XeroOAuthProvider:
    token_encryption = None
    token_store = None
    if config.token_encryption_key:
        token_encryption = TokenEncryption(config.token_encryption_key)
        token_store = FileTokenStore(config.token_store_path)

    return XeroOAuthProvider(
        XeroOAuthConfig(
            client_id=config.xero_client_id,
            redirect_uri=config.xero_redirect_uri,
            client_secret=config.xero_client_secret or None,
            scopes=list(config.xero_scopes),
        ),
        token_encryption=token_encryption,
        token_store=token_store,
    )


def get_state(request: Request) -> AppState:
    """FastAPI dependency returning the application's state."""
    return request.app.state.accruals

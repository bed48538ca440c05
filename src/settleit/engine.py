"""Settlement engine wiring.

``SettlementEngine`` builds the services on one database, one lock registry
and one notifier so that concurrent callers serialize on the same entities.
"""

import time
from datetime import datetime
from typing import Callable, Optional

from settleit.config import EngineConfig, ProviderSettings, load_config
from settleit.database.base import Database
from settleit.database.factories import create_sqlite_database
from settleit.domain.analytics import AnalyticsService
from settleit.domain.clock import utcnow
from settleit.domain.locking import EntityLocks
from settleit.domain.notifications import LoggingNotifier, Notifier
from settleit.domain.payout import PayoutService
from settleit.domain.refund import RefundService
from settleit.domain.revenue_config import RevenueShareService
from settleit.domain.transaction import TransactionService
from settleit.providers.base import PaymentProvider, PayoutProvider
from settleit.providers.http import HTTPPaymentProvider, HTTPPayoutProvider
from settleit.providers.sandbox import SandboxPaymentProvider, SandboxPayoutProvider


def create_payment_provider(settings: ProviderSettings) -> PaymentProvider:
    """Build the payment adapter selected in the configuration."""
    if settings.payment_adapter == "http":
        return HTTPPaymentProvider(settings.base_url, settings.api_key, settings.timeout_seconds)
    return SandboxPaymentProvider()


def create_payout_provider(settings: ProviderSettings) -> PayoutProvider:
    """Build the payout adapter selected in the configuration."""
    if settings.payout_adapter == "http":
        return HTTPPayoutProvider(settings.base_url, settings.api_key, settings.timeout_seconds)
    return SandboxPayoutProvider()


class SettlementEngine:
    """All settlement services over one database."""

    def __init__(
        self,
        db: Database,
        config: EngineConfig,
        payment_provider: Optional[PaymentProvider] = None,
        payout_provider: Optional[PayoutProvider] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the engine.

        Args:
            db: Database instance
            config: Engine configuration
            payment_provider: Payment adapter; built from the configuration if None
            payout_provider: Payout adapter; built from the configuration if None
            notifier: Receiver of status change events; logs them if None
            clock: Source of the current time
            sleep: Sleep used between provider retries
        """
        self.db = db
        self.config = config
        self.payment_provider = payment_provider or create_payment_provider(config.providers)
        self.payout_provider = payout_provider or create_payout_provider(config.providers)
        self.notifier = notifier or LoggingNotifier()
        self.locks = EntityLocks()

        self.revenue = RevenueShareService(db, config.revenue_share)
        self.transactions = TransactionService(
            db,
            config,
            self.payment_provider,
            revenue=self.revenue,
            locks=self.locks,
            notifier=self.notifier,
            clock=clock,
            sleep=sleep,
        )
        self.refunds = RefundService(
            db,
            config,
            self.payment_provider,
            locks=self.locks,
            notifier=self.notifier,
            clock=clock,
            sleep=sleep,
        )
        self.payouts = PayoutService(
            db,
            config,
            self.payout_provider,
            locks=self.locks,
            notifier=self.notifier,
            clock=clock,
            sleep=sleep,
        )
        self.analytics = AnalyticsService(db)

    @classmethod
    def from_paths(cls, db_path: Optional[str] = None, config_path: Optional[str] = None, **kwargs) -> "SettlementEngine":
        """Build an engine from a SQLite path and a configuration file path.

        Either path may be None to use the environment or the defaults.
        """
        db = create_sqlite_database(db_path)
        db.connect()
        db.initialize_schema()
        return cls(db, load_config(config_path), **kwargs)

    def close(self) -> None:
        self.db.disconnect()

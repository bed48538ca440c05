"""Abstract database interface."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Optional

# Import entities directly to avoid circular import through domain/__init__.py
from settleit.domain.entities import (
    BalanceEntry,
    LedgerEntryType,
    Payout,
    PayoutAccount,
    PlatformRevenue,
    Refund,
    RevenueShareConfig,
    RevenueType,
    SellerBalance,
    Transaction,
    UserTypeRate,
)


class Database(ABC):
    """Abstract database interface for settleit.

    Each write commits on its own unless it runs inside ``unit_of_work()``,
    in which case everything inside the block commits or rolls back together.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @abstractmethod
    def unit_of_work(self) -> AbstractContextManager[None]:
        """Group writes into one atomic commit. Blocks may nest."""
        pass

    # Transaction operations
    @abstractmethod
    def create_transaction(self, fields: dict[str, Any]) -> int:
        """Create a transaction row from column values. Returns transaction ID."""
        pass

    @abstractmethod
    def update_transaction(self, reference: str, **changes: Any) -> None:
        """Update columns of a transaction."""
        pass

    @abstractmethod
    def get_transaction(self, reference: str, for_update: bool = False) -> Optional[Transaction]:
        """Get transaction by reference."""
        pass

    @abstractmethod
    def get_transaction_by_external_reference(self, external_reference: str) -> Optional[Transaction]:
        """Get transaction by provider reference."""
        pass

    @abstractmethod
    def list_transactions(
        self,
        transaction_type: Optional[str] = None,
        status: Optional[str] = None,
        payer_id: Optional[str] = None,
        payee_id: Optional[str] = None,
        currency: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        """List transactions, newest first."""
        pass

    @abstractmethod
    def list_expired_transactions(self, now: datetime) -> list[Transaction]:
        """Non-terminal payments whose expiry time has passed."""
        pass

    # Refund operations
    @abstractmethod
    def create_refund(self, fields: dict[str, Any]) -> int:
        """Create a refund row. Returns refund ID."""
        pass

    @abstractmethod
    def update_refund(self, refund_id: int, **changes: Any) -> None:
        """Update columns of a refund."""
        pass

    @abstractmethod
    def get_refund(self, refund_id: int) -> Optional[Refund]:
        """Get refund by ID."""
        pass

    @abstractmethod
    def list_refunds(
        self, transaction_id: Optional[int] = None, status: Optional[str] = None
    ) -> list[Refund]:
        """List refunds, oldest first."""
        pass

    @abstractmethod
    def sum_refunds(self, transaction_id: int, statuses: tuple[str, ...]) -> int:
        """Sum refund amounts against a transaction in the given statuses."""
        pass

    # Balance operations
    @abstractmethod
    def get_balance(self, seller_id: str, currency: str) -> Optional[SellerBalance]:
        """Get a seller's balance in one currency."""
        pass

    @abstractmethod
    def list_balances(self, seller_id: Optional[str] = None) -> list[SellerBalance]:
        """List balances, optionally for one seller."""
        pass

    @abstractmethod
    def adjust_balance(
        self,
        seller_id: str,
        currency: str,
        available_delta: int = 0,
        pending_delta: int = 0,
    ) -> SellerBalance:
        """Apply deltas to a seller balance, creating it when missing.

        Raises:
            ValueError: If either balance would become negative
        """
        pass

    # Ledger operations
    @abstractmethod
    def add_balance_entry(
        self,
        seller_id: str,
        currency: str,
        entry_type: LedgerEntryType,
        amount: int,
        dedupe_key: str,
        transaction_id: Optional[int] = None,
        refund_id: Optional[int] = None,
        payout_id: Optional[int] = None,
    ) -> Optional[int]:
        """Append a ledger entry. Returns None when ``dedupe_key`` was already recorded."""
        pass

    @abstractmethod
    def list_balance_entries(
        self, seller_id: str, currency: Optional[str] = None
    ) -> list[BalanceEntry]:
        """List ledger entries for a seller, oldest first."""
        pass

    @abstractmethod
    def get_settlement_entry(self, transaction_id: int) -> Optional[BalanceEntry]:
        """Get the settlement credit of a transaction."""
        pass

    @abstractmethod
    def list_open_credits(self, seller_id: str, currency: str) -> list[BalanceEntry]:
        """Settlement credits with a remaining amount, oldest first."""
        pass

    @abstractmethod
    def sweep_balance_entry(self, entry_id: int, delta: int) -> None:
        """Adjust how much of a settlement credit is committed to payouts."""
        pass

    @abstractmethod
    def reverse_balance_entry(self, entry_id: int, delta: int) -> None:
        """Consume part of a settlement credit for a refund reversal."""
        pass

    # Platform revenue operations
    @abstractmethod
    def add_platform_revenue(
        self,
        transaction_id: int,
        revenue_type: RevenueType,
        amount: int,
        currency: str,
        dedupe_key: str,
        refund_id: Optional[int] = None,
    ) -> Optional[int]:
        """Record platform revenue. Returns None when ``dedupe_key`` was already recorded."""
        pass

    @abstractmethod
    def list_platform_revenue(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        currency: Optional[str] = None,
    ) -> list[PlatformRevenue]:
        """List platform revenue rows, oldest first."""
        pass

    # Payout operations
    @abstractmethod
    def create_payout(self, fields: dict[str, Any], items: list[dict[str, Any]]) -> int:
        """Create a payout with its items. Returns payout ID."""
        pass

    @abstractmethod
    def update_payout(self, payout_id: int, **changes: Any) -> None:
        """Update columns of a payout."""
        pass

    @abstractmethod
    def get_payout(self, payout_id: int, for_update: bool = False) -> Optional[Payout]:
        """Get payout by ID."""
        pass

    @abstractmethod
    def list_payouts(
        self, seller_id: Optional[str] = None, status: Optional[str] = None
    ) -> list[Payout]:
        """List payouts, newest first."""
        pass

    @abstractmethod
    def list_due_payouts(self, now: datetime) -> list[Payout]:
        """Pending payouts scheduled at or before ``now``."""
        pass

    @abstractmethod
    def has_open_payout(self, seller_id: str, currency: str) -> bool:
        """Whether a pending or processing payout exists for the seller and currency."""
        pass

    # Payout account operations
    @abstractmethod
    def save_payout_account(self, account: PayoutAccount) -> None:
        """Create or replace a seller's payout account for a currency."""
        pass

    @abstractmethod
    def get_payout_account(self, seller_id: str, currency: str) -> Optional[PayoutAccount]:
        """Get a seller's payout account for a currency."""
        pass

    @abstractmethod
    def list_payout_accounts(self) -> list[PayoutAccount]:
        """List all payout accounts."""
        pass

    # Revenue share configuration operations
    @abstractmethod
    def create_revenue_config(
        self,
        name: str,
        version: int,
        platform_commission_percentage: Any,
        platform_commission_fixed: int = 0,
        minimum_commission: int = 0,
        user_type_rates: tuple[UserTypeRate, ...] = (),
        description: Optional[str] = None,
        is_default: bool = False,
    ) -> int:
        """Create a revenue share configuration. Returns configuration ID."""
        pass

    @abstractmethod
    def get_revenue_config(self, config_id: int) -> Optional[RevenueShareConfig]:
        """Get revenue share configuration by ID."""
        pass

    @abstractmethod
    def get_default_revenue_config(self) -> Optional[RevenueShareConfig]:
        """Get the active default configuration."""
        pass

    @abstractmethod
    def get_latest_revenue_config(self, name: str) -> Optional[RevenueShareConfig]:
        """Get the highest version of a named configuration."""
        pass

    @abstractmethod
    def list_revenue_configs(self, include_inactive: bool = False) -> list[RevenueShareConfig]:
        """List configurations ordered by name and version."""
        pass

    @abstractmethod
    def set_default_revenue_config(self, config_id: int) -> None:
        """Make one configuration the default and clear the flag on all others."""
        pass

    @abstractmethod
    def deactivate_revenue_config(self, config_id: int) -> None:
        """Mark a configuration inactive."""
        pass

"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, including the JSON columns that
hold charge lines and revenue split snapshots.
"""

from decimal import Decimal

from settleit.domain import entities as domain
from settleit.database.models import (
    BalanceEntry as ORMBalanceEntry,
    Payout as ORMPayout,
    PayoutAccount as ORMPayoutAccount,
    PayoutItem as ORMPayoutItem,
    PlatformRevenue as ORMPlatformRevenue,
    Refund as ORMRefund,
    RevenueShareConfig as ORMRevenueShareConfig,
    SellerBalance as ORMSellerBalance,
    Transaction as ORMTransaction,
)


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity."""
    return domain.Transaction(
        id=orm_transaction.id,
        reference=orm_transaction.reference,
        type=domain.TransactionType(orm_transaction.type),
        status=domain.TransactionStatus(orm_transaction.status),
        amount=orm_transaction.amount,
        currency=orm_transaction.currency,
        amount_in_base_currency=orm_transaction.amount_in_base_currency,
        payment_method=orm_transaction.payment_method,
        provider=orm_transaction.provider,
        category=domain.Category(orm_transaction.category) if orm_transaction.category else None,
        fees=domain.FeeBreakdown(
            provider_fee=orm_transaction.provider_fee,
            platform_fee=orm_transaction.platform_fee,
            processing_fee=orm_transaction.processing_fee,
        ),
        tax_amount=orm_transaction.tax_amount,
        total_amount=orm_transaction.total_amount,
        charges=domain.ItemizedCharges.from_dict(orm_transaction.charges),
        payer_id=orm_transaction.payer_id,
        payee_id=orm_transaction.payee_id,
        order_id=orm_transaction.order_id,
        revenue_split=domain.RevenueSplitSnapshot.from_dict(orm_transaction.revenue_split),
        description=orm_transaction.description,
        metadata=dict(orm_transaction.extra_metadata or {}),
        external_reference=orm_transaction.external_reference,
        provider_transaction_id=orm_transaction.provider_transaction_id,
        failure_reason=orm_transaction.failure_reason,
        notes=tuple(orm_transaction.notes or ()),
        initiated_at=orm_transaction.initiated_at,
        completed_at=orm_transaction.completed_at,
        failed_at=orm_transaction.failed_at,
        expires_at=orm_transaction.expires_at,
        settled_at=orm_transaction.settled_at,
        parent_reference=orm_transaction.parent_reference,
    )


def refund_to_domain(orm_refund: ORMRefund) -> domain.Refund:
    """Convert SQLAlchemy Refund model to domain Refund entity."""
    return domain.Refund(
        id=orm_refund.id,
        transaction_id=orm_refund.transaction_id,
        transaction_reference=orm_refund.transaction.reference,
        order_id=orm_refund.order_id,
        amount=orm_refund.amount,
        currency=orm_refund.currency,
        reason=orm_refund.reason,
        status=domain.RefundStatus(orm_refund.status),
        method=orm_refund.method,
        reference_number=orm_refund.reference_number,
        external_reference=orm_refund.external_reference,
        failure_reason=orm_refund.failure_reason,
        seller_reversal=orm_refund.seller_reversal,
        commission_reversal=orm_refund.commission_reversal,
        requested_at=orm_refund.requested_at,
        processed_at=orm_refund.processed_at,
        completed_at=orm_refund.completed_at,
    )


def balance_to_domain(orm_balance: ORMSellerBalance) -> domain.SellerBalance:
    """Convert SQLAlchemy SellerBalance model to domain SellerBalance entity."""
    return domain.SellerBalance(
        seller_id=orm_balance.seller_id,
        currency=orm_balance.currency,
        available_balance=orm_balance.available_balance,
        pending_balance=orm_balance.pending_balance,
        updated_at=orm_balance.updated_at,
    )


def balance_entry_to_domain(orm_entry: ORMBalanceEntry) -> domain.BalanceEntry:
    """Convert SQLAlchemy BalanceEntry model to domain BalanceEntry entity."""
    return domain.BalanceEntry(
        id=orm_entry.id,
        seller_id=orm_entry.seller_id,
        currency=orm_entry.currency,
        entry_type=domain.LedgerEntryType(orm_entry.entry_type),
        amount=orm_entry.amount,
        transaction_id=orm_entry.transaction_id,
        refund_id=orm_entry.refund_id,
        payout_id=orm_entry.payout_id,
        swept_amount=orm_entry.swept_amount,
        created_at=orm_entry.created_at,
        reversed_amount=orm_entry.reversed_amount,
    )


def platform_revenue_to_domain(orm_revenue: ORMPlatformRevenue) -> domain.PlatformRevenue:
    """Convert SQLAlchemy PlatformRevenue model to domain PlatformRevenue entity."""
    return domain.PlatformRevenue(
        id=orm_revenue.id,
        transaction_id=orm_revenue.transaction_id,
        refund_id=orm_revenue.refund_id,
        revenue_type=domain.RevenueType(orm_revenue.revenue_type),
        amount=orm_revenue.amount,
        currency=orm_revenue.currency,
        created_at=orm_revenue.created_at,
    )


def payout_item_to_domain(orm_item: ORMPayoutItem) -> domain.PayoutItem:
    """Convert SQLAlchemy PayoutItem model to domain PayoutItem entity."""
    return domain.PayoutItem(
        id=orm_item.id,
        payout_id=orm_item.payout_id,
        transaction_id=orm_item.transaction_id,
        balance_entry_id=orm_item.balance_entry_id,
        amount=orm_item.amount,
        fee=orm_item.fee,
        net_amount=orm_item.net_amount,
    )


def payout_to_domain(orm_payout: ORMPayout) -> domain.Payout:
    """Convert SQLAlchemy Payout model to domain Payout entity."""
    return domain.Payout(
        id=orm_payout.id,
        seller_id=orm_payout.seller_id,
        batch_id=orm_payout.batch_id,
        total_amount=orm_payout.total_amount,
        currency=orm_payout.currency,
        fees=orm_payout.fees,
        net_amount=orm_payout.net_amount,
        status=domain.PayoutStatus(orm_payout.status),
        method=orm_payout.method,
        account=dict(orm_payout.account or {}),
        reference_number=orm_payout.reference_number,
        scheduled_for=orm_payout.scheduled_for,
        processed_at=orm_payout.processed_at,
        settled_at=orm_payout.settled_at,
        failed_at=orm_payout.failed_at,
        cancelled_at=orm_payout.cancelled_at,
        external_reference=orm_payout.external_reference,
        failure_reason=orm_payout.failure_reason,
        retry_count=orm_payout.retry_count,
        max_retries=orm_payout.max_retries,
        notes=orm_payout.notes,
        created_at=orm_payout.created_at,
        items=tuple(payout_item_to_domain(item) for item in orm_payout.items),
    )


def payout_account_to_domain(orm_account: ORMPayoutAccount) -> domain.PayoutAccount:
    """Convert SQLAlchemy PayoutAccount model to domain PayoutAccount entity."""
    return domain.PayoutAccount(
        seller_id=orm_account.seller_id,
        currency=orm_account.currency,
        method=orm_account.method,
        details=dict(orm_account.details or {}),
    )


def revenue_config_to_domain(orm_config: ORMRevenueShareConfig) -> domain.RevenueShareConfig:
    """Convert SQLAlchemy RevenueShareConfig model to domain entity."""
    return domain.RevenueShareConfig(
        id=orm_config.id,
        name=orm_config.name,
        version=orm_config.version,
        platform_commission_percentage=Decimal(str(orm_config.platform_commission_percentage)),
        platform_commission_fixed=orm_config.platform_commission_fixed,
        minimum_commission=orm_config.minimum_commission,
        user_type_rates=tuple(
            domain.UserTypeRate.from_dict(rate) for rate in (orm_config.user_type_rates or [])
        ),
        is_default=orm_config.is_default,
        is_active=orm_config.is_active,
        created_at=orm_config.created_at,
        description=orm_config.description,
    )

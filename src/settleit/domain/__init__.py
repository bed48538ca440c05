"""Domain layer for settleit."""

__all__ = [
    "AnalyticsService",
    "PayoutService",
    "RefundService",
    "RevenueShareService",
    "TransactionService",
]

_SERVICES = {
    "AnalyticsService": "settleit.domain.analytics",
    "PayoutService": "settleit.domain.payout",
    "RefundService": "settleit.domain.refund",
    "RevenueShareService": "settleit.domain.revenue_config",
    "TransactionService": "settleit.domain.transaction",
}


def __getattr__(name):
    # Services import the config and database layers, which import
    # domain.entities; loading them lazily keeps that cycle open.
    if name in _SERVICES:
        import importlib

        return getattr(importlib.import_module(_SERVICES[name]), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

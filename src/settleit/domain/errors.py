"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as an entity in the wrong state."""


class ConfigurationError(ValidationError):
    """Engine configuration is malformed or ambiguous."""


class UnsupportedCurrency(ValidationError):
    """Currency code is not present in the rate table."""


class UnsupportedPaymentMethod(ValidationError):
    """No payment method configuration exists for the method and currency."""


class InvalidSplitConfiguration(ValidationError):
    """Revenue split would give the seller a negative payout."""


class RefundExceedsOriginal(ValidationError):
    """Refunds would exceed the original transaction amount."""


class InsufficientBalance(DomainError):
    """Seller balance cannot cover the requested payout."""


class InvalidTransactionState(ConflictError):
    """Entity is not in a state that allows the requested operation."""


class ProviderError(Exception):
    """Base class for errors raised by external provider adapters."""


class ProviderUnavailable(ProviderError):
    """Transient provider failure; the call may be retried."""


class ProviderRejected(ProviderError):
    """Provider refused the request; retrying will not help."""


class ProviderTimeout(ProviderError):
    """Provider did not answer in time; the outcome is unknown."""


def transaction_not_found(reference: str) -> str:
    """Return message for missing transaction."""
    return f"Transaction '{reference}' not found"


def refund_not_found(refund_id: int) -> str:
    """Return message for missing refund."""
    return f"Refund {refund_id} not found"


def payout_not_found(payout_id: int) -> str:
    """Return message for missing payout."""
    return f"Payout {payout_id} not found"


def revenue_config_not_found(config_id: int) -> str:
    """Return message for missing revenue share configuration."""
    return f"Revenue share configuration {config_id} not found"


def unsupported_currency(currency: str) -> str:
    """Return message for a currency missing from the rate table."""
    return f"Currency '{currency}' is not supported"


def unsupported_payment_method(method: str, currency: str) -> str:
    """Return message for a payment method unavailable in a currency."""
    return f"Payment method '{method}' is not available for currency '{currency}'"


def invalid_state(kind: str, identifier: object, status: str, action: str) -> str:
    """Return message for an operation attempted in the wrong state."""
    return f"Cannot {action} {kind} {identifier}: status is '{status}'"


def insufficient_balance(seller_id: str, currency: str, requested: int, available: int) -> str:
    """Return message when a payout exceeds the available balance."""
    return (
        f"Insufficient balance for seller '{seller_id}' in {currency}: "
        f"requested {requested}, available {available}"
    )


def refund_exceeds_original(reference: str, requested: int, remaining: int) -> str:
    """Return message when a refund would exceed the refundable remainder."""
    return (
        f"Refund of {requested} exceeds refundable amount {remaining} "
        f"for transaction '{reference}'"
    )

from __future__ import annotations

from typing import Any, Optional


class LedgerError(Exception):
    """Base class for commission ledger and payout errors."""


class ValidationError(LedgerError):
    """Malformed input, rejected before anything is written."""


class ConfigurationError(LedgerError):
    """Missing reference data (tier table, creator rate)."""


class InvalidTransitionError(LedgerError):
    def __init__(self, message: str, current_status: str | None = None, target_status: str | None = None) -> None:
        super().__init__(message)
        self.current_status = current_status
        self.target_status = target_status


class DuplicateEventError(LedgerError):
    """An order-completion event was already accrued."""

    def __init__(self, message: str, existing: Optional[Any] = None) -> None:
        super().__init__(message)
        self.existing = existing


class SettledCancellationConflict(LedgerError):
    """A cancellation arrived for a commission that was already paid out."""

    def __init__(self, message: str, commission: Optional[Any] = None) -> None:
        super().__init__(message)
        self.commission = commission


class ProviderError(LedgerError):
    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class ProviderTransientError(ProviderError):
    """Timeouts, rate limits, 5xx: safe to retry with backoff."""


class ProviderTimeoutError(ProviderTransientError):
    """The request timed out and the provider-side outcome is unknown."""


class ProviderPermanentError(ProviderError):
    """Invalid destination, compliance block: never retried automatically."""


def http_status_for(exc: LedgerError) -> int:
    """HTTP status code a view should answer with for ``exc``."""
    if isinstance(exc, (InvalidTransitionError, DuplicateEventError, SettledCancellationConflict)):
        return 409
    if isinstance(exc, ProviderError):
        return 502
    if isinstance(exc, ConfigurationError):
        return 500
    return 400

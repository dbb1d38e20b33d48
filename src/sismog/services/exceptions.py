from __future__ import annotations


class SismogError(Exception):
    """Base class for all back-office errors surfaced to the operator."""


class ValidationError(SismogError):
    """Input rejected before any write was issued."""


class InsufficientBalanceError(ValidationError):
    """Requested quantity exceeds the available stock, possession or lot balance."""


class DuplicateBillingError(ValidationError):
    """A billing record already exists for the contract and competency month."""


class NoActiveContractsError(ValidationError):
    """Billing generation found no active contracts."""


class NotFoundError(SismogError):
    """Referenced row does not exist in the store."""


class InvalidTransitionError(SismogError):
    """The record is not in a state that allows the requested operation."""


class AlreadyBilledError(SismogError):
    """A receivable already exists for the billing record (issue is a no-op)."""


class StoreError(SismogError):
    """The row store rejected or failed a request."""

    def __init__(
        self, message: str, status_code: int | None = None, response: dict | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response = response or {}


class CompensationError(SismogError):
    """A compensating write failed after a partial multi-step write.

    The store is left inconsistent and must be reconciled by hand.
    """

    def __init__(self, message: str, cause: Exception, compensation_error: Exception) -> None:
        super().__init__(message)
        self.cause = cause
        self.compensation_error = compensation_error

"""
Domain exceptions for Resellers Hub.

Every error raised by the service layer derives from ResellerError and
carries the HTTP status the JSON views answer with.
"""


class ResellerError(Exception):
    """Base class for all business-rule failures."""

    status_code = 400

    def __init__(self, message, http_status=None, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra
        if http_status is not None:
            self.status_code = http_status

    def as_dict(self):
        payload = {'error': self.message}
        payload.update(self.extra)
        return payload


class OrderError(ResellerError):
    """Invalid checkout input (product, recipients, amount)."""


class NotFound(ResellerError):
    status_code = 404


class PermissionDenied(ResellerError):
    status_code = 403


class InvalidTransition(ResellerError):
    """A transaction was asked to move along an edge the state machine forbids."""

    status_code = 409

    def __init__(self, reference, current, target):
        super().__init__(
            f"Transaction {reference} cannot move from {current} to {target}",
            current=current,
            target=target,
        )
        self.reference = reference
        self.current = current
        self.target = target


class InsufficientFunds(ResellerError):
    status_code = 402

    def __init__(self, balance, required, account='wallet'):
        super().__init__(
            f"Insufficient {account} balance",
            balance=f"{balance:.2f}",
            required=f"{required:.2f}",
        )
        self.balance = balance
        self.required = required


class PaystackError(ResellerError):
    """Paystack rejected a call or could not be reached."""

    status_code = 502


class ProviderError(ResellerError):
    """The data bundle provider is misconfigured or unreachable."""

    status_code = 502


class WithdrawalError(ResellerError):
    pass


class ApiKeyError(ResellerError):
    status_code = 401

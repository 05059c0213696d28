"""Entitlement-Engine exception hierarchy."""


class EntitlementError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str = "", code: str = "ENTITLEMENT_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class StoreUnavailableError(EntitlementError):
    """Raised when the local store cannot be reached. Never defaulted."""

    def __init__(self, message: str = "Local store unavailable"):
        super().__init__(message, code="STORE_UNAVAILABLE")


class ProviderUnavailableError(EntitlementError):
    """Raised when the remote billing provider fails an explicit user action."""

    def __init__(self, message: str = "Billing provider unavailable"):
        super().__init__(message, code="PROVIDER_UNAVAILABLE")


class ValidationFailedError(EntitlementError):
    """Raised before any mutation when input is invalid."""

    def __init__(self, message: str = "Invalid request"):
        super().__init__(message, code="VALIDATION_ERROR")


class CapacityExceededError(EntitlementError):
    """Raised when a seat or sales quota is exhausted.

    Carries the numbers so callers can render an upgrade prompt.
    """

    def __init__(
        self,
        used: int,
        limit: int,
        resource: str = "sellers",
        message: str = "",
    ):
        self.used = used
        self.limit = limit
        self.resource = resource
        super().__init__(
            message or f"{resource} limit reached ({used}/{limit})",
            code="CAPACITY_EXCEEDED",
        )


class ConflictError(EntitlementError):
    """Raised when a duplicate record is detected."""

    def __init__(self, message: str = "Duplicate record"):
        super().__init__(message, code="CONFLICT")


class NotProvisionedError(EntitlementError):
    """Raised when a mutation targets a subscription that does not exist yet."""

    def __init__(self, message: str = "Subscription not provisioned"):
        super().__init__(message, code="NOT_PROVISIONED")


class AccountNotFoundError(EntitlementError):
    """Raised when an account, request or seller cannot be found."""

    def __init__(self, message: str = "Account not found"):
        super().__init__(message, code="NOT_FOUND")

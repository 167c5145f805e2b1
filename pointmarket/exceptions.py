"""Typed errors raised by the ledger engine and its storage."""


class MarketError(Exception):
    """Base exception for market operations."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class AuthenticationError(MarketError):
    """Missing or invalid session, or wrong credentials."""

    kind = "authentication"
    status_code = 401


class AuthorizationError(MarketError):
    """Non-admin invoking an admin-only operation."""

    kind = "authorization"
    status_code = 403


class ValidationError(MarketError):
    """Malformed input."""

    kind = "validation"
    status_code = 400


class ConflictError(MarketError):
    """Request conflicts with current state."""

    kind = "conflict"
    status_code = 409


class InsufficientPointsError(ConflictError):
    """Balance is below the quoted price."""

    def __init__(self, message: str, balance: int, price: int):
        super().__init__(message)
        self.balance = balance
        self.price = price


class NotFoundError(MarketError):
    """Unknown event id."""

    kind = "not_found"
    status_code = 404


class StorageError(MarketError):
    """Table read or write failure."""

    kind = "storage"
    status_code = 500

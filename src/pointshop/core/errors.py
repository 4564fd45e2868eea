"""Error taxonomy shared by the redemption workflow and the HTTP layer."""

from __future__ import annotations

import enum


class AuthFailure(str, enum.Enum):
    """Why an identity could not be established."""

    INVALID_CODE = "invalid-code"
    INVALID_TOKEN = "invalid-token"
    MISSING_TOKEN = "missing-token"
    PROVIDER_UNAVAILABLE = "provider-unavailable"


class IneligibilityReason(str, enum.Enum):
    INSUFFICIENT_POINTS = "insufficient-points"


class PointshopError(Exception):
    """Base error carrying a user-facing detail and an HTTP status code."""

    status_code = 500
    public_message = "Internal error"

    def __init__(self, detail: str | None = None, status_code: int | None = None) -> None:
        super().__init__(detail or self.public_message)
        self.detail = detail or self.public_message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(PointshopError):
    """Raised when request fields are missing or malformed."""

    status_code = 400
    public_message = "Invalid request"


class NotFoundError(PointshopError):
    status_code = 404
    public_message = "Product not found"


class AuthError(PointshopError):
    """Raised when a credential or authorization code cannot be trusted."""

    status_code = 401
    public_message = "Unauthorized"

    def __init__(self, reason: AuthFailure, detail: str | None = None) -> None:
        super().__init__(detail)
        self.reason = reason


class IneligibleError(PointshopError):
    """Raised when the balance does not cover the product price.

    ``shortfall`` is the number of missing points when it is known; a debit
    lost to a concurrent redemption leaves it at 0.
    """

    status_code = 409
    public_message = "Not enough points"

    def __init__(
        self,
        reason: IneligibilityReason = IneligibilityReason.INSUFFICIENT_POINTS,
        detail: str | None = None,
        *,
        shortfall: int = 0,
    ) -> None:
        if detail is None and shortfall > 0:
            detail = f"{self.public_message} ({shortfall} more needed)"
        super().__init__(detail)
        self.reason = reason
        self.shortfall = shortfall


class TransactionError(PointshopError):
    """Raised when the ledger store fails to commit a redemption."""

    status_code = 500
    public_message = "Transaction could not be recorded"


class DependencyError(PointshopError):
    """Raised when the identity provider or review surface cannot be reached."""

    status_code = 502
    public_message = "Upstream service unavailable"


class ProviderUnavailableError(AuthError, DependencyError):
    """Identity exchange failed because the provider could not be reached."""

    status_code = 502

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(AuthFailure.PROVIDER_UNAVAILABLE, detail)

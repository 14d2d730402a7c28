"""Error taxonomy for the checkout core."""


class StorefrontError(Exception):
    """Base class for storefront errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(StorefrontError):
    """Malformed input: empty coupon code, negative totals, bad cart lines."""


class CouponRejected(StorefrontError):
    """A business rule made the coupon inapplicable; message is user-facing."""


class PersistenceFailure(StorefrontError):
    """The store was unavailable or refused the write. Safe to retry."""


class CouponRedemptionError(StorefrontError):
    """Usage could not be recorded for an already-committed order."""


class NotificationError(StorefrontError):
    """The owner notification could not be delivered."""


class ConflictError(StorefrontError):
    """A unique value (coupon code, order number) is already taken."""

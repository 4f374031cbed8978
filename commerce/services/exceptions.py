"""Errors raised by the commerce services and translated to HTTP responses by the views."""


class CommerceError(ValueError):
    """Base class for expected, user-facing failures."""
    status_code = 400

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.message = message
        self.errors = list(errors or [])

    def as_response_data(self):
        data = {'error': self.message}
        if self.errors:
            data['errors'] = self.errors
        return data


class SelectionValidationError(CommerceError):
    """Slot selections are incomplete or reference slots/products outside the bundle."""
    status_code = 422


class BundleUnavailableError(CommerceError):
    """Bundle is disabled, outside its sale window, sold out, or has out-of-stock products."""


class OutOfStockError(CommerceError):
    """Requested quantity exceeds the product's stock."""


class CouponError(CommerceError):
    """Coupon code is unknown or cannot be applied to this cart."""


class CartItemError(CommerceError):
    """Cart item operation is not allowed on this row."""

"""Checkout error kinds.

Field-level problems (empty cart, missing option, missing location) use
Protean's ``ValidationError``. The classes below are the outcomes a caller
has to tell apart: whether it may retry, must ask the user, or has already
reached the payment gateway.
"""


class CheckoutError(Exception):
    """Base class for errors surfaced by the cart and settlement engine."""

    code = "checkout_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class AdmissionDenied(CheckoutError):
    """Inventory pre-check refused the requested quantity. Advisory only."""

    code = "admission_denied"

    def __init__(self, message: str, product_id: str, current_stock: int | None = None):
        super().__init__(message)
        self.product_id = product_id
        self.current_stock = current_stock

    def to_dict(self) -> dict:
        return {**super().to_dict(), "product_id": self.product_id, "current_stock": self.current_stock}


class LocationConflict(CheckoutError):
    """Switching location needs an explicit decision from the user.

    Carries the ``RebindPlan`` that would be applied on confirmation.
    """

    code = "location_conflict"

    def __init__(self, message: str, plan):
        super().__init__(message)
        self.plan = plan

    def to_dict(self) -> dict:
        return {**super().to_dict(), "plan": self.plan.to_dict()}


class LocationDirectoryUnavailable(CheckoutError):
    code = "location_directory_unavailable"


class SecurityVerificationUnavailable(CheckoutError):
    """Guest checkout cannot even be attempted: bot mitigation failed or is down."""

    code = "security_verification_unavailable"


class GuestAuthorizationRejected(CheckoutError):
    """A guest authorization was presented but cannot be honoured."""

    code = "guest_authorization_rejected"


class GuestAuthorizationExpired(GuestAuthorizationRejected):
    code = "guest_authorization_expired"


class GuestAuthorizationReplayed(GuestAuthorizationRejected):
    code = "guest_authorization_replayed"


class PaymentDeclined(CheckoutError):
    """The gateway declined. Terminal for this submission; the cart is kept."""

    code = "payment_declined"

    def __init__(self, message: str, order_id: str | None = None):
        super().__init__(message)
        self.order_id = order_id

    def to_dict(self) -> dict:
        return {**super().to_dict(), "order_id": self.order_id}


class PaymentAmbiguous(CheckoutError):
    """The gateway outcome is unknown. Neither success nor failure may be assumed."""

    code = "payment_ambiguous"

    def __init__(self, order_id: str | None = None, message: str | None = None):
        super().__init__(
            message or "We could not confirm your payment. Please check your order history before retrying."
        )
        self.order_id = order_id

    def to_dict(self) -> dict:
        return {**super().to_dict(), "order_id": self.order_id}


class OrderAccessDenied(CheckoutError):
    code = "order_access_denied"

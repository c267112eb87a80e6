"""HTTP mapping for checkout errors.

Protean's ``register_exception_handlers`` covers ``ValidationError`` (400)
and ``ObjectNotFoundError`` (404). The handlers here translate the outcomes
of the cart and settlement engine, keeping each error's payload intact so a
client can tell a declined payment from an ambiguous one.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ordering.errors import (
    AdmissionDenied,
    CheckoutError,
    GuestAuthorizationRejected,
    LocationConflict,
    LocationDirectoryUnavailable,
    OrderAccessDenied,
    PaymentAmbiguous,
    PaymentDeclined,
    SecurityVerificationUnavailable,
)

STATUS_CODES = {
    AdmissionDenied: 409,
    LocationConflict: 409,
    GuestAuthorizationRejected: 403,
    OrderAccessDenied: 403,
    PaymentDeclined: 402,
    SecurityVerificationUnavailable: 503,
    LocationDirectoryUnavailable: 503,
    PaymentAmbiguous: 504,
}


def status_code_for(exc: CheckoutError) -> int:
    for error_class in type(exc).__mro__:
        if error_class in STATUS_CODES:
            return STATUS_CODES[error_class]
    return 400


async def checkout_error_handler(request: Request, exc: CheckoutError) -> JSONResponse:
    return JSONResponse(status_code=status_code_for(exc), content={"error": exc.to_dict()})


def register_checkout_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CheckoutError, checkout_error_handler)

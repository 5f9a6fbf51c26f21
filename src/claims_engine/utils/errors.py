"""
HTTP Exceptions
Maps adjudication errors to API responses
Source: https://fastapi.tiangolo.com/tutorial/handling-errors/
"""

from fastapi import HTTPException, status

from claims_engine.core import exceptions as domain


class NotFoundError(HTTPException):
    """Raised when resource not found"""

    def __init__(self, detail: str | dict = "Resource not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
        )


class ValidationError(HTTPException):
    """Raised when validation fails"""

    def __init__(self, detail: str | dict = "Validation error"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
        )


class ConflictError(HTTPException):
    """Raised when the claim's state does not allow the operation"""

    def __init__(self, detail: str | dict = "Resource conflict"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )


class PaymentBlockedError(HTTPException):
    """Raised when fraud risk blocks disbursement"""

    def __init__(self, detail: str | dict = "Payment blocked"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
        )


# Most specific classes first
_ERROR_MAP: list[tuple[type[domain.AdjudicationError], type[HTTPException]]] = [
    (domain.ValidationError, ValidationError),
    (domain.NotFoundError, NotFoundError),
    (domain.LimitExceededError, ValidationError),
    (domain.FraudBlockError, PaymentBlockedError),
    (domain.ConcurrencyConflictError, ConflictError),
    (domain.PreconditionError, ConflictError),
]


def to_http_error(error: domain.AdjudicationError) -> HTTPException:
    """
    Translate a domain error into its HTTP counterpart.

    The response detail keeps the failed guard so clients can show an
    actionable message.
    """
    for domain_cls, http_cls in _ERROR_MAP:
        if isinstance(error, domain_cls):
            return http_cls(detail=error.to_dict())
    return ConflictError(detail=error.to_dict())


class PaymentGatewayError(HTTPException):
    """Raised when the payment gateway could not disburse"""

    def __init__(self, detail: str | dict = "Payment gateway error"):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail,
        )

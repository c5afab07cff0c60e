from decimal import Decimal
from typing import Any, Optional


class AppError(Exception):
    """Base for errors that map onto an HTTP response.

    ``extra`` is merged into the JSON body next to ``detail`` and ``error``.
    """

    status_code = 400
    code = "error"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        body = {"detail": self.message, "error": self.code}
        for key, value in self.extra.items():
            body[key] = float(value) if isinstance(value, Decimal) else value
        return body


class ValidationError(AppError, ValueError):
    code = "validation_error"


class UnknownTierError(ValidationError):
    code = "unknown_tier"

    def __init__(self, tier: Any):
        super().__init__(f"Unknown tier: {tier!r}", field="tier")


class InvalidAccrualInputError(ValidationError):
    code = "invalid_accrual_input"


class InsufficientBalanceError(AppError):
    code = "insufficient_balance"

    def __init__(self, asset: str, required: Decimal, available: Decimal):
        super().__init__(
            f"Insufficient {asset} balance. Available: {available}, Required: {required}",
            asset=asset,
            required=required,
            available=available,
        )


class BelowMinimumError(AppError):
    code = "below_minimum"

    def __init__(self, tier: str, required: Decimal, provided: Decimal):
        super().__init__(
            f"{tier} tier requires at least {required}, got {provided}",
            tier=tier,
            required=required,
            provided=provided,
        )


class InvalidStateTransitionError(AppError):
    status_code = 409
    code = "invalid_state_transition"

    def __init__(self, entity: str, current: str, target: str, message: Optional[str] = None):
        super().__init__(
            message or f"Cannot move {entity} from '{current}' to '{target}'",
            current=current,
            target=target,
        )


class ConflictError(AppError):
    status_code = 409
    code = "conflict"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"

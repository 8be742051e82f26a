"""Typed, user-presentable errors raised by the voucher engine."""

from typing import Any, Optional
from uuid import UUID


class VoucherEngineError(Exception):
    """Base class for engine errors."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, "context": self.context}


class NotFoundError(VoucherEngineError):
    status_code = 404
    code = "RESOURCE_NOT_FOUND"


class VoucherNotFound(NotFoundError):
    def __init__(self, identifier: Any):
        super().__init__(f"Voucher not found: {identifier}", {"voucher": str(identifier)})


class NotClaimed(NotFoundError):
    """The user has no claim on the voucher they are trying to redeem."""

    code = "VOUCHER_NOT_CLAIMED"

    def __init__(self, voucher_id: Any, user_id: Any):
        super().__init__(
            "Voucher not claimed: user must claim voucher before redeeming",
            {"voucher_id": str(voucher_id), "user_id": str(user_id)},
        )


class InvalidStateTransition(VoucherEngineError):
    status_code = 409
    code = "INVALID_STATE_TRANSITION"

    def __init__(self, current: str, requested: str, allowed: list[str]):
        allowed_text = ", ".join(allowed) if allowed else "none"
        super().__init__(
            f"Invalid state transition from {current} to {requested} "
            f"(allowed from {current}: {allowed_text})",
            {"current_state": current, "requested_state": requested, "allowed_states": list(allowed)},
        )
        self.current = current
        self.requested = requested
        self.allowed = list(allowed)


class BusinessRuleViolation(VoucherEngineError):
    status_code = 422
    code = "BUSINESS_RULE_VIOLATION"


class VoucherNotYetValid(BusinessRuleViolation):
    code = "VOUCHER_NOT_YET_VALID"


class VoucherExpired(BusinessRuleViolation):
    code = "VOUCHER_EXPIRED"


class AlreadyClaimed(BusinessRuleViolation):
    code = "VOUCHER_ALREADY_CLAIMED"

    def __init__(self, voucher_id: Any, user_id: Any):
        super().__init__(
            "Voucher already claimed by this user",
            {"voucher_id": str(voucher_id), "user_id": str(user_id)},
        )


class AlreadyRedeemed(BusinessRuleViolation):
    code = "VOUCHER_ALREADY_REDEEMED"

    def __init__(self, voucher_id: Any, user_id: Any):
        super().__init__(
            "Voucher already redeemed",
            {"voucher_id": str(voucher_id), "user_id": str(user_id)},
        )


class MaxRedemptionsReached(BusinessRuleViolation):
    code = "MAX_REDEMPTIONS_REACHED"

    def __init__(self, voucher_id: Any, max_redemptions: Optional[int]):
        super().__init__(
            "Maximum redemptions reached for this voucher",
            {"voucher_id": str(voucher_id), "max_redemptions": max_redemptions},
        )


class UnauthorizedBusiness(BusinessRuleViolation):
    status_code = 403
    code = "UNAUTHORIZED_BUSINESS"

    def __init__(self, voucher_id: Any, business_id: Any):
        super().__init__(
            "Business does not own this voucher",
            {"voucher_id": str(voucher_id), "business_id": str(business_id)},
        )


class VoucherNotEditable(BusinessRuleViolation):
    code = "VOUCHER_NOT_EDITABLE"


class DuplicateCode(BusinessRuleViolation):
    code = "DUPLICATE_VOUCHER_CODE"


class ValidationError(VoucherEngineError):
    status_code = 400
    code = "VALIDATION_ERROR"


class StorageConflict(VoucherEngineError):
    """A uniqueness violation surfaced by the database."""

    status_code = 409
    code = "STORAGE_CONFLICT"

    def __init__(self, message: str, cause: Optional[Exception] = None, context: Optional[dict[str, Any]] = None):
        super().__init__(message, context)
        self.cause = cause


class Unavailable(VoucherEngineError):
    status_code = 503
    code = "SERVICE_UNAVAILABLE"


def parse_uuid(value: Any, field: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field} format", {"field": field, "value": str(value)}) from None

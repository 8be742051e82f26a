"""Tests for engine error types."""

from uuid import UUID

import pytest

from voucher_engine.errors import (
    AlreadyClaimed,
    BusinessRuleViolation,
    InvalidStateTransition,
    MaxRedemptionsReached,
    NotClaimed,
    NotFoundError,
    StorageConflict,
    UnauthorizedBusiness,
    ValidationError,
    VoucherEngineError,
    VoucherNotFound,
    parse_uuid,
)


class TestErrorMapping:
    """Each error carries a status, a code and its context."""

    @pytest.mark.parametrize(
        "error,status",
        [
            (VoucherNotFound("x"), 404),
            (NotClaimed("v", "u"), 404),
            (InvalidStateTransition("draft", "claimed", ["published"]), 409),
            (AlreadyClaimed("v", "u"), 422),
            (MaxRedemptionsReached("v", 3), 422),
            (UnauthorizedBusiness("v", "b"), 403),
            (ValidationError("bad"), 400),
            (StorageConflict("dup"), 409),
        ],
    )
    def test_status_codes(self, error, status):
        assert error.status_code == status
        assert isinstance(error, VoucherEngineError)

    def test_hierarchy(self):
        assert issubclass(NotClaimed, NotFoundError)
        assert issubclass(AlreadyClaimed, BusinessRuleViolation)

    def test_to_dict(self):
        err = MaxRedemptionsReached("v1", 3)

        assert err.to_dict() == {
            "detail": "Maximum redemptions reached for this voucher",
            "code": "MAX_REDEMPTIONS_REACHED",
            "context": {"voucher_id": "v1", "max_redemptions": 3},
        }

    def test_storage_conflict_keeps_cause(self):
        cause = RuntimeError("unique violation")

        assert StorageConflict("dup", cause=cause).cause is cause


class TestParseUuid:
    """Tests for parse_uuid."""

    def test_valid_string(self):
        value = "6f1c2b1e-2a4b-4c6d-8e9f-0a1b2c3d4e5f"

        assert parse_uuid(value, "voucher ID") == UUID(value)

    def test_uuid_passthrough(self):
        value = UUID("6f1c2b1e-2a4b-4c6d-8e9f-0a1b2c3d4e5f")

        assert parse_uuid(value, "voucher ID") is value

    def test_invalid(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_uuid("nope", "voucher ID")

        assert str(exc_info.value) == "Invalid voucher ID format"

"""Tests for voucher lifecycle rules."""

from datetime import timedelta
from types import SimpleNamespace
from uuid import uuid4

import pytest

from voucher_engine.errors import (
    InvalidStateTransition,
    MaxRedemptionsReached,
    VoucherExpired,
    VoucherNotYetValid,
)
from voucher_engine.models.enums import VoucherState
from voucher_engine.services.voucher_state import (
    ALLOWED_TRANSITIONS,
    can_be_claimed,
    ensure_claimable,
    ensure_publishable,
    ensure_redemption_capacity,
    has_redemption_capacity,
    validate_transition,
)

from conftest import NOW


def _voucher(**overrides):
    fields = dict(
        id=uuid4(),
        state="published",
        valid_from=NOW - timedelta(days=1),
        valid_until=NOW + timedelta(days=1),
        max_redemptions=None,
        current_redemptions=0,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


EXPECTED_TRANSITIONS = {
    "draft": {"published"},
    "published": {"claimed", "expired"},
    "claimed": {"redeemed", "expired"},
    "redeemed": {"expired"},
    "suspended": {"published", "expired"},
    "expired": set(),
}

ALL_PAIRS = [(a, b) for a in EXPECTED_TRANSITIONS for b in EXPECTED_TRANSITIONS if a != b]


class TestValidateTransition:
    """Tests for the transition table."""

    @pytest.mark.parametrize("current,requested", ALL_PAIRS)
    def test_every_pair_matches_lifecycle(self, current, requested):
        """A change is accepted exactly when the lifecycle allows it."""
        if requested in EXPECTED_TRANSITIONS[current]:
            validate_transition(current, requested)
        else:
            with pytest.raises(InvalidStateTransition):
                validate_transition(current, requested)

    def test_table_covers_every_state(self):
        assert {s.value for s in ALLOWED_TRANSITIONS} == set(EXPECTED_TRANSITIONS)
        assert {s.value for s in VoucherState} == set(EXPECTED_TRANSITIONS)

    @pytest.mark.parametrize("state", list(VoucherState))
    def test_same_state_is_a_no_op(self, state):
        """Staying in the same state is always accepted."""
        validate_transition(state, state)

    def test_expired_is_terminal(self):
        """Nothing leaves the expired state."""
        assert ALLOWED_TRANSITIONS[VoucherState.EXPIRED] == ()

    def test_suspended_can_be_resumed(self):
        """A suspended voucher can go back to published."""
        validate_transition("suspended", "published")

    def test_draft_cannot_be_claimed(self):
        """Error names both states and what draft allows."""
        with pytest.raises(InvalidStateTransition) as exc_info:
            validate_transition("draft", "claimed")

        err = exc_info.value
        assert err.current == "draft"
        assert err.requested == "claimed"
        assert err.allowed == ["published"]
        assert "draft" in str(err) and "claimed" in str(err)

    def test_accepts_plain_strings(self):
        """State values may be passed as stored strings."""
        validate_transition("published", "expired")


class TestEnsurePublishable:
    """Tests for publish-time window checks."""

    def test_future_start_is_not_yet_valid(self):
        """Publishing before valid_from is rejected."""
        voucher = _voucher(state="draft", valid_from=NOW + timedelta(days=1))

        with pytest.raises(VoucherNotYetValid) as exc_info:
            ensure_publishable(voucher, NOW)

        assert "not yet valid" in str(exc_info.value)

    def test_past_end_is_expired(self):
        """Publishing after valid_until is rejected."""
        voucher = _voucher(state="draft", valid_until=NOW - timedelta(seconds=1))

        with pytest.raises(VoucherExpired):
            ensure_publishable(voucher, NOW)

    def test_open_window_passes(self):
        """No bounds means always publishable."""
        ensure_publishable(_voucher(valid_from=None, valid_until=None), NOW)


class TestEnsureClaimable:
    """Tests for claim preconditions on the voucher."""

    def test_published_in_window(self):
        """A published voucher in its window can be claimed."""
        ensure_claimable(_voucher(), NOW)

    @pytest.mark.parametrize("state", ["draft", "expired", "suspended", "redeemed"])
    def test_non_published_rejected(self, state):
        """Only published vouchers can be claimed."""
        with pytest.raises(InvalidStateTransition):
            ensure_claimable(_voucher(state=state), NOW)

    def test_not_started(self):
        """Claiming before valid_from is rejected."""
        with pytest.raises(VoucherNotYetValid):
            ensure_claimable(_voucher(valid_from=NOW + timedelta(hours=1)), NOW)

    def test_ended(self):
        """Claiming after valid_until is rejected."""
        with pytest.raises(VoucherExpired):
            ensure_claimable(_voucher(valid_until=NOW - timedelta(hours=1)), NOW)


class TestRedemptionCapacity:
    """Tests for the redemption cap helpers."""

    def test_unlimited(self):
        """No cap means capacity is never exhausted."""
        assert has_redemption_capacity(_voucher(max_redemptions=None, current_redemptions=10_000))

    def test_below_cap(self):
        assert has_redemption_capacity(_voucher(max_redemptions=3, current_redemptions=2))

    def test_at_cap(self):
        """Reaching the cap raises MaxRedemptionsReached."""
        voucher = _voucher(max_redemptions=3, current_redemptions=3)

        assert not has_redemption_capacity(voucher)
        with pytest.raises(MaxRedemptionsReached):
            ensure_redemption_capacity(voucher)


class TestCanBeClaimed:
    """Tests for the advisory claimability flag."""

    def test_published_open_voucher(self):
        assert can_be_claimed(_voucher(), NOW)

    def test_draft(self):
        assert not can_be_claimed(_voucher(state="draft"), NOW)

    def test_ended(self):
        assert not can_be_claimed(_voucher(valid_until=NOW - timedelta(minutes=1)), NOW)

    def test_exhausted(self):
        assert not can_be_claimed(_voucher(max_redemptions=1, current_redemptions=1), NOW)

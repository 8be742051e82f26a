"""Voucher lifecycle rules.

Everything here is pure: functions inspect a voucher (or two states) and
either return or raise. Callers persist the new state themselves, inside the
same transaction as the action that causes it.
"""

from datetime import datetime

from voucher_engine.errors import (
    InvalidStateTransition,
    MaxRedemptionsReached,
    VoucherExpired,
    VoucherNotYetValid,
)
from voucher_engine.models.enums import VoucherState


ALLOWED_TRANSITIONS: dict[VoucherState, tuple[VoucherState, ...]] = {
    VoucherState.DRAFT: (VoucherState.PUBLISHED,),
    VoucherState.PUBLISHED: (VoucherState.CLAIMED, VoucherState.EXPIRED),
    VoucherState.CLAIMED: (VoucherState.REDEEMED, VoucherState.EXPIRED),
    VoucherState.REDEEMED: (VoucherState.EXPIRED,),
    VoucherState.SUSPENDED: (VoucherState.PUBLISHED, VoucherState.EXPIRED),
    VoucherState.EXPIRED: (),
}


def allowed_transitions(current) -> tuple[VoucherState, ...]:
    return ALLOWED_TRANSITIONS.get(VoucherState(current), ())


def validate_transition(current, requested) -> None:
    current = VoucherState(current)
    requested = VoucherState(requested)

    if current == requested:
        return

    allowed = allowed_transitions(current)
    if requested not in allowed:
        raise InvalidStateTransition(current.value, requested.value, [s.value for s in allowed])


def _ensure_started(voucher, now: datetime, message: str) -> None:
    if voucher.valid_from is not None and voucher.valid_from > now:
        raise VoucherNotYetValid(
            message,
            {"voucher_id": str(voucher.id), "valid_from": voucher.valid_from.isoformat()},
        )


def _ensure_not_ended(voucher, now: datetime, message: str) -> None:
    if voucher.valid_until is not None and voucher.valid_until < now:
        raise VoucherExpired(
            message,
            {"voucher_id": str(voucher.id), "valid_until": voucher.valid_until.isoformat()},
        )


def ensure_publishable(voucher, now: datetime) -> None:
    _ensure_started(voucher, now, "Cannot publish voucher before its valid from date: voucher is not yet valid")
    _ensure_not_ended(voucher, now, "Cannot publish expired voucher")


def ensure_claimable(voucher, now: datetime) -> None:
    # claiming never moves the voucher itself, only a published voucher can be taken
    if VoucherState(voucher.state) != VoucherState.PUBLISHED:
        raise InvalidStateTransition(
            voucher.state,
            VoucherState.CLAIMED.value,
            [s.value for s in allowed_transitions(voucher.state)],
        )
    _ensure_started(voucher, now, "Voucher is not yet valid")
    _ensure_not_ended(voucher, now, "Voucher has expired")


def has_redemption_capacity(voucher) -> bool:
    if voucher.max_redemptions is None:
        return True
    return (voucher.current_redemptions or 0) < voucher.max_redemptions


def ensure_redemption_capacity(voucher) -> None:
    if not has_redemption_capacity(voucher):
        raise MaxRedemptionsReached(voucher.id, voucher.max_redemptions)


def can_be_claimed(voucher, now: datetime) -> bool:
    return (
        VoucherState(voucher.state) == VoucherState.PUBLISHED
        and (voucher.valid_until is None or voucher.valid_until > now)
        and has_redemption_capacity(voucher)
    )

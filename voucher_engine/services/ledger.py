"""Claim/redemption ledger: one CustomerVoucher per (customer, voucher)."""

from datetime import datetime

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from voucher_engine.errors import StorageConflict
from voucher_engine.models.customer_voucher import CustomerVoucher
from voucher_engine.models.enums import CustomerVoucherStatus
from voucher_engine.models.voucher import Voucher


def find_customer_voucher(db: Session, customer_id, voucher_id) -> CustomerVoucher | None:
    return (
        db.query(CustomerVoucher)
        .filter(
            CustomerVoucher.customer_id == customer_id,
            CustomerVoucher.voucher_id == voucher_id,
        )
        .first()
    )


def count_customer_vouchers(db: Session, customer_id) -> int:
    return (
        db.query(func.count(CustomerVoucher.id))
        .filter(CustomerVoucher.customer_id == customer_id)
        .scalar()
    ) or 0


def list_customer_vouchers(db: Session, customer_id, status: str | None = None, limit: int = 100, offset: int = 0):
    q = (
        db.query(CustomerVoucher)
        .join(Voucher, Voucher.id == CustomerVoucher.voucher_id)
        .filter(CustomerVoucher.customer_id == customer_id)
        .filter(Voucher.deleted_at.is_(None))
    )
    if status and status != "all":
        q = q.filter(CustomerVoucher.status == status)

    return (
        q.order_by(CustomerVoucher.claimed_at.desc())
        .offset(max(0, offset))
        .limit(max(1, min(limit, 500)))
        .all()
    )


def insert_claim(db: Session, *, customer_id, voucher_id, claimed_at: datetime, expires_at: datetime) -> CustomerVoucher:
    """Insert a claimed entry. A duplicate (customer, voucher) surfaces as StorageConflict."""
    customer_voucher = CustomerVoucher(
        customer_id=customer_id,
        voucher_id=voucher_id,
        status=CustomerVoucherStatus.CLAIMED.value,
        claimed_at=claimed_at,
        expires_at=expires_at,
    )
    db.add(customer_voucher)
    try:
        db.flush()
    except IntegrityError as exc:
        raise StorageConflict(
            "Customer voucher already exists",
            cause=exc,
            context={"customer_id": str(customer_id), "voucher_id": str(voucher_id)},
        ) from exc
    return customer_voucher


def mark_redeemed(db: Session, *, customer_id, voucher_id, redeemed_at: datetime) -> bool:
    """Flip a claimed entry to redeemed. Returns False when no claimed row was left to flip."""
    result = db.execute(
        update(CustomerVoucher)
        .where(
            CustomerVoucher.customer_id == customer_id,
            CustomerVoucher.voucher_id == voucher_id,
            CustomerVoucher.status == CustomerVoucherStatus.CLAIMED.value,
        )
        .values(status=CustomerVoucherStatus.REDEEMED.value, redeemed_at=redeemed_at)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def increment_redemptions_within_cap(db: Session, voucher_id) -> bool:
    """Single conditional UPDATE: count + 1 only while below the cap.

    Returns False when the cap was already reached, so callers never need a
    separate read of the counter.
    """
    result = db.execute(
        update(Voucher)
        .where(
            Voucher.id == voucher_id,
            (Voucher.max_redemptions.is_(None))
            | (Voucher.current_redemptions < Voucher.max_redemptions),
        )
        .values(current_redemptions=Voucher.current_redemptions + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1

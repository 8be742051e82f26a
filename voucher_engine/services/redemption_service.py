import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from voucher_engine.db import transactional, utcnow
from voucher_engine.errors import (
    AlreadyRedeemed,
    MaxRedemptionsReached,
    NotClaimed,
    UnauthorizedBusiness,
    parse_uuid,
)
from voucher_engine.models.customer_voucher import CustomerVoucher
from voucher_engine.models.enums import CustomerVoucherStatus
from voucher_engine.models.voucher import Voucher
from voucher_engine.services import ledger, voucher_store
from voucher_engine.services.cache import CacheBackend, invalidate_voucher_caches
from voucher_engine.services.voucher_state import ensure_redemption_capacity


logger = logging.getLogger(__name__)


@dataclass
class RedemptionResult:
    voucher_id: object
    voucher: Voucher
    customer_voucher: CustomerVoucher
    redeemed_at: datetime
    discount_applied: Decimal
    message: str = "Voucher redeemed successfully"


def _discount_applied(voucher: Voucher) -> Decimal:
    return Decimal(voucher.discount or voucher.value or 0)


def redeem_voucher(
    db: Session,
    voucher_id,
    user_id,
    *,
    business_id=None,
    cache: CacheBackend | None = None,
    now: datetime | None = None,
) -> RedemptionResult:
    if now is None:
        now = utcnow()

    user_id = parse_uuid(user_id, "user ID")
    voucher = voucher_store.get_voucher(db, voucher_id)

    if business_id is not None and voucher.business_id != parse_uuid(business_id, "business ID"):
        raise UnauthorizedBusiness(voucher.id, business_id)

    customer_voucher = ledger.find_customer_voucher(db, user_id, voucher.id)
    if not customer_voucher:
        raise NotClaimed(voucher.id, user_id)

    if customer_voucher.status == CustomerVoucherStatus.REDEEMED.value:
        raise AlreadyRedeemed(voucher.id, user_id)

    # Early rejection only; the conditional increment below is what holds the cap.
    ensure_redemption_capacity(voucher)

    with transactional(db):
        if not ledger.mark_redeemed(db, customer_id=user_id, voucher_id=voucher.id, redeemed_at=now):
            raise AlreadyRedeemed(voucher.id, user_id)

        if not ledger.increment_redemptions_within_cap(db, voucher.id):
            logger.info(
                "redemption rejected at cap",
                extra={"voucher_id": str(voucher.id), "user_id": str(user_id)},
            )
            raise MaxRedemptionsReached(voucher.id, voucher.max_redemptions)

    db.refresh(voucher)
    db.refresh(customer_voucher)

    invalidate_voucher_caches(cache, voucher.id)

    logger.info(
        "voucher redeemed",
        extra={
            "voucher_id": str(voucher.id),
            "user_id": str(user_id),
            "current_redemptions": voucher.current_redemptions,
            "max_redemptions": voucher.max_redemptions,
        },
    )

    return RedemptionResult(
        voucher_id=voucher.id,
        voucher=voucher,
        customer_voucher=customer_voucher,
        redeemed_at=customer_voucher.redeemed_at or now,
        discount_applied=_discount_applied(voucher),
    )

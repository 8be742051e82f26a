import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from voucher_engine.config import Settings, get_settings
from voucher_engine.db import transactional, utcnow
from voucher_engine.errors import AlreadyClaimed, StorageConflict, parse_uuid
from voucher_engine.models.customer_voucher import CustomerVoucher
from voucher_engine.models.voucher import Voucher
from voucher_engine.services import ledger, voucher_store
from voucher_engine.services.cache import CacheBackend, invalidate_voucher_caches
from voucher_engine.services.voucher_state import ensure_claimable


logger = logging.getLogger(__name__)


@dataclass
class ClaimResult:
    claim_id: object
    voucher: Voucher
    customer_voucher: CustomerVoucher
    claimed_at: datetime
    expires_at: datetime | None
    wallet_position: int


def claim_voucher(
    db: Session,
    voucher_id,
    user_id,
    *,
    cache: CacheBackend | None = None,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> ClaimResult:
    settings = settings or get_settings()
    if now is None:
        now = utcnow()

    user_id = parse_uuid(user_id, "user ID")
    voucher = voucher_store.get_voucher(db, voucher_id)

    ensure_claimable(voucher, now)

    if ledger.find_customer_voucher(db, user_id, voucher.id):
        raise AlreadyClaimed(voucher.id, user_id)

    # Concurrent claims can both pass the lookup above; the unique
    # (customer_id, voucher_id) constraint admits exactly one insert.
    try:
        with transactional(db):
            customer_voucher = ledger.insert_claim(
                db,
                customer_id=user_id,
                voucher_id=voucher.id,
                claimed_at=now,
                expires_at=now + timedelta(days=settings.claim_expiry_days),
            )
    except StorageConflict as exc:
        logger.info(
            "concurrent claim lost the race",
            extra={"voucher_id": str(voucher.id), "user_id": str(user_id)},
        )
        raise AlreadyClaimed(voucher.id, user_id) from exc

    invalidate_voucher_caches(cache, voucher.id)

    logger.info(
        "voucher claimed",
        extra={"voucher_id": str(voucher.id), "user_id": str(user_id), "claim_id": str(customer_voucher.id)},
    )

    return ClaimResult(
        claim_id=customer_voucher.id,
        voucher=voucher,
        customer_voucher=customer_voucher,
        claimed_at=customer_voucher.claimed_at,
        expires_at=customer_voucher.expires_at,
        wallet_position=ledger.count_customer_vouchers(db, user_id),
    )

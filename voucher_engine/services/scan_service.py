import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from voucher_engine.db import utcnow
from voucher_engine.errors import UnauthorizedBusiness, parse_uuid
from voucher_engine.models.enums import VoucherScanSource, VoucherScanType
from voucher_engine.models.voucher import Voucher
from voucher_engine.models.voucher_scan import VoucherScan
from voucher_engine.services import code_resolver, ledger, voucher_store
from voucher_engine.services.voucher_state import can_be_claimed


logger = logging.getLogger(__name__)


@dataclass
class ScanContext:
    user_id: Any = None
    business_id: Any = None
    scan_source: VoucherScanSource = VoucherScanSource.CAMERA
    device_info: dict | None = None
    location: dict | None = None
    user_agent: str | None = None
    metadata: dict = field(default_factory=dict)


@dataclass
class ScanResult:
    scan_id: uuid.UUID
    voucher: Voucher
    can_claim: bool
    already_claimed: bool


def _record_scan(db: Session, voucher: Voucher, ctx: ScanContext, scan_id: uuid.UUID, now: datetime) -> None:
    scan = VoucherScan(
        id=scan_id,
        voucher_id=voucher.id,
        customer_id=ctx.user_id,
        business_id=ctx.business_id,
        scan_type=(VoucherScanType.BUSINESS if ctx.business_id else VoucherScanType.CUSTOMER).value,
        scan_source=VoucherScanSource(ctx.scan_source).value,
        device_info=ctx.device_info,
        location=ctx.location,
        user_agent=ctx.user_agent,
        meta=ctx.metadata or None,
        scanned_at=now,
    )

    # Each side effect gets its own savepoint so a failure cannot poison the other.
    try:
        with db.begin_nested():
            voucher_store.append_scan(db, scan)
    except Exception:
        logger.exception("failed to record voucher scan", extra={"voucher_id": str(voucher.id), "scan_id": str(scan_id)})

    try:
        with db.begin_nested():
            voucher_store.increment_scan_count(db, voucher.id)
    except Exception:
        logger.exception("failed to increment voucher scan count", extra={"voucher_id": str(voucher.id)})

    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("failed to commit voucher scan analytics", extra={"voucher_id": str(voucher.id)})


def scan_voucher(db: Session, voucher_id, ctx: ScanContext | None = None, *, now: datetime | None = None) -> ScanResult:
    ctx = ctx or ScanContext()
    if now is None:
        now = utcnow()

    ctx = replace(
        ctx,
        user_id=parse_uuid(ctx.user_id, "user ID") if ctx.user_id is not None else None,
        business_id=parse_uuid(ctx.business_id, "business ID") if ctx.business_id is not None else None,
    )

    voucher = voucher_store.get_voucher(db, voucher_id)
    return _scan(db, voucher, ctx, now)


def scan_by_code(db: Session, code: str, ctx: ScanContext | None = None, *, now: datetime | None = None) -> ScanResult:
    voucher = code_resolver.resolve_by_code(db, code)
    return scan_voucher(db, voucher.id, ctx, now=now)


def _scan(db: Session, voucher: Voucher, ctx: ScanContext, now: datetime) -> ScanResult:
    if ctx.business_id is not None and voucher.business_id != ctx.business_id:
        raise UnauthorizedBusiness(voucher.id, ctx.business_id)

    already_claimed = False
    if ctx.user_id is not None:
        already_claimed = ledger.find_customer_voucher(db, ctx.user_id, voucher.id) is not None

    can_claim = False if already_claimed else can_be_claimed(voucher, now)

    scan_id = uuid.uuid4()
    _record_scan(db, voucher, ctx, scan_id, now)

    logger.info(
        "voucher scanned",
        extra={
            "voucher_id": str(voucher.id),
            "user_id": str(ctx.user_id) if ctx.user_id else None,
            "business_id": str(ctx.business_id) if ctx.business_id else None,
            "source": VoucherScanSource(ctx.scan_source).value,
            "scan_id": str(scan_id),
        },
    )

    return ScanResult(
        scan_id=scan_id,
        voucher=voucher,
        can_claim=can_claim,
        already_claimed=already_claimed,
    )

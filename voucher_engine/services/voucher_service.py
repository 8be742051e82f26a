import json
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from voucher_engine.db import to_utc_naive, transactional, utcnow
from voucher_engine.errors import (
    BusinessRuleViolation,
    DuplicateCode,
    InvalidStateTransition,
    NotFoundError,
    StorageConflict,
    Unavailable,
    ValidationError,
    VoucherNotEditable,
    parse_uuid,
)
from voucher_engine.models.enums import VoucherCodeType, VoucherState, VoucherType
from voucher_engine.models.voucher import Voucher
from voucher_engine.models.voucher_code import VoucherCode
from voucher_engine.models.voucher_scan import VoucherScan
from voucher_engine.schemas.voucher import (
    VoucherCodeConfig,
    VoucherCreate,
    VoucherListParams,
    VoucherOut,
    VoucherUpdate,
)
from voucher_engine.services import ledger, voucher_store
from voucher_engine.services.cache import (
    CacheBackend,
    cache_aside,
    invalidate_voucher_caches,
    voucher_key,
    voucher_list_key,
)
from voucher_engine.services.code_generator import CodeGenerator
from voucher_engine.services.voucher_state import allowed_transitions, ensure_publishable, validate_transition


logger = logging.getLogger(__name__)


FINAL_STATES = {VoucherState.EXPIRED.value, VoucherState.REDEEMED.value}


def _check_window(valid_from: datetime | None, valid_until: datetime | None) -> None:
    if valid_from and valid_until and valid_from > valid_until:
        raise ValidationError(
            "valid_from must be before valid_until",
            {"valid_from": valid_from.isoformat(), "valid_until": valid_until.isoformat()},
        )


def _check_amounts(voucher_type: str, discount, value) -> None:
    if voucher_type == VoucherType.DISCOUNT.value and not discount:
        raise BusinessRuleViolation("Discount voucher requires discount percentage", {"field": "discount"})
    if voucher_type == VoucherType.FIXED_VALUE.value and not value:
        raise BusinessRuleViolation("Fixed value voucher requires value", {"field": "value"})


def _store_codes(db: Session, voucher: Voucher, config: VoucherCodeConfig, code_generator: CodeGenerator) -> list[VoucherCode]:
    static_code = config.static_code if config.generate_static_code else None
    if config.generate_static_code and not static_code:
        raise ValidationError("static_code is required when generate_static_code is set")

    generated = code_generator.generate_codes(
        voucher.id,
        generate_qr=config.generate_qr,
        generate_short_code=config.generate_short_code,
        static_code=static_code,
    )

    stored = []
    for item in generated:
        # one active code per scheme per voucher
        voucher_store.deactivate_codes(db, voucher, item.type)
        try:
            stored.append(voucher_store.add_code(db, voucher, item.code, item.type, item.metadata))
        except StorageConflict as exc:
            raise DuplicateCode(
                f"{item.type.value} code already in use",
                {"code": item.code, "type": item.type.value},
            ) from exc
        if item.type == VoucherCodeType.QR:
            voucher.qr_code = item.code

    db.flush()
    return stored


# ============================================================
# READS
# ============================================================
def get_voucher(db: Session, voucher_id) -> Voucher:
    return voucher_store.get_voucher(db, voucher_id)


def get_voucher_detail_cached(db: Session, voucher_id, *, cache: CacheBackend, ttl: int | None = None) -> dict:
    voucher_id = parse_uuid(voucher_id, "voucher ID")

    def load():
        return VoucherOut.model_validate(voucher_store.get_voucher(db, voucher_id)).model_dump(mode="json")

    return cache_aside(cache, voucher_key(voucher_id), ttl, load)


def list_vouchers(db: Session, params: VoucherListParams) -> dict:
    items, pagination = voucher_store.list_vouchers(db, params)
    return {"data": items, "pagination": pagination}


def list_vouchers_cached(db: Session, params: VoucherListParams, *, cache: CacheBackend, ttl: int | None = None) -> dict:
    key = voucher_list_key(json.dumps(params.model_dump(mode="json"), sort_keys=True))

    def load():
        items, pagination = voucher_store.list_vouchers(db, params)
        return {
            "data": [VoucherOut.model_validate(v).model_dump(mode="json") for v in items],
            "pagination": pagination,
        }

    return cache_aside(cache, key, ttl, load)


def list_customer_vouchers(db: Session, customer_id, status: str | None = None, limit: int = 100, offset: int = 0):
    customer_id = parse_uuid(customer_id, "user ID")
    return ledger.list_customer_vouchers(db, customer_id, status=status, limit=limit, offset=offset)


# ============================================================
# WRITES
# ============================================================
def create_voucher(
    db: Session,
    data: VoucherCreate,
    *,
    code_generator: CodeGenerator | None,
    cache: CacheBackend | None = None,
) -> Voucher:
    if code_generator is None:
        raise Unavailable("Voucher code generator is not configured", {"source": "create_voucher"})

    valid_from = to_utc_naive(data.valid_from)
    valid_until = to_utc_naive(data.valid_until)
    _check_window(valid_from, valid_until)
    _check_amounts(data.type.value, data.discount, data.value)

    with transactional(db):
        voucher = voucher_store.add_voucher(
            db,
            Voucher(
                business_id=data.business_id,
                category_id=data.category_id,
                type=data.type.value,
                title=data.title,
                description=data.description,
                terms_and_conditions=data.terms_and_conditions,
                discount=data.discount,
                value=data.value,
                state=VoucherState.DRAFT.value,
                valid_from=valid_from,
                valid_until=valid_until,
                max_redemptions=data.max_redemptions,
                current_redemptions=0,
                scan_count=0,
                meta=data.metadata,
            ),
        )
        _store_codes(db, voucher, data.codes, code_generator)

    db.refresh(voucher)
    invalidate_voucher_caches(cache, voucher.id)

    logger.info(
        "voucher created",
        extra={"voucher_id": str(voucher.id), "business_id": str(voucher.business_id), "type": voucher.type},
    )
    return voucher


def update_voucher(db: Session, voucher_id, data: VoucherUpdate, *, cache: CacheBackend | None = None) -> Voucher:
    voucher = voucher_store.get_voucher(db, voucher_id)

    if voucher.state in FINAL_STATES:
        raise VoucherNotEditable(
            "Cannot update expired or redeemed voucher",
            {"voucher_id": str(voucher.id), "state": voucher.state},
        )

    changes = data.model_dump(exclude_unset=True)
    if "valid_from" in changes:
        changes["valid_from"] = to_utc_naive(changes["valid_from"])
    if "valid_until" in changes:
        changes["valid_until"] = to_utc_naive(changes["valid_until"])

    _check_window(changes.get("valid_from", voucher.valid_from), changes.get("valid_until", voucher.valid_until))
    _check_amounts(voucher.type, changes.get("discount", voucher.discount), changes.get("value", voucher.value))

    new_max = changes.get("max_redemptions", voucher.max_redemptions)
    if new_max is not None and new_max < (voucher.current_redemptions or 0):
        raise ValidationError(
            "max_redemptions cannot be lower than current redemptions",
            {"max_redemptions": new_max, "current_redemptions": voucher.current_redemptions},
        )

    with transactional(db):
        for k, v in changes.items():
            setattr(voucher, "meta" if k == "metadata" else k, v)

    db.refresh(voucher)
    invalidate_voucher_caches(cache, voucher.id)
    return voucher


def delete_voucher(db: Session, voucher_id, *, cache: CacheBackend | None = None, now: datetime | None = None) -> str:
    """Hard-delete a draft; soft-delete anything that has been published.

    Returns "deleted" or "soft_deleted".
    """
    if now is None:
        now = utcnow()
    voucher = voucher_store.get_voucher(db, voucher_id)

    with transactional(db):
        if voucher.state == VoucherState.DRAFT.value:
            db.query(VoucherScan).filter(VoucherScan.voucher_id == voucher.id).delete(synchronize_session=False)
            db.delete(voucher)
            outcome = "deleted"
        else:
            voucher.deleted_at = now
            for code in voucher.codes:
                code.is_active = False
            outcome = "soft_deleted"

    invalidate_voucher_caches(cache, voucher_id)
    logger.info("voucher deleted", extra={"voucher_id": str(voucher_id), "outcome": outcome})
    return outcome


def _transition(db: Session, voucher: Voucher, target: VoucherState, cache: CacheBackend | None) -> Voucher:
    previous = voucher.state
    with transactional(db):
        # the write only lands while the row still holds the state validated above
        if not voucher_store.set_state_if_current(db, voucher.id, previous, target.value):
            db.refresh(voucher)
            raise InvalidStateTransition(
                voucher.state,
                target.value,
                [s.value for s in allowed_transitions(voucher.state)],
            )

    db.refresh(voucher)
    invalidate_voucher_caches(cache, voucher.id)
    logger.info(
        "voucher state changed",
        extra={"voucher_id": str(voucher.id), "previous_state": previous, "new_state": target.value},
    )
    return voucher


def publish_voucher(db: Session, voucher_id, *, cache: CacheBackend | None = None, now: datetime | None = None) -> Voucher:
    if now is None:
        now = utcnow()
    voucher = voucher_store.get_voucher(db, voucher_id)

    validate_transition(voucher.state, VoucherState.PUBLISHED)
    ensure_publishable(voucher, now)

    return _transition(db, voucher, VoucherState.PUBLISHED, cache)


def expire_voucher(db: Session, voucher_id, *, cache: CacheBackend | None = None) -> Voucher:
    voucher = voucher_store.get_voucher(db, voucher_id)
    validate_transition(voucher.state, VoucherState.EXPIRED)
    return _transition(db, voucher, VoucherState.EXPIRED, cache)


def update_voucher_state(
    db: Session,
    voucher_id,
    state: VoucherState,
    *,
    cache: CacheBackend | None = None,
    now: datetime | None = None,
) -> Voucher:
    state = VoucherState(state)
    if state == VoucherState.PUBLISHED:
        return publish_voucher(db, voucher_id, cache=cache, now=now)

    voucher = voucher_store.get_voucher(db, voucher_id)
    validate_transition(voucher.state, state)
    return _transition(db, voucher, state, cache)


def add_voucher_codes(
    db: Session,
    voucher_id,
    config: VoucherCodeConfig,
    *,
    code_generator: CodeGenerator | None,
    cache: CacheBackend | None = None,
) -> list[VoucherCode]:
    if code_generator is None:
        raise Unavailable("Voucher code generator is not configured", {"source": "add_voucher_codes"})

    voucher = voucher_store.get_voucher(db, voucher_id)
    if voucher.state in FINAL_STATES:
        raise VoucherNotEditable(
            "Cannot generate codes for expired or redeemed voucher",
            {"voucher_id": str(voucher.id), "state": voucher.state},
        )

    with transactional(db):
        codes = _store_codes(db, voucher, config, code_generator)

    for code in codes:
        db.refresh(code)
    invalidate_voucher_caches(cache, voucher.id)
    return codes


def deactivate_voucher_code(db: Session, voucher_id, code_id, *, cache: CacheBackend | None = None) -> VoucherCode:
    voucher = voucher_store.get_voucher(db, voucher_id)
    code_id = parse_uuid(code_id, "code ID")

    voucher_code = next((c for c in voucher.codes if c.id == code_id), None)
    if voucher_code is None:
        raise NotFoundError(f"Voucher code not found: {code_id}", {"voucher_id": str(voucher.id)})

    with transactional(db):
        voucher_code.is_active = False
        if voucher_code.type == VoucherCodeType.QR.value and voucher.qr_code == voucher_code.code:
            voucher.qr_code = None

    db.refresh(voucher_code)
    invalidate_voucher_caches(cache, voucher.id)
    return voucher_code


def expire_overdue_vouchers(db: Session, *, cache: CacheBackend | None = None, now: datetime | None = None) -> int:
    if now is None:
        now = utcnow()

    overdue = (
        db.query(Voucher)
        .filter(Voucher.deleted_at.is_(None))
        .filter(Voucher.state.in_([VoucherState.PUBLISHED.value, VoucherState.CLAIMED.value]))
        .filter(Voucher.valid_until.isnot(None))
        .filter(Voucher.valid_until < now)
        .all()
    )

    expired = []
    with transactional(db):
        for voucher in overdue:
            validate_transition(voucher.state, VoucherState.EXPIRED)
            # vouchers whose state moved since the read above are left alone
            if voucher_store.set_state_if_current(db, voucher.id, voucher.state, VoucherState.EXPIRED.value):
                expired.append(voucher.id)

    for voucher_id in expired:
        invalidate_voucher_caches(cache, voucher_id)

    logger.info("expired overdue vouchers", extra={"count": len(expired), "now": now.isoformat()})
    return len(expired)

import math

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from voucher_engine.errors import StorageConflict, VoucherNotFound, parse_uuid
from voucher_engine.models.enums import VoucherCodeType
from voucher_engine.models.voucher import Voucher
from voucher_engine.models.voucher_code import VoucherCode
from voucher_engine.models.voucher_scan import VoucherScan


def _live_vouchers(db: Session):
    return db.query(Voucher).filter(Voucher.deleted_at.is_(None))


# ============================================================
# READS
# ============================================================
def find_voucher(db: Session, voucher_id) -> Voucher | None:
    voucher_id = parse_uuid(voucher_id, "voucher ID")
    return _live_vouchers(db).filter(Voucher.id == voucher_id).first()


def get_voucher(db: Session, voucher_id) -> Voucher:
    voucher = find_voucher(db, voucher_id)
    if not voucher:
        raise VoucherNotFound(voucher_id)
    return voucher


def find_by_qr_code(db: Session, qr_code: str) -> Voucher | None:
    return _live_vouchers(db).filter(Voucher.qr_code == qr_code).first()


def find_by_code(db: Session, code: str, code_type: VoucherCodeType) -> Voucher | None:
    return (
        _live_vouchers(db)
        .join(VoucherCode, VoucherCode.voucher_id == Voucher.id)
        .filter(
            VoucherCode.code == code,
            VoucherCode.type == code_type.value,
            VoucherCode.is_active.is_(True),
        )
        .first()
    )


def list_vouchers(db: Session, params) -> tuple[list[Voucher], dict]:
    q = _live_vouchers(db)

    if params.search:
        q = q.filter(
            or_(
                Voucher.title.ilike(f"%{params.search}%"),
                Voucher.description.ilike(f"%{params.search}%"),
            )
        )
    if params.business_id:
        q = q.filter(Voucher.business_id == params.business_id)
    if params.category_id:
        q = q.filter(Voucher.category_id == params.category_id)
    if params.type:
        q = q.filter(Voucher.type == params.type.value)
    if params.state:
        q = q.filter(Voucher.state.in_([s.value for s in params.state]))
    if params.valid_at:
        q = q.filter(
            (Voucher.valid_from.is_(None)) | (Voucher.valid_from <= params.valid_at),
            (Voucher.valid_until.is_(None)) | (Voucher.valid_until >= params.valid_at),
        )

    total = q.count()

    column = getattr(Voucher, params.sort_by)
    order = column.asc() if params.sort_order == "asc" else column.desc()

    items = (
        q.order_by(order, Voucher.id.asc())
        .offset((params.page - 1) * params.limit)
        .limit(params.limit)
        .all()
    )

    total_pages = math.ceil(total / params.limit) if total else 0
    pagination = {
        "page": params.page,
        "limit": params.limit,
        "total": total,
        "total_pages": total_pages,
        "has_next": params.page < total_pages,
        "has_prev": params.page > 1,
    }
    return items, pagination


# ============================================================
# WRITES
# ============================================================
def add_voucher(db: Session, voucher: Voucher) -> Voucher:
    db.add(voucher)
    db.flush()
    return voucher


def add_code(db: Session, voucher: Voucher, code: str, code_type: VoucherCodeType, meta: dict | None = None) -> VoucherCode:
    voucher_code = VoucherCode(
        code=code,
        type=code_type.value,
        is_active=True,
        meta=meta,
    )
    voucher.codes.append(voucher_code)
    try:
        db.flush()
    except IntegrityError as exc:
        raise StorageConflict(
            f"Active {code_type.value} code already in use",
            cause=exc,
            context={"code": code, "type": code_type.value},
        ) from exc
    return voucher_code


def deactivate_codes(db: Session, voucher: Voucher, code_type: VoucherCodeType) -> int:
    count = 0
    for voucher_code in voucher.codes:
        if voucher_code.type == code_type.value and voucher_code.is_active:
            voucher_code.is_active = False
            count += 1
    db.flush()
    return count


def set_state_if_current(db: Session, voucher_id, expected: str, new: str) -> bool:
    """Move the voucher to ``new`` only while it is still in ``expected``.

    Returns False when another transaction changed the state first.
    """
    result = db.execute(
        update(Voucher)
        .where(Voucher.id == voucher_id, Voucher.state == expected)
        .values(state=new)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def increment_scan_count(db: Session, voucher_id) -> None:
    db.execute(
        update(Voucher)
        .where(Voucher.id == voucher_id)
        .values(scan_count=Voucher.scan_count + 1)
        .execution_options(synchronize_session=False)
    )


def append_scan(db: Session, scan: VoucherScan) -> VoucherScan:
    db.add(scan)
    db.flush()
    return scan

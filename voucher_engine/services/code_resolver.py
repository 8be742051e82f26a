"""Resolve a scanned string to a voucher.

Lookup order is fixed: primary QR field, then active short codes, then active
static (campaign) codes. The first scheme that matches wins; matches are never
merged across schemes.
"""

import logging

from sqlalchemy.orm import Session

from voucher_engine.errors import ValidationError, VoucherNotFound
from voucher_engine.models.enums import VoucherCodeType
from voucher_engine.models.voucher import Voucher
from voucher_engine.schemas.voucher import VoucherOut
from voucher_engine.services import voucher_store
from voucher_engine.services.cache import CacheBackend, cache_aside, voucher_code_key


logger = logging.getLogger(__name__)


def _clean(raw: str) -> str:
    code = (raw or "").strip()
    if not code:
        raise ValidationError("Voucher code is required")
    return code


def get_by_qr_code(db: Session, qr_code: str) -> Voucher:
    voucher = voucher_store.find_by_qr_code(db, _clean(qr_code))
    if not voucher:
        raise VoucherNotFound(f"QR code: {qr_code}")
    return voucher


def get_by_short_code(db: Session, short_code: str) -> Voucher:
    voucher = voucher_store.find_by_code(db, _clean(short_code), VoucherCodeType.SHORT)
    if not voucher:
        raise VoucherNotFound(f"Short code: {short_code}")
    return voucher


def get_by_static_code(db: Session, static_code: str) -> Voucher:
    voucher = voucher_store.find_by_code(db, _clean(static_code), VoucherCodeType.STATIC)
    if not voucher:
        raise VoucherNotFound(f"Static code: {static_code}")
    return voucher


def resolve_by_code(db: Session, raw: str) -> Voucher:
    code = _clean(raw)

    voucher = voucher_store.find_by_qr_code(db, code)
    if voucher:
        logger.debug("code resolved", extra={"scheme": VoucherCodeType.QR.value, "voucher_id": str(voucher.id)})
        return voucher

    for scheme in (VoucherCodeType.SHORT, VoucherCodeType.STATIC):
        voucher = voucher_store.find_by_code(db, code, scheme)
        if voucher:
            logger.debug("code resolved", extra={"scheme": scheme.value, "voucher_id": str(voucher.id)})
            return voucher

    raise VoucherNotFound(f"Code: {code}")


def resolve_by_code_cached(db: Session, raw: str, *, cache: CacheBackend, ttl: int | None = None) -> dict:
    code = _clean(raw)

    def load():
        return VoucherOut.model_validate(resolve_by_code(db, code)).model_dump(mode="json")

    return cache_aside(cache, voucher_code_key(code), ttl, load)

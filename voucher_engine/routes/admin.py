from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from voucher_engine.db import get_db
from voucher_engine.deps.collaborators import get_cache, get_code_generator
from voucher_engine.schemas.voucher import (
    VoucherCodeConfig,
    VoucherCodeOut,
    VoucherCreate,
    VoucherOut,
    VoucherStateUpdate,
    VoucherUpdate,
)
from voucher_engine.services.cache import CacheBackend
from voucher_engine.services.code_generator import CodeGenerator
from voucher_engine.services import voucher_service


router = APIRouter(prefix="/admin/vouchers", tags=["admin-vouchers"])


@router.post("", response_model=VoucherOut, status_code=201)
def create_voucher(
    payload: VoucherCreate,
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
    code_generator: CodeGenerator | None = Depends(get_code_generator),
):
    return voucher_service.create_voucher(db, payload, code_generator=code_generator, cache=cache)


@router.post("/expire")
def expire_overdue_vouchers(
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    return {"expired": voucher_service.expire_overdue_vouchers(db, cache=cache)}


@router.get("/{voucher_id}", response_model=VoucherOut)
def get_voucher(voucher_id: str, db: Session = Depends(get_db)):
    return voucher_service.get_voucher(db, voucher_id)


@router.patch("/{voucher_id}", response_model=VoucherOut)
def update_voucher(
    voucher_id: str,
    payload: VoucherUpdate,
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    return voucher_service.update_voucher(db, voucher_id, payload, cache=cache)


@router.delete("/{voucher_id}")
def delete_voucher(
    voucher_id: str,
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    outcome = voucher_service.delete_voucher(db, voucher_id, cache=cache)
    return {"deleted": True, "outcome": outcome}


@router.post("/{voucher_id}/publish", response_model=VoucherOut)
def publish_voucher(
    voucher_id: str,
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    return voucher_service.publish_voucher(db, voucher_id, cache=cache)


@router.post("/{voucher_id}/expire", response_model=VoucherOut)
def expire_voucher(
    voucher_id: str,
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    return voucher_service.expire_voucher(db, voucher_id, cache=cache)


@router.put("/{voucher_id}/state", response_model=VoucherOut)
def update_voucher_state(
    voucher_id: str,
    payload: VoucherStateUpdate,
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    return voucher_service.update_voucher_state(db, voucher_id, payload.state, cache=cache)


@router.post("/{voucher_id}/codes", response_model=list[VoucherCodeOut], status_code=201)
def generate_voucher_codes(
    voucher_id: str,
    payload: VoucherCodeConfig,
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
    code_generator: CodeGenerator | None = Depends(get_code_generator),
):
    return voucher_service.add_voucher_codes(db, voucher_id, payload, code_generator=code_generator, cache=cache)


@router.delete("/{voucher_id}/codes/{code_id}", response_model=VoucherCodeOut)
def deactivate_voucher_code(
    voucher_id: str,
    code_id: str,
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    return voucher_service.deactivate_voucher_code(db, voucher_id, code_id, cache=cache)

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.orm import Session

from voucher_engine.config import get_settings
from voucher_engine.db import get_db
from voucher_engine.deps.collaborators import get_cache
from voucher_engine.deps.identity import (
    get_current_user_id,
    get_optional_business_id,
    get_optional_user_id,
)
from voucher_engine.errors import ValidationError
from voucher_engine.models.enums import VoucherState, VoucherType
from voucher_engine.schemas.customer_voucher import ClaimOut, RedemptionOut
from voucher_engine.schemas.voucher import VoucherListParams, VoucherOut, VoucherPage
from voucher_engine.schemas.voucher_scan import ScanOut, VoucherScanIn
from voucher_engine.services.cache import CacheBackend
from voucher_engine.services.claim_service import claim_voucher
from voucher_engine.services.code_resolver import resolve_by_code_cached
from voucher_engine.services.redemption_service import redeem_voucher
from voucher_engine.services.scan_service import ScanContext, scan_by_code, scan_voucher
from voucher_engine.services.voucher_service import get_voucher_detail_cached, list_vouchers_cached


router = APIRouter(prefix="/vouchers", tags=["vouchers"])


def _scan_context(payload: VoucherScanIn | None, request: Request, user_id, business_id) -> ScanContext:
    payload = payload or VoucherScanIn()
    return ScanContext(
        user_id=user_id,
        business_id=business_id,
        scan_source=payload.scan_source,
        device_info=payload.device_info,
        location=payload.location,
        user_agent=request.headers.get("user-agent"),
        metadata={
            **(payload.metadata or {}),
            "ip_address": request.client.host if request.client else None,
        },
    )


@router.get("", response_model=VoucherPage)
def list_vouchers(
    business_id: Optional[UUID] = None,
    category_id: Optional[UUID] = None,
    type: Optional[VoucherType] = None,
    state: Optional[List[VoucherState]] = Query(default=None),
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    try:
        params = VoucherListParams(
            business_id=business_id,
            category_id=category_id,
            type=type,
            # customers only ever see published vouchers unless they ask otherwise
            state=state or [VoucherState.PUBLISHED],
            search=search,
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    except SchemaValidationError as exc:
        raise ValidationError("Invalid voucher list parameters", {"errors": [e["msg"] for e in exc.errors()]}) from exc
    return list_vouchers_cached(db, params, cache=cache, ttl=get_settings().cache_default_ttl)


@router.get("/code/{code}", response_model=VoucherOut)
def get_voucher_by_code(
    code: str,
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    return resolve_by_code_cached(db, code, cache=cache, ttl=get_settings().cache_default_ttl)


@router.post("/code/{code}/scan", response_model=ScanOut)
def scan_voucher_by_code(
    code: str,
    request: Request,
    payload: VoucherScanIn | None = None,
    user_id=Depends(get_optional_user_id),
    business_id=Depends(get_optional_business_id),
    db: Session = Depends(get_db),
):
    result = scan_by_code(db, code, _scan_context(payload, request, user_id, business_id))
    return ScanOut.model_validate(result)


@router.get("/{voucher_id}", response_model=VoucherOut)
def get_voucher(
    voucher_id: str,
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    return get_voucher_detail_cached(db, voucher_id, cache=cache, ttl=get_settings().cache_default_ttl)


@router.post("/{voucher_id}/claim", response_model=ClaimOut, status_code=201)
def claim(
    voucher_id: str,
    user_id=Depends(get_current_user_id),
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    return ClaimOut.model_validate(claim_voucher(db, voucher_id, user_id, cache=cache))


@router.post("/{voucher_id}/redeem", response_model=RedemptionOut)
def redeem(
    voucher_id: str,
    user_id=Depends(get_current_user_id),
    business_id=Depends(get_optional_business_id),
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    result = redeem_voucher(db, voucher_id, user_id, business_id=business_id, cache=cache)
    return RedemptionOut.model_validate(result)


@router.post("/{voucher_id}/scan", response_model=ScanOut)
def scan(
    voucher_id: str,
    request: Request,
    payload: VoucherScanIn | None = None,
    user_id=Depends(get_optional_user_id),
    business_id=Depends(get_optional_business_id),
    db: Session = Depends(get_db),
):
    result = scan_voucher(db, voucher_id, _scan_context(payload, request, user_id, business_id))
    return ScanOut.model_validate(result)

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from voucher_engine.db import get_db
from voucher_engine.deps.identity import get_current_user_id
from voucher_engine.schemas.customer_voucher import CustomerVoucherOut
from voucher_engine.services.voucher_service import list_customer_vouchers


router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("/me/vouchers", response_model=list[CustomerVoucherOut])
def list_my_vouchers(
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
    user_id=Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return list_customer_vouchers(db, user_id, status=status, limit=limit, offset=offset)

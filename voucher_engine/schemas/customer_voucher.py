from datetime import datetime
from decimal import Decimal
from typing import Optional

from uuid import UUID

from pydantic import BaseModel

from voucher_engine.schemas.voucher import VoucherOut


class CustomerVoucherOut(BaseModel):
    id: UUID
    customer_id: UUID
    voucher_id: UUID

    status: str

    claimed_at: datetime
    redeemed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    voucher: Optional[VoucherOut] = None

    class Config:
        from_attributes = True


class ClaimOut(BaseModel):
    claim_id: UUID
    voucher: VoucherOut
    claimed_at: datetime
    expires_at: Optional[datetime] = None
    wallet_position: int

    class Config:
        from_attributes = True


class RedemptionOut(BaseModel):
    message: str
    voucher_id: UUID
    redeemed_at: datetime
    discount_applied: Decimal
    voucher: VoucherOut

    class Config:
        from_attributes = True

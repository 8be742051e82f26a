from typing import Any, Dict, Optional

from uuid import UUID

from pydantic import BaseModel

from voucher_engine.models.enums import VoucherScanSource
from voucher_engine.schemas.voucher import VoucherOut


class VoucherScanIn(BaseModel):
    scan_source: VoucherScanSource = VoucherScanSource.CAMERA
    device_info: Optional[Dict[str, Any]] = None
    location: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None


class ScanOut(BaseModel):
    scan_id: UUID
    voucher: VoucherOut
    can_claim: bool
    already_claimed: bool

    class Config:
        from_attributes = True

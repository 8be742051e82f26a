from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from voucher_engine.models.enums import VoucherState, VoucherType


class VoucherCodeConfig(BaseModel):
    generate_qr: bool = True
    generate_short_code: bool = True
    generate_static_code: bool = False
    static_code: Optional[str] = None


class VoucherCreate(BaseModel):
    business_id: UUID
    category_id: Optional[UUID] = None
    type: VoucherType = VoucherType.DISCOUNT

    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    terms_and_conditions: Optional[str] = None

    discount: Optional[Decimal] = Field(default=None, gt=0, le=100)
    value: Optional[Decimal] = Field(default=None, gt=0)

    max_redemptions: Optional[int] = Field(default=None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None

    metadata: Optional[Dict[str, Any]] = None
    codes: VoucherCodeConfig = Field(default_factory=VoucherCodeConfig)


class VoucherUpdate(BaseModel):
    category_id: Optional[UUID] = None
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    discount: Optional[Decimal] = Field(default=None, gt=0, le=100)
    value: Optional[Decimal] = Field(default=None, gt=0)
    max_redemptions: Optional[int] = Field(default=None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None


class VoucherStateUpdate(BaseModel):
    state: VoucherState


class VoucherCodeOut(BaseModel):
    id: UUID
    code: str
    type: str
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VoucherOut(BaseModel):
    id: UUID
    business_id: UUID
    category_id: Optional[UUID] = None
    type: str

    title: str
    description: Optional[str] = None
    terms_and_conditions: Optional[str] = None

    discount: Optional[Decimal] = None
    value: Optional[Decimal] = None

    state: str
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None

    max_redemptions: Optional[int] = None
    current_redemptions: int
    scan_count: int

    qr_code: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="meta")

    codes: List[VoucherCodeOut] = Field(default_factory=list)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        populate_by_name = True


class VoucherListParams(BaseModel):
    business_id: Optional[UUID] = None
    category_id: Optional[UUID] = None
    type: Optional[VoucherType] = None
    state: Optional[List[VoucherState]] = None
    search: Optional[str] = None
    valid_at: Optional[datetime] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    sort_by: str = "created_at"
    sort_order: str = "desc"

    @model_validator(mode="after")
    def _check_sort(self):
        if self.sort_by not in {"created_at", "updated_at", "valid_from", "valid_until", "title", "scan_count"}:
            raise ValueError(f"Unsupported sort_by: {self.sort_by}")
        if self.sort_order not in {"asc", "desc"}:
            raise ValueError("sort_order must be 'asc' or 'desc'")
        return self


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class VoucherPage(BaseModel):
    data: List[VoucherOut]
    pagination: Pagination

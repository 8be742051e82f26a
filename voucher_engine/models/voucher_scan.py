import uuid
from sqlalchemy import Column, String, TIMESTAMP, JSON, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from voucher_engine.db import Base


class VoucherScan(Base):
    __tablename__ = "voucher_scans"
    __table_args__ = (Index("ix_voucher_scans_voucher_id", "voucher_id"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    voucher_id = Column(UUID(as_uuid=True), ForeignKey("vouchers.id"), nullable=False)
    customer_id = Column(UUID(as_uuid=True), nullable=True)
    business_id = Column(UUID(as_uuid=True), nullable=True)

    scan_type = Column(String(20), nullable=False)
    # customer | business
    scan_source = Column(String(20), nullable=False, default="camera")
    # camera | gallery | link | share

    device_info = Column(JSON, nullable=True)
    location = Column(JSON, nullable=True)
    user_agent = Column(String(500), nullable=True)
    meta = Column("metadata", JSON, nullable=True)

    scanned_at = Column(TIMESTAMP, server_default=func.now())

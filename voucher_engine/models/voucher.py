import uuid
from sqlalchemy import Column, String, Integer, Numeric, TIMESTAMP, JSON, CheckConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from voucher_engine.db import Base


class Voucher(Base):
    __tablename__ = "vouchers"
    __table_args__ = (
        CheckConstraint("current_redemptions >= 0", name="ck_vouchers_current_redemptions_non_negative"),
        CheckConstraint(
            "max_redemptions IS NULL OR current_redemptions <= max_redemptions",
            name="ck_vouchers_redemptions_within_cap",
        ),
        Index("ix_vouchers_business_id", "business_id"),
        Index("ix_vouchers_qr_code", "qr_code"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    business_id = Column(UUID(as_uuid=True), nullable=False)
    category_id = Column(UUID(as_uuid=True), nullable=True)

    # discount | fixed_value
    type = Column(String(20), nullable=False, default="discount")

    title = Column(String(255), nullable=False)
    description = Column(String(2000))
    terms_and_conditions = Column(String(4000))

    # percentage for discount vouchers
    discount = Column(Numeric(5, 2), nullable=True)
    # amount for fixed_value vouchers
    value = Column(Numeric(12, 2), nullable=True)

    state = Column(String(20), nullable=False, default="draft")
    # draft | published | claimed | redeemed | expired | suspended

    valid_from = Column(TIMESTAMP, nullable=True)
    valid_until = Column(TIMESTAMP, nullable=True)

    # NULL = unlimited
    max_redemptions = Column(Integer, nullable=True)
    current_redemptions = Column(Integer, nullable=False, default=0)
    scan_count = Column(Integer, nullable=False, default=0)

    qr_code = Column(String(1000), nullable=True)

    meta = Column("metadata", JSON, nullable=True)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
    deleted_at = Column(TIMESTAMP, nullable=True)

    codes = relationship(
        "VoucherCode",
        back_populates="voucher",
        cascade="all, delete-orphan",
        order_by="VoucherCode.created_at",
    )

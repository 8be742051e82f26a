import uuid
from sqlalchemy import Column, String, TIMESTAMP, ForeignKey, UniqueConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from voucher_engine.db import Base


class CustomerVoucher(Base):
    __tablename__ = "customer_vouchers"
    __table_args__ = (
        # one claim per (customer, voucher); the insert race is settled here
        UniqueConstraint("customer_id", "voucher_id", name="uq_customer_vouchers_customer_voucher"),
        Index("ix_customer_vouchers_voucher_id", "voucher_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    customer_id = Column(UUID(as_uuid=True), nullable=False)
    voucher_id = Column(UUID(as_uuid=True), ForeignKey("vouchers.id"), nullable=False)

    status = Column(String(20), nullable=False, default="claimed")
    # claimed | redeemed

    claimed_at = Column(TIMESTAMP, nullable=False)
    redeemed_at = Column(TIMESTAMP, nullable=True)
    expires_at = Column(TIMESTAMP, nullable=True)

    voucher = relationship("Voucher")

import uuid
from sqlalchemy import Column, String, Boolean, TIMESTAMP, JSON, ForeignKey, Index, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from voucher_engine.db import Base


class VoucherCode(Base):
    __tablename__ = "voucher_codes"
    __table_args__ = (
        # a code string is unique among active codes of the same scheme
        Index(
            "uq_voucher_codes_active_type_code",
            "type",
            "code",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
        Index("ix_voucher_codes_voucher_id", "voucher_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    voucher_id = Column(
        UUID(as_uuid=True),
        ForeignKey("vouchers.id", ondelete="CASCADE"),
        nullable=False,
    )

    code = Column(String(1000), nullable=False)

    type = Column(String(10), nullable=False)
    # qr | short | static

    is_active = Column(Boolean, nullable=False, default=True)

    meta = Column("metadata", JSON, nullable=True)

    created_at = Column(TIMESTAMP, server_default=func.now())

    voucher = relationship("Voucher", back_populates="codes")

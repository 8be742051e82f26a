"""create voucher, voucher code, customer voucher and scan tables

Revision ID: 4f1d2c3b5a60
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "4f1d2c3b5a60"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(bind, table_name: str) -> bool:
    insp = sa.inspect(bind)
    return table_name in insp.get_table_names()


def _index_names(bind, table_name: str) -> set:
    if not _table_exists(bind, table_name):
        return set()
    return {ix["name"] for ix in sa.inspect(bind).get_indexes(table_name)}


def upgrade() -> None:
    bind = op.get_bind()

    if not _table_exists(bind, "vouchers"):
        op.create_table(
            "vouchers",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
            sa.Column("business_id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("category_id", postgresql.UUID(as_uuid=True), nullable=True),
            sa.Column("type", sa.String(length=20), nullable=False, server_default="discount"),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.String(length=2000), nullable=True),
            sa.Column("terms_and_conditions", sa.String(length=4000), nullable=True),
            sa.Column("discount", sa.Numeric(5, 2), nullable=True),
            sa.Column("value", sa.Numeric(12, 2), nullable=True),
            sa.Column("state", sa.String(length=20), nullable=False, server_default="draft"),
            sa.Column("valid_from", sa.TIMESTAMP(), nullable=True),
            sa.Column("valid_until", sa.TIMESTAMP(), nullable=True),
            sa.Column("max_redemptions", sa.Integer(), nullable=True),
            sa.Column("current_redemptions", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("scan_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("qr_code", sa.String(length=1000), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
            sa.Column("updated_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
            sa.Column("deleted_at", sa.TIMESTAMP(), nullable=True),
            sa.CheckConstraint("current_redemptions >= 0", name="ck_vouchers_current_redemptions_non_negative"),
            sa.CheckConstraint(
                "max_redemptions IS NULL OR current_redemptions <= max_redemptions",
                name="ck_vouchers_redemptions_within_cap",
            ),
        )

    indexes = _index_names(bind, "vouchers")
    if "ix_vouchers_business_id" not in indexes:
        op.create_index("ix_vouchers_business_id", "vouchers", ["business_id"])
    if "ix_vouchers_qr_code" not in indexes:
        op.create_index("ix_vouchers_qr_code", "vouchers", ["qr_code"])

    if not _table_exists(bind, "voucher_codes"):
        op.create_table(
            "voucher_codes",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
            sa.Column(
                "voucher_id",
                postgresql.UUID(as_uuid=True),
                sa.ForeignKey("vouchers.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("code", sa.String(length=1000), nullable=False),
            sa.Column("type", sa.String(length=10), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
        )

    indexes = _index_names(bind, "voucher_codes")
    if "uq_voucher_codes_active_type_code" not in indexes:
        op.create_index(
            "uq_voucher_codes_active_type_code",
            "voucher_codes",
            ["type", "code"],
            unique=True,
            postgresql_where=sa.text("is_active"),
            sqlite_where=sa.text("is_active"),
        )
    if "ix_voucher_codes_voucher_id" not in indexes:
        op.create_index("ix_voucher_codes_voucher_id", "voucher_codes", ["voucher_id"])

    if not _table_exists(bind, "customer_vouchers"):
        op.create_table(
            "customer_vouchers",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
            sa.Column("customer_id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("voucher_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("vouchers.id"), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="claimed"),
            sa.Column("claimed_at", sa.TIMESTAMP(), nullable=False),
            sa.Column("redeemed_at", sa.TIMESTAMP(), nullable=True),
            sa.Column("expires_at", sa.TIMESTAMP(), nullable=True),
            sa.UniqueConstraint("customer_id", "voucher_id", name="uq_customer_vouchers_customer_voucher"),
        )

    if "ix_customer_vouchers_voucher_id" not in _index_names(bind, "customer_vouchers"):
        op.create_index("ix_customer_vouchers_voucher_id", "customer_vouchers", ["voucher_id"])

    if not _table_exists(bind, "voucher_scans"):
        op.create_table(
            "voucher_scans",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
            sa.Column("voucher_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("vouchers.id"), nullable=False),
            sa.Column("customer_id", postgresql.UUID(as_uuid=True), nullable=True),
            sa.Column("business_id", postgresql.UUID(as_uuid=True), nullable=True),
            sa.Column("scan_type", sa.String(length=20), nullable=False),
            sa.Column("scan_source", sa.String(length=20), nullable=False, server_default="camera"),
            sa.Column("device_info", sa.JSON(), nullable=True),
            sa.Column("location", sa.JSON(), nullable=True),
            sa.Column("user_agent", sa.String(length=500), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("scanned_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
        )

    if "ix_voucher_scans_voucher_id" not in _index_names(bind, "voucher_scans"):
        op.create_index("ix_voucher_scans_voucher_id", "voucher_scans", ["voucher_id"])


def downgrade() -> None:
    bind = op.get_bind()

    for table_name in ("voucher_scans", "customer_vouchers", "voucher_codes", "vouchers"):
        if _table_exists(bind, table_name):
            op.drop_table(table_name)

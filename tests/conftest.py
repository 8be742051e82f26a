"""Shared pytest fixtures for voucher engine tests."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("VOUCHER_JWT_SECRET", "test-secret")

from datetime import datetime, timedelta
from uuid import UUID, uuid4, uuid5

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from voucher_engine.config import Settings
from voucher_engine.db import Base, enable_sqlite_transactions
from voucher_engine.models.customer_voucher import CustomerVoucher
from voucher_engine.models.enums import VoucherCodeType, VoucherState, VoucherType
from voucher_engine.models.voucher import Voucher
from voucher_engine.models.voucher_code import VoucherCode
from voucher_engine.models.voucher_scan import VoucherScan
from voucher_engine.services.cache import InMemoryCache
from voucher_engine.services.code_generator import CodeGenerator


TEST_UUID_NAMESPACE = UUID("5b0c4f7e-2d1a-4c3b-9e8f-7a6b5c4d3e2f")

NOW = datetime(2026, 3, 1, 12, 0, 0)


def uuid_for(name: str) -> UUID:
    """Deterministic UUID for a readable name."""
    return uuid5(TEST_UUID_NAMESPACE, name)


BUSINESS_ID = uuid_for("business")
OTHER_BUSINESS_ID = uuid_for("other-business")


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'vouchers.db'}",
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_transactions(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def cache():
    return InMemoryCache(default_ttl=60)


@pytest.fixture
def code_generator():
    return CodeGenerator("test-secret", short_code_length=8)


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", claim_expiry_days=30, voucher_jwt_secret="test-secret")


@pytest.fixture
def make_voucher(db):
    """Insert a voucher directly, bypassing the service layer."""

    def _make(
        state=VoucherState.PUBLISHED,
        *,
        business_id=BUSINESS_ID,
        valid_from=NOW - timedelta(days=1),
        valid_until=NOW + timedelta(days=30),
        max_redemptions=None,
        current_redemptions=0,
        qr_code=None,
        codes=(),
        deleted_at=None,
        title="Ten percent off",
        discount=10,
        value=None,
        voucher_type=VoucherType.DISCOUNT,
    ):
        voucher = Voucher(
            id=uuid4(),
            business_id=business_id,
            type=voucher_type.value,
            title=title,
            discount=discount,
            value=value,
            state=VoucherState(state).value,
            valid_from=valid_from,
            valid_until=valid_until,
            max_redemptions=max_redemptions,
            current_redemptions=current_redemptions,
            scan_count=0,
            qr_code=qr_code,
            deleted_at=deleted_at,
        )
        for code, code_type in codes:
            voucher.codes.append(VoucherCode(code=code, type=VoucherCodeType(code_type).value, is_active=True))
        db.add(voucher)
        db.commit()
        db.refresh(voucher)
        return voucher

    return _make


@pytest.fixture
def make_claim(db):
    def _make(voucher, customer_id, *, status="claimed", claimed_at=NOW):
        customer_voucher = CustomerVoucher(
            customer_id=customer_id,
            voucher_id=voucher.id,
            status=status,
            claimed_at=claimed_at,
            redeemed_at=claimed_at if status == "redeemed" else None,
            expires_at=claimed_at + timedelta(days=30),
        )
        db.add(customer_voucher)
        db.commit()
        db.refresh(customer_voucher)
        return customer_voucher

    return _make


def count_scans(db, voucher_id) -> int:
    return db.query(VoucherScan).filter(VoucherScan.voucher_id == voucher_id).count()


class BrokenCache:
    """Cache double whose every call fails."""

    def get(self, key):
        raise ConnectionError("cache down")

    def set(self, key, value, ttl=None):
        raise ConnectionError("cache down")

    def invalidate(self, key):
        raise ConnectionError("cache down")

    def invalidate_by_prefix(self, prefix):
        raise ConnectionError("cache down")

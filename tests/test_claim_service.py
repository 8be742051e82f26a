"""Tests for claiming vouchers into a customer's wallet."""

from datetime import timedelta
from uuid import uuid4

import pytest

from voucher_engine.errors import (
    AlreadyClaimed,
    InvalidStateTransition,
    ValidationError,
    VoucherExpired,
    VoucherNotFound,
    VoucherNotYetValid,
)
from voucher_engine.models.customer_voucher import CustomerVoucher
from voucher_engine.services import claim_service
from voucher_engine.services.cache import voucher_key

from conftest import NOW, BrokenCache, uuid_for


USER_ID = uuid_for("claiming-user")


def _claims_for(db, voucher_id) -> int:
    return db.query(CustomerVoucher).filter(CustomerVoucher.voucher_id == voucher_id).count()


class TestClaimVoucher:
    """Tests for claim_voucher."""

    def test_claim_published_voucher(self, db, cache, settings, make_voucher):
        """A first claim creates one claimed entry with the configured expiry."""
        voucher = make_voucher()

        result = claim_service.claim_voucher(db, voucher.id, USER_ID, cache=cache, settings=settings, now=NOW)

        assert result.voucher.id == voucher.id
        assert result.customer_voucher.status == "claimed"
        assert result.claimed_at == NOW
        assert result.expires_at == NOW + timedelta(days=30)
        assert result.wallet_position == 1
        assert _claims_for(db, voucher.id) == 1

    def test_voucher_state_is_unchanged(self, db, settings, make_voucher):
        """Claiming is tracked per customer; the voucher stays published."""
        voucher = make_voucher()

        claim_service.claim_voucher(db, voucher.id, USER_ID, settings=settings, now=NOW)
        db.refresh(voucher)

        assert voucher.state == "published"

    def test_wallet_position_counts_all_claims(self, db, settings, make_voucher):
        first = make_voucher()
        second = make_voucher()

        claim_service.claim_voucher(db, first.id, USER_ID, settings=settings, now=NOW)
        result = claim_service.claim_voucher(db, second.id, USER_ID, settings=settings, now=NOW)

        assert result.wallet_position == 2

    def test_accepts_string_ids(self, db, settings, make_voucher):
        voucher = make_voucher()

        result = claim_service.claim_voucher(db, str(voucher.id), str(USER_ID), settings=settings, now=NOW)

        assert result.customer_voucher.customer_id == USER_ID

    def test_second_claim_is_rejected(self, db, settings, make_voucher):
        """The same user cannot claim twice."""
        voucher = make_voucher()
        claim_service.claim_voucher(db, voucher.id, USER_ID, settings=settings, now=NOW)

        with pytest.raises(AlreadyClaimed):
            claim_service.claim_voucher(db, voucher.id, USER_ID, settings=settings, now=NOW)

        assert _claims_for(db, voucher.id) == 1

    def test_lost_race_becomes_already_claimed(self, db, settings, make_voucher, make_claim, monkeypatch):
        """When the existence check misses a concurrent insert, the unique constraint decides."""
        voucher = make_voucher()
        make_claim(voucher, USER_ID)
        monkeypatch.setattr(claim_service.ledger, "find_customer_voucher", lambda *args, **kwargs: None)

        with pytest.raises(AlreadyClaimed):
            claim_service.claim_voucher(db, voucher.id, USER_ID, settings=settings, now=NOW)

        assert _claims_for(db, voucher.id) == 1

    def test_different_users_can_claim(self, db, settings, make_voucher):
        voucher = make_voucher()

        claim_service.claim_voucher(db, voucher.id, uuid_for("user-a"), settings=settings, now=NOW)
        claim_service.claim_voucher(db, voucher.id, uuid_for("user-b"), settings=settings, now=NOW)

        assert _claims_for(db, voucher.id) == 2

    def test_draft_voucher(self, db, settings, make_voucher):
        voucher = make_voucher(state="draft")

        with pytest.raises(InvalidStateTransition):
            claim_service.claim_voucher(db, voucher.id, USER_ID, settings=settings, now=NOW)

        assert _claims_for(db, voucher.id) == 0

    def test_not_yet_valid(self, db, settings, make_voucher):
        voucher = make_voucher(valid_from=NOW + timedelta(days=1))

        with pytest.raises(VoucherNotYetValid):
            claim_service.claim_voucher(db, voucher.id, USER_ID, settings=settings, now=NOW)

    def test_past_valid_until(self, db, settings, make_voucher):
        voucher = make_voucher(valid_until=NOW - timedelta(days=1))

        with pytest.raises(VoucherExpired):
            claim_service.claim_voucher(db, voucher.id, USER_ID, settings=settings, now=NOW)

    def test_unknown_voucher(self, db, settings):
        with pytest.raises(VoucherNotFound):
            claim_service.claim_voucher(db, uuid4(), USER_ID, settings=settings, now=NOW)

    def test_soft_deleted_voucher(self, db, settings, make_voucher):
        voucher = make_voucher(deleted_at=NOW)

        with pytest.raises(VoucherNotFound):
            claim_service.claim_voucher(db, voucher.id, USER_ID, settings=settings, now=NOW)

    def test_malformed_user_id(self, db, settings, make_voucher):
        voucher = make_voucher()

        with pytest.raises(ValidationError):
            claim_service.claim_voucher(db, voucher.id, "not-a-uuid", settings=settings, now=NOW)

    def test_cache_is_invalidated(self, db, cache, settings, make_voucher):
        voucher = make_voucher()
        cache.set(voucher_key(voucher.id), {"stale": True})

        claim_service.claim_voucher(db, voucher.id, USER_ID, cache=cache, settings=settings, now=NOW)

        assert cache.get(voucher_key(voucher.id)) is None

    def test_cache_failure_does_not_fail_claim(self, db, settings, make_voucher):
        voucher = make_voucher()

        result = claim_service.claim_voucher(db, voucher.id, USER_ID, cache=BrokenCache(), settings=settings, now=NOW)

        assert result.customer_voucher.status == "claimed"

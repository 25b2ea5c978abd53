"""Tests for MembershipRepository subscription writes."""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from premium.core.errors import PersistenceError
from premium.models.membership import Membership, MembershipTier
from premium.models.shared import as_utc
from premium.repositories.membership_repository import MembershipRepository
from premium.repositories.user_repository import UserRepository


@pytest.fixture
def repo(db_session):
    return MembershipRepository(db_session)


def _expiry(membership: Membership) -> datetime:
    return as_utc(membership.premium_expires_at)


class TestMembershipUpgrade:
    def test_first_upgrade_creates_row(self, repo, user):
        expiry = datetime.now(UTC) + timedelta(days=30)

        membership = repo.upgrade("u1", expiry)

        assert membership.tier == MembershipTier.PREMIUM.value
        assert _expiry(membership) == expiry

    def test_later_expiry_extends(self, repo, user):
        now = datetime.now(UTC)
        repo.upgrade("u1", now + timedelta(days=30))

        membership = repo.upgrade("u1", now + timedelta(days=60))

        assert _expiry(membership) == now + timedelta(days=60)

    def test_earlier_expiry_never_shortens(self, repo, user):
        """Test that a replayed or stale activation cannot move expiry backwards."""
        now = datetime.now(UTC)
        repo.upgrade("u1", now + timedelta(days=60))

        membership = repo.upgrade("u1", now + timedelta(days=30))

        assert _expiry(membership) == now + timedelta(days=60)
        assert membership.tier == MembershipTier.PREMIUM.value

    def test_same_expiry_is_idempotent(self, repo, user):
        expiry = datetime.now(UTC) + timedelta(days=30)
        repo.upgrade("u1", expiry)
        membership = repo.upgrade("u1", expiry)
        assert _expiry(membership) == expiry

    def test_upgrades_basic_row(self, repo, db_session, user):
        db_session.add(Membership(user_id="u1", tier=MembershipTier.BASIC.value))
        db_session.commit()

        expiry = datetime.now(UTC) + timedelta(days=30)
        membership = repo.upgrade("u1", expiry)

        assert membership.tier == MembershipTier.PREMIUM.value
        assert _expiry(membership) == expiry

    def test_store_failure_raises_persistence_error(self, repo, user):
        with (
            patch.object(repo, "_extend", side_effect=OperationalError("UPDATE", {}, Exception("locked"))),
            pytest.raises(PersistenceError),
        ):
            repo.upgrade("u1", datetime.now(UTC) + timedelta(days=30))

        assert repo.get("u1") is None


class TestMembershipGet:
    def test_missing(self, repo):
        assert repo.get("nobody") is None

    def test_read_failure_raises_persistence_error(self, repo, db_session):
        with (
            patch.object(db_session, "query", side_effect=OperationalError("SELECT", {}, Exception("gone"))),
            pytest.raises(PersistenceError),
        ):
            repo.get("u1")


class TestMembershipGetOrCreate:
    def test_creates_basic_row(self, repo, user):
        membership = repo.get_or_create("u1")
        assert membership.tier == MembershipTier.BASIC.value
        assert membership.premium_expires_at is None

    def test_returns_existing_row(self, repo, user):
        expiry = datetime.now(UTC) + timedelta(days=30)
        repo.upgrade("u1", expiry)

        membership = repo.get_or_create("u1")

        assert membership.tier == MembershipTier.PREMIUM.value
        assert _expiry(membership) == expiry

    def test_then_upgrade_extends(self, repo, user):
        repo.get_or_create("u1")
        expiry = datetime.now(UTC) + timedelta(days=30)
        assert _expiry(repo.upgrade("u1", expiry)) == expiry


class TestMembershipExtendFrom:
    def test_basic_row_with_no_expiry(self, repo, user):
        repo.get_or_create("u1")
        expiry = datetime.now(UTC) + timedelta(days=30)

        membership = repo.extend_from("u1", None, expiry)

        assert membership.tier == MembershipTier.PREMIUM.value
        assert _expiry(membership) == expiry

    def test_matching_expiry_is_replaced(self, repo, user):
        now = datetime.now(UTC)
        read = repo.upgrade("u1", now + timedelta(days=10)).premium_expires_at

        membership = repo.extend_from("u1", read, now + timedelta(days=40))

        assert _expiry(membership) == now + timedelta(days=40)

    def test_changed_expiry_is_left_alone(self, repo, db_session, user):
        now = datetime.now(UTC)
        read = repo.upgrade("u1", now + timedelta(days=10)).premium_expires_at
        repo.upgrade("u1", now + timedelta(days=20))

        assert repo.extend_from("u1", read, now + timedelta(days=40)) is None

        db_session.expire_all()
        assert _expiry(repo.get("u1")) == now + timedelta(days=20)

    def test_miss_rolls_back_pending_work(self, repo, db_session, user):
        now = datetime.now(UTC)
        repo.upgrade("u1", now + timedelta(days=10))
        UserRepository(db_session).get_by_id("u1").first_name = "Grace"
        db_session.flush()

        assert repo.extend_from("u1", None, now + timedelta(days=40)) is None

        db_session.expire_all()
        assert UserRepository(db_session).get_by_id("u1").first_name == "Ada"

    def test_store_failure_raises_persistence_error(self, repo, db_session, user):
        repo.get_or_create("u1")
        with (
            patch.object(db_session, "query", side_effect=OperationalError("UPDATE", {}, Exception("locked"))),
            pytest.raises(PersistenceError),
        ):
            repo.extend_from("u1", None, datetime.now(UTC) + timedelta(days=30))


class TestExpireLapsed:
    def test_downgrades_only_expired_rows(self, repo, db_session, user):
        UserRepository(db_session).create("u2", email="b@c.com")
        now = datetime.now(UTC)
        repo.upgrade("u1", now - timedelta(minutes=1))
        repo.upgrade("u2", now + timedelta(days=5))

        count = repo.expire_lapsed(now)

        assert count == 1
        assert repo.get("u1").tier == MembershipTier.BASIC.value
        assert repo.get("u2").tier == MembershipTier.PREMIUM.value

    def test_expired_row_keeps_expiry_for_history(self, repo, user):
        past = datetime.now(UTC) - timedelta(days=1)
        repo.upgrade("u1", past)
        repo.expire_lapsed(datetime.now(UTC))
        assert _expiry(repo.get("u1")) == past

    def test_nothing_to_expire(self, repo):
        assert repo.expire_lapsed(datetime.now(UTC)) == 0


class TestEffectiveTier:
    def test_premium_in_future(self):
        now = datetime(2025, 5, 1, tzinfo=UTC)
        membership = Membership(
            user_id="u1",
            tier=MembershipTier.PREMIUM.value,
            premium_expires_at=now + timedelta(seconds=1),
        )
        assert membership.effective_tier(now) is MembershipTier.PREMIUM

    def test_premium_at_expiry_reads_basic(self):
        now = datetime(2025, 5, 1, tzinfo=UTC)
        membership = Membership(
            user_id="u1", tier=MembershipTier.PREMIUM.value, premium_expires_at=now
        )
        assert membership.effective_tier(now) is MembershipTier.BASIC

    def test_naive_expiry_treated_as_utc(self):
        now = datetime(2025, 5, 1, tzinfo=UTC)
        membership = Membership(
            user_id="u1",
            tier=MembershipTier.PREMIUM.value,
            premium_expires_at=datetime(2025, 6, 1),
        )
        assert membership.effective_tier(now) is MembershipTier.PREMIUM

    def test_basic_row(self):
        membership = Membership(user_id="u1", tier=MembershipTier.BASIC.value)
        assert membership.effective_tier() is MembershipTier.BASIC

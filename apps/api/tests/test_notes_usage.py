"""
Tests for the daily study-notes usage gate.

The reference day is UTC+05:30, so midnight falls at 18:30 UTC.
"""
from datetime import date, datetime, timedelta, timezone

from models import NotesUsage
from services.notes_usage import (
    check_and_increment,
    daily_limit,
    get_count,
    reset_label,
    usage_day,
)

# 10:00 IST on 2025-03-10
MORNING = datetime(2025, 3, 10, 4, 30, tzinfo=timezone.utc)


class TestUsageDay:
    def test_reference_offset(self):
        assert usage_day(datetime(2025, 3, 10, 18, 29, 59, tzinfo=timezone.utc)) == date(2025, 3, 10)

    def test_midnight_belongs_to_new_day(self):
        assert usage_day(datetime(2025, 3, 10, 18, 30, tzinfo=timezone.utc)) == date(2025, 3, 11)

    def test_naive_is_utc(self):
        assert usage_day(datetime(2025, 3, 10, 18, 30)) == date(2025, 3, 11)

    def test_explicit_offset(self):
        assert usage_day(datetime(2025, 3, 10, 23, 0, tzinfo=timezone.utc), offset_minutes=0) == date(2025, 3, 10)

    def test_reset_label(self):
        assert reset_label() == "UTC+05:30"
        assert reset_label(-300) == "UTC-05:00"


class TestCheckAndIncrement:
    def test_three_allowed_then_rejected(self, db_session, user_id):
        assert daily_limit() == 3

        counts = [check_and_increment(db_session, user_id, now=MORNING) for _ in range(3)]
        assert [c.allowed for c in counts] == [True, True, True]
        assert [c.current_count for c in counts] == [1, 2, 3]
        assert counts[-1].remaining == 0

        rejected = check_and_increment(db_session, user_id, now=MORNING)
        assert rejected.allowed is False
        assert rejected.current_count == 3
        assert rejected.max_count == 3

    def test_next_reference_day_starts_over(self, db_session, user_id):
        for _ in range(3):
            check_and_increment(db_session, user_id, now=MORNING)

        tomorrow = check_and_increment(db_session, user_id, now=MORNING + timedelta(days=1))
        assert tomorrow.allowed is True
        assert tomorrow.current_count == 1

    def test_boundary_instant_counts_toward_new_day(self, db_session, user_id):
        for _ in range(3):
            check_and_increment(db_session, user_id, now=datetime(2025, 3, 10, 18, 29, 59, tzinfo=timezone.utc))

        at_midnight = check_and_increment(db_session, user_id, now=datetime(2025, 3, 10, 18, 30, tzinfo=timezone.utc))
        assert at_midnight.allowed is True
        assert at_midnight.current_count == 1

    def test_users_are_independent(self, db_session, user_id):
        for _ in range(3):
            check_and_increment(db_session, user_id, now=MORNING)

        other = check_and_increment(db_session, "another-user", now=MORNING)
        assert other.allowed is True
        assert other.current_count == 1

    def test_get_count_is_read_only(self, db_session, user_id):
        assert get_count(db_session, user_id, now=MORNING) == 0
        assert db_session.query(NotesUsage).count() == 0

        check_and_increment(db_session, user_id, now=MORNING)
        assert get_count(db_session, user_id, now=MORNING) == 1
        assert get_count(db_session, user_id, now=MORNING) == 1

    def test_rollback_does_not_count(self, db_session, user_id):
        check_and_increment(db_session, user_id, now=MORNING)
        db_session.commit()

        check_and_increment(db_session, user_id, now=MORNING)
        db_session.rollback()

        assert get_count(db_session, user_id, now=MORNING) == 1

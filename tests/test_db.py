"""Tests for elepad.data.db — ActivityDB (SQLite storage)."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from elepad.data.db import from_db_instant, to_db_instant
from elepad.data.models import RecurringActivity, SingleOccurrenceActivity


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestInstantEncoding:
    def test_drops_microseconds_and_normalizes_to_utc(self):
        local = datetime(2026, 10, 19, 9, 0, 0, 500, tzinfo=timezone(timedelta(hours=-3)))
        assert to_db_instant(local) == "2026-10-19T12:00:00+00:00"

    def test_round_trip(self):
        assert from_db_instant(to_db_instant(_utc(2026, 10, 19, 12, 0))) == _utc(2026, 10, 19, 12, 0)

    def test_none(self):
        assert from_db_instant(None) is None


class TestFrequencies:
    def test_add_and_get(self, activity_db):
        freq = activity_db.add_frequency("Every day", "FREQ=DAILY")
        fetched = activity_db.get_frequency(freq.id)
        assert fetched.label == "Every day"
        assert fetched.rrule == "FREQ=DAILY"

    def test_get_missing(self, activity_db):
        assert activity_db.get_frequency("nope") is None

    def test_list_sorted_by_label(self, activity_db):
        activity_db.add_frequency("Weekly", "FREQ=WEEKLY")
        activity_db.add_frequency("Daily", "FREQ=DAILY")
        activity_db.add_frequency("Custom")
        assert [f.label for f in activity_db.list_frequencies()] == ["Custom", "Daily", "Weekly"]


class TestActivities:
    def test_single_occurrence_shape(self, activity_db):
        activity = activity_db.add_activity(
            title="Doctor",
            starts_at=_utc(2026, 10, 19, 14, 0),
            created_by="family-1",
            description="Cardiology",
            assigned_to="elder-1",
        )
        assert isinstance(activity, SingleOccurrenceActivity)
        assert activity.starts_at == _utc(2026, 10, 19, 14, 0)
        assert activity.completed is False
        assert activity.description == "Cardiology"

    def test_recurring_shape_has_parsed_rule(self, activity_db):
        freq = activity_db.add_frequency("Mondays", "FREQ=WEEKLY;BYDAY=MO")
        activity = activity_db.add_activity(
            title="Walk",
            starts_at=_utc(2026, 10, 19, 21, 0),
            ends_at=_utc(2026, 12, 31, 21, 0),
            created_by="family-1",
            frequency_id=freq.id,
        )
        assert isinstance(activity, RecurringActivity)
        assert activity.rule_text == "FREQ=WEEKLY;BYDAY=MO"
        assert activity.rule.frequency == "WEEKLY"
        assert activity.rule.by_weekday == frozenset({"MO"})
        assert activity.ends_at == _utc(2026, 12, 31, 21, 0)

    def test_recurring_with_ruleless_frequency(self, activity_db):
        freq = activity_db.add_frequency("Whenever")
        activity = activity_db.add_activity(
            title="Call", starts_at=_utc(2026, 10, 19, 15, 0),
            created_by="family-1", frequency_id=freq.id,
        )
        assert isinstance(activity, RecurringActivity)
        assert activity.rule is None

    def test_add_raises_when_row_cannot_be_read_back(self, activity_db):
        with patch.object(activity_db, "get_activity", return_value=None):
            with pytest.raises(RuntimeError, match="missing right after insert"):
                activity_db.add_activity(
                    title="Doctor", starts_at=_utc(2026, 10, 19, 14, 0), created_by="family-1",
                )

    def test_get_missing(self, activity_db):
        assert activity_db.get_activity("nope") is None

    def test_set_completed(self, activity_db):
        activity = activity_db.add_activity(
            title="Doctor", starts_at=_utc(2026, 10, 19, 14, 0), created_by="family-1",
        )
        activity_db.set_completed(activity.id)
        assert activity_db.get_activity(activity.id).completed is True
        activity_db.set_completed(activity.id, False)
        assert activity_db.get_activity(activity.id).completed is False

    def test_set_completed_missing_raises(self, activity_db):
        with pytest.raises(ValueError, match="not found"):
            activity_db.set_completed("nope")

    def test_delete(self, activity_db):
        activity = activity_db.add_activity(
            title="Doctor", starts_at=_utc(2026, 10, 19, 14, 0), created_by="family-1",
        )
        activity_db.toggle_completion(activity.id, "elder-1", "2026-10-19")
        assert activity_db.delete_activity(activity.id) is True
        assert activity_db.get_activity(activity.id) is None
        assert activity_db.completed_activity_ids("2026-10-19") == set()
        assert activity_db.delete_activity(activity.id) is False

    def test_list_for_user(self, activity_db):
        activity_db.add_activity(title="Mine", starts_at=_utc(2026, 10, 19, 14, 0),
                                 created_by="family-1", assigned_to="elder-1")
        activity_db.add_activity(title="Created", starts_at=_utc(2026, 10, 19, 13, 0),
                                 created_by="elder-1")
        activity_db.add_activity(title="Other", starts_at=_utc(2026, 10, 19, 12, 0),
                                 created_by="family-2", assigned_to="elder-2")
        assert [a.title for a in activity_db.list_for_user("elder-1")] == ["Created", "Mine"]


class TestScanQueries:
    def test_single_due_half_open_window(self, activity_db):
        for hour, minute in [(17, 0), (17, 30), (18, 0), (16, 59)]:
            activity_db.add_activity(
                title=f"{hour}:{minute:02d}",
                starts_at=_utc(2026, 10, 19, hour, minute),
                created_by="family-1",
            )
        due = activity_db.list_single_due(_utc(2026, 10, 19, 17, 0), _utc(2026, 10, 19, 18, 0))
        assert [a.title for a in due] == ["17:00", "17:30"]

    def test_single_due_excludes_completed_and_recurring(self, activity_db):
        freq = activity_db.add_frequency("Daily", "FREQ=DAILY")
        done = activity_db.add_activity(
            title="Done", starts_at=_utc(2026, 10, 19, 17, 10), created_by="family-1",
        )
        activity_db.set_completed(done.id)
        activity_db.add_activity(
            title="Recurring", starts_at=_utc(2026, 10, 19, 17, 20),
            created_by="family-1", frequency_id=freq.id,
        )
        due = activity_db.list_single_due(_utc(2026, 10, 19, 17, 0), _utc(2026, 10, 19, 18, 0))
        assert due == []

    def test_single_due_sub_second_bounds(self, activity_db):
        activity_db.add_activity(
            title="18:00", starts_at=_utc(2026, 10, 19, 18, 0), created_by="family-1",
        )
        in_window = activity_db.list_single_due(
            _utc(2026, 10, 19, 17, 0, 0, 3000), _utc(2026, 10, 19, 18, 0, 0, 3000),
        )
        past_window = activity_db.list_single_due(
            _utc(2026, 10, 19, 18, 0, 0, 3000), _utc(2026, 10, 19, 19, 0, 0, 3000),
        )
        assert [a.title for a in in_window] == ["18:00"]
        assert past_window == []

    def test_recurring_candidates_upper_bound(self, activity_db):
        freq = activity_db.add_frequency("Daily", "FREQ=DAILY")
        activity_db.add_activity(title="Old", starts_at=_utc(2026, 1, 1, 18, 0),
                                 created_by="family-1", frequency_id=freq.id)
        activity_db.add_activity(title="Edge", starts_at=_utc(2026, 10, 19, 18, 0),
                                 created_by="family-1", frequency_id=freq.id)
        activity_db.add_activity(title="Future", starts_at=_utc(2026, 10, 19, 18, 1),
                                 created_by="family-1", frequency_id=freq.id)
        activity_db.add_activity(title="Single", starts_at=_utc(2026, 10, 19, 17, 0),
                                 created_by="family-1")
        candidates = activity_db.list_recurring_candidates(_utc(2026, 10, 19, 18, 0))
        assert [a.title for a in candidates] == ["Old", "Edge"]
        assert all(isinstance(a, RecurringActivity) for a in candidates)


class TestCompletions:
    def test_toggle_on_then_off(self, activity_db):
        completed, completion = activity_db.toggle_completion("act-1", "elder-1", "2026-10-19")
        assert completed is True
        assert completion.completed_date == "2026-10-19"
        assert activity_db.is_completed("act-1", "elder-1", "2026-10-19") is True

        completed, completion = activity_db.toggle_completion("act-1", "elder-1", "2026-10-19")
        assert completed is False
        assert completion is None
        assert activity_db.is_completed("act-1", "elder-1", "2026-10-19") is False

    def test_completion_is_per_day(self, activity_db):
        activity_db.toggle_completion("act-1", "elder-1", "2026-10-19")
        assert activity_db.is_completed("act-1", "elder-1", "2026-10-20") is False

    def test_completed_ids_across_users(self, activity_db):
        activity_db.toggle_completion("act-1", "elder-1", "2026-10-19")
        activity_db.toggle_completion("act-2", "family-1", "2026-10-19")
        activity_db.toggle_completion("act-3", "elder-1", "2026-10-18")
        assert activity_db.completed_activity_ids("2026-10-19") == {"act-1", "act-2"}

    def test_list_completions(self, activity_db):
        activity_db.toggle_completion("act-1", "elder-1", "2026-10-19")
        completions = activity_db.list_completions("2026-10-19")
        assert len(completions) == 1
        assert completions[0].user_id == "elder-1"

"""
Unit tests for usage aggregation.

Tests grouping by model, session, day and hour, ordering, and the
consistency of totals across dimensions.
"""

from datetime import datetime, timedelta, timezone

import pytest

from claude_cost.core.aggregator import aggregate
from claude_cost.core.pricing import calculate_cost
from claude_cost.core.token_counter import TokenUsage
from claude_cost.storage.models import UsageEvent

UTC = timezone.utc
NOW = datetime(2025, 1, 15, 18, 0, tzinfo=UTC)

SONNET = "claude-3-5-sonnet-20241022"
OPUS = "claude-opus-4-5-20251101"


def _event(when, session_id="s1", message_id="m1", model=SONNET, project="/work/app",
           input_tokens=1000, output_tokens=500, cache_read_tokens=0):
    usage = TokenUsage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cache_read_tokens=cache_read_tokens,
    )
    return UsageEvent(
        timestamp=when,
        model=model,
        usage=usage,
        cost=calculate_cost(model, usage),
        session_id=session_id,
        project=project,
        message_id=message_id,
    )


@pytest.fixture
def events():
    """Three days, two sessions, two models."""
    return [
        _event(datetime(2025, 1, 13, 9, 0, tzinfo=UTC), "s1", "m1", SONNET),
        _event(datetime(2025, 1, 14, 11, 0, tzinfo=UTC), "s1", "m2", OPUS, cache_read_tokens=2000),
        _event(datetime(2025, 1, 15, 8, 15, tzinfo=UTC), "s2", "m3", SONNET, project="/work/other"),
        _event(datetime(2025, 1, 15, 8, 45, tzinfo=UTC), "s2", "m4", OPUS, project="/work/other"),
        _event(datetime(2025, 1, 15, 14, 5, tzinfo=UTC), "s2", "m5", SONNET, project="/work/other"),
    ]


class TestTotals:
    """Test grand totals and their consistency."""

    def test_message_count(self, events):
        """Verify every event counts once."""
        assert aggregate(events, now=NOW, tz=UTC).message_count == 5

    def test_totals_match_per_model(self, events):
        """Verify total cost and tokens equal the per-model sums."""
        stats = aggregate(events, now=NOW, tz=UTC)

        model_cost = sum(m.cost for m in stats.by_model.values())
        model_tokens = sum(m.tokens.total_tokens for m in stats.by_model.values())

        assert stats.total_cost == pytest.approx(model_cost)
        assert stats.total_tokens.total_tokens == model_tokens

    def test_totals_match_per_day(self, events):
        """Verify total cost and tokens equal the per-day sums."""
        stats = aggregate(events, now=NOW, tz=UTC)

        day_cost = sum(d.total_cost for d in stats.daily)
        day_tokens = sum(d.total_tokens.total_tokens for d in stats.daily)

        assert stats.total_cost == pytest.approx(day_cost)
        assert stats.total_tokens.total_tokens == day_tokens

    def test_totals_match_on_filtered_subsets(self, events):
        """Verify the cross-dimension sums hold for any contiguous range."""
        for start in range(len(events)):
            for end in range(start, len(events)):
                stats = aggregate(events[start:end + 1], now=NOW, tz=UTC)
                assert stats.total_cost == pytest.approx(sum(m.cost for m in stats.by_model.values()))
                assert stats.total_cost == pytest.approx(sum(d.total_cost for d in stats.daily))

    def test_empty_stream(self):
        """Verify an empty stream gives an empty snapshot."""
        stats = aggregate([], now=NOW, tz=UTC)
        assert stats.is_empty
        assert stats.total_cost == 0.0
        assert stats.total_tokens == TokenUsage()
        assert stats.sessions == () and stats.daily == () and stats.hourly == ()


class TestByModel:
    """Test per-model grouping."""

    def test_display_names(self, events):
        """Verify display names are attached."""
        stats = aggregate(events, now=NOW, tz=UTC)
        assert stats.by_model[SONNET].display_name == "Sonnet 3.5"
        assert stats.by_model[OPUS].display_name == "Opus 4.5"

    def test_token_kinds_summed(self, events):
        """Verify each token kind is summed separately."""
        opus = aggregate(events, now=NOW, tz=UTC).by_model[OPUS]
        assert opus.tokens == TokenUsage(input_tokens=2000, output_tokens=1000, cache_read_tokens=2000)


class TestBySession:
    """Test per-session grouping."""

    def test_ordered_most_recent_first(self, events):
        """Verify sessions sort by last message, newest first."""
        stats = aggregate(events, now=NOW, tz=UTC)
        assert [s.session_id for s in stats.sessions] == ["s2", "s1"]

    def test_session_fields(self, events):
        """Verify first/last timestamps, counts and project."""
        s2 = aggregate(events, now=NOW, tz=UTC).sessions[0]
        assert s2.first_message == datetime(2025, 1, 15, 8, 15, tzinfo=UTC)
        assert s2.last_message == datetime(2025, 1, 15, 14, 5, tzinfo=UTC)
        assert s2.message_count == 3
        assert s2.project == "/work/other"

    def test_model_is_last_event_model(self):
        """Verify the session model is the last one used, not the most common."""
        base = datetime(2025, 1, 15, 9, 0, tzinfo=UTC)
        stream = [
            _event(base, message_id="a", model=SONNET),
            _event(base + timedelta(minutes=1), message_id="b", model=SONNET),
            _event(base + timedelta(minutes=2), message_id="c", model=OPUS),
        ]
        assert aggregate(stream, now=NOW, tz=UTC).sessions[0].model == OPUS

    def test_model_uses_chronology_not_input_order(self):
        """Verify out-of-order input still picks the chronologically last model."""
        base = datetime(2025, 1, 15, 9, 0, tzinfo=UTC)
        stream = [
            _event(base + timedelta(minutes=5), message_id="late", model=OPUS),
            _event(base, message_id="early", model=SONNET),
        ]
        assert aggregate(stream, now=NOW, tz=UTC).sessions[0].model == OPUS


class TestByDay:
    """Test per-day grouping."""

    def test_ordered_newest_first(self, events):
        """Verify days sort descending by date string."""
        stats = aggregate(events, now=NOW, tz=UTC)
        assert [d.date for d in stats.daily] == ["2025-01-15", "2025-01-14", "2025-01-13"]

    def test_day_breakdown(self, events):
        """Verify per-day counts and per-model split."""
        today = aggregate(events, now=NOW, tz=UTC).daily[0]
        assert today.message_count == 3
        assert today.session_count == 1
        assert set(today.by_model) == {SONNET, OPUS}
        assert today.by_model[SONNET].tokens.input_tokens == 2000

    def test_local_time_zone_decides_the_day(self):
        """Verify day buckets follow the given time zone."""
        late_utc = _event(datetime(2025, 1, 15, 23, 30, tzinfo=UTC))
        tokyo = timezone(timedelta(hours=9))

        assert aggregate([late_utc], now=NOW, tz=UTC).daily[0].date == "2025-01-15"
        assert aggregate([late_utc], now=NOW, tz=tokyo).daily[0].date == "2025-01-16"


class TestByHour:
    """Test today's hourly view."""

    def test_only_today_counted(self, events):
        """Verify events from earlier days are excluded."""
        stats = aggregate(events, now=NOW, tz=UTC)
        assert [h.hour for h in stats.hourly] == [8, 14]
        assert sum(h.message_count for h in stats.hourly) == 3

    def test_hour_bucket_totals(self, events):
        """Verify cost, tokens and counts within one hour."""
        eight = aggregate(events, now=NOW, tz=UTC).hourly[0]
        assert eight.message_count == 2
        assert eight.tokens == 3000
        assert eight.cost == pytest.approx(events[2].cost + events[3].cost)

    def test_hours_ascending(self):
        """Verify hours are sorted ascending regardless of input order."""
        stream = [
            _event(datetime(2025, 1, 15, 17, 0, tzinfo=UTC), message_id="a"),
            _event(datetime(2025, 1, 15, 3, 0, tzinfo=UTC), message_id="b"),
            _event(datetime(2025, 1, 15, 11, 0, tzinfo=UTC), message_id="c"),
        ]
        assert [h.hour for h in aggregate(stream, now=NOW, tz=UTC).hourly] == [3, 11, 17]

    def test_no_events_today(self, events):
        """Verify the hourly view is empty when nothing happened today."""
        tomorrow = NOW + timedelta(days=1)
        assert aggregate(events, now=tomorrow, tz=UTC).hourly == ()


class TestDeterminism:
    """Test that aggregation is repeatable."""

    def test_same_input_same_snapshot(self, events):
        """Verify two runs produce equal snapshots."""
        assert aggregate(events, now=NOW, tz=UTC) == aggregate(events, now=NOW, tz=UTC)

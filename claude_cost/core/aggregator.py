"""
Usage aggregation.

Folds a deduplicated event stream into the statistics snapshot shown by the
display layer: totals, per-model, per-session, per-day and today's per-hour
activity.

Aggregation is pure and deterministic for a given ``now`` and ``tz``. Day
and hour buckets use the calendar of ``tz`` (the host's local zone when
omitted).
"""

from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .pricing import get_model_display_name
from .token_counter import TokenUsage
from claude_cost.storage.models import UsageEvent

DATE_FORMAT = "%Y-%m-%d"


@dataclass(frozen=True)
class CostTotals:
    """Cost and tokens summed over a group of events."""
    cost: float
    tokens: TokenUsage


@dataclass(frozen=True)
class ModelTotals:
    """Cost and tokens for one model, with its display name."""
    cost: float
    tokens: TokenUsage
    display_name: str


@dataclass(frozen=True)
class SessionSummary:
    """Totals for one session.

    ``model`` is the model of the chronologically last event in the session.
    """
    session_id: str
    project: str
    first_message: datetime
    last_message: datetime
    total_cost: float
    total_tokens: TokenUsage
    message_count: int
    model: str


@dataclass(frozen=True)
class DailySummary:
    """Totals for one local calendar day."""
    date: str
    total_cost: float
    total_tokens: TokenUsage
    session_count: int
    message_count: int
    by_model: Mapping[str, CostTotals]


@dataclass(frozen=True)
class HourlySummary:
    """Today's activity within one hour of the day (0-23)."""
    hour: int
    cost: float
    tokens: int
    message_count: int


@dataclass(frozen=True)
class StatsSnapshot:
    """Aggregated statistics for one query.

    Sessions are ordered most recent first, days newest first and hours
    ascending.
    """
    message_count: int
    sessions: Tuple[SessionSummary, ...]
    daily: Tuple[DailySummary, ...]
    hourly: Tuple[HourlySummary, ...]
    total_cost: float
    total_tokens: TokenUsage
    by_model: Mapping[str, ModelTotals]

    @property
    def session_count(self) -> int:
        return len(self.sessions)

    @property
    def is_empty(self) -> bool:
        return self.message_count == 0


@dataclass
class _Accumulator:
    cost: float = 0.0
    tokens: TokenUsage = field(default_factory=TokenUsage)
    message_count: int = 0

    def add(self, event: UsageEvent) -> None:
        self.cost += event.cost
        self.tokens = self.tokens + event.usage
        self.message_count += 1


def _local(timestamp: datetime, tz: Optional[tzinfo]) -> datetime:
    # astimezone(None) converts to the host's local zone
    return timestamp.astimezone(tz)


def _summarize_session(session_id: str, events: List[UsageEvent]) -> SessionSummary:
    ordered = sorted(events, key=lambda e: e.timestamp)
    totals = _Accumulator()
    for event in ordered:
        totals.add(event)

    first_event = ordered[0]
    last_event = ordered[-1]
    return SessionSummary(
        session_id=session_id,
        project=first_event.project,
        first_message=first_event.timestamp,
        last_message=last_event.timestamp,
        total_cost=totals.cost,
        total_tokens=totals.tokens,
        message_count=totals.message_count,
        model=last_event.model,
    )


def _summarize_day(date: str, events: List[UsageEvent]) -> DailySummary:
    totals = _Accumulator()
    by_model: Dict[str, _Accumulator] = {}
    sessions: Set[str] = set()

    for event in events:
        totals.add(event)
        by_model.setdefault(event.model, _Accumulator()).add(event)
        sessions.add(event.session_id)

    return DailySummary(
        date=date,
        total_cost=totals.cost,
        total_tokens=totals.tokens,
        session_count=len(sessions),
        message_count=totals.message_count,
        by_model=MappingProxyType({
            model: CostTotals(cost=acc.cost, tokens=acc.tokens)
            for model, acc in by_model.items()
        }),
    )


def aggregate(
    events: Iterable[UsageEvent],
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> StatsSnapshot:
    """Compute the statistics snapshot for an event stream.

    Args:
        events: Deduplicated events, normally in ascending timestamp order
        now: Reference time for the hourly (today only) view
        tz: Time zone for day and hour buckets; host local zone if None

    Returns:
        StatsSnapshot with totals, per-model, per-session, per-day and
        per-hour breakdowns
    """
    if now is None:
        now = datetime.now().astimezone()
    today = _local(now, tz).date() if now.tzinfo is not None else now.date()

    totals = _Accumulator()
    by_model: Dict[str, _Accumulator] = {}
    sessions: Dict[str, List[UsageEvent]] = {}
    days: Dict[str, List[UsageEvent]] = {}
    hours: Dict[int, _Accumulator] = {}

    for event in events:
        totals.add(event)
        by_model.setdefault(event.model, _Accumulator()).add(event)
        sessions.setdefault(event.session_id, []).append(event)

        local_time = _local(event.timestamp, tz)
        days.setdefault(local_time.strftime(DATE_FORMAT), []).append(event)

        if local_time.date() == today:
            hours.setdefault(local_time.hour, _Accumulator()).add(event)

    session_summaries = [
        _summarize_session(session_id, session_events)
        for session_id, session_events in sessions.items()
    ]
    session_summaries.sort(key=lambda s: s.last_message, reverse=True)

    daily = [_summarize_day(date, day_events) for date, day_events in days.items()]
    daily.sort(key=lambda d: d.date, reverse=True)

    hourly = [
        HourlySummary(
            hour=hour,
            cost=acc.cost,
            tokens=acc.tokens.total_tokens,
            message_count=acc.message_count,
        )
        for hour, acc in sorted(hours.items())
    ]

    return StatsSnapshot(
        message_count=totals.message_count,
        sessions=tuple(session_summaries),
        daily=tuple(daily),
        hourly=tuple(hourly),
        total_cost=totals.cost,
        total_tokens=totals.tokens,
        by_model=MappingProxyType({
            model: ModelTotals(
                cost=acc.cost,
                tokens=acc.tokens,
                display_name=get_model_display_name(model),
            )
            for model, acc in by_model.items()
        }),
    )

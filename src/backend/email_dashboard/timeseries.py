from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from .config import GranularityConfig
from .dataset import EmailRecordStore
from .metrics import aggregate, metric_value
from .models import CampaignRecord, Granularity, TimeBucket, TrendPoint
from .ranges import granularity_for, range_window

GRANULARITIES: Tuple[str, ...] = ("daily", "weekly", "monthly")


def _unit_start(moment: datetime, granularity: Granularity) -> datetime:
    midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    if granularity == "daily":
        return midnight
    if granularity == "weekly":
        return midnight - timedelta(days=midnight.weekday())
    return midnight.replace(day=1)


def _next_unit(start: datetime, granularity: Granularity) -> datetime:
    if granularity == "daily":
        return start + timedelta(days=1)
    if granularity == "weekly":
        return start + timedelta(days=7)
    if start.month == 12:
        return start.replace(year=start.year + 1, month=1)
    return start.replace(month=start.month + 1)


def _bucket_key(unit_start: datetime, granularity: Granularity) -> str:
    if granularity == "monthly":
        return unit_start.strftime("%Y-%m")
    return unit_start.date().isoformat()


def _period_label(unit_start: datetime, granularity: Granularity) -> str:
    if granularity == "monthly":
        return unit_start.strftime("%b %y")
    return f"{unit_start.strftime('%b')} {unit_start.day}"


@dataclass(frozen=True)
class BucketBoundary:
    key: str
    label: str
    start: datetime
    end: datetime
    closed: bool


def bucket_boundaries(
    range_start: datetime,
    range_end: datetime,
    granularity: Granularity,
) -> List[BucketBoundary]:
    """
    Contiguous calendar-aligned buckets covering ``[range_start, range_end]``.

    Units are aligned to midnight, Monday, or the first of the month and then
    clipped to the range, so the first bucket starts at ``range_start`` and the
    last one (the only closed one) ends at ``range_end``.
    """

    if granularity not in GRANULARITIES:
        raise ValueError(f"Unknown granularity: {granularity!r}")
    if range_start > range_end:
        return []

    boundaries: List[BucketBoundary] = []
    cursor = _unit_start(range_start, granularity)
    while True:
        following = _next_unit(cursor, granularity)
        closed = following > range_end
        boundaries.append(
            BucketBoundary(
                key=_bucket_key(cursor, granularity),
                label=_period_label(cursor, granularity),
                start=max(cursor, range_start),
                end=range_end if closed else following,
                closed=closed,
            )
        )
        if closed:
            return boundaries
        cursor = following


class BucketSeries:
    """
    Restartable sequence of :class:`TimeBucket` for one record subset.

    Boundaries are fixed at construction; aggregation runs afresh on every
    iteration, so two iterations never share a cursor or partial state.
    """

    def __init__(
        self,
        records: Sequence[CampaignRecord],
        range_start: datetime,
        range_end: datetime,
        granularity: Granularity,
    ) -> None:
        self.granularity = granularity
        self.range_start = range_start
        self.range_end = range_end
        self.boundaries = tuple(bucket_boundaries(range_start, range_end, granularity))
        self._records = tuple(records)

    def __len__(self) -> int:
        return len(self.boundaries)

    def __iter__(self) -> Iterator[TimeBucket]:
        grouped: List[List[CampaignRecord]] = [[] for _ in self.boundaries]
        starts = [boundary.start for boundary in self.boundaries]
        for record in self._records:
            if not (self.range_start <= record.sent_date <= self.range_end):
                continue
            grouped[bisect_right(starts, record.sent_date) - 1].append(record)

        for boundary, members in zip(self.boundaries, grouped):
            yield TimeBucket(
                period_label=boundary.label,
                bucket_key=boundary.key,
                start_date=boundary.start,
                end_date=boundary.end,
                metrics=aggregate(members),
                record_count=len(members),
                closed=boundary.closed,
            )


def bucketize(
    records: Sequence[CampaignRecord],
    range_start: datetime,
    range_end: datetime,
    granularity: Granularity,
) -> BucketSeries:
    return BucketSeries(records, range_start, range_end, granularity)


def metric_series(buckets: Iterable[TimeBucket], metric_key: str) -> List[TrendPoint]:
    return [
        TrendPoint(timestamp=bucket.start_date, label=bucket.period_label, value=metric_value(bucket.metrics, metric_key))
        for bucket in buckets
    ]


def flow_step_series(
    store: EmailRecordStore,
    flow_name: str,
    sequence_position: int,
    metric_key: str,
    range_key: str,
    reference_date: Optional[datetime] = None,
    thresholds: Optional[GranularityConfig] = None,
) -> List[TrendPoint]:
    """
    Trend of one step of one flow, bucketed like every other chart of the range.
    """

    reference = store.localize(reference_date) if reference_date else store.last_email_date()
    if reference is None:
        return []
    window = range_window(
        reference,
        range_key,
        earliest=store.first_email_date(),
        latest=store.last_email_date(),
    )
    if window is None:
        return []

    step_emails = [
        email
        for email in store.flow_index(flow_name).between(*window)
        if email.sequence_position == sequence_position
    ]
    granularity = granularity_for(range_key, span_days=store.span_days(), thresholds=thresholds)
    return metric_series(bucketize(step_emails, window[0], window[1], granularity), metric_key)

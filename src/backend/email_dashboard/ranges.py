from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence, Tuple, TypeVar

from .config import GranularityConfig
from .models import CampaignRecord, Granularity

logger = logging.getLogger(__name__)

RANGE_KEYS: Tuple[str, ...] = ("7d", "30d", "60d", "90d", "120d", "180d", "365d", "all")
ALL_RANGE = "all"
ALL_FLOWS = "all"

RecordT = TypeVar("RecordT", bound=CampaignRecord)


def is_known_range(range_key: str) -> bool:
    return range_key in RANGE_KEYS


def parse_range_days(range_key: str) -> Optional[int]:
    """
    Number of days covered by a ``Nd`` range key.

    ``None`` for ``"all"`` and for keys outside the supported enumeration.
    """

    if range_key == ALL_RANGE or not is_known_range(range_key):
        return None
    return int(range_key[:-1])


def range_window(
    reference_date: datetime,
    range_key: str,
    earliest: Optional[datetime] = None,
    latest: Optional[datetime] = None,
) -> Optional[Tuple[datetime, datetime]]:
    """
    Closed ``(start, end)`` window for ``range_key`` anchored at ``reference_date``.

    ``"all"`` selects every record regardless of the reference date, so its
    window stretches from ``earliest`` to ``latest`` (the first and last sends
    of the data set) and always contains the reference date itself.
    """

    if range_key == ALL_RANGE:
        start = reference_date if earliest is None else min(earliest, reference_date)
        end = reference_date if latest is None else max(latest, reference_date)
        return start, end
    days = parse_range_days(range_key)
    if days is None:
        return None
    return reference_date - timedelta(days=days), reference_date


def records_between(
    records: Iterable[RecordT],
    start: datetime,
    end: datetime,
    include_end: bool = True,
) -> Tuple[RecordT, ...]:
    if include_end:
        return tuple(record for record in records if start <= record.sent_date <= end)
    return tuple(record for record in records if start <= record.sent_date < end)


def filter_by_flow(records: Iterable[RecordT], flow_name: Optional[str]) -> Tuple[RecordT, ...]:
    if flow_name is None or flow_name == ALL_FLOWS:
        return tuple(records)
    return tuple(record for record in records if getattr(record, "flow_name", None) == flow_name)


def filter_records(
    records: Sequence[RecordT],
    reference_date: Optional[datetime],
    range_key: str,
    flow_name: Optional[str] = None,
) -> Tuple[RecordT, ...]:
    """
    Records whose send date falls inside ``range_key`` as of ``reference_date``.

    The lower bound (``reference_date - N days``) and the upper bound
    (``reference_date``) are both inclusive. Unknown range keys yield an empty
    result so a stale selection after a data reload renders an empty dashboard.
    """

    if not records:
        return ()
    if not is_known_range(range_key):
        logger.warning("Unknown range key %r; no records selected", range_key)
        return ()

    scoped = filter_by_flow(records, flow_name)
    if range_key == ALL_RANGE:
        return scoped
    if reference_date is None:
        return ()

    start, end = range_window(reference_date, range_key)
    return records_between(scoped, start, end)


def granularity_for(
    range_key: str,
    span_days: Optional[int] = None,
    thresholds: Optional[GranularityConfig] = None,
) -> Granularity:
    """
    Bucket size shared by every chart rendered for ``range_key``.

    ``span_days`` is only consulted for ``"all"``, where the length of the
    data set decides; without it ``"all"`` is bucketed monthly.
    """

    limits = thresholds or GranularityConfig()
    if range_key == ALL_RANGE:
        if span_days is None:
            return "monthly"
        days = span_days
    else:
        parsed = parse_range_days(range_key)
        if parsed is None:
            return "daily"
        days = parsed

    if days <= limits.daily_max_days:
        return "daily"
    if days <= limits.weekly_max_days:
        return "weekly"
    return "monthly"

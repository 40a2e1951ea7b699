from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from .dataset import EmailRecordStore
from .metrics import MetricDefinition, aggregate, get_metric, metric_value
from .models import AggregatedMetrics, CompareMode, Period, PeriodComparison
from .ranges import ALL_RANGE, filter_records, range_window, records_between

logger = logging.getLogger(__name__)


def _one_year_earlier(moment: datetime) -> datetime:
    try:
        return moment.replace(year=moment.year - 1)
    except ValueError:
        # Feb 29 has no counterpart in the previous year
        return moment.replace(year=moment.year - 1, day=28)


def previous_window(start: datetime, end: datetime, compare_mode: CompareMode = "prev-period") -> Tuple[datetime, datetime]:
    """
    Baseline window for the closed current window ``[start, end]``.

    ``prev-period`` returns ``[start - (end - start), start)`` which callers
    must treat as half-open so the cutoff instant is never counted twice.
    ``prev-year`` returns the same calendar span one year earlier (closed).
    """

    if compare_mode == "prev-year":
        return _one_year_earlier(start), _one_year_earlier(end)
    duration = end - start
    return start - duration, start


def change_percent(current: float, previous: float, compare_mode: CompareMode = "prev-period") -> float:
    if previous:
        return (current - previous) / abs(previous) * 100
    if not current or compare_mode == "prev-year":
        return 0.0
    return 100.0 if current > 0 else -100.0


def is_favorable(metric: MetricDefinition, change: float) -> bool:
    if metric.higher_is_better:
        return change >= 0
    return change <= 0


@dataclass(frozen=True)
class PeriodMetrics:
    current: AggregatedMetrics
    previous: AggregatedMetrics
    current_period: Period
    previous_period: Period
    compare_mode: CompareMode = "prev-period"


def period_metrics(
    store: EmailRecordStore,
    range_key: str,
    scope: Optional[str] = "all",
    reference_date: Optional[datetime] = None,
    flow_name: Optional[str] = None,
    compare_mode: CompareMode = "prev-period",
) -> Optional[PeriodMetrics]:
    """
    Aggregates for the current range and its baseline over one scope.

    ``None`` when no baseline exists: the ``"all"`` range, unknown range keys,
    or a store without any records to anchor on.
    """

    reference = store.localize(reference_date) if reference_date else store.last_email_date()
    if reference is None or range_key == ALL_RANGE:
        return None
    window = range_window(reference, range_key)
    if window is None:
        logger.warning("Unknown range key %r; no period comparison", range_key)
        return None

    records = store.records_for_scope(scope, flow_name=flow_name)
    start, end = window
    previous_start, previous_end = previous_window(start, end, compare_mode)
    current_records = filter_records(records, reference, range_key)
    previous_records = records_between(
        records,
        previous_start,
        previous_end,
        include_end=compare_mode == "prev-year",
    )
    return PeriodMetrics(
        current=aggregate(current_records),
        previous=aggregate(previous_records),
        current_period=Period(start=start, end=end),
        previous_period=Period(start=previous_start, end=previous_end),
        compare_mode=compare_mode,
    )


def compare_metric(metric_key: str, periods: Optional[PeriodMetrics]) -> PeriodComparison:
    metric = get_metric(metric_key)
    if periods is None:
        return PeriodComparison(
            metric_key=metric.key,
            current_value=0.0,
            previous_value=None,
            change_percent=0.0,
            is_favorable=True,
        )

    current = metric_value(periods.current, metric.key)
    previous = metric_value(periods.previous, metric.key)
    change = change_percent(current, previous, periods.compare_mode)
    has_baseline = bool(previous) or periods.compare_mode == "prev-period"
    return PeriodComparison(
        metric_key=metric.key,
        current_value=current,
        previous_value=previous if has_baseline else None,
        change_percent=change,
        is_favorable=is_favorable(metric, change),
        current_period=periods.current_period,
        previous_period=periods.previous_period if has_baseline else None,
    )


def compare_to_previous(
    store: EmailRecordStore,
    metric_key: str,
    range_key: str,
    scope: Optional[str] = "all",
    reference_date: Optional[datetime] = None,
    flow_name: Optional[str] = None,
    compare_mode: CompareMode = "prev-period",
) -> PeriodComparison:
    """
    Percent change of ``metric_key`` against the immediately preceding period.

    Runs the same range filter and aggregator as the headline cards, over the
    partition selected by ``scope`` (``all``, ``campaigns-only``, ``flows-only``).
    """

    get_metric(metric_key)
    periods = period_metrics(
        store,
        range_key,
        scope=scope,
        reference_date=reference_date,
        flow_name=flow_name,
        compare_mode=compare_mode,
    )
    return compare_metric(metric_key, periods)

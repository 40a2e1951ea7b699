from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from .breakdowns import day_of_week_breakdown, hour_of_day_breakdown
from .comparison import PeriodMetrics, compare_metric, previous_window
from .config import DashboardConfig
from .dataset import EmailRecordStore, SortedRecords
from .metrics import METRICS, MetricDefinition, aggregate, metric_value
from .models import (
    AggregatedMetrics,
    CampaignRecord,
    CompareMode,
    DashboardFilters,
    DashboardResult,
    DashboardSection,
    FlowEmailRecord,
    Granularity,
    MetricSnapshot,
    Period,
    TrendSeries,
)
from .ranges import ALL_RANGE, granularity_for, range_window
from .timeseries import bucketize, metric_series

logger = logging.getLogger(__name__)


@dataclass
class _Windows:
    reference: datetime
    current_start: datetime
    current_end: datetime
    previous_start: Optional[datetime] = None
    previous_end: Optional[datetime] = None

    @property
    def has_baseline(self) -> bool:
        return self.previous_start is not None


@dataclass
class _Partition:
    current: Tuple[CampaignRecord, ...] = ()
    previous: Tuple[CampaignRecord, ...] = ()

    def __add__(self, other: "_Partition") -> "_Partition":
        return _Partition(current=self.current + other.current, previous=self.previous + other.previous)


class EmailDashboardService:
    """
    Builds every panel of the email performance dashboard for one filter selection.

    The overview, campaign and flow sections run through the same aggregation
    path and differ only in the record partitions they receive. All trend
    series of one build share a single set of bucket boundaries.
    """

    def __init__(self, store: EmailRecordStore, config: Optional[DashboardConfig] = None) -> None:
        self.store = store
        self.config = config or DashboardConfig()

    @classmethod
    def from_records(
        cls,
        campaigns: Sequence[CampaignRecord],
        flow_emails: Sequence[FlowEmailRecord],
        config: Optional[DashboardConfig] = None,
    ) -> "EmailDashboardService":
        cfg = config or DashboardConfig()
        return cls(EmailRecordStore(campaigns=campaigns, flow_emails=flow_emails, timezone=cfg.timezone), cfg)

    def granularity(self, filters: DashboardFilters) -> Granularity:
        if filters.granularity is not None:
            return filters.granularity
        return granularity_for(
            filters.range_key,
            span_days=self.store.span_days(),
            thresholds=self.config.granularity,
        )

    def build(self, filters: DashboardFilters) -> DashboardResult:
        granularity = self.granularity(filters)
        windows = self._compute_windows(filters)
        if windows is None:
            logger.debug("No anchor for range %r; returning empty dashboard", filters.range_key)
            return self._empty_result(filters, granularity)

        campaigns = self._partition(self.store.campaign_index(), filters, windows)
        flows = self._partition(self.store.flow_index(filters.flow_name), filters, windows)
        logger.debug(
            "Building dashboard range=%s granularity=%s campaigns=%d flow_emails=%d",
            filters.range_key,
            granularity,
            len(campaigns.current),
            len(flows.current),
        )

        overview = self._build_section(campaigns + flows, windows, granularity, filters.compare_mode)
        campaign_section = self._build_section(
            campaigns,
            windows,
            granularity,
            filters.compare_mode,
            breakdown_metric=filters.breakdown_metric,
        )
        flow_section = self._build_section(flows, windows, granularity, filters.compare_mode)

        return DashboardResult(
            range_key=filters.range_key,
            granularity=granularity,
            reference_date=windows.reference,
            overview=overview,
            campaigns=campaign_section,
            flows=flow_section,
            flow_names=self.store.live_flow_names(),
        )

    def _compute_windows(self, filters: DashboardFilters) -> Optional[_Windows]:
        if filters.reference_date is not None:
            reference = self.store.localize(filters.reference_date)
        else:
            reference = self.store.last_email_date()
        if reference is None:
            return None

        window = range_window(
            reference,
            filters.range_key,
            earliest=self.store.first_email_date(),
            latest=self.store.last_email_date(),
        )
        if window is None:
            logger.warning("Unknown range key %r; dashboard will be empty", filters.range_key)
            return None

        current_start, current_end = window
        windows = _Windows(reference=reference, current_start=current_start, current_end=current_end)
        if filters.range_key != ALL_RANGE:
            windows.previous_start, windows.previous_end = previous_window(
                current_start, current_end, filters.compare_mode
            )
        return windows

    def _partition(
        self,
        index: SortedRecords[CampaignRecord],
        filters: DashboardFilters,
        windows: _Windows,
    ) -> _Partition:
        if filters.range_key == ALL_RANGE:
            current = index.records
        else:
            current = index.between(windows.current_start, windows.current_end)
        if not windows.has_baseline:
            return _Partition(current=current)
        previous = index.between(
            windows.previous_start,
            windows.previous_end,
            include_end=filters.compare_mode == "prev-year",
        )
        return _Partition(current=current, previous=previous)

    def _build_section(
        self,
        partition: _Partition,
        windows: _Windows,
        granularity: Granularity,
        compare_mode: CompareMode,
        breakdown_metric: Optional[str] = None,
    ) -> DashboardSection:
        current_metrics = aggregate(partition.current)
        periods: Optional[PeriodMetrics] = None
        if windows.has_baseline:
            periods = PeriodMetrics(
                current=current_metrics,
                previous=aggregate(partition.previous),
                current_period=Period(start=windows.current_start, end=windows.current_end),
                previous_period=Period(start=windows.previous_start, end=windows.previous_end),
                compare_mode=compare_mode,
            )

        cards = [self._snapshot(metric, current_metrics, periods) for metric in METRICS]

        buckets = list(bucketize(partition.current, windows.current_start, windows.current_end, granularity))
        trends = [
            TrendSeries(
                name=metric.key,
                points=metric_series(buckets, metric.key),
                granularity=granularity,
                unit=metric.unit,
            )
            for metric in METRICS
        ]

        if breakdown_metric is None:
            return DashboardSection(cards=cards, trends=trends)
        return DashboardSection(
            cards=cards,
            trends=trends,
            day_of_week=day_of_week_breakdown(partition.current, breakdown_metric),
            hour_of_day=hour_of_day_breakdown(partition.current, breakdown_metric),
        )

    @staticmethod
    def _snapshot(
        metric: MetricDefinition,
        current_metrics: AggregatedMetrics,
        periods: Optional[PeriodMetrics],
    ) -> MetricSnapshot:
        comparison = compare_metric(metric.key, periods)
        return MetricSnapshot(
            key=metric.key,
            label=metric.label,
            value=metric_value(current_metrics, metric.key),
            unit=metric.unit,
            change_percent=comparison.change_percent,
            is_favorable=comparison.is_favorable,
            previous_value=comparison.previous_value,
        )

    def _empty_result(self, filters: DashboardFilters, granularity: Granularity) -> DashboardResult:
        cards: List[MetricSnapshot] = [self._snapshot(metric, AggregatedMetrics(), None) for metric in METRICS]
        section = DashboardSection(cards=cards)
        return DashboardResult(
            range_key=filters.range_key,
            granularity=granularity,
            reference_date=None,
            overview=section,
            campaigns=section,
            flows=section,
            flow_names=self.store.live_flow_names(),
        )

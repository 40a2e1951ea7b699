from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Literal, Optional, Sequence, Tuple

Granularity = Literal["daily", "weekly", "monthly"]
CompareMode = Literal["prev-period", "prev-year"]


@dataclass(frozen=True)
class CampaignRecord:
    """
    One campaign send with its outcome metrics.

    Rate fields are percentages in ``[0, 100]`` computed upstream per send;
    ``emails_sent`` is the weight used whenever rates are combined.
    """

    id: str
    sent_date: datetime
    emails_sent: int
    revenue: float = 0.0
    total_orders: float = 0.0
    open_rate: float = 0.0
    click_rate: float = 0.0
    click_to_open_rate: float = 0.0
    conversion_rate: float = 0.0
    unsubscribe_rate: float = 0.0
    spam_rate: float = 0.0
    bounce_rate: float = 0.0
    subject: str = ""

    @property
    def day_of_week(self) -> int:
        # 0 = Sunday
        return (self.sent_date.weekday() + 1) % 7

    @property
    def hour_of_day(self) -> int:
        return self.sent_date.hour


@dataclass(frozen=True)
class FlowEmailRecord(CampaignRecord):
    """
    One day of sends for a single flow step.

    ``status`` mirrors the flow status reported by the ESP (live/manual/draft)
    and ``sequence_position`` orders the steps inside ``flow_name``.
    """

    flow_name: str = ""
    status: str = ""
    flow_id: str = ""
    flow_message_id: str = ""
    email_name: str = ""
    sequence_position: int = 0


@dataclass(frozen=True)
class DashboardFilters:
    """
    Filter selection shared by every panel of the dashboard.

    ``reference_date`` anchors the relative ranges and defaults to the latest
    send in the store. ``flow_name`` only narrows the flow partition;
    ``"all"`` or ``None`` disables it. ``granularity`` overrides the
    range-derived bucket size when the user picks one explicitly.
    """

    range_key: str = "30d"
    flow_name: Optional[str] = None
    reference_date: Optional[datetime] = None
    compare_mode: CompareMode = "prev-period"
    granularity: Optional[Granularity] = None
    breakdown_metric: str = "revenue"


@dataclass(frozen=True)
class AggregatedMetrics:
    revenue: float = 0.0
    emails_sent: int = 0
    total_orders: float = 0.0
    average_order_value: float = 0.0
    revenue_per_email: float = 0.0
    open_rate: float = 0.0
    click_rate: float = 0.0
    click_to_open_rate: float = 0.0
    conversion_rate: float = 0.0
    unsubscribe_rate: float = 0.0
    spam_rate: float = 0.0
    bounce_rate: float = 0.0
    email_count: int = 0


@dataclass(frozen=True)
class MetricSnapshot:
    key: str
    label: str
    value: float
    unit: Optional[str] = None
    change_percent: float = 0.0
    is_favorable: bool = True
    previous_value: Optional[float] = None


@dataclass(frozen=True)
class Period:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class PeriodComparison:
    metric_key: str
    current_value: float
    previous_value: Optional[float]
    change_percent: float
    is_favorable: bool
    current_period: Optional[Period] = None
    previous_period: Optional[Period] = None


@dataclass(frozen=True)
class TimeBucket:
    """
    One x-axis slot of a trend chart.

    ``start_date`` is inclusive and ``end_date`` exclusive, except for the last
    bucket of a series whose ``end_date`` is inclusive (``closed`` is True).
    """

    period_label: str
    bucket_key: str
    start_date: datetime
    end_date: datetime
    metrics: AggregatedMetrics
    record_count: int = 0
    closed: bool = False

    def contains(self, moment: datetime) -> bool:
        if self.closed:
            return self.start_date <= moment <= self.end_date
        return self.start_date <= moment < self.end_date


@dataclass(frozen=True)
class TrendPoint:
    timestamp: datetime
    label: str
    value: float


@dataclass(frozen=True)
class TrendSeries:
    name: str
    points: Iterable[TrendPoint]
    granularity: Granularity = "daily"
    unit: Optional[str] = None


@dataclass(frozen=True)
class DayOfWeekRow:
    day: str
    day_index: int
    value: float
    record_count: int


@dataclass(frozen=True)
class HourOfDayRow:
    hour: int
    hour_label: str
    value: float
    record_count: int
    percentage_of_total: float


@dataclass(frozen=True)
class FlowSequenceInfo:
    flow_id: str = ""
    message_ids: Tuple[str, ...] = ()
    email_names: Tuple[str, ...] = ()

    @property
    def sequence_length(self) -> int:
        return len(self.message_ids)


@dataclass(frozen=True)
class DashboardSection:
    cards: Sequence[MetricSnapshot] = field(default_factory=list)
    trends: Sequence[TrendSeries] = field(default_factory=list)
    day_of_week: Sequence[DayOfWeekRow] = field(default_factory=list)
    hour_of_day: Sequence[HourOfDayRow] = field(default_factory=list)


@dataclass(frozen=True)
class DashboardResult:
    range_key: str
    granularity: Granularity
    reference_date: Optional[datetime]
    overview: DashboardSection
    campaigns: DashboardSection
    flows: DashboardSection
    flow_names: Sequence[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        """
        Convert the nested dataclasses into a JSON-serialisable structure.

        Keys are camelCase so chart components can consume the payload as-is.
        """

        def _serialize(obj: Any) -> Any:
            if isinstance(obj, DashboardResult):
                return {
                    "rangeKey": obj.range_key,
                    "granularity": obj.granularity,
                    "referenceDate": None if obj.reference_date is None else obj.reference_date.isoformat(),
                    "overview": _serialize(obj.overview),
                    "campaigns": _serialize(obj.campaigns),
                    "flows": _serialize(obj.flows),
                    "flowNames": list(obj.flow_names),
                }
            if isinstance(obj, DashboardSection):
                return {
                    "cards": [_serialize(card) for card in obj.cards],
                    "trends": [_serialize(trend) for trend in obj.trends],
                    "dayOfWeek": [_serialize(row) for row in obj.day_of_week],
                    "hourOfDay": [_serialize(row) for row in obj.hour_of_day],
                }
            if isinstance(obj, MetricSnapshot):
                return {
                    "key": obj.key,
                    "label": obj.label,
                    "value": obj.value,
                    "unit": obj.unit,
                    "changePercent": obj.change_percent,
                    "isFavorable": obj.is_favorable,
                    "previousValue": obj.previous_value,
                }
            if isinstance(obj, TrendSeries):
                return {
                    "name": obj.name,
                    "unit": obj.unit,
                    "granularity": obj.granularity,
                    "points": [_serialize(point) for point in obj.points],
                }
            if isinstance(obj, TrendPoint):
                return {"timestamp": obj.timestamp.isoformat(), "date": obj.label, "value": obj.value}
            if isinstance(obj, DayOfWeekRow):
                return {
                    "day": obj.day,
                    "dayIndex": obj.day_index,
                    "value": obj.value,
                    "campaignCount": obj.record_count,
                }
            if isinstance(obj, HourOfDayRow):
                return {
                    "hour": obj.hour,
                    "hourLabel": obj.hour_label,
                    "value": obj.value,
                    "campaignCount": obj.record_count,
                    "percentageOfTotal": obj.percentage_of_total,
                }
            if isinstance(obj, Iterable) and not isinstance(obj, (str, bytes)):
                return [_serialize(item) for item in obj]
            return obj

        return _serialize(self)


def comparison_as_dict(comparison: PeriodComparison) -> Dict[str, Any]:
    def _period(period: Optional[Period]) -> Optional[Dict[str, str]]:
        if period is None:
            return None
        return {"startDate": period.start.isoformat(), "endDate": period.end.isoformat()}

    return {
        "metricKey": comparison.metric_key,
        "currentValue": comparison.current_value,
        "previousValue": comparison.previous_value,
        "changePercent": comparison.change_percent,
        "isFavorable": comparison.is_favorable,
        "currentPeriod": _period(comparison.current_period),
        "previousPeriod": _period(comparison.previous_period),
    }

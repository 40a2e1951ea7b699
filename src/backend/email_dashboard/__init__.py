"""
Email performance dashboard engine.

Turns normalised campaign and flow send records into the aggregates an email
marketing dashboard renders: headline cards with period-over-period deltas,
time-bucketed trend series, and day-of-week/hour-of-day breakdowns.
"""

from .comparison import compare_to_previous  # noqa: F401
from .config import DashboardConfig, GranularityConfig, load_dashboard_config  # noqa: F401
from .dataset import EmailRecordStore  # noqa: F401
from .metrics import METRICS, aggregate  # noqa: F401
from .models import (  # noqa: F401
    AggregatedMetrics,
    CampaignRecord,
    DashboardFilters,
    DashboardResult,
    DashboardSection,
    FlowEmailRecord,
    MetricSnapshot,
    PeriodComparison,
    TimeBucket,
    TrendPoint,
    TrendSeries,
)
from .ranges import filter_records, granularity_for  # noqa: F401
from .service import EmailDashboardService  # noqa: F401
from .timeseries import bucketize  # noqa: F401

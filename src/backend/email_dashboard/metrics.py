from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from .models import AggregatedMetrics, CampaignRecord

RATE_FIELDS: Tuple[str, ...] = (
    "open_rate",
    "click_rate",
    "click_to_open_rate",
    "conversion_rate",
    "unsubscribe_rate",
    "spam_rate",
    "bounce_rate",
)


@dataclass(frozen=True)
class MetricDefinition:
    key: str
    label: str
    attribute: str
    unit: Optional[str] = None
    higher_is_better: bool = True


METRICS: Tuple[MetricDefinition, ...] = (
    MetricDefinition("revenue", "Total Revenue", "revenue", unit="$"),
    MetricDefinition("averageOrderValue", "Average Order Value", "average_order_value", unit="$"),
    MetricDefinition("revenuePerEmail", "Revenue per Email", "revenue_per_email", unit="$"),
    MetricDefinition("openRate", "Open Rate", "open_rate", unit="%"),
    MetricDefinition("clickRate", "Click Rate", "click_rate", unit="%"),
    MetricDefinition("clickToOpenRate", "Click-to-Open Rate", "click_to_open_rate", unit="%"),
    MetricDefinition("emailsSent", "Emails Sent", "emails_sent"),
    MetricDefinition("totalOrders", "Total Orders", "total_orders"),
    MetricDefinition("conversionRate", "Conversion Rate", "conversion_rate", unit="%"),
    MetricDefinition("unsubscribeRate", "Unsubscribe Rate", "unsubscribe_rate", unit="%", higher_is_better=False),
    MetricDefinition("spamRate", "Spam Rate", "spam_rate", unit="%", higher_is_better=False),
    MetricDefinition("bounceRate", "Bounce Rate", "bounce_rate", unit="%", higher_is_better=False),
)

_METRICS_BY_KEY: Dict[str, MetricDefinition] = {metric.key: metric for metric in METRICS}
_ALIASES: Dict[str, str] = {
    "totalRevenue": "revenue",
    "avgOrderValue": "averageOrderValue",
}


def get_metric(metric_key: str) -> MetricDefinition:
    key = _ALIASES.get(metric_key, metric_key)
    try:
        return _METRICS_BY_KEY[key]
    except KeyError:
        raise ValueError(f"Unknown metric key: {metric_key!r}") from None


def metric_value(metrics: AggregatedMetrics, metric_key: str) -> float:
    return getattr(metrics, get_metric(metric_key).attribute)


def _safe_divide(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def aggregate(records: Iterable[CampaignRecord]) -> AggregatedMetrics:
    """
    Reduce ``records`` into totals and send-weighted rates.

    Each rate is ``sum(rate_i * emails_sent_i) / sum(emails_sent_i)``. Every
    zero denominator resolves to 0, and an empty input yields all-zero metrics.
    """

    revenue = 0.0
    emails_sent = 0
    total_orders = 0.0
    email_count = 0
    weighted = dict.fromkeys(RATE_FIELDS, 0.0)

    for record in records:
        email_count += 1
        revenue += record.revenue
        emails_sent += record.emails_sent
        total_orders += record.total_orders
        for name in RATE_FIELDS:
            weighted[name] += getattr(record, name) * record.emails_sent

    if not email_count:
        return AggregatedMetrics()

    return AggregatedMetrics(
        revenue=revenue,
        emails_sent=emails_sent,
        total_orders=total_orders,
        average_order_value=_safe_divide(revenue, total_orders),
        revenue_per_email=_safe_divide(revenue, emails_sent),
        email_count=email_count,
        **{name: _safe_divide(weighted[name], emails_sent) for name in RATE_FIELDS},
    )

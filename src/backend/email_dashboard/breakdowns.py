from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Sequence

from .metrics import aggregate, get_metric, metric_value
from .models import CampaignRecord, DayOfWeekRow, HourOfDayRow

DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def format_hour_label(hour: int) -> str:
    if hour == 0:
        return "12 AM"
    if hour < 12:
        return f"{hour} AM"
    if hour == 12:
        return "12 PM"
    return f"{hour - 12} PM"


def day_of_week_breakdown(records: Sequence[CampaignRecord], metric_key: str) -> List[DayOfWeekRow]:
    """
    One row per weekday, Sunday first, including days without sends.
    """

    get_metric(metric_key)
    by_day: Dict[int, List[CampaignRecord]] = defaultdict(list)
    for record in records:
        by_day[record.day_of_week].append(record)

    return [
        DayOfWeekRow(
            day=name,
            day_index=index,
            value=metric_value(aggregate(by_day[index]), metric_key),
            record_count=len(by_day[index]),
        )
        for index, name in enumerate(DAY_NAMES)
    ]


def hour_of_day_breakdown(records: Sequence[CampaignRecord], metric_key: str) -> List[HourOfDayRow]:
    """
    Rows for the hours that have at least one send, best hour first.

    Values equal to two decimals are ties and fall back to hour order.
    """

    get_metric(metric_key)
    by_hour: Dict[int, List[CampaignRecord]] = defaultdict(list)
    for record in records:
        by_hour[record.hour_of_day].append(record)

    total = len(records)
    rows = [
        HourOfDayRow(
            hour=hour,
            hour_label=format_hour_label(hour),
            value=metric_value(aggregate(members), metric_key),
            record_count=len(members),
            percentage_of_total=len(members) / total * 100 if total else 0.0,
        )
        for hour, members in by_hour.items()
    ]

    return sorted(rows, key=lambda row: (-round(row.value, 2), row.hour))

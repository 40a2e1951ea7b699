"""
Day-of-week and hour-of-day breakdown tests.
"""
from datetime import datetime

import pytest

from backend.email_dashboard.breakdowns import day_of_week_breakdown, format_hour_label, hour_of_day_breakdown

from conftest import make_campaign


class TestDayOfWeek:
    def test_every_weekday_is_reported_sunday_first(self, january_store):
        rows = day_of_week_breakdown(january_store.campaigns, "revenue")
        assert [row.day for row in rows] == ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
        assert [row.day_index for row in rows] == list(range(7))

    def test_values_follow_send_weekday(self, january_store):
        rows = {row.day: row for row in day_of_week_breakdown(january_store.campaigns, "revenue")}
        assert rows["Sun"].value == pytest.approx(500.0)
        assert rows["Mon"].value == pytest.approx(700.0)
        assert rows["Thu"].value == pytest.approx(250.0)
        assert rows["Fri"].value == pytest.approx(300.0)
        assert rows["Tue"].value == 0.0
        assert rows["Tue"].record_count == 0

    def test_rates_are_weighted_per_day(self):
        records = [
            make_campaign(datetime(2025, 1, 5, 8), emails_sent=100, open_rate=50.0),
            make_campaign(datetime(2025, 1, 12, 8), emails_sent=900, open_rate=10.0),
        ]
        sunday = day_of_week_breakdown(records, "openRate")[0]
        assert sunday.value == pytest.approx(14.0)
        assert sunday.record_count == 2

    def test_unknown_metric_raises(self, january_store):
        with pytest.raises(ValueError):
            day_of_week_breakdown(january_store.campaigns, "opens")


class TestHourOfDay:
    def test_best_hour_first(self, january_store):
        rows = hour_of_day_breakdown(january_store.campaigns, "revenue")
        assert [row.hour for row in rows] == [14, 9, 10]
        assert [row.hour_label for row in rows] == ["2 PM", "9 AM", "10 AM"]

    def test_percentage_of_total_counts_sends(self, january_store):
        rows = {row.hour: row for row in hour_of_day_breakdown(january_store.campaigns, "revenue")}
        assert rows[9].percentage_of_total == pytest.approx(50.0)
        assert rows[14].percentage_of_total == pytest.approx(25.0)
        assert sum(row.percentage_of_total for row in rows.values()) == pytest.approx(100.0)

    def test_ties_fall_back_to_hour_order(self):
        records = [make_campaign(datetime(2025, 1, 6, hour), open_rate=30.0) for hour in (18, 7, 12)]
        rows = hour_of_day_breakdown(records, "openRate")
        assert [row.hour for row in rows] == [7, 12, 18]

    def test_no_records_gives_no_rows(self):
        assert hour_of_day_breakdown([], "revenue") == []

    def test_hour_labels(self):
        assert format_hour_label(0) == "12 AM"
        assert format_hour_label(11) == "11 AM"
        assert format_hour_label(12) == "12 PM"
        assert format_hour_label(23) == "11 PM"

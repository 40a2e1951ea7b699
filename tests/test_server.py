"""
HTTP adapter and configuration tests.
"""
import importlib

import pytest
from fastapi.testclient import TestClient

from backend.email_dashboard import config as config_module
from backend.email_dashboard import server
from backend.email_dashboard.config import load_dashboard_config
from backend.email_dashboard.server import app

client = TestClient(app)


def _campaign(record_id, sent_date, revenue, **overrides):
    payload = {
        "id": record_id,
        "sent_date": sent_date,
        "emails_sent": 1000,
        "revenue": revenue,
        "total_orders": 2,
        "open_rate": 40.0,
        "click_rate": 4.0,
    }
    payload.update(overrides)
    return payload


CAMPAIGNS = [
    _campaign("c-1", "2025-01-05T10:00:00", 100.0),
    _campaign("c-2", "2025-01-28T14:00:00", 200.0),
]
FLOW_EMAILS = [
    {
        "id": "f-1",
        "sent_date": "2025-01-20T08:00:00",
        "emails_sent": 300,
        "revenue": 30.0,
        "flow_name": "Welcome Series",
        "status": "live",
    }
]


class TestEndpoints:
    def test_health(self):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_dashboard(self):
        response = client.post(
            "/dashboard",
            json={"range_key": "30d", "campaigns": CAMPAIGNS, "flow_emails": FLOW_EMAILS},
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["rangeKey"] == "30d"
        assert data["granularity"] == "daily"
        assert data["flowNames"] == ["Welcome Series"]
        revenue = next(card for card in data["overview"]["cards"] if card["key"] == "revenue")
        assert revenue["value"] == pytest.approx(330.0)
        assert len(data["campaigns"]["dayOfWeek"]) == 7

    def test_dashboard_without_records(self):
        response = client.post("/dashboard", json={"range_key": "7d"})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["referenceDate"] is None
        assert all(card["value"] == 0 for card in data["overview"]["cards"])

    def test_unknown_breakdown_metric_is_rejected(self):
        response = client.post("/dashboard", json={"campaigns": CAMPAIGNS, "breakdown_metric": "profit"})
        assert response.status_code == 422

    def test_out_of_range_rate_is_rejected(self):
        bad = [_campaign("c-9", "2025-01-05T10:00:00", 10.0, open_rate=150.0)]
        response = client.post("/dashboard", json={"campaigns": bad})
        assert response.status_code == 422

    def test_metric_change(self):
        response = client.post(
            "/metrics/revenue/change",
            json={"range_key": "7d", "campaigns": CAMPAIGNS, "scope": "campaigns-only"},
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["metricKey"] == "revenue"
        assert data["currentValue"] == pytest.approx(200.0)
        assert data["changePercent"] == 100.0
        assert data["isFavorable"] is True
        assert data["previousPeriod"] is not None

    def test_metric_change_for_all_range_is_neutral(self):
        response = client.post("/metrics/openRate/change", json={"range_key": "all", "campaigns": CAMPAIGNS})
        data = response.json()["data"]
        assert data["changePercent"] == 0.0
        assert data["previousPeriod"] is None

    def test_unknown_metric_is_not_found(self):
        response = client.post("/metrics/profit/change", json={"campaigns": CAMPAIGNS})
        assert response.status_code == 404


class TestConfig:
    def test_defaults(self, monkeypatch):
        for name in (
            "EMAIL_DASHBOARD_TIMEZONE",
            "EMAIL_DASHBOARD_DEFAULT_RANGE",
            "EMAIL_DASHBOARD_COMPARE_MODE",
            "EMAIL_DASHBOARD_DAILY_MAX_DAYS",
            "EMAIL_DASHBOARD_WEEKLY_MAX_DAYS",
            "EMAIL_DASHBOARD_LOG_LEVEL",
        ):
            monkeypatch.delenv(name, raising=False)
        cfg = load_dashboard_config(dotenv=False)
        assert cfg.timezone == "UTC"
        assert cfg.default_range == "30d"
        assert cfg.granularity.daily_max_days == 60
        assert cfg.granularity.weekly_max_days == 365

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("EMAIL_DASHBOARD_TIMEZONE", "Europe/Paris")
        monkeypatch.setenv("EMAIL_DASHBOARD_COMPARE_MODE", "prev-year")
        monkeypatch.setenv("EMAIL_DASHBOARD_DAILY_MAX_DAYS", "31")
        monkeypatch.setenv("EMAIL_DASHBOARD_LOG_LEVEL", "debug")
        cfg = load_dashboard_config(dotenv=False)
        assert cfg.timezone == "Europe/Paris"
        assert cfg.compare_mode == "prev-year"
        assert cfg.granularity.daily_max_days == 31
        assert cfg.log_level == "DEBUG"

    def test_invalid_values_fall_back(self, monkeypatch):
        monkeypatch.setenv("EMAIL_DASHBOARD_COMPARE_MODE", "yesterday")
        monkeypatch.setenv("EMAIL_DASHBOARD_WEEKLY_MAX_DAYS", "many")
        cfg = load_dashboard_config(dotenv=False)
        assert cfg.compare_mode == "prev-period"
        assert cfg.granularity.weekly_max_days == 365


class TestLoggingSetup:
    def test_import_leaves_logging_alone(self, monkeypatch):
        calls = []
        monkeypatch.setattr(config_module, "configure_logging", calls.append)
        importlib.reload(server)
        assert calls == []
        monkeypatch.undo()
        importlib.reload(server)

    def test_startup_configures_logging(self, monkeypatch):
        calls = []
        monkeypatch.setattr(server, "configure_logging", calls.append)
        with TestClient(server.app) as started:
            assert started.get("/health").status_code == 200
        assert calls == [server.config.log_level]

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Literal, Optional, Tuple

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .comparison import compare_to_previous
from .config import configure_logging, load_dashboard_config
from .dataset import EmailRecordStore
from .metrics import get_metric
from .models import CampaignRecord, DashboardFilters, FlowEmailRecord, comparison_as_dict
from .service import EmailDashboardService

config = load_dashboard_config()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    configure_logging(config.log_level)
    yield


app = FastAPI(title="Email Performance Dashboard API", version="0.1.0", lifespan=lifespan)


class CampaignPayload(BaseModel):
    id: str
    sent_date: datetime
    emails_sent: int = Field(..., ge=0)
    revenue: float = Field(0.0, ge=0)
    total_orders: float = Field(0.0, ge=0)
    open_rate: float = Field(0.0, ge=0, le=100)
    click_rate: float = Field(0.0, ge=0, le=100)
    click_to_open_rate: float = Field(0.0, ge=0, le=100)
    conversion_rate: float = Field(0.0, ge=0, le=100)
    unsubscribe_rate: float = Field(0.0, ge=0, le=100)
    spam_rate: float = Field(0.0, ge=0, le=100)
    bounce_rate: float = Field(0.0, ge=0, le=100)
    subject: str = ""


class FlowEmailPayload(CampaignPayload):
    flow_name: str
    status: str = ""
    flow_id: str = ""
    flow_message_id: str = ""
    email_name: str = ""
    sequence_position: int = 0


class DashboardRequest(BaseModel):
    range_key: str = Field(default_factory=lambda: config.default_range)
    flow_name: Optional[str] = None
    reference_date: Optional[datetime] = None
    compare_mode: Literal["prev-period", "prev-year"] = Field(default_factory=lambda: config.compare_mode)
    granularity: Optional[Literal["daily", "weekly", "monthly"]] = None
    breakdown_metric: str = "revenue"
    campaigns: List[CampaignPayload] = Field(default_factory=list)
    flow_emails: List[FlowEmailPayload] = Field(default_factory=list)


class ComparisonRequest(DashboardRequest):
    scope: str = "all"


class DashboardResponse(BaseModel):
    data: Dict[str, Any]


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/dashboard", response_model=DashboardResponse)
async def dashboard_endpoint(request: DashboardRequest) -> DashboardResponse:
    _ensure_metric(request.breakdown_metric, status_code=422)
    store = _build_store(request)
    filters = DashboardFilters(
        range_key=request.range_key,
        flow_name=request.flow_name,
        reference_date=request.reference_date,
        compare_mode=request.compare_mode,
        granularity=request.granularity,
        breakdown_metric=request.breakdown_metric,
    )
    service = EmailDashboardService(store, config)
    dashboard = service.build(filters)
    return DashboardResponse(data=dashboard.as_dict())


@app.post("/metrics/{metric_key}/change", response_model=DashboardResponse)
async def metric_change_endpoint(metric_key: str, request: ComparisonRequest) -> DashboardResponse:
    _ensure_metric(metric_key)
    store = _build_store(request)
    comparison = compare_to_previous(
        store,
        metric_key,
        request.range_key,
        scope=request.scope,
        reference_date=request.reference_date,
        flow_name=request.flow_name,
        compare_mode=request.compare_mode,
    )
    return DashboardResponse(data=comparison_as_dict(comparison))


def _ensure_metric(metric_key: str, status_code: int = 404) -> None:
    try:
        get_metric(metric_key)
    except ValueError as exc:
        raise HTTPException(status_code=status_code, detail=str(exc)) from exc


def _build_store(request: DashboardRequest) -> EmailRecordStore:
    campaigns, flow_emails = _convert_payloads(request)
    logger.debug("Received %d campaigns and %d flow emails", len(campaigns), len(flow_emails))
    return EmailRecordStore(campaigns=campaigns, flow_emails=flow_emails, timezone=config.timezone)


def _convert_payloads(request: DashboardRequest) -> Tuple[Tuple[CampaignRecord, ...], Tuple[FlowEmailRecord, ...]]:
    return (
        tuple(CampaignRecord(**payload.model_dump()) for payload in request.campaigns),
        tuple(FlowEmailRecord(**payload.model_dump()) for payload in request.flow_emails),
    )

"""
Shared record factories for the dashboard engine tests.
"""
from datetime import datetime
from itertools import count

import pytest

from backend.email_dashboard.dataset import EmailRecordStore
from backend.email_dashboard.models import CampaignRecord, FlowEmailRecord

_ids = count(1)


def make_campaign(sent_date: datetime, emails_sent: int = 1000, **overrides) -> CampaignRecord:
    values = dict(
        id=f"c-{next(_ids)}",
        sent_date=sent_date,
        emails_sent=emails_sent,
        revenue=100.0,
        total_orders=2,
        open_rate=40.0,
        click_rate=4.0,
        click_to_open_rate=10.0,
        conversion_rate=5.0,
        unsubscribe_rate=0.2,
        spam_rate=0.01,
        bounce_rate=0.5,
    )
    values.update(overrides)
    return CampaignRecord(**values)


def make_flow_email(
    sent_date: datetime,
    flow_name: str = "Welcome Series",
    emails_sent: int = 200,
    **overrides,
) -> FlowEmailRecord:
    values = dict(
        id=f"f-{next(_ids)}",
        sent_date=sent_date,
        emails_sent=emails_sent,
        revenue=50.0,
        total_orders=1,
        open_rate=55.0,
        click_rate=6.0,
        click_to_open_rate=11.0,
        conversion_rate=8.0,
        unsubscribe_rate=0.3,
        spam_rate=0.02,
        bounce_rate=0.4,
        flow_name=flow_name,
        status="live",
        flow_id="flow-1",
        flow_message_id="msg-1",
        email_name="Email 1",
        sequence_position=1,
    )
    values.update(overrides)
    return FlowEmailRecord(**values)


@pytest.fixture
def january_store() -> EmailRecordStore:
    """
    Campaigns and flow sends spread over Dec 2024 - Jan 2025.

    The latest send (Jan 30 09:00) becomes the store's reference date.
    """

    campaigns = [
        make_campaign(datetime(2024, 12, 20, 9), revenue=300.0),
        make_campaign(datetime(2025, 1, 5, 10), revenue=500.0, emails_sent=2000),
        make_campaign(datetime(2025, 1, 20, 14), revenue=700.0),
        make_campaign(datetime(2025, 1, 30, 9), revenue=250.0),
    ]
    flows = [
        make_flow_email(datetime(2024, 12, 28, 8), revenue=40.0),
        make_flow_email(datetime(2025, 1, 10, 8), revenue=60.0),
        make_flow_email(datetime(2025, 1, 25, 8), flow_name="Abandoned Cart", revenue=90.0, status="manual"),
    ]
    return EmailRecordStore(campaigns=campaigns, flow_emails=flows)

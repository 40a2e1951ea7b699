from __future__ import annotations

import dataclasses
import logging
from bisect import bisect_left, bisect_right
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Generic, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .models import CampaignRecord, FlowEmailRecord, FlowSequenceInfo
from .ranges import ALL_FLOWS, RecordT

logger = logging.getLogger(__name__)

SCOPE_ALIASES: Dict[str, str] = {
    "all": "all",
    "campaigns": "campaigns",
    "campaigns-only": "campaigns",
    "flows": "flows",
    "flows-only": "flows",
}


def _coerce_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def _normalize_datetime(dt: datetime, tz: ZoneInfo) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def normalize_scope(scope: Optional[str]) -> Optional[str]:
    return SCOPE_ALIASES.get((scope or "all").lower())


class SortedRecords(Generic[RecordT]):
    """
    Records sorted by ``sent_date`` with their send dates kept alongside.

    Date windows are answered by binary search, so selecting a period never
    walks the records outside it.
    """

    def __init__(self, records: Sequence[RecordT] = ()) -> None:
        self.records: Tuple[RecordT, ...] = tuple(records)
        self._dates: Tuple[datetime, ...] = tuple(record.sent_date for record in self.records)

    def __len__(self) -> int:
        return len(self.records)

    def between(self, start: datetime, end: datetime, include_end: bool = True) -> Tuple[RecordT, ...]:
        lower = bisect_left(self._dates, start)
        upper = bisect_right(self._dates, end) if include_end else bisect_left(self._dates, end)
        return self.records[lower:upper]


@dataclass
class EmailRecordStore:
    """
    Immutable holder for the two record partitions the dashboard reads.

    Every ``sent_date`` is normalised to ``timezone`` once, here, so the range
    filter and the bucketer can compare datetimes without further conversion.
    """

    campaigns: Sequence[CampaignRecord] = ()
    flow_emails: Sequence[FlowEmailRecord] = ()
    timezone: str = "UTC"

    def __post_init__(self) -> None:
        self.tz = _coerce_timezone(self.timezone)
        self.campaigns = self._prepare(self.campaigns)
        self.flow_emails = self._prepare(self.flow_emails)

        by_flow: Dict[str, List[FlowEmailRecord]] = defaultdict(list)
        live = set()
        for email in self.flow_emails:
            by_flow[email.flow_name].append(email)
            if email.status.lower() == "live":
                live.add(email.flow_name)
        self._campaign_index = SortedRecords(self.campaigns)
        self._flow_index = SortedRecords(self.flow_emails)
        self._flow_indexes = {name: SortedRecords(emails) for name, emails in by_flow.items()}
        self._live_flow_names = tuple(sorted(live))

    def _prepare(self, records):
        normalized = [
            dataclasses.replace(record, sent_date=_normalize_datetime(record.sent_date, self.tz))
            for record in records
        ]
        return tuple(sorted(normalized, key=lambda record: record.sent_date))

    def localize(self, moment: datetime) -> datetime:
        return _normalize_datetime(moment, self.tz)

    def is_empty(self) -> bool:
        return not self.campaigns and not self.flow_emails

    def last_email_date(self) -> Optional[datetime]:
        """
        Latest send across both partitions; the default "as-of" anchor.
        """

        candidates = [records[-1].sent_date for records in (self.campaigns, self.flow_emails) if records]
        return max(candidates) if candidates else None

    def first_email_date(self) -> Optional[datetime]:
        candidates = [records[0].sent_date for records in (self.campaigns, self.flow_emails) if records]
        return min(candidates) if candidates else None

    def span_days(self) -> Optional[int]:
        first, last = self.first_email_date(), self.last_email_date()
        if first is None or last is None:
            return None
        return (last - first).days

    def records_for_scope(
        self,
        scope: Optional[str] = "all",
        flow_name: Optional[str] = None,
    ) -> Tuple[CampaignRecord, ...]:
        """
        Records of the requested partition(s), sorted by send date.

        ``flow_name`` narrows the flow partition only; campaigns are kept as-is
        when the scope includes them.
        """

        normalized = normalize_scope(scope)
        if normalized is None:
            logger.warning("Unknown scope %r; treating as no records", scope)
            return ()

        campaigns = self.campaigns if normalized in ("all", "campaigns") else ()
        flows = self.flow_index(flow_name).records if normalized in ("all", "flows") else ()
        if not campaigns:
            return tuple(flows)
        if not flows:
            return tuple(campaigns)
        return tuple(sorted((*campaigns, *flows), key=lambda record: record.sent_date))

    def campaign_index(self) -> SortedRecords[CampaignRecord]:
        return self._campaign_index

    def flow_index(self, flow_name: Optional[str] = None) -> SortedRecords[FlowEmailRecord]:
        """
        Sorted flow sends, narrowed to ``flow_name`` unless it is ``None`` or ``"all"``.

        An unknown flow name yields an empty index.
        """

        if flow_name is None or flow_name == ALL_FLOWS:
            return self._flow_index
        return self._flow_indexes.get(flow_name, SortedRecords())

    def unique_flow_names(self) -> Sequence[str]:
        return sorted(self._flow_indexes)

    def live_flow_names(self) -> Sequence[str]:
        return list(self._live_flow_names)

    def flow_sequence_info(self, flow_name: str) -> FlowSequenceInfo:
        """
        Ordered steps of ``flow_name``.

        Steps are ordered by the earliest sequence position their message id was
        seen at; the reported name is the one carried by the most recent send,
        since ESPs let marketers rename a step without changing its id.
        """

        steps: Dict[str, Dict[str, object]] = {}
        flow_id = ""
        for email in self.flow_emails:
            if email.flow_name != flow_name:
                continue
            flow_id = flow_id or email.flow_id
            step = steps.get(email.flow_message_id)
            if step is None:
                steps[email.flow_message_id] = {
                    "earliest_position": email.sequence_position,
                    "latest_sent": email.sent_date,
                    "name": email.email_name,
                }
                continue
            if email.sequence_position < step["earliest_position"]:
                step["earliest_position"] = email.sequence_position
            if email.sent_date >= step["latest_sent"]:
                step["latest_sent"] = email.sent_date
                step["name"] = email.email_name

        ordered = sorted(steps.items(), key=lambda item: item[1]["earliest_position"])
        return FlowSequenceInfo(
            flow_id=flow_id,
            message_ids=tuple(message_id for message_id, _ in ordered),
            email_names=tuple(str(step["name"]) for _, step in ordered),
        )

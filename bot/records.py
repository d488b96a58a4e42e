"""
Flow completion records for the WhatsApp Concierge bot.

Meeting requests, qualified leads and handover tickets are appended to a
RecordLog and optionally forwarded to an external webhook.
"""

import logging
import uuid
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import httpx

logger = logging.getLogger(__name__)


def _record_id() -> str:
    return uuid.uuid4().hex[:12]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class FlowRecord:
    """Common fields of every completed flow."""
    tenant_id: str
    sender_id: str
    language: Optional[str]
    record_id: str = field(default_factory=_record_id, kw_only=True)
    created_at: datetime = field(default_factory=_utcnow, kw_only=True)

    kind = "record"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging and forwarding."""
        data = asdict(self)
        data["kind"] = self.kind
        data["created_at"] = self.created_at.isoformat()
        return data


@dataclass
class MeetingRecord(FlowRecord):
    name: str = ""
    email: str = ""
    topic: str = ""

    kind = "meeting"


@dataclass
class LeadRecord(FlowRecord):
    service: str = ""
    budget: str = ""
    timeline: str = ""
    notes: str = ""
    temperature: str = "cold"

    kind = "lead"


@dataclass
class HandoverTicket(FlowRecord):
    reason: str = ""
    within_hours: bool = True
    status: str = "open"  # open | queued_after_hours

    kind = "handover"


RECORD_KINDS = (MeetingRecord.kind, LeadRecord.kind, HandoverTicket.kind)


@runtime_checkable
class RecordLog(Protocol):
    """Protocol for the append-only record log."""

    async def append(self, record: FlowRecord) -> None:
        ...


class InMemoryRecordLog:
    """Append-only in-process record log."""

    def __init__(self):
        self._records: Dict[str, List[FlowRecord]] = defaultdict(list)

    async def append(self, record: FlowRecord) -> None:
        self._records[record.kind].append(record)
        logger.info(
            f"{record.kind.capitalize()} record {record.record_id} appended",
            extra={"tenant_id": record.tenant_id, "sender_id": record.sender_id},
        )

    def list(self, kind: Optional[str] = None) -> List[FlowRecord]:
        if kind:
            return list(self._records.get(kind, []))
        records = [r for items in self._records.values() for r in items]
        return sorted(records, key=lambda r: r.created_at)

    def count(self, kind: Optional[str] = None) -> int:
        return len(self.list(kind))


class RecordForwarder:
    """Posts completed records to an external webhook (CRM, sheet, queue)."""

    def __init__(self, webhook_url: str, api_key: Optional[str] = None, timeout: float = 10.0):
        self.webhook_url = webhook_url
        self.api_key = api_key
        self.timeout = timeout

    async def forward(self, record: FlowRecord) -> bool:
        """Forward a record. Returns False on any delivery failure."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.webhook_url,
                    json=record.to_dict(),
                    headers=headers,
                    timeout=self.timeout,
                )
                response.raise_for_status()
            logger.info(f"Record {record.record_id} forwarded ({record.kind})")
            return True
        except httpx.HTTPError as e:
            logger.error(f"Record forwarding failed for {record.record_id}: {e}")
            return False

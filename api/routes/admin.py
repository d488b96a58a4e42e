"""
Admin API Routes for the WhatsApp Concierge bot.

Read-only inspection of records, sessions and tenants, plus a session reset.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from bot.policies import is_within_working_hours
from bot.records import RECORD_KINDS
from bot.tenants import pick

from ..middleware.auth import api_key_auth
from ..services import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(api_key_auth)])


# ── Models ────────────────────────────────────────────

class RecordList(BaseModel):
    kind: Optional[str]
    count: int
    records: List[Dict[str, Any]]


class TenantSummary(BaseModel):
    id: str
    name: str
    support_contact: str
    services: List[str]
    within_working_hours: bool


# ── Endpoints ─────────────────────────────────────────

@router.get("/records", response_model=RecordList)
async def list_records(
    kind: Optional[str] = Query(default=None, description="meeting, lead or handover"),
    services: Services = Depends(get_services),
):
    """Completed flow records, oldest first."""
    if kind is not None and kind not in RECORD_KINDS:
        raise HTTPException(status_code=400, detail=f"Unknown record kind: {kind}")
    records = services.records.list(kind)
    return RecordList(kind=kind, count=len(records), records=[r.to_dict() for r in records])


@router.get("/sessions/{sender_id}")
async def get_session(sender_id: str, services: Services = Depends(get_services)):
    """Current session of a sender (not created or refreshed)."""
    session = services.store.peek(sender_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session.to_dict()


@router.post("/sessions/{sender_id}/reset")
async def reset_session(sender_id: str, services: Services = Depends(get_services)):
    """Return a sender to the main menu with no collected data."""
    if services.store.peek(sender_id) is None:
        raise HTTPException(status_code=404, detail="Session not found")
    async with services.store.lock(sender_id):
        session = await services.store.reset(sender_id)
    logger.info(f"Session reset by admin: {sender_id}")
    return session.to_dict()


@router.get("/tenants", response_model=List[TenantSummary])
async def list_tenants(services: Services = Depends(get_services)):
    """Configured tenants and whether each is currently open."""
    now = datetime.now(timezone.utc)
    return [
        TenantSummary(
            id=t.id,
            name=t.name("en"),
            support_contact=t.support_contact,
            services=[pick(s.title, "en") for s in t.services],
            within_working_hours=is_within_working_hours(t.working_hours, now),
        )
        for t in services.tenants.list_all()
    ]

# routes_sms.py
"""
SMS ingestion: single messages from the phone, inbox backlog uploads, and
the polling endpoint for pipeline notifications.
"""

import io
import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session

from app.deps import get_db, get_event_bus, get_owner_id, require_owner
from app.schemas import ProcessResultOut, ScanSummaryOut, SmsIn
from app.services.events import EventBus
from app.services.sms_import import parse_inbox
from app.services.sms_pipeline import classify_and_extract, scan_history

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sms", tags=["sms"])


@router.post("/ingest", response_model=ProcessResultOut)
def ingest_sms(
    payload: SmsIn,
    db: Session = Depends(get_db),
    owner_id: Optional[int] = Depends(get_owner_id),
    events: EventBus = Depends(get_event_bus),
):
    """
    One inbound message. A missing owner is a normal pipeline outcome
    ("User not logged in"), not an HTTP error.
    """
    result = classify_and_extract(
        db,
        payload.body,
        payload.sender,
        owner_id,
        explicit_timestamp=payload.timestamp,
        suppress_side_effects=payload.suppress_side_effects,
        events=events,
    )
    return result.to_dict()


@router.post("/scan", response_model=ScanSummaryOut)
def scan_inbox(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    owner_id: int = Depends(require_owner),
    events: EventBus = Depends(get_event_bus),
):
    """
    Sync route: FastAPI runs it in the worker thread pool, so a long scan
    does not hold up the event loop.
    """
    fmt = Path(file.filename or "").suffix.lstrip(".") or "csv"

    try:
        items = parse_inbox(io.BytesIO(file.file.read()), fmt)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info("[scan] %d messages uploaded by user %s", len(items), owner_id)
    summary = scan_history(db, items, owner_id, events=events)
    return summary.to_dict()


@router.get("/events")
def recent_events(
    limit: int = Query(50, ge=1, le=500),
    owner_id: int = Depends(require_owner),
    events: EventBus = Depends(get_event_bus),
):
    return [e.to_dict() for e in events.recent(owner_id, limit)]

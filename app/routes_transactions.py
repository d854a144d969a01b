# routes_transactions.py
"""
Routes related to the transactions list, manual entry and single edits.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.deps import get_db, get_event_bus, require_owner
from app.routes_categories import ensure_category_owned
from app.schemas import RelabelIn, TransactionCreate, TransactionOut, TransactionUpdate
from app.services.date_helpers import get_month_range
from app.services.events import EventBus, DATA_CHANGED
from app.services.merchant_resolver import relabel_one
from app.services import transaction_store

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("", response_model=List[TransactionOut])
def transactions_list(
    month: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    category_id: Optional[int] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    owner_id: int = Depends(require_owner),
):
    # an explicit range wins over ?month=YYYY-MM
    if month and not (start_date or end_date):
        start_date, end_date, _ = get_month_range(month)

    return transaction_store.list_transactions(
        db,
        owner_id,
        limit=limit,
        offset=offset,
        start_date=start_date,
        end_date=end_date,
        category_id=category_id,
    )


@router.post("", response_model=TransactionOut, status_code=201)
def transactions_create(
    payload: TransactionCreate,
    db: Session = Depends(get_db),
    owner_id: int = Depends(require_owner),
    events: EventBus = Depends(get_event_bus),
):
    """Manual entry: identical-looking rows are allowed."""
    ensure_category_owned(db, payload.category_id, owner_id)

    fields = payload.model_dump()
    fields["owner_id"] = owner_id
    tx_id = transaction_store.insert_transaction(db, fields, check_duplicates=False)

    events.publish(DATA_CHANGED, owner_id, reason="transaction_created", transaction_id=tx_id)
    return transaction_store.get_transaction(db, tx_id, owner_id)


@router.get("/{transaction_id}", response_model=TransactionOut)
def transactions_get(transaction_id: int, db: Session = Depends(get_db), owner_id: int = Depends(require_owner)):
    tx = transaction_store.get_transaction(db, transaction_id, owner_id)
    if tx is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return tx


@router.patch("/{transaction_id}", response_model=TransactionOut)
def transactions_update(
    transaction_id: int,
    payload: TransactionUpdate,
    db: Session = Depends(get_db),
    owner_id: int = Depends(require_owner),
    events: EventBus = Depends(get_event_bus),
):
    updates = payload.model_dump(exclude_unset=True)
    if "category_id" in updates:
        ensure_category_owned(db, updates["category_id"], owner_id)

    try:
        tx = transaction_store.update_transaction(db, transaction_id, owner_id, updates)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if tx is None:
        raise HTTPException(status_code=404, detail="Transaction not found")

    events.publish(DATA_CHANGED, owner_id, reason="transaction_updated", transaction_id=transaction_id)
    return tx


@router.delete("/{transaction_id}", status_code=204)
def transactions_delete(
    transaction_id: int,
    db: Session = Depends(get_db),
    owner_id: int = Depends(require_owner),
    events: EventBus = Depends(get_event_bus),
):
    if not transaction_store.delete_transaction(db, transaction_id, owner_id):
        raise HTTPException(status_code=404, detail="Transaction not found")
    events.publish(DATA_CHANGED, owner_id, reason="transaction_deleted", transaction_id=transaction_id)


@router.post("/{transaction_id}/relabel", response_model=TransactionOut)
def transactions_relabel(
    transaction_id: int,
    payload: RelabelIn,
    db: Session = Depends(get_db),
    owner_id: int = Depends(require_owner),
    events: EventBus = Depends(get_event_bus),
):
    """Rename one occurrence without creating a rule."""
    ensure_category_owned(db, payload.category_id, owner_id)
    if not relabel_one(db, transaction_id, owner_id, payload.display_name, payload.category_id, events=events):
        raise HTTPException(status_code=404, detail="Transaction not found")
    return transaction_store.get_transaction(db, transaction_id, owner_id)

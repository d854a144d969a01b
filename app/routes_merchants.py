# routes_merchants.py
"""
The merchant dictionary: learned rules, the unnamed backlog, and naming a
merchant (which relabels its whole history).
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.deps import get_db, get_event_bus, require_owner
from app.schemas import MappingOut, MerchantSaveIn, MerchantSaveOut, UnnamedMerchantOut
from app.services.events import EventBus
from app.services.merchant_resolver import (
    delete_mapping,
    list_mappings,
    list_unnamed_merchants,
    save_merchant_name,
)
from app.routes_categories import ensure_category_owned

router = APIRouter(prefix="/merchants", tags=["merchants"])


@router.get("", response_model=List[MappingOut])
def merchants_list(db: Session = Depends(get_db), owner_id: int = Depends(require_owner)):
    return list_mappings(db, owner_id)


@router.get("/unnamed", response_model=List[UnnamedMerchantOut])
def merchants_unnamed(db: Session = Depends(get_db), owner_id: int = Depends(require_owner)):
    return list_unnamed_merchants(db, owner_id)


@router.post("", response_model=MerchantSaveOut)
def merchants_save(
    payload: MerchantSaveIn,
    db: Session = Depends(get_db),
    owner_id: int = Depends(require_owner),
    events: EventBus = Depends(get_event_bus),
):
    ensure_category_owned(db, payload.category_id, owner_id)
    try:
        mapping, updated = save_merchant_name(
            db,
            payload.raw_name,
            payload.display_name,
            payload.category_id,
            owner_id,
            events=events,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"mapping": mapping, "updated_transactions": updated}


@router.delete("/{mapping_id}", status_code=204)
def merchants_delete(mapping_id: int, db: Session = Depends(get_db), owner_id: int = Depends(require_owner)):
    if not delete_mapping(db, mapping_id, owner_id):
        raise HTTPException(status_code=404, detail="Merchant rule not found")

# routes_subscriptions.py
"""
Recurring payments: run detection on demand, list what is active.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.deps import get_db, require_owner
from app.schemas import DetectOut, SubscriptionOut
from app.services.subscriptions import (
    detect_subscriptions,
    get_active_subscriptions,
    monthly_subscription_cost,
    save_subscriptions,
)

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.post("/detect", response_model=DetectOut)
def subscriptions_detect(db: Session = Depends(get_db), owner_id: int = Depends(require_owner)):
    detected = detect_subscriptions(db, owner_id)
    save_subscriptions(db, detected, owner_id)

    return {
        "detected": len(detected),
        "subscriptions": get_active_subscriptions(db, owner_id),
        "monthly_cost": monthly_subscription_cost(db, owner_id),
    }


@router.get("", response_model=List[SubscriptionOut])
def subscriptions_list(db: Session = Depends(get_db), owner_id: int = Depends(require_owner)):
    return get_active_subscriptions(db, owner_id)

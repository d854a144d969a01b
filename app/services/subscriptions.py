# app/services/subscriptions.py
"""
Recurring-payment detection.

Looks at an owner's recent debits per stable merchant key and keeps the
groups whose amounts hold steady and whose spacing matches a weekly,
monthly or yearly cadence. Detection is on demand; results are upserted
into the subscriptions table so re-running refreshes instead of
duplicating.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
from sqlalchemy.orm import Session

from models import Subscription, Transaction
from app import settings
from app.services.date_helpers import shift_months

logger = logging.getLogger(__name__)

MIN_OCCURRENCES = 2
AMOUNT_TOLERANCE = 0.05
MIN_CONFIDENCE = 0.6

# (frequency, min mean interval, max mean interval, canonical period) in days
FREQUENCY_BANDS = (
    ("weekly", 5, 9, 7),
    ("monthly", 25, 35, 30),
    ("yearly", 350, 380, 365),
)

# Multipliers onto a monthly basis
MONTHLY_FACTORS = {"weekly": 4.33, "monthly": 1.0, "yearly": 1.0 / 12}


@dataclass
class DetectedSubscription:
    merchant: str
    amount: float
    frequency: str
    confidence: float
    next_expected_date: date
    transaction_ids: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class CadencePattern:
    amount: float
    frequency: str
    confidence: float
    next_date: date


# ---- Pattern test ----

def classify_interval(mean_interval: float):
    """Returns (frequency, confidence, period_days) or None outside every band."""
    for frequency, low, high, period in FREQUENCY_BANDS:
        if low <= mean_interval <= high:
            confidence = 1 - abs(mean_interval - period) / period
            return frequency, confidence, period
    return None


def detect_pattern(amounts: Sequence[float], dates: Sequence[date]) -> Optional[CadencePattern]:
    """
    amounts/dates belong to one merchant group, in any order.
    """
    if len(amounts) < MIN_OCCURRENCES or len(amounts) != len(dates):
        return None

    values = np.asarray(amounts, dtype=float)
    mean_amount = float(values.mean())
    if mean_amount <= 0:
        return None

    # every amount within 5% of the mean
    if not np.all(np.abs(values - mean_amount) / mean_amount < AMOUNT_TOLERANCE):
        return None

    ordered = sorted(dates)
    intervals = [abs((b - a).days) for a, b in zip(ordered, ordered[1:])]
    mean_interval = float(np.mean(intervals))

    band = classify_interval(mean_interval)
    if band is None:
        return None

    frequency, confidence, period = band
    if confidence < MIN_CONFIDENCE:
        return None

    return CadencePattern(
        amount=mean_amount,
        frequency=frequency,
        confidence=confidence,
        next_date=ordered[-1] + timedelta(days=period),
    )


# ---- Detection ----

def _load_debits(db: Session, owner_id: int, since: date) -> pd.DataFrame:
    rows = (
        db.query(
            Transaction.id,
            Transaction.merchant,
            Transaction.original_merchant,
            Transaction.amount,
            Transaction.date,
        )
        .filter(
            Transaction.owner_id == owner_id,
            Transaction.direction == "debit",
            Transaction.date >= since,
        )
        .order_by(Transaction.date, Transaction.id)
        .all()
    )
    df = pd.DataFrame(rows, columns=["id", "merchant", "original_merchant", "amount", "date"])
    if not df.empty:
        df["key"] = df["original_merchant"].fillna(df["merchant"])
        df["amount"] = df["amount"].astype(float)
    return df


def detect_subscriptions(
    db: Session,
    owner_id: int,
    today: Optional[date] = None,
    lookback_months: Optional[int] = None,
) -> List[DetectedSubscription]:
    today = today or date.today()
    months = lookback_months if lookback_months is not None else settings.SUBSCRIPTION_LOOKBACK_MONTHS
    since = shift_months(today, -months)

    df = _load_debits(db, owner_id, since)
    if df.empty:
        return []

    detected: List[DetectedSubscription] = []
    counts = df.groupby("key")["id"].size().sort_values(ascending=False)

    for key, count in counts.items():
        if count < MIN_OCCURRENCES:
            continue
        group = df[df["key"] == key]
        pattern = detect_pattern(group["amount"].tolist(), group["date"].tolist())
        if pattern is None:
            continue

        detected.append(
            DetectedSubscription(
                merchant=key,
                amount=pattern.amount,
                frequency=pattern.frequency,
                confidence=pattern.confidence,
                next_expected_date=pattern.next_date,
                transaction_ids=[int(i) for i in group["id"]],
            )
        )

    logger.info("Detected %d subscriptions for user %s", len(detected), owner_id)
    return detected


# ---- Persistence ----

def save_subscriptions(db: Session, subscriptions: Sequence[DetectedSubscription], owner_id: int) -> int:
    """
    Replace the owner's detection result: upsert by (merchant, owner) and
    deactivate every row this run did not detect.
    """
    detected = {sub.merchant for sub in subscriptions}

    for sub in subscriptions:
        row = (
            db.query(Subscription)
            .filter(Subscription.merchant == sub.merchant, Subscription.owner_id == owner_id)
            .first()
        )
        if row is None:
            row = Subscription(merchant=sub.merchant, owner_id=owner_id)
            db.add(row)

        row.original_merchant = sub.merchant
        row.amount = float(sub.amount)
        row.frequency = sub.frequency
        row.confidence = float(sub.confidence)
        row.next_date = sub.next_expected_date
        row.is_active = True

    stale = db.query(Subscription).filter(
        Subscription.owner_id == owner_id, Subscription.is_active.is_(True)
    )
    for row in stale:
        if row.merchant not in detected:
            row.is_active = False

    db.commit()
    logger.info("Saved %d subscriptions for user %s", len(subscriptions), owner_id)
    return len(subscriptions)


def get_active_subscriptions(db: Session, owner_id: int) -> List[Subscription]:
    return (
        db.query(Subscription)
        .filter(Subscription.owner_id == owner_id, Subscription.is_active.is_(True))
        .order_by(Subscription.next_date)
        .all()
    )


def monthly_subscription_cost(db: Session, owner_id: int) -> float:
    total = 0.0
    for sub in get_active_subscriptions(db, owner_id):
        total += sub.amount * MONTHLY_FACTORS.get(sub.frequency, 0.0)
    return total

# app/services/merchant_resolver.py
"""
The merchant dictionary: raw SMS merchant token -> display name + category.

Works like a phone's contact book. The first time a raw token shows up the
user is asked to name it; once named, every past and future transaction with
that token carries the chosen name.

Public API:
    lookup(db, raw_token, owner_id)
    resolve_or_flag(db, raw_token, owner_id, known_brand=False)
    save_merchant_name(db, raw_token, display_name, category_id, owner_id)
    relabel_one(db, transaction_id, owner_id, display_name, category_id)
    list_unnamed_merchants(db, owner_id)
    list_mappings(db, owner_id) / delete_mapping(db, mapping_id, owner_id)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from models import MerchantMapping, Transaction
from app import settings
from app.services.auto_categorize import category_id_for_merchant
from app.services.events import EventBus, DATA_CHANGED
from app.services.sms_rules import SmsRuleSet

logger = logging.getLogger(__name__)

_WORD_SPLIT_RX = re.compile(r"[\W_]+")


@dataclass(frozen=True)
class MerchantResolution:
    raw_token: str
    display_name: str
    category_id: Optional[int]
    is_known: bool
    mapping_id: Optional[int] = None


# ---- Lookups ----

def lookup(db: Session, raw_token: str, owner_id: int) -> Optional[MerchantMapping]:
    """Case-insensitive exact match against this owner's rules only."""
    if not raw_token:
        return None
    return (
        db.query(MerchantMapping)
        .filter(
            func.upper(MerchantMapping.sms_name) == raw_token.upper(),
            MerchantMapping.owner_id == owner_id,
        )
        .first()
    )


def is_known_merchant(db: Session, raw_token: str, owner_id: int) -> bool:
    return lookup(db, raw_token, owner_id) is not None


def suggest_display_name(raw_token: str) -> str:
    """'swiggy_bangalore-01' -> 'Swiggy Bangalore 01'"""
    words = [w for w in _WORD_SPLIT_RX.split(raw_token or "") if w]
    return " ".join(w[:1].upper() + w[1:].lower() for w in words).strip()


def resolve_or_flag(
    db: Session,
    raw_token: str,
    owner_id: int,
    known_brand: bool = False,
    rules: SmsRuleSet | None = None,
) -> MerchantResolution:
    """
    Known path: the owner's rule decides name and category.
    Unknown path: provisional name + keyword category, flagged for naming,
    unless the token is a brand from the built-in table.
    """
    mapping = lookup(db, raw_token, owner_id)
    if mapping is not None:
        logger.debug("Known merchant: %s -> %s", raw_token, mapping.display_name)
        return MerchantResolution(
            raw_token=raw_token,
            display_name=mapping.display_name,
            category_id=mapping.category_id,
            is_known=True,
            mapping_id=mapping.id,
        )

    # Brand names are already display quality ("McDonalds", "IndiGo")
    display_name = raw_token if known_brand else (suggest_display_name(raw_token) or raw_token)
    category_id = category_id_for_merchant(db, owner_id, raw_token, rules)

    if not known_brand:
        logger.info("New merchant detected: %s", raw_token)

    return MerchantResolution(
        raw_token=raw_token,
        display_name=display_name,
        category_id=category_id,
        is_known=known_brand,
    )


# ---- Learning ----

def _matching_transaction_ids(db: Session, raw_token: str, owner_id: int) -> List[int]:
    key = raw_token.upper()
    rows = (
        db.query(Transaction.id)
        .filter(
            Transaction.owner_id == owner_id,
            or_(
                func.upper(Transaction.original_merchant) == key,
                func.upper(Transaction.merchant) == key,
            ),
        )
        .order_by(Transaction.id)
        .all()
    )
    return [r[0] for r in rows]


def _relabel_ids(
    db: Session,
    ids: List[int],
    display_name: str,
    category_id: Optional[int],
    chunk_size: int,
) -> int:
    """UPDATE in chunks; a failing chunk is retried row by row."""
    values = {Transaction.merchant: display_name, Transaction.category_id: category_id}
    updated = 0

    for i in range(0, len(ids), chunk_size):
        chunk = ids[i : i + chunk_size]
        try:
            updated += (
                db.query(Transaction)
                .filter(Transaction.id.in_(chunk))
                .update(values, synchronize_session=False)
            )
            db.commit()
            continue
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Relabel chunk %s failed; retrying row by row", i // chunk_size)

        for tx_id in chunk:
            try:
                updated += (
                    db.query(Transaction)
                    .filter(Transaction.id == tx_id)
                    .update(values, synchronize_session=False)
                )
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                logger.exception("Relabel failed for transaction %s", tx_id)

    db.expire_all()
    return updated


def _upsert_mapping(
    db: Session,
    raw_token: str,
    display_name: str,
    category_id: Optional[int],
    owner_id: int,
) -> MerchantMapping:
    existing = lookup(db, raw_token, owner_id)
    if existing is None:
        mapping = MerchantMapping(
            sms_name=raw_token.upper(),
            display_name=display_name,
            category_id=category_id,
            owner_id=owner_id,
        )
        try:
            with db.begin_nested():
                db.add(mapping)
            db.commit()
            return mapping
        except IntegrityError:
            # saved concurrently; fall through to the update
            existing = lookup(db, raw_token, owner_id)
            if existing is None:
                raise

    existing.display_name = display_name
    existing.category_id = category_id
    db.commit()
    return existing


def save_merchant_name(
    db: Session,
    raw_token: str,
    display_name: str,
    category_id: Optional[int],
    owner_id: int,
    events: EventBus | None = None,
    chunk_size: int | None = None,
) -> Tuple[MerchantMapping, int]:
    """
    Save (or update) the rule, then apply it to every past transaction of
    this owner carrying the token. Returns (mapping, rows relabeled).
    """
    raw_token = (raw_token or "").strip()
    display_name = (display_name or "").strip()
    if not raw_token:
        raise ValueError("raw_token is required")
    if not display_name:
        raise ValueError("display_name is required")

    mapping = _upsert_mapping(db, raw_token, display_name, category_id, owner_id)

    ids = _matching_transaction_ids(db, raw_token, owner_id)
    logger.info("Applying rule for %s -> %s to %d past transactions", raw_token, display_name, len(ids))
    updated = _relabel_ids(db, ids, display_name, category_id, chunk_size or settings.RELABEL_CHUNK_SIZE)

    logger.info("Saved merchant rule and updated history: %s -> %s", raw_token, display_name)
    if events is not None:
        events.publish(DATA_CHANGED, owner_id, reason="merchant_saved", raw_token=raw_token, updated=updated)

    return mapping, updated


def relabel_one(
    db: Session,
    transaction_id: int,
    owner_id: int,
    display_name: str,
    category_id: Optional[int],
    events: EventBus | None = None,
) -> bool:
    """Rename/recategorize one transaction without creating a rule."""
    updated = (
        db.query(Transaction)
        .filter(Transaction.id == transaction_id, Transaction.owner_id == owner_id)
        .update(
            {Transaction.merchant: display_name, Transaction.category_id: category_id},
            synchronize_session=False,
        )
    )
    db.commit()
    db.expire_all()

    if updated and events is not None:
        events.publish(DATA_CHANGED, owner_id, reason="transaction_relabeled", transaction_id=transaction_id)
    return updated > 0


# ---- Backlog / management ----

def list_unnamed_merchants(db: Session, owner_id: int) -> List[Dict[str, Any]]:
    """
    Every merchant in the owner's history with no rule, most frequent first.
    Not truncated: the user has to work through all of them eventually.
    """
    rows = (
        db.query(
            Transaction.id,
            Transaction.merchant,
            Transaction.original_merchant,
            Transaction.amount,
            Transaction.date,
        )
        .filter(Transaction.owner_id == owner_id)
        .all()
    )
    if not rows:
        return []

    named = {
        (s or "").upper()
        for (s,) in db.query(MerchantMapping.sms_name).filter(MerchantMapping.owner_id == owner_id).all()
    }

    df = pd.DataFrame(rows, columns=["id", "merchant", "original_merchant", "amount", "date"])
    df["raw_name"] = df["original_merchant"].fillna(df["merchant"])
    df["key"] = df["raw_name"].str.upper()

    is_named = df["key"].isin(named) | df["merchant"].str.upper().isin(named)
    df = df[~is_named]
    if df.empty:
        return []

    df = df.sort_values(["date", "id"])
    grouped = df.groupby("key", sort=False).agg(
        raw_name=("raw_name", "last"),
        occurrences=("id", "size"),
        last_amount=("amount", "last"),
    )
    grouped = grouped.reset_index().sort_values(["occurrences", "raw_name"], ascending=[False, True])

    return [
        {
            "raw_name": r.raw_name,
            "count": int(r.occurrences),
            "last_amount": float(r.last_amount),
        }
        for r in grouped.itertuples(index=False)
    ]


def list_mappings(db: Session, owner_id: int) -> List[MerchantMapping]:
    return (
        db.query(MerchantMapping)
        .filter(MerchantMapping.owner_id == owner_id)
        .order_by(MerchantMapping.display_name)
        .all()
    )


def delete_mapping(db: Session, mapping_id: int, owner_id: int) -> bool:
    """Drops the rule; transactions keep the name it gave them."""
    deleted = (
        db.query(MerchantMapping)
        .filter(MerchantMapping.id == mapping_id, MerchantMapping.owner_id == owner_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted > 0

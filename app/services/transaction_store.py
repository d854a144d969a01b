# app/services/transaction_store.py
#
# Transaction persistence: duplicate-suppressed inserts for SMS ingestion,
# plain inserts for manual entry, and the small CRUD/aggregate surface the
# routes and the pipeline need.

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from models import Transaction, DIRECTIONS

logger = logging.getLogger(__name__)

# Fields a caller may change after insert. original_merchant is not one of them.
UPDATABLE_FIELDS = ("amount", "direction", "merchant", "category_id", "date", "notes")


# ---- Lookups ----

def find_transaction(
    db: Session,
    owner_id: int,
    amount,
    on_date: date,
    direction: str,
    merchant: str,
) -> Optional[int]:
    """Id of an identical financial event already stored for this owner."""
    row = (
        db.query(Transaction.id)
        .filter(
            Transaction.owner_id == owner_id,
            Transaction.amount == Decimal(str(amount)),
            Transaction.date == on_date,
            Transaction.direction == direction,
            Transaction.merchant == merchant,
        )
        .order_by(Transaction.id)
        .first()
    )
    return row[0] if row else None


def get_transaction(db: Session, transaction_id: int, owner_id: int) -> Optional[Transaction]:
    return (
        db.query(Transaction)
        .filter(Transaction.id == transaction_id, Transaction.owner_id == owner_id)
        .first()
    )


def list_transactions(
    db: Session,
    owner_id: int,
    limit: int = 50,
    offset: int = 0,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    category_id: Optional[int] = None,
) -> List[Transaction]:
    query = db.query(Transaction).filter(Transaction.owner_id == owner_id)

    if start_date:
        query = query.filter(Transaction.date >= start_date)
    if end_date:
        query = query.filter(Transaction.date <= end_date)
    if category_id:
        query = query.filter(Transaction.category_id == category_id)

    return (
        query.order_by(Transaction.date.desc(), Transaction.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


# ---- Writes ----

def build_transaction(fields: Dict[str, Any]) -> Transaction:
    """
    Convert one cleaned tx dict into a Transaction ORM object.

    original_merchant defaults to the merchant label at insert time.
    """
    direction = fields.get("direction") or "debit"
    if direction not in DIRECTIONS:
        raise ValueError(f"direction must be one of {DIRECTIONS}, got {direction!r}")

    amount = Decimal(str(fields["amount"]))
    if amount <= 0:
        raise ValueError("amount must be positive")

    merchant = fields.get("merchant") or "General Expense"

    return Transaction(
        amount=amount,
        direction=direction,
        merchant=merchant,
        original_merchant=fields.get("original_merchant") or merchant,
        category_id=fields.get("category_id"),
        account_id=fields.get("account_id"),
        owner_id=fields["owner_id"],
        date=fields.get("date") or date.today(),
        raw_sms=fields.get("raw_sms"),
        notes=fields.get("notes"),
    )


def insert_transaction(db: Session, fields: Dict[str, Any], check_duplicates: bool = True) -> int:
    """
    Insert and commit one transaction; returns its id.

    With check_duplicates the same (owner, amount, date, direction, merchant)
    returns the existing id instead, so redelivered SMS and overlapping
    history scans stay idempotent. Manual entry passes False.
    """
    tx = build_transaction(fields)

    if check_duplicates:
        existing_id = find_transaction(
            db, tx.owner_id, tx.amount, tx.date, tx.direction, tx.merchant
        )
        if existing_id is not None:
            logger.info(
                "Skipping duplicate transaction for user %s (ID: %s)", tx.owner_id, existing_id
            )
            return existing_id

    db.add(tx)
    db.commit()
    db.refresh(tx)
    return tx.id


def update_transaction(
    db: Session, transaction_id: int, owner_id: int, updates: Dict[str, Any]
) -> Optional[Transaction]:
    tx = get_transaction(db, transaction_id, owner_id)
    if tx is None:
        return None

    for key in UPDATABLE_FIELDS:
        if key not in updates:
            continue
        value = updates[key]
        if key == "direction" and value not in DIRECTIONS:
            raise ValueError(f"direction must be one of {DIRECTIONS}, got {value!r}")
        if key == "amount":
            value = Decimal(str(value))
            if value <= 0:
                raise ValueError("amount must be positive")
        setattr(tx, key, value)

    db.commit()
    db.refresh(tx)
    return tx


def delete_transaction(db: Session, transaction_id: int, owner_id: int) -> bool:
    deleted = (
        db.query(Transaction)
        .filter(Transaction.id == transaction_id, Transaction.owner_id == owner_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted > 0


# ---- Aggregates ----

def aggregate_spending(
    db: Session,
    owner_id: int,
    start_date: date,
    end_date: date,
    group_by: Optional[str] = None,
):
    """
    Sum of debit amounts in [start_date, end_date].

    group_by:
        None       -> float total
        "category" -> [{"category_id": int|None, "total": float}]
        "date"     -> [{"date": date, "total": float}] ordered by date
    """
    base_filter = (
        Transaction.owner_id == owner_id,
        Transaction.direction == "debit",
        Transaction.date >= start_date,
        Transaction.date <= end_date,
    )

    if group_by is None:
        total = db.query(func.coalesce(func.sum(Transaction.amount), 0)).filter(*base_filter).scalar()
        return float(total or 0)

    if group_by == "category":
        rows = (
            db.query(Transaction.category_id, func.sum(Transaction.amount).label("total"))
            .filter(*base_filter)
            .group_by(Transaction.category_id)
            .order_by(func.sum(Transaction.amount).desc())
            .all()
        )
        return [{"category_id": r.category_id, "total": float(r.total or 0)} for r in rows]

    if group_by == "date":
        rows = (
            db.query(Transaction.date, func.sum(Transaction.amount).label("total"))
            .filter(*base_filter)
            .group_by(Transaction.date)
            .order_by(Transaction.date)
            .all()
        )
        return [{"date": r.date, "total": float(r.total or 0)} for r in rows]

    raise ValueError(f"Unsupported group_by: {group_by!r}")

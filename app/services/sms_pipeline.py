# app/services/sms_pipeline.py
"""
Single entry point for an inbound bank SMS.

    classify -> extract -> resolve merchant + account -> insert -> notify

Everything the pipeline needs comes in as arguments (session, owner, rule
set, event bus), so the same function serves live delivery, HTTP ingestion
and bulk history scans.

Routine rejections come back as ProcessResult(success=False, error=...);
only unexpected store errors propagate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app import settings
from app.services.account_resolver import resolve_account_id
from app.services.events import EventBus, NEW_MERCHANT, DATA_CHANGED
from app.services.expense_parser import parse_expense
from app.services.merchant_resolver import resolve_or_flag
from app.services.sms_classifier import classify
from app.services.sms_rules import SmsRuleSet, get_rules
from app.services.text_normalizer import normalize_message
from app.services.transaction_store import insert_transaction

logger = logging.getLogger(__name__)

NO_USER_ERROR = "User not logged in"
NOT_TRANSACTION_ERROR = "Not a transaction SMS"
PARSE_ERROR = "Could not parse transaction details"

Timestamp = Union[datetime, date, int, float, None]


@dataclass
class ProcessResult:
    success: bool
    transaction_id: Optional[int] = None
    needs_naming: bool = False
    new_merchant: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ScanItem(NamedTuple):
    sender: str
    body: str
    timestamp: Timestamp = None


@dataclass
class ScanSummary:
    total: int = 0
    imported: int = 0
    rejected: int = 0
    failed: int = 0
    needs_naming: int = 0
    transaction_ids: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d.pop("transaction_ids")
        return d


def classify_and_extract(
    db: Session,
    raw_text: str,
    sender: str,
    owner_id: Optional[int],
    explicit_timestamp: Timestamp = None,
    suppress_side_effects: bool = False,
    rules: SmsRuleSet | None = None,
    events: EventBus | None = None,
) -> ProcessResult:
    """
    Process one message for one owner.

    suppress_side_effects keeps the event bus quiet (bulk history scans
    would otherwise flood the UI with naming prompts).
    """
    if not owner_id:
        logger.warning("No user logged in, skipping SMS processing (sender %s)", sender)
        return ProcessResult(success=False, error=NO_USER_ERROR)

    rules = rules or get_rules()
    text = normalize_message(raw_text)

    # 1) gate
    validation = classify(text, sender, rules)
    if not validation.accept:
        logger.info("SMS validation failed for %s: %s", sender, validation.reason)
        return ProcessResult(success=False, error=f"Not a valid transaction: {validation.reason}")

    if not validation.is_transaction:
        logger.info("Not a transaction SMS (sender %s)", sender)
        return ProcessResult(success=False, error=NOT_TRANSACTION_ERROR)

    # 2) fields
    parsed = parse_expense(text, validation.known_sender, explicit_timestamp, rules)
    if parsed is None:
        logger.info("Could not parse transaction details (sender %s)", sender)
        return ProcessResult(success=False, error=PARSE_ERROR)

    logger.info(
        "Parsed: amount=%s direction=%s merchant=%s", parsed.amount, parsed.direction, parsed.merchant
    )

    # 3) enrichment
    merchant = resolve_or_flag(db, parsed.merchant, owner_id, known_brand=parsed.known_merchant, rules=rules)
    account_id = resolve_account_id(db, parsed.account_last4, sender, owner_id, rules)

    # 4) persist
    transaction_id = insert_transaction(
        db,
        {
            "amount": parsed.amount,
            "direction": parsed.direction,
            "merchant": merchant.display_name,
            "original_merchant": parsed.merchant,
            "category_id": merchant.category_id,
            "account_id": account_id,
            "owner_id": owner_id,
            "date": parsed.date,
            "raw_sms": raw_text,
        },
        check_duplicates=True,
    )
    logger.info("Transaction saved with ID: %s", transaction_id)

    if events is not None and not suppress_side_effects:
        events.publish(DATA_CHANGED, owner_id, reason="transaction_inserted", transaction_id=transaction_id)

    if merchant.is_known:
        return ProcessResult(success=True, transaction_id=transaction_id, needs_naming=False)

    # 5) unknown merchant: ask the user to name it
    new_merchant = {
        "raw_name": parsed.merchant,
        "suggested_name": merchant.display_name,
        "amount": float(parsed.amount),
        "transaction_id": transaction_id,
        "category_id": merchant.category_id,
    }
    if events is not None and not suppress_side_effects:
        events.publish(NEW_MERCHANT, owner_id, **new_merchant)

    return ProcessResult(
        success=True,
        transaction_id=transaction_id,
        needs_naming=True,
        new_merchant=new_merchant,
    )


def scan_history(
    db: Session,
    items: Iterable[ScanItem],
    owner_id: Optional[int],
    chunk_size: int | None = None,
    rules: SmsRuleSet | None = None,
    events: EventBus | None = None,
) -> ScanSummary:
    """
    Feed an inbox backlog through the pipeline with side effects off.

    Each item is its own unit of work: a store error on one message is
    logged and counted, the scan carries on. One DATA_CHANGED is published
    at the end if anything was imported.
    """
    rules = rules or get_rules()
    chunk_size = chunk_size or settings.SCAN_CHUNK_SIZE
    summary = ScanSummary()
    seen = set()

    items = list(items)
    for start in range(0, len(items), chunk_size):
        chunk = items[start : start + chunk_size]

        for item in chunk:
            summary.total += 1
            try:
                result = classify_and_extract(
                    db,
                    item.body,
                    item.sender,
                    owner_id,
                    explicit_timestamp=item.timestamp,
                    suppress_side_effects=True,
                    rules=rules,
                )
            except SQLAlchemyError:
                db.rollback()
                summary.failed += 1
                logger.exception("Scan item %s from %s failed", summary.total, item.sender)
                continue

            if not result.success:
                summary.rejected += 1
                continue

            if result.transaction_id not in seen:
                seen.add(result.transaction_id)
                summary.imported += 1
                summary.transaction_ids.append(result.transaction_id)
                if result.needs_naming:
                    summary.needs_naming += 1

        logger.info(
            "[scan] %d/%d processed, %d imported, %d rejected, %d failed",
            summary.total,
            len(items),
            summary.imported,
            summary.rejected,
            summary.failed,
        )

    if events is not None and summary.imported:
        events.publish(DATA_CHANGED, owner_id, reason="history_scanned", imported=summary.imported)

    return summary

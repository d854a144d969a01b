# app/services/account_resolver.py
"""
Map (SMS sender, last 4 digits) to an account id, creating accounts on first
sight.

Two messages for a brand-new account can be ingested at the same time; both
miss the lookup and both try to insert. The unique constraint on
(bank_name, last_4, owner_id) lets exactly one insert win. The loser catches
the IntegrityError, rolls back its savepoint, and reads the winner's row.
If even that fails the transaction is stored without an account.
"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from models import Account, GENERIC_LAST4
from app.services.sms_rules import SmsRuleSet, get_rules

logger = logging.getLogger(__name__)

DEFAULT_ACCOUNT_TYPE = "debit"


def normalize_bank_name(sender: str, rules: SmsRuleSet | None = None) -> str:
    """AD-HDFCBK -> HDFCBK"""
    rules = rules or get_rules()
    return rules.sender_prefix.sub("", (sender or "").strip())


def find_account(db: Session, bank_name: str, last4: str, owner_id: int) -> Optional[int]:
    row = (
        db.query(Account.id)
        .filter(
            Account.bank_name == bank_name,
            Account.last_4 == last4,
            Account.owner_id == owner_id,
        )
        .first()
    )
    return row[0] if row else None


def find_any_account(db: Session, bank_name: str, owner_id: int) -> Optional[int]:
    row = (
        db.query(Account.id)
        .filter(Account.bank_name == bank_name, Account.owner_id == owner_id)
        .order_by(Account.id.asc())
        .first()
    )
    return row[0] if row else None


def create_account(
    db: Session,
    bank_name: str,
    last4: str,
    owner_id: int,
    name: str,
    account_type: str = DEFAULT_ACCOUNT_TYPE,
) -> int:
    """
    Insert inside a savepoint so a duplicate-key failure leaves the
    surrounding session usable. Raises IntegrityError on a lost race.
    """
    account = Account(
        name=name,
        bank_name=bank_name,
        last_4=last4,
        type=account_type,
        owner_id=owner_id,
    )
    with db.begin_nested():
        db.add(account)
    db.commit()
    return account.id


def resolve_account_id(
    db: Session,
    last4: Optional[str],
    sender: str,
    owner_id: int,
    rules: SmsRuleSet | None = None,
) -> Optional[int]:
    bank_name = normalize_bank_name(sender, rules)

    try:
        if not last4:
            # Known bank without digits: reuse any account of that bank
            existing = find_any_account(db, bank_name, owner_id)
            if existing is not None:
                return existing

            name = f"{bank_name} Main Account"
            account_id = create_account(db, bank_name, GENERIC_LAST4, owner_id, name)
            logger.info("Created generic account: %s", name)
            return account_id

        existing = find_account(db, bank_name, last4, owner_id)
        if existing is not None:
            return existing

        name = f"{bank_name} {DEFAULT_ACCOUNT_TYPE} - {last4}"
        account_id = create_account(db, bank_name, last4, owner_id, name)
        logger.info("New account detected: %s", name)
        return account_id

    except IntegrityError as error:
        # Another ingestion created the same account first
        logger.info("Race condition resolved for %s account", bank_name)
        try:
            winner = find_account(db, bank_name, last4 or GENERIC_LAST4, owner_id)
        except SQLAlchemyError as retry_error:
            logger.warning("Retry fetch failed: %r", retry_error)
            winner = None

        if winner is not None:
            return winner

        logger.warning(
            "Account resolution failed for %s (user %s); defaulting to no account: %r",
            bank_name,
            owner_id,
            error,
        )
        return None

# app/services/expense_parser.py
"""
Field extraction from an accepted bank SMS.

Public API:
    parse_expense(sms, is_known_bank=False, sms_timestamp=None, rules=None)
        -> ParsedExpense | None

Returns None when the message doesn't clear the minimal bar: digits plus a
money verb, an account anchor (or a known bank sender), and an amount.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from app.services.sms_rules import SmsRuleSet, get_rules
from app.services.text_normalizer import normalize_message

GENERAL_MERCHANT = "General Expense"
UNKNOWN_MERCHANT = "Unknown Merchant"

# Cleaned names longer than this are sentence fragments, not merchants
MAX_MERCHANT_LENGTH = 30

_LONG_NUMBER_RX = re.compile(r"\d{6,}")
_SEPARATOR_RX = re.compile(r"[/-]")
_SPACES_RX = re.compile(r"\s+")
_LEAKED_DATE_RX = re.compile(r"^On \d{4}")


@dataclass(frozen=True)
class ParsedExpense:
    amount: Decimal
    merchant: str
    direction: str  # "debit" | "credit"
    date: date
    account_last4: str | None = None

    # True when `merchant` came from the built-in brand table
    known_merchant: bool = False


# ---- Validation ----

def is_valid_transaction(sms: str, rules: SmsRuleSet | None = None) -> bool:
    """Must look like a bank transaction: some digits and a money verb."""
    rules = rules or get_rules()
    return any(ch.isdigit() for ch in sms) and bool(rules.transaction_hint.search(sms))


# ---- Field helpers ----

def parse_amount(amount_str: str) -> Decimal | None:
    try:
        value = Decimal(amount_str.replace(",", ""))
    except InvalidOperation:
        return None
    return value if value > 0 else None


def extract_amount(sms: str, rules: SmsRuleSet | None = None) -> Decimal | None:
    rules = rules or get_rules()
    match = rules.amount_pattern.search(sms)
    if not match:
        return None
    return parse_amount(match.group(1))


def extract_account_last4(sms: str, rules: SmsRuleSet | None = None) -> str | None:
    rules = rules or get_rules()
    for pattern in rules.account_patterns:
        match = pattern.search(sms)
        if match:
            return match.group(1)
    return None


def get_transaction_type(sms: str, rules: SmsRuleSet | None = None) -> str:
    """
    Debit or credit, first rule wins:

    1. "Dr." / "Cr." markers (both present -> debit: Dr. from us, Cr. to them)
    2. credit verbs (before debit verbs so "refund ... paid" reads as credit)
    3. debit verbs
    4. loose "credited"/"deposit" substring
    5. debit
    """
    rules = rules or get_rules()

    if "Dr." in sms:
        return "debit"
    if "Cr." in sms:
        return "credit"

    lower = sms.lower()
    if rules.credit_verbs.search(lower):
        return "credit"
    if rules.debit_verbs.search(lower):
        return "debit"
    if "credited" in lower or "deposit" in lower:
        return "credit"

    return "debit"


def extract_date(sms: str, rules: SmsRuleSet | None = None, today: date | None = None) -> date:
    """DD-MM-YY(YY) or DD/MM/YY(YY) in the text; today when absent or invalid."""
    rules = rules or get_rules()
    fallback = today or date.today()

    match = rules.date_pattern.search(sms)
    if not match:
        return fallback

    day, month, year = (int(g) for g in match.groups())
    if year < 100:
        year += 2000
    try:
        return date(year, month, day)
    except ValueError:
        return fallback


def is_payment_handle(token: str) -> bool:
    return "@" in token and " " not in token


def match_known_merchant(raw: str, rules: SmsRuleSet | None = None) -> str | None:
    rules = rules or get_rules()
    upper = raw.upper()
    for key, display_name in rules.known_merchants.items():
        if key in upper:
            return display_name
    return None


def clean_merchant_name(raw: str, rules: SmsRuleSet | None = None) -> tuple[str, bool]:
    """
    Turn a raw merchant fragment into a stable token.

    Returns (name, known) where `known` says the brand table recognised it.
    Payment handles (8007320919@ybl) come back untouched: they are the key
    the merchant dictionary learns against.
    """
    rules = rules or get_rules()
    name = raw.strip()

    if is_payment_handle(name):
        return name, False

    brand = match_known_merchant(name, rules)
    if brand:
        return brand, True

    name = rules.routing_prefix.sub("", name)
    name = _LONG_NUMBER_RX.sub("", name, count=1)
    name = _SEPARATOR_RX.sub(" ", name)
    name = _SPACES_RX.sub(" ", name).strip()

    cleaned = " ".join(word[:1].upper() + word[1:].lower() for word in name.split(" ") if word)

    if len(cleaned) > MAX_MERCHANT_LENGTH or _LEAKED_DATE_RX.match(cleaned):
        return UNKNOWN_MERCHANT, False

    return cleaned, False


def extract_merchant(sms: str, rules: SmsRuleSet | None = None) -> tuple[str, bool]:
    rules = rules or get_rules()
    merchant = GENERAL_MERCHANT

    handle = rules.payment_handle.search(sms)
    if handle and ".com" not in handle.group(1):
        merchant = handle.group(1)
    else:
        phrase = rules.merchant_phrase.search(sms)
        if phrase:
            merchant = phrase.group(1)

    name, known = clean_merchant_name(merchant, rules)
    return (name or GENERAL_MERCHANT), known


# ---- Entry point ----

def parse_expense(
    raw_sms: str,
    is_known_bank: bool = False,
    sms_timestamp: datetime | float | int | None = None,
    rules: SmsRuleSet | None = None,
) -> ParsedExpense | None:
    rules = rules or get_rules()
    sms = normalize_message(raw_sms)

    if not is_valid_transaction(sms, rules):
        return None

    # Unknown senders must name an account (known banks often skip it)
    last4 = extract_account_last4(sms, rules)
    if not last4 and not is_known_bank:
        return None

    amount = extract_amount(sms, rules)
    if amount is None:
        return None

    direction = get_transaction_type(sms, rules)
    merchant, known = extract_merchant(sms, rules)

    if sms_timestamp is not None:
        when = _timestamp_to_date(sms_timestamp)
    else:
        when = extract_date(sms, rules)

    return ParsedExpense(
        amount=amount,
        merchant=merchant,
        direction=direction,
        date=when,
        account_last4=last4,
        known_merchant=known,
    )


def _timestamp_to_date(ts: datetime | float | int) -> date:
    """Accepts a datetime or epoch milliseconds (Android inbox timestamps)."""
    if isinstance(ts, datetime):
        return ts.date()
    if isinstance(ts, date):
        return ts
    return datetime.fromtimestamp(float(ts) / 1000.0).date()



# app/services/sms_rules.py
"""
Pattern tables for bank SMS classification and extraction.

The tables are data, not control flow: classifier, parser and merchant
resolver all take an `SmsRuleSet` and fall back to `get_rules()` when none is
passed. Tests build their own rule sets with `build_rules(...)`.

Overrides:
  * Environment variable SMS_RULES_FILE (JSON) can replace whole tables:
        {
          "version": "in-2025.02",
          "bank_senders": ["HDFCBK", "MYBANK"],
          "spam_indicators": ["click here", "lottery"],
          "known_merchants": {"BLINKIT": "Blinkit"},
          "category_keywords": {"Groceries": ["blinkit", "zepto"]}
        }
    Listed keys replace the defaults, unlisted keys keep them.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Pattern, Tuple

from app import settings

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "in-2024.1"

# -------------------------------------------------------------------
# Sender tables
# -------------------------------------------------------------------

# DLT headers carry a trailing "-P" for promotional routes (bulk/marketing)
DEFAULT_PROMOTIONAL_SENDER = r"-P\s*$"

# Known bank / PSP sender ids (from DLT headers like JX-BOBSMS)
DEFAULT_BANK_SENDERS: List[str] = [
    r"BOBSMS|BOBTXN|BOBMS",  # Bank of Baroda
    r"HDFCBK|HDFCBN",  # HDFC
    r"SBIN|SBIUPI|SBIMPS",  # SBI
    r"ICICIB",  # ICICI
    r"AXISBK|AXIS",  # Axis
    r"KOTAK",  # Kotak
    r"PNBSMS|PNB",  # PNB
    r"IDFCFB|IDFC",  # IDFC First
    r"YESBNK",  # Yes Bank
    r"CANARA",  # Canara
    r"UNIONB",  # Union Bank
    r"MAHABK",  # Bank of Maharashtra
    r"RBL",  # RBL
    r"INDZB",  # IndusInd
    r"CBSSMS",  # Central Bank
]

# Strips the two-letter route/class header: "AD-HDFCBK" -> "HDFCBK"
DEFAULT_SENDER_PREFIX = r"^[A-Z]{2}-"

# -------------------------------------------------------------------
# Content tables
# -------------------------------------------------------------------

# Each entry is one indicator category; the classifier counts categories hit.
DEFAULT_BANK_INDICATORS: List[str] = [
    r"Rs\.?\s*[\d,]+",  # rupee amount
    r"INR\s*[\d,]+",  # ISO amount
    r"debited|credited|spent|received|auto-?debit|auto-?pay|subscription|membership"
    r"|paid|sent|transfer|withdrawn|withdraw|payment|Dr\.?|Cr\.?",  # money verbs
    r"A/c|account|card|bank|wallet",  # account markers
    r"UPI|IMPS|NEFT|RTGS|Ref\s?No|Reference",  # payment rails
    r"transaction|txn",  # transaction nouns
]

DEFAULT_SPAM_INDICATORS: List[str] = [
    r"click here|tap here|http",
    r"win|won|lottery|prize",
    r"offer expires|limited time",
    r"verify your|confirm your",
    r"suspicious activity",
    # A code tied to the word OTP; a "never share your OTP" footer is fine
    r"(\d{4,8}\s+is\s+your\s+OTP)|(OTP\s+for)",
]

# Cheap second opinion used by the parser: digits plus any money verb
DEFAULT_TRANSACTION_HINT = (
    r"(?:credited|debited|paid|spent|received|withdrawn|dr\.|cr\.|transfer|sent|payment)"
)

DEFAULT_ACCOUNT_PATTERNS: List[str] = [
    r"(?:A/c|Acct|Account)\s+(?:no\.|ending)?\s*[:\-\s]?\s*(?:[X*]+)(\d{3,4})",
    r"(?:Card)\s+(?:no\.|ending)?\s*[:\-\s]?\s*(?:[X*]+)(\d{3,4})",
    r"(?:A/c|Acct|Card)\s+(?:[X*]+)(\d{3,4})",
]

DEFAULT_AMOUNT_PATTERN = r"(?:Rs\.?|INR)\s*([\d,]+(?:\.\d{2})?)"

DEFAULT_CREDIT_VERBS = r"\b(credited|received|deposited|added\s+to|refund|inward|reversal)\b"
DEFAULT_DEBIT_VERBS = r"\b(debited|spent|paid|sent|withdrawn|withdraw|transfer\s+to|purchase)\b"

# name@handle, e.g. 8007320919@ybl or merchant.x@okaxis
DEFAULT_PAYMENT_HANDLE = r"([a-zA-Z0-9.\-_]+@[a-zA-Z]+)"

DEFAULT_MERCHANT_PHRASE = (
    r"\b(?:to|at|via|spent on|paid to|sent to|by|from)\s+([^,.;]+?)"
    r"(?:\s+(?:on|Ref|Avl|Bal|end|txn)|$|\.)"
)

DEFAULT_ROUTING_PREFIX = r"^(VPS|IPS|REV|UPI|IMPS|NEFT|RTGS)[/-]?"

DEFAULT_DATE_PATTERN = r"(\d{2})[-/](\d{2})[-/](\d{2,4})"

# -------------------------------------------------------------------
# Merchant knowledge
# -------------------------------------------------------------------

# Token found anywhere in the raw merchant -> brand name
DEFAULT_KNOWN_MERCHANTS: Dict[str, str] = {
    "ZOMATO": "Zomato",
    "SWIGGY": "Swiggy",
    "UBER": "Uber",
    "OLA": "Ola",
    "AMAZON": "Amazon",
    "FLIPKART": "Flipkart",
    "MYNTRA": "Myntra",
    "NETFLIX": "Netflix",
    "SPOTIFY": "Spotify",
    "APPLE": "Apple",
    "GOOGLE": "Google",
    "JIO": "Jio",
    "AIRTEL": "Airtel",
    "VI": "Vi",
    "PAYTM": "Paytm",
    "PHONEPE": "PhonePe",
    "RAZORPAY": "Razorpay",
    "DMART": "DMart",
    "STARBUCKS": "Starbucks",
    "MCDONALDS": "McDonalds",
    "KFC": "KFC",
    "DOMINOS": "Dominos",
    "PIZZA": "Pizza Hut",
    "IRCTC": "IRCTC",
    "INDIGO": "IndiGo",
    "AIRINDIA": "Air India",
    "DTH": "DTH Recharge",
    "BESCOM": "Electricity Bill",
    "BWSSB": "Water Bill",
    "ACT": "ACT Fibernet",
}

# Category name -> lowercase substrings of the merchant name
DEFAULT_CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "Food & Dining": ["zomato", "swiggy", "dominos", "pizza", "restaurant", "kfc", "burger", "cafe", "coffee", "bakery", "hotel", "starbucks"],
    "Transportation": ["uber", "ola", "rapido", "petrol", "fuel", "shell", "hpcl", "bpcl", "metro", "cab", "auto", "parking"],
    "Shopping": ["amazon", "flipkart", "myntra", "shop", "decathlon", "nike", "adidas", "mall", "mart", "retail", "clothing", "fashion"],
    "Groceries": ["bigbasket", "blinkit", "zepto", "dmart", "fresh", "vegetable", "fruit", "dairy", "milk", "grocery", "supermarket"],
    "Entertainment": ["netflix", "spotify", "hotstar", "prime", "youtube", "cinema", "bookmyshow", "multiplex", "game", "subscription"],
    "Bills & Utilities": ["bescom", "bwssb", "electricity", "water", "gas", "bill", "act", "jio", "airtel", "vi", "vodafone", "bsnl", "recharge", "broadband", "mobile"],
    "Health": ["pharmacy", "hospital", "clinic", "medplus", "apollo", "doctor", "health", "medical"],
    "Travel": ["irctc", "flight", "booking", "makemytrip", "hotel", "train", "bus"],
    "Other": ["atm", "withdrawal", "transfer", "upi", "general", "misc"],
}

# Bucket for bare UPI tokens that matched nothing above
DEFAULT_RESIDUAL_CATEGORY = "Other"


@dataclass(frozen=True)
class SmsRuleSet:
    """Compiled, immutable pattern tables."""

    version: str
    promotional_sender: Pattern
    bank_senders: Tuple[Pattern, ...]
    sender_prefix: Pattern
    bank_indicators: Tuple[Pattern, ...]
    spam_indicators: Tuple[Pattern, ...]
    transaction_hint: Pattern
    account_patterns: Tuple[Pattern, ...]
    amount_pattern: Pattern
    credit_verbs: Pattern
    debit_verbs: Pattern
    payment_handle: Pattern
    merchant_phrase: Pattern
    routing_prefix: Pattern
    date_pattern: Pattern
    known_merchants: Dict[str, str] = field(default_factory=dict)
    category_keywords: Dict[str, List[str]] = field(default_factory=dict)
    residual_category: str = DEFAULT_RESIDUAL_CATEGORY


def _ci(rx: str) -> Pattern:
    return re.compile(rx, re.IGNORECASE)


def build_rules(
    *,
    version: str = DEFAULT_VERSION,
    promotional_sender: str = DEFAULT_PROMOTIONAL_SENDER,
    bank_senders: List[str] | None = None,
    sender_prefix: str = DEFAULT_SENDER_PREFIX,
    bank_indicators: List[str] | None = None,
    spam_indicators: List[str] | None = None,
    transaction_hint: str = DEFAULT_TRANSACTION_HINT,
    account_patterns: List[str] | None = None,
    amount_pattern: str = DEFAULT_AMOUNT_PATTERN,
    credit_verbs: str = DEFAULT_CREDIT_VERBS,
    debit_verbs: str = DEFAULT_DEBIT_VERBS,
    payment_handle: str = DEFAULT_PAYMENT_HANDLE,
    merchant_phrase: str = DEFAULT_MERCHANT_PHRASE,
    routing_prefix: str = DEFAULT_ROUTING_PREFIX,
    date_pattern: str = DEFAULT_DATE_PATTERN,
    known_merchants: Dict[str, str] | None = None,
    category_keywords: Dict[str, List[str]] | None = None,
    residual_category: str = DEFAULT_RESIDUAL_CATEGORY,
) -> SmsRuleSet:
    """
    Compile a rule set. Any table left as None uses the default table.

    Raises re.error if a supplied pattern does not compile.
    """
    if bank_senders is None:
        bank_senders = DEFAULT_BANK_SENDERS
    if bank_indicators is None:
        bank_indicators = DEFAULT_BANK_INDICATORS
    if spam_indicators is None:
        spam_indicators = DEFAULT_SPAM_INDICATORS
    if account_patterns is None:
        account_patterns = DEFAULT_ACCOUNT_PATTERNS
    if known_merchants is None:
        known_merchants = DEFAULT_KNOWN_MERCHANTS
    if category_keywords is None:
        category_keywords = DEFAULT_CATEGORY_KEYWORDS

    return SmsRuleSet(
        version=version,
        promotional_sender=_ci(promotional_sender),
        bank_senders=tuple(_ci(rx) for rx in bank_senders),
        # sender headers are upper-case by convention; keep this one strict
        sender_prefix=re.compile(sender_prefix),
        bank_indicators=tuple(_ci(rx) for rx in bank_indicators),
        spam_indicators=tuple(_ci(rx) for rx in spam_indicators),
        transaction_hint=_ci(transaction_hint),
        account_patterns=tuple(_ci(rx) for rx in account_patterns),
        amount_pattern=_ci(amount_pattern),
        credit_verbs=_ci(credit_verbs),
        debit_verbs=_ci(debit_verbs),
        # handles are case-sensitive identifiers
        payment_handle=re.compile(payment_handle),
        merchant_phrase=_ci(merchant_phrase),
        routing_prefix=_ci(routing_prefix),
        date_pattern=re.compile(date_pattern),
        known_merchants={k.upper(): v for k, v in known_merchants.items()},
        category_keywords={k: [w.lower() for w in v] for k, v in category_keywords.items()},
        residual_category=residual_category,
    )


# Keys accepted in SMS_RULES_FILE and the type each must have
_OVERRIDE_KEYS = {
    "version": str,
    "promotional_sender": str,
    "bank_senders": list,
    "bank_indicators": list,
    "spam_indicators": list,
    "account_patterns": list,
    "amount_pattern": str,
    "known_merchants": dict,
    "category_keywords": dict,
    "residual_category": str,
}


def load_rules_file(path: str) -> SmsRuleSet:
    """
    Build a rule set from a JSON override file. Unknown keys and values of the
    wrong type are ignored.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object")

    overrides = {}
    for key, expected in _OVERRIDE_KEYS.items():
        if key in data and isinstance(data[key], expected):
            overrides[key] = data[key]
        elif key in data:
            logger.warning("Ignoring %s in %s: expected %s", key, path, expected.__name__)

    return build_rules(**overrides)


@lru_cache(maxsize=1)
def get_rules() -> SmsRuleSet:
    """Process-wide rule set: SMS_RULES_FILE if usable, else the defaults."""
    path = settings.SMS_RULES_FILE
    if path and os.path.isfile(path):
        try:
            rules = load_rules_file(path)
            logger.info("Loaded SMS rules %s from %s", rules.version, path)
            return rules
        except (OSError, ValueError, re.error) as e:
            logger.warning("Could not load SMS rules from %s (%s); using defaults", path, e)
    return build_rules()


def reload_rules() -> SmsRuleSet:
    get_rules.cache_clear()
    return get_rules()

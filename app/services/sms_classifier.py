# app/services/sms_classifier.py
"""
Sender/content gate for inbound SMS.

Public API:
    is_known_bank_sender(sender, rules=None) -> bool
    classify(text, sender, rules=None) -> SmsValidation

Decision order:
    1. promotional route header ("-P")      -> reject, confidence 0
    2. known bank sender                    -> +0.5
    3. >= 2 bank indicator categories       -> +0.5
    4. any spam indicator                   -> reject, confidence 0
    5. accept at >= 0.4 for known banks, >= 0.8 otherwise
"""

from __future__ import annotations

from dataclasses import dataclass

from app.services.sms_rules import SmsRuleSet, get_rules
from app.services.text_normalizer import normalize_message

KNOWN_SENDER_SCORE = 0.5
KEYWORD_SCORE = 0.5
MIN_INDICATOR_CATEGORIES = 2
KNOWN_SENDER_THRESHOLD = 0.4
UNKNOWN_SENDER_THRESHOLD = 0.8

REASON_PROMOTIONAL = "Ignored Promotional Sender (-P)"
REASON_SPAM = "Contains spam keywords"
REASON_KNOWN_SENDER = "Known Bank Sender"
REASON_KEYWORDS = "Contains transaction keywords"


@dataclass(frozen=True)
class SmsValidation:
    accept: bool
    is_transaction: bool
    confidence: float
    reason: str = ""
    known_sender: bool = False
    indicator_matches: int = 0


def is_known_bank_sender(sender: str | None, rules: SmsRuleSet | None = None) -> bool:
    rules = rules or get_rules()
    s = sender or ""
    return any(rx.search(s) for rx in rules.bank_senders)


def count_indicator_categories(text: str, rules: SmsRuleSet | None = None) -> int:
    rules = rules or get_rules()
    return sum(1 for rx in rules.bank_indicators if rx.search(text))


def has_spam_indicator(text: str, rules: SmsRuleSet | None = None) -> bool:
    rules = rules or get_rules()
    return any(rx.search(text) for rx in rules.spam_indicators)


def classify(text: str, sender: str | None, rules: SmsRuleSet | None = None) -> SmsValidation:
    rules = rules or get_rules()
    sender = (sender or "").strip()
    body = normalize_message(text)

    if rules.promotional_sender.search(sender):
        return SmsValidation(False, False, 0.0, REASON_PROMOTIONAL)

    confidence = 0.0
    reasons = []

    known = is_known_bank_sender(sender, rules)
    if known:
        confidence += KNOWN_SENDER_SCORE
        reasons.append(REASON_KNOWN_SENDER)

    matches = count_indicator_categories(body, rules)
    if matches >= MIN_INDICATOR_CATEGORIES:
        confidence += KEYWORD_SCORE
        reasons.append(REASON_KEYWORDS)

    if has_spam_indicator(body, rules):
        return SmsValidation(False, False, 0.0, REASON_SPAM, known, matches)

    threshold = KNOWN_SENDER_THRESHOLD if known else UNKNOWN_SENDER_THRESHOLD

    return SmsValidation(
        accept=confidence >= threshold,
        is_transaction=matches >= MIN_INDICATOR_CATEGORIES,
        confidence=confidence,
        reason="; ".join(reasons),
        known_sender=known,
        indicator_matches=matches,
    )

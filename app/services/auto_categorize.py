# filename: app/services/auto_categorize.py
"""
Keyword-based auto-categorization of merchant names.

Design goals:
- Safe: never raises exceptions to callers
- Strict: only returns categories the owner actually has
- Simple: first category whose keyword list hits the merchant name wins

Public API:
    categorize(merchant_name, allowed_categories, rules=None)
        -> (category: str|None, confidence: float, reason: str)
    category_id_for_merchant(db, owner_id, merchant_name, rules=None)
        -> int|None
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Tuple

from sqlalchemy.orm import Session

from models import Category
from app.services.sms_rules import SmsRuleSet, get_rules

logger = logging.getLogger(__name__)

KEYWORD_CONFIDENCE = 0.7
RESIDUAL_CONFIDENCE = 0.3


def _clean_text(s, max_len: int = 120) -> str:
    t = str(s or "").strip()
    if len(t) > max_len:
        t = t[:max_len].rstrip()
    return t


def _normalize_allowed(allowed_categories: Iterable[str]) -> Dict[str, str]:
    """Case-insensitive name -> original name."""
    return {str(c).strip().lower(): str(c) for c in allowed_categories if str(c).strip() != ""}


def categorize(
    merchant_name: str,
    allowed_categories: Iterable[str] = (),
    rules: SmsRuleSet | None = None,
) -> Tuple[Optional[str], float, str]:
    """
    Returns:
        (category, confidence, reason)
    Where:
        - category is one of allowed_categories, or None
        - reason names the keyword that fired
    """
    rules = rules or get_rules()
    allowed_ci = _normalize_allowed(allowed_categories)

    if not allowed_ci:
        return None, 0.0, "no_allowed_categories"

    lower = _clean_text(merchant_name).lower()
    if not lower:
        return None, 0.0, "empty_merchant"

    for category_name, keywords in rules.category_keywords.items():
        hit = next((kw for kw in keywords if kw in lower), None)
        if hit is None:
            continue
        mapped = allowed_ci.get(category_name.lower())
        if mapped is not None:
            return mapped, KEYWORD_CONFIDENCE, f"keyword:{hit}"

    # Bare UPI tokens end up in the residual bucket
    if "upi" in lower:
        mapped = allowed_ci.get(rules.residual_category.lower())
        if mapped is not None:
            return mapped, RESIDUAL_CONFIDENCE, "upi_residual"

    return None, 0.0, "no_keyword_match"


def category_id_for_merchant(
    db: Session,
    owner_id: int,
    merchant_name: str,
    rules: SmsRuleSet | None = None,
) -> Optional[int]:
    """Pick one of the owner's category ids for `merchant_name`, or None."""
    rows = db.query(Category.id, Category.name).filter(Category.owner_id == owner_id).all()
    by_name = {name: cid for cid, name in rows}

    category, confidence, reason = categorize(merchant_name, by_name.keys(), rules)
    if category is None:
        logger.debug("No category for %r (%s)", merchant_name, reason)
        return None

    logger.debug("Auto-categorized %r as %s (%.1f, %s)", merchant_name, category, confidence, reason)
    return by_name[category]

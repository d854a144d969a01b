# app/services/backfill.py
#
# One-shot data healing for rows stored before original_merchant existed.
#
# Only rows whose original_merchant is still NULL are touched; a row that
# already carries its raw token is never rewritten.
#
# 1. legacy rows whose merchant equals the display name of exactly one of
#    the owner's rules get that rule's raw name back
# 2. every other legacy row gets original_merchant = merchant
#
# A second run finds no NULL rows and changes nothing.

import logging
from collections import defaultdict
from typing import Dict, List

from sqlalchemy.orm import Session

from models import MerchantMapping, Subscription, Transaction

logger = logging.getLogger(__name__)


def _unambiguous_rules(session: Session) -> Dict[int, Dict[str, str]]:
    """owner -> {display name: raw name} for display names used by one rule only."""
    by_owner: Dict[int, Dict[str, List[str]]] = defaultdict(lambda: defaultdict(list))

    # owner-less template rules describe no one's transactions
    for m in session.query(MerchantMapping).filter(MerchantMapping.owner_id.isnot(None)):
        by_owner[m.owner_id][m.display_name].append(m.sms_name)

    return {
        owner_id: {display: raws[0] for display, raws in names.items() if len(raws) == 1}
        for owner_id, names in by_owner.items()
    }


def backfill_original_merchant(session: Session) -> Dict[str, int]:
    """Returns how many rows each step touched."""
    counts = {"defaulted": 0, "restored": 0, "subscriptions": 0}

    for owner_id, names in _unambiguous_rules(session).items():
        for display_name, sms_name in names.items():
            counts["restored"] += (
                session.query(Transaction)
                .filter(
                    Transaction.owner_id == owner_id,
                    Transaction.original_merchant.is_(None),
                    Transaction.merchant == display_name,
                )
                .update({Transaction.original_merchant: sms_name}, synchronize_session=False)
            )
            counts["subscriptions"] += (
                session.query(Subscription)
                .filter(
                    Subscription.owner_id == owner_id,
                    Subscription.original_merchant.is_(None),
                    Subscription.merchant == display_name,
                )
                .update({Subscription.original_merchant: sms_name}, synchronize_session=False)
            )

    counts["defaulted"] = (
        session.query(Transaction)
        .filter(Transaction.original_merchant.is_(None))
        .update({Transaction.original_merchant: Transaction.merchant}, synchronize_session=False)
    )
    counts["subscriptions"] += (
        session.query(Subscription)
        .filter(Subscription.original_merchant.is_(None))
        .update({Subscription.original_merchant: Subscription.merchant}, synchronize_session=False)
    )

    session.commit()
    logger.info(
        "Backfill complete: %d restored from rules, %d defaulted",
        counts["restored"],
        counts["defaulted"],
    )
    return counts

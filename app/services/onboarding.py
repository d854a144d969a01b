# app/services/onboarding.py
#
# First-use setup for a user: copy the default categories and the default
# merchant rules into the user's own namespace. Lookups never read the global
# defaults live, so users can edit or delete their copies freely.

import logging
from typing import Dict

from sqlalchemy.orm import Session

from models import Category, MerchantMapping

logger = logging.getLogger(__name__)


# ---- Seed data ----

DEFAULT_CATEGORIES = [
    {"name": "Food & Dining", "icon": "restaurant", "color": "#ef4444"},
    {"name": "Shopping", "icon": "shopping-cart", "color": "#f97316"},
    {"name": "Transportation", "icon": "directions-car", "color": "#eab308"},
    {"name": "Entertainment", "icon": "movie", "color": "#22c55e"},
    {"name": "Bills & Utilities", "icon": "receipt", "color": "#3b82f6"},
    {"name": "Health", "icon": "favorite", "color": "#ec4899"},
    {"name": "Education", "icon": "book", "color": "#8b5cf6"},
    {"name": "Travel", "icon": "flight", "color": "#06b6d4"},
    {"name": "Groceries", "icon": "shopping-basket", "color": "#84cc16"},
    {"name": "Other", "icon": "more-horiz", "color": "#6b7280"},
]

# (raw SMS token, display name, default category name)
DEFAULT_MERCHANT_MAPPINGS = [
    ("ZOMATO", "Zomato", "Food & Dining"),
    ("SWIGGY", "Swiggy", "Food & Dining"),
    ("AMAZON", "Amazon", "Shopping"),
    ("FLIPKART", "Flipkart", "Shopping"),
    ("UBER", "Uber", "Transportation"),
    ("OLA", "Ola", "Transportation"),
    ("NETFLIX", "Netflix", "Entertainment"),
    ("SPOTIFY", "Spotify", "Entertainment"),
    ("BOOKMYSHOW", "BookMyShow", "Entertainment"),
    ("AIRTEL", "Airtel", "Bills & Utilities"),
    ("JIO", "Jio", "Bills & Utilities"),
    ("ELECTRICITY", "Electricity", "Bills & Utilities"),
]


def seed_global_defaults(db: Session) -> None:
    """Create the owner-less template rows once (safe to call on every startup)."""
    existing = {
        name for (name,) in db.query(Category.name).filter(Category.owner_id.is_(None)).all()
    }
    for cat in DEFAULT_CATEGORIES:
        if cat["name"] not in existing:
            db.add(Category(owner_id=None, **cat))
    db.flush()

    ids = {
        c.name: c.id for c in db.query(Category).filter(Category.owner_id.is_(None)).all()
    }
    mapped = {
        sms for (sms,) in db.query(MerchantMapping.sms_name).filter(MerchantMapping.owner_id.is_(None)).all()
    }
    for sms_name, display_name, cat_name in DEFAULT_MERCHANT_MAPPINGS:
        if sms_name not in mapped:
            db.add(
                MerchantMapping(
                    sms_name=sms_name,
                    display_name=display_name,
                    category_id=ids.get(cat_name),
                    owner_id=None,
                )
            )
    db.commit()


def ensure_user_initialized(db: Session, owner_id: int) -> bool:
    """
    Give `owner_id` their own copy of the defaults on first use.

    Returns True when anything was created.
    """
    has_categories = (
        db.query(Category.id).filter(Category.owner_id == owner_id).first() is not None
    )
    if has_categories:
        return False

    seed_global_defaults(db)

    logger.info("Initializing categories for user %s", owner_id)

    # template id -> the user's copy
    category_map: Dict[int, int] = {}
    for tpl in db.query(Category).filter(Category.owner_id.is_(None)).order_by(Category.id).all():
        copy = Category(
            name=tpl.name,
            icon=tpl.icon,
            color=tpl.color,
            budget_limit=tpl.budget_limit,
            owner_id=owner_id,
        )
        db.add(copy)
        db.flush()
        category_map[tpl.id] = copy.id

    has_mappings = (
        db.query(MerchantMapping.id).filter(MerchantMapping.owner_id == owner_id).first() is not None
    )
    if not has_mappings:
        defaults = db.query(MerchantMapping).filter(MerchantMapping.owner_id.is_(None)).all()
        for m in defaults:
            db.add(
                MerchantMapping(
                    sms_name=m.sms_name,
                    display_name=m.display_name,
                    category_id=category_map.get(m.category_id, m.category_id),
                    owner_id=owner_id,
                )
            )

    db.commit()
    logger.info("Initialization complete for user %s", owner_id)
    return True

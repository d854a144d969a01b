import json

import pytest

from models import Category, MerchantMapping
from app import settings
from app.services.onboarding import (
    DEFAULT_CATEGORIES,
    DEFAULT_MERCHANT_MAPPINGS,
    ensure_user_initialized,
)
from app.services.sms_rules import DEFAULT_VERSION, load_rules_file, reload_rules


# ---- onboarding ----

def test_first_use_copies_defaults(db):
    assert ensure_user_initialized(db, 3)
    assert not ensure_user_initialized(db, 3)

    categories = db.query(Category).filter(Category.owner_id == 3).all()
    assert len(categories) == len(DEFAULT_CATEGORIES)

    mappings = db.query(MerchantMapping).filter(MerchantMapping.owner_id == 3).all()
    assert len(mappings) == len(DEFAULT_MERCHANT_MAPPINGS)

    # rules point at the user's own category copies
    own_ids = {c.id for c in categories}
    assert all(m.category_id in own_ids for m in mappings)


def test_users_get_separate_copies(db):
    ensure_user_initialized(db, 3)
    ensure_user_initialized(db, 4)

    ids_3 = {c.id for c in db.query(Category).filter(Category.owner_id == 3)}
    ids_4 = {c.id for c in db.query(Category).filter(Category.owner_id == 4)}
    assert ids_3.isdisjoint(ids_4)
    # templates were created once
    assert db.query(Category).filter(Category.owner_id.is_(None)).count() == len(DEFAULT_CATEGORIES)


# ---- rule overrides ----

def test_rules_file_overrides_listed_tables(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(
        json.dumps(
            {
                "version": "test-1",
                "bank_senders": ["MYBANK"],
                "spam_indicators": "not a list",
                "known_merchants": {"blinkit": "Blinkit"},
            }
        )
    )

    rules = load_rules_file(str(path))

    assert rules.version == "test-1"
    assert len(rules.bank_senders) == 1
    assert rules.known_merchants == {"BLINKIT": "Blinkit"}
    # wrong type ignored, default kept
    assert len(rules.spam_indicators) > 1


def test_rules_file_must_be_an_object(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text("[]")
    with pytest.raises(ValueError):
        load_rules_file(str(path))


def test_process_rules_follow_settings(tmp_path, monkeypatch):
    good = tmp_path / "rules.json"
    good.write_text(json.dumps({"version": "test-2"}))
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")

    try:
        monkeypatch.setattr(settings, "SMS_RULES_FILE", str(good))
        assert reload_rules().version == "test-2"

        monkeypatch.setattr(settings, "SMS_RULES_FILE", str(broken))
        assert reload_rules().version == DEFAULT_VERSION
    finally:
        monkeypatch.undo()
        reload_rules()

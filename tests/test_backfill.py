from datetime import date

from models import MerchantMapping, Subscription, Transaction
from app.services.backfill import backfill_original_merchant
from app.services.merchant_resolver import save_merchant_name
from app.services.transaction_store import insert_transaction

# an owner with no onboarding, like a pre-migration database
LEGACY_OWNER = 5


def _legacy_tx(db, merchant, owner_id=LEGACY_OWNER):
    tx = Transaction(
        amount=100,
        direction="debit",
        merchant=merchant,
        original_merchant=None,
        owner_id=owner_id,
        date=date(2024, 1, 1),
    )
    db.add(tx)
    return tx


def test_backfill_restores_raw_tokens_and_is_repeatable(db):
    renamed = _legacy_tx(db, "Zomato")
    untouched = _legacy_tx(db, "CHAI POINT")
    db.add(
        Subscription(
            merchant="Zomato",
            original_merchant=None,
            amount=199,
            frequency="monthly",
            next_date=date(2024, 2, 1),
            owner_id=LEGACY_OWNER,
        )
    )
    db.add(MerchantMapping(sms_name="UPI-ZOMATO-1", display_name="Zomato", owner_id=LEGACY_OWNER))
    db.commit()

    counts = backfill_original_merchant(db)

    assert counts == {"defaulted": 1, "restored": 1, "subscriptions": 1}
    assert db.get(Transaction, renamed.id).original_merchant == "UPI-ZOMATO-1"
    assert db.get(Transaction, untouched.id).original_merchant == "CHAI POINT"
    assert db.query(Subscription).one().original_merchant == "UPI-ZOMATO-1"

    again = backfill_original_merchant(db)

    assert again == {"defaulted": 0, "restored": 0, "subscriptions": 0}
    assert db.get(Transaction, renamed.id).original_merchant == "UPI-ZOMATO-1"
    assert db.get(Transaction, untouched.id).original_merchant == "CHAI POINT"


def test_rows_with_raw_token_are_never_rewritten(db, owner):
    ravi = insert_transaction(
        db, {"amount": 40, "merchant": "8007320919@ybl", "owner_id": owner, "date": date(2024, 1, 2)}
    )
    other = insert_transaction(
        db, {"amount": 60, "merchant": "9999@okaxis", "owner_id": owner, "date": date(2024, 1, 3)}
    )
    # two handles named the same thing
    save_merchant_name(db, "8007320919@ybl", "Chai Point", None, owner)
    save_merchant_name(db, "9999@okaxis", "Chai Point", None, owner)

    counts = backfill_original_merchant(db)

    assert counts["restored"] == 0
    assert db.get(Transaction, ravi).original_merchant == "8007320919@ybl"
    assert db.get(Transaction, other).original_merchant == "9999@okaxis"

    # the raw key still drives a later rename
    _, updated = save_merchant_name(db, "8007320919@ybl", "Ravi", None, owner)
    assert updated == 1
    assert db.get(Transaction, ravi).merchant == "Ravi"
    assert db.get(Transaction, other).merchant == "Chai Point"


def test_ambiguous_display_name_falls_back_to_label(db):
    legacy = _legacy_tx(db, "Chai Point")
    db.add(MerchantMapping(sms_name="8007320919@YBL", display_name="Chai Point", owner_id=LEGACY_OWNER))
    db.add(MerchantMapping(sms_name="9999@OKAXIS", display_name="Chai Point", owner_id=LEGACY_OWNER))
    db.commit()

    counts = backfill_original_merchant(db)

    assert counts["restored"] == 0
    assert db.get(Transaction, legacy.id).original_merchant == "Chai Point"


def test_template_rules_are_ignored(db, owner):
    tx = _legacy_tx(db, "Zomato")
    db.commit()

    backfill_original_merchant(db)

    # owner 5 has no rules of its own; neither templates nor owner 1's rules apply
    assert db.get(Transaction, tx.id).original_merchant == "Zomato"

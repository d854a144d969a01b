from datetime import date, datetime
from decimal import Decimal

import pytest

from app.services.expense_parser import (
    GENERAL_MERCHANT,
    UNKNOWN_MERCHANT,
    clean_merchant_name,
    extract_account_last4,
    extract_amount,
    extract_date,
    extract_merchant,
    get_transaction_type,
    parse_expense,
)


# ---- amount ----

@pytest.mark.parametrize(
    "text, expected",
    [
        ("Rs. 1,234.50 debited", Decimal("1234.50")),
        ("INR 500 credited", Decimal("500")),
        ("Rs500 spent", Decimal("500")),
        ("Rs 12,00,000.00 credited", Decimal("1200000.00")),
    ],
)
def test_extract_amount(text, expected):
    assert extract_amount(text) == expected


def test_missing_or_zero_amount():
    assert extract_amount("debited from your account") is None
    assert extract_amount("Rs 0 debited") is None


def test_inr_credit_parses_amount_and_direction():
    parsed = parse_expense("INR 500 credited to A/c XX9876")
    assert parsed is not None
    assert parsed.amount == Decimal("500")
    assert parsed.direction == "credit"
    assert parsed.account_last4 == "9876"


# ---- direction ----

@pytest.mark.parametrize(
    "text, expected",
    [
        ("Rs 100 Dr. A/c XX1234", "debit"),
        ("Rs 100 Cr. A/c XX1234", "credit"),
        ("Rs 100 Dr. from A/c XX1234 Cr. to A/c XX5678", "debit"),
        ("Refund of Rs 100 for the order you paid", "credit"),
        ("Rs 100 withdrawn at ATM", "debit"),
        ("Rs 100 deposit in your account", "credit"),
        ("Rs 100 moved", "debit"),
    ],
)
def test_transaction_type(text, expected):
    assert get_transaction_type(text) == expected


# ---- account ----

@pytest.mark.parametrize(
    "text, expected",
    [
        ("debited from A/c XX1234", "1234"),
        ("Account ending XX5678 debited", "5678"),
        ("spent on Card XX4321 at", "4321"),
        ("A/c no. **9988 credited", "9988"),
        ("Acct *123 debited", "123"),
    ],
)
def test_account_last4(text, expected):
    assert extract_account_last4(text) == expected


def test_no_account_anchor():
    assert extract_account_last4("Rs 100 paid to SHOP") is None


# ---- merchant ----

def test_payment_handle_kept_verbatim():
    text = "Rs 250.00 sent to 8007320919@ybl from A/c XX1234 on 05-01-24"
    assert extract_merchant(text) == ("8007320919@ybl", False)


def test_known_merchant_fast_path():
    text = "Rs 500.00 debited from A/c XX1234 at STARBUCKS COFFEE on 05-01-24"
    assert extract_merchant(text) == ("Starbucks", True)


def test_phrase_extraction_and_cleaning():
    text = "Rs 120 paid to UPI-CHAIPOINT-987654321 on 03-02-24"
    assert extract_merchant(text) == ("Chaipoint", False)


def test_placeholder_when_nothing_matches():
    assert extract_merchant("Rs 120 debited") == (GENERAL_MERCHANT, False)


def test_clean_strips_routing_prefix_and_long_ids():
    assert clean_merchant_name("UPI/SOMESHOP-123456789") == ("Someshop", False)
    assert clean_merchant_name("NEFT-GREEN LEAF STORE") == ("Green Leaf Store", False)


def test_clean_known_brand():
    assert clean_merchant_name("UPI-ZOMATO-123") == ("Zomato", True)


def test_clean_rejects_long_fragments_and_dates():
    fragment = "your account has been debited for the purchase"
    assert clean_merchant_name(fragment)[0] == UNKNOWN_MERCHANT
    assert clean_merchant_name("ON 2024-01-05")[0] == UNKNOWN_MERCHANT


# ---- date ----

def test_embedded_date():
    assert extract_date("on 05-01-24") == date(2024, 1, 5)
    assert extract_date("on 15/08/2023") == date(2023, 8, 15)


def test_invalid_or_missing_date_falls_back_to_today():
    today = date(2024, 6, 1)
    assert extract_date("on 32-13-24", today=today) == today
    assert extract_date("no date here", today=today) == today


def test_explicit_timestamp_wins():
    text = "Rs 500.00 debited from A/c XX1234 at STARBUCKS COFFEE on 05-01-24"
    parsed = parse_expense(text, True, datetime(2024, 2, 1, 12, 30))
    assert parsed.date == date(2024, 2, 1)


# ---- whole message ----

def test_unknown_sender_needs_account_anchor():
    text = "Rs 500 debited at SHOP"
    assert parse_expense(text, is_known_bank=False) is None

    parsed = parse_expense(text, is_known_bank=True)
    assert parsed is not None
    assert parsed.account_last4 is None


def test_amount_is_mandatory():
    assert parse_expense("Your A/c XX1234 has been debited. Txn Ref 123456", True) is None


def test_needs_money_verb():
    assert parse_expense("Rs 500 balance in A/c XX1234", True) is None


def test_full_parse():
    parsed = parse_expense("Rs 500.00 debited from A/c XX1234 at STARBUCKS COFFEE on 05-01-24", True)
    assert parsed.amount == Decimal("500.00")
    assert parsed.direction == "debit"
    assert parsed.merchant == "Starbucks"
    assert parsed.known_merchant
    assert parsed.account_last4 == "1234"
    assert parsed.date == date(2024, 1, 5)

from datetime import date

import pytest

from app.services.analytics import (
    calculate_burn_rate,
    generate_insights,
    get_chart_data,
    get_monthly_comparison,
)
from app.services.date_helpers import get_month_range, previous_month, shift_months
from app.services.subscriptions import DetectedSubscription, save_subscriptions
from app.services.transaction_store import insert_transaction

TODAY = date(2024, 3, 20)


@pytest.fixture
def spending(db):
    for on, amount in (
        (date(2024, 2, 25), 100),
        (date(2024, 3, 1), 100),
        (date(2024, 3, 10), 300),
        (date(2024, 3, 15), 300),
    ):
        insert_transaction(
            db,
            {"amount": amount, "direction": "debit", "merchant": "Shop", "owner_id": 1, "date": on},
            check_duplicates=False,
        )
    insert_transaction(
        db,
        {"amount": 50000, "direction": "credit", "merchant": "Salary", "owner_id": 1, "date": date(2024, 3, 5)},
    )
    return db


# ---- date helpers ----

def test_month_range():
    assert get_month_range("2024-02") == (date(2024, 2, 1), date(2024, 2, 29), "2024-02")
    assert get_month_range("garbage", today=TODAY) == (date(2024, 3, 1), date(2024, 3, 31), "2024-03")
    assert get_month_range("2024-13", today=TODAY)[2] == "2024-03"


def test_shift_months_clamps():
    assert shift_months(date(2024, 3, 31), -1) == date(2024, 2, 29)
    assert shift_months(date(2024, 1, 15), -6) == date(2023, 7, 15)
    assert previous_month(date(2024, 1, 10)) == (2023, 12)


# ---- burn rate ----

def test_burn_rate(spending):
    burn = calculate_burn_rate(spending, 1, budget_limit=1000, today=TODAY)

    daily = 800 / 30
    assert burn.daily_average == pytest.approx(daily)
    assert burn.weekly_average == pytest.approx(daily * 7)
    assert burn.monthly_projection == pytest.approx(700 + daily * 11)
    assert burn.days_until_budget_exhausted == 11
    assert burn.trend == "increasing"
    assert burn.trend_percentage == pytest.approx(200.0)


def test_burn_rate_budget_already_spent(spending):
    assert calculate_burn_rate(spending, 1, budget_limit=500, today=TODAY).days_until_budget_exhausted == 0


def test_burn_rate_without_data(db):
    burn = calculate_burn_rate(db, 1, budget_limit=1000, today=TODAY)
    assert burn.daily_average == 0
    assert burn.days_until_budget_exhausted is None
    assert burn.trend == "stable"


def test_monthly_comparison(spending):
    comparison = get_monthly_comparison(spending, 1, today=TODAY)
    assert comparison.current_month == pytest.approx(700.0)
    assert comparison.previous_month == pytest.approx(100.0)
    assert comparison.percentage_change == pytest.approx(600.0)


def test_insights(spending):
    titles = [i["title"] for i in generate_insights(spending, 1, today=TODAY)]
    assert titles == ["Spending Increasing", "Higher Than Last Month"]


def test_insights_budget_alert_and_subscriptions(spending):
    save_subscriptions(spending, [DetectedSubscription("Netflix", 199, "monthly", 1.0, date(2024, 4, 1))], 1)

    insights = generate_insights(spending, 1, total_budget=800, today=TODAY)

    by_title = {i["title"]: i for i in insights}
    assert by_title["Budget Alert"]["type"] == "warning"
    assert by_title["Recurring Payments"]["description"] == "Rs 199 in monthly subscriptions"


def test_chart_data(spending):
    chart = get_chart_data(spending, 1, days=30, today=TODAY)
    assert chart[0] == {"date": "2024-02-25", "amount": pytest.approx(100.0)}
    assert [p["date"] for p in chart] == ["2024-02-25", "2024-03-01", "2024-03-10", "2024-03-15"]

# app/services/analytics.py
"""
Spending analytics: burn rate, month-over-month comparison, insights and
the daily chart series. Everything here reads debit transactions through
transaction_store.aggregate_spending.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.services.date_helpers import days_in_month, get_month_range, previous_month
from app.services.subscriptions import monthly_subscription_cost
from app.services.transaction_store import aggregate_spending

ROLLING_WINDOW_DAYS = 30
TREND_THRESHOLD = 10.0


@dataclass
class BurnRate:
    daily_average: float
    weekly_average: float
    monthly_projection: float
    days_until_budget_exhausted: Optional[int]
    trend: str  # "increasing" | "decreasing" | "stable"
    trend_percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MonthlyComparison:
    current_month: float
    previous_month: float
    percentage_change: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _trend(daily_totals: List[float]):
    """Second half of the window vs the first half, by average per active day."""
    if len(daily_totals) < 2:
        return "stable", 0.0

    midpoint = len(daily_totals) // 2
    first, second = daily_totals[:midpoint], daily_totals[midpoint:]
    first_avg = sum(first) / len(first) if first else 0.0
    second_avg = sum(second) / len(second) if second else 0.0

    if first_avg <= 0:
        return "stable", 0.0

    pct = (second_avg - first_avg) / first_avg * 100
    if pct > TREND_THRESHOLD:
        return "increasing", abs(pct)
    if pct < -TREND_THRESHOLD:
        return "decreasing", abs(pct)
    return "stable", abs(pct)


def calculate_burn_rate(
    db: Session,
    owner_id: int,
    budget_limit: Optional[float] = None,
    today: Optional[date] = None,
) -> BurnRate:
    today = today or date.today()

    # Rolling window; zero-spend days count, so divide by the window length
    window_start = today - timedelta(days=ROLLING_WINDOW_DAYS)
    daily = aggregate_spending(db, owner_id, window_start, today, group_by="date")
    daily_totals = [d["total"] for d in daily]

    daily_average = sum(daily_totals) / ROLLING_WINDOW_DAYS
    weekly_average = daily_average * 7

    month_start, month_end, _ = get_month_range(today=today)
    spent_this_month = aggregate_spending(db, owner_id, month_start, month_end)
    days_remaining = days_in_month(today.year, today.month) - today.day

    monthly_projection = spent_this_month + daily_average * days_remaining

    days_left = None
    if budget_limit and daily_average > 0:
        remaining = budget_limit - spent_this_month
        days_left = int(remaining // daily_average) if remaining > 0 else 0

    trend, trend_pct = _trend(daily_totals)

    return BurnRate(
        daily_average=daily_average,
        weekly_average=weekly_average,
        monthly_projection=monthly_projection,
        days_until_budget_exhausted=days_left,
        trend=trend,
        trend_percentage=trend_pct,
    )


def get_monthly_comparison(db: Session, owner_id: int, today: Optional[date] = None) -> MonthlyComparison:
    today = today or date.today()

    cur_start, cur_end, _ = get_month_range(today=today)
    year, month = previous_month(today)
    prev_start, prev_end, _ = get_month_range(f"{year:04d}-{month:02d}")

    current = aggregate_spending(db, owner_id, cur_start, cur_end)
    previous = aggregate_spending(db, owner_id, prev_start, prev_end)
    change = (current - previous) / previous * 100 if previous > 0 else 0.0

    return MonthlyComparison(current_month=current, previous_month=previous, percentage_change=change)


def generate_insights(
    db: Session,
    owner_id: int,
    total_budget: Optional[float] = None,
    today: Optional[date] = None,
) -> List[Dict[str, str]]:
    insights: List[Dict[str, str]] = []
    burn = calculate_burn_rate(db, owner_id, total_budget, today)
    comparison = get_monthly_comparison(db, owner_id, today)
    subscription_cost = monthly_subscription_cost(db, owner_id)

    # Budget
    if burn.days_until_budget_exhausted is not None:
        if burn.days_until_budget_exhausted <= 5:
            insights.append({
                "type": "warning",
                "title": "Budget Alert",
                "description": f"At current rate, budget exhausts in {burn.days_until_budget_exhausted} days",
            })
        elif burn.days_until_budget_exhausted > 15:
            insights.append({
                "type": "success",
                "title": "On Track",
                "description": "Your spending is within budget",
            })

    # Trend
    if burn.trend == "increasing" and burn.trend_percentage > 20:
        insights.append({
            "type": "warning",
            "title": "Spending Increasing",
            "description": f"Spending up {round(burn.trend_percentage)}% this week",
        })
    elif burn.trend == "decreasing" and burn.trend_percentage > 15:
        insights.append({
            "type": "success",
            "title": "Good Progress",
            "description": f"Spending down {round(burn.trend_percentage)}% this week",
        })

    # Month comparison
    if comparison.percentage_change > 25:
        insights.append({
            "type": "warning",
            "title": "Higher Than Last Month",
            "description": f"Spending {round(comparison.percentage_change)}% more than last month",
        })
    elif comparison.percentage_change < -15:
        insights.append({
            "type": "success",
            "title": "Saving More",
            "description": f"Spending {round(abs(comparison.percentage_change))}% less than last month",
        })

    if subscription_cost > 0:
        insights.append({
            "type": "info",
            "title": "Recurring Payments",
            "description": f"Rs {round(subscription_cost)} in monthly subscriptions",
        })

    return insights


def get_chart_data(db: Session, owner_id: int, days: int = 30, today: Optional[date] = None):
    today = today or date.today()
    rows = aggregate_spending(db, owner_id, today - timedelta(days=days), today, group_by="date")
    return [{"date": r["date"].isoformat(), "amount": r["total"]} for r in rows]

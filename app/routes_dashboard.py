# app/routes_dashboard.py

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from .deps import get_db, require_owner
from models import Category, Transaction
from app.services.analytics import (
    calculate_burn_rate,
    generate_insights,
    get_chart_data,
    get_monthly_comparison,
)
from app.services.date_helpers import get_month_range
from app.services.subscriptions import monthly_subscription_cost
from app.services.transaction_store import aggregate_spending

router = APIRouter()


@router.get("/dashboard")
def dashboard(
    month: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    owner_id: int = Depends(require_owner),
):
    today = date.today()
    month_start, month_end, normalized_month = get_month_range(month, today=today)
    month_label = month_start.strftime("%B %Y")

    in_month = (
        Transaction.owner_id == owner_id,
        Transaction.date >= month_start,
        Transaction.date <= month_end,
    )

    # Monthly totals
    income, expenses, tx_count = (
        db.query(
            func.coalesce(
                func.sum(case((Transaction.direction == "credit", Transaction.amount), else_=0)), 0
            ).label("income"),
            func.coalesce(
                func.sum(case((Transaction.direction == "debit", Transaction.amount), else_=0)), 0
            ).label("expenses"),
            func.count(Transaction.id),
        )
        .filter(*in_month)
        .one()
    )
    income = float(income)
    expenses = float(expenses)

    # Spending by category (debits only), with budget usage
    categories = {
        c.id: c for c in db.query(Category).filter(Category.owner_id == owner_id).all()
    }
    spending_by_category = []
    for row in aggregate_spending(db, owner_id, month_start, month_end, group_by="category"):
        cat = categories.get(row["category_id"])
        budget = cat.budget_limit if cat else None
        spending_by_category.append(
            {
                "category_id": row["category_id"],
                "label": cat.name if cat else "Uncategorized",
                "value": row["total"],
                "budget_limit": budget,
                "budget_used_pct": (row["total"] / budget * 100) if budget else None,
            }
        )

    total_budget = sum(c.budget_limit for c in categories.values() if c.budget_limit) or None

    # 10 biggest transactions of the month
    top_transactions = (
        db.query(Transaction)
        .filter(*in_month)
        .order_by(Transaction.amount.desc(), Transaction.date.desc())
        .limit(10)
        .all()
    )

    return {
        "month": normalized_month,
        "month_label": month_label,
        "income": income,
        "expenses": expenses,
        "net": income - expenses,
        "tx_count_month": int(tx_count),
        "spending_by_category": spending_by_category,
        "total_budget": total_budget,
        "burn_rate": calculate_burn_rate(db, owner_id, total_budget, today).to_dict(),
        "monthly_comparison": get_monthly_comparison(db, owner_id, today).to_dict(),
        "insights": generate_insights(db, owner_id, total_budget, today),
        "subscription_monthly_cost": monthly_subscription_cost(db, owner_id),
        "chart": get_chart_data(db, owner_id, 30, today),
        "top_transactions": [
            {
                "id": t.id,
                "date": t.date.isoformat(),
                "merchant": t.merchant,
                "amount": float(t.amount),
                "direction": t.direction,
            }
            for t in top_transactions
        ],
    }
